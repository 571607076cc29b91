"""
Client for the external blob store.
Uploads and deletes image files over HTTP with a bearer token. Every
failure is returned as a BlobResult; nothing here raises.
"""
import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import requests

from ..config import BLOB_API_BASE, BLOB_KEY_PREFIX, BLOB_TIMEOUT
from ..log import logger

_URL_PATTERN = re.compile(r'^https?://', re.IGNORECASE)
_KEY_PATTERN = re.compile(r'/v1/blob/(.+)$')


@dataclass
class BlobResult:
    success: bool
    url: str = ''
    error: Optional[str] = None


class BlobStoreClient:
    def __init__(
        self,
        token: str,
        api_base: str = BLOB_API_BASE,
        timeout: float = BLOB_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.token = token or ''
        self.api_base = (api_base or BLOB_API_BASE).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _headers(self, content_type: Optional[str] = None) -> dict:
        h = {"Authorization": f"Bearer {self.token}"}
        if content_type:
            h["Content-Type"] = content_type
        return h

    def _url(self, key: str) -> str:
        return f"{self.api_base}/{key.lstrip('/')}"

    @staticmethod
    def key_from_url(target: str) -> str:
        """
        Storage key for a key or full URL. URLs are reduced to the path after
        /v1/blob/, or to images/<basename> when that prefix is missing.
        """
        if not _URL_PATTERN.match(target):
            return target
        match = _KEY_PATTERN.search(target)
        if match:
            return match.group(1)
        basename = os.path.basename(urlparse(target).path)
        if basename:
            return f"{BLOB_KEY_PREFIX}/{basename}"
        return target

    def put(self, target_key: str, local_file_path: str) -> BlobResult:
        """Upload a local file under target_key and return its public URL."""
        if not self.configured:
            return BlobResult(False, error="No blob token configured")

        url = self._url(target_key)
        try:
            with open(local_file_path, 'rb') as f:
                data = f.read()
            resp = self.session.put(
                url,
                headers={**self._headers("application/octet-stream"), "Content-Length": str(len(data))},
                data=data,
                timeout=self.timeout,
            )
        except (OSError, requests.RequestException) as e:
            logger.warning("Blob upload of {} failed: {}", target_key, e)
            return BlobResult(False, error=str(e))

        if not resp.ok:
            error = f"HTTP {resp.status_code}: {resp.text}"
            logger.warning("Blob upload of {} failed: {}", target_key, error)
            return BlobResult(False, error=error)

        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("url"):
            return BlobResult(True, url=body["url"])
        return BlobResult(True, url=url)

    def delete(self, target_key_or_url: str) -> BlobResult:
        """Delete a stored blob by key or by the URL put() returned."""
        if not self.configured:
            return BlobResult(False, error="No blob token configured")

        key = self.key_from_url(target_key_or_url)
        try:
            resp = self.session.delete(
                self._url(key),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Blob delete of {} failed: {}", key, e)
            return BlobResult(False, error=str(e))

        if not resp.ok:
            error = f"HTTP {resp.status_code}: {resp.text}"
            logger.warning("Blob delete of {} failed: {}", key, error)
            return BlobResult(False, error=error)
        return BlobResult(True)
