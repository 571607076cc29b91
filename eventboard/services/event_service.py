"""
EventService class for business logic.
Validates submitted events, stores their images (blob store first, local
uploads folder as fallback) and delegates persistence to the repository.
"""
import os
import secrets
import string
import time
from typing import Optional, List, Dict, Any, Tuple

from werkzeug.datastructures import FileStorage

from ..config import ALLOWED_EXTENSIONS, ALLOWED_MIME_TYPES, BLOB_KEY_PREFIX, UPLOAD_FOLDER
from ..exceptions import PersistenceError, StorageError
from ..log import logger
from ..models.event import Event, utc_timestamp
from ..repositories.event_repository import EventRepository
from .blob_store import BlobStoreClient

_BASE36 = string.digits + string.ascii_lowercase


def unique_filename(original: str) -> str:
    """<epoch ms>_<9 random base36 chars><original extension>"""
    # Raw client name; only an allowed extension survives
    ext = os.path.splitext(original or '')[1].lower()
    if ext.lstrip('.') not in ALLOWED_EXTENSIONS:
        ext = ''
    token = ''.join(secrets.choice(_BASE36) for _ in range(9))
    return f"{int(time.time() * 1000)}_{token}{ext}"


class EventService:
    """
    Service class for event business logic.
    Handles validation and image storage, and delegates to the repository.
    """

    def __init__(
        self,
        repository: EventRepository,
        blob_client: BlobStoreClient,
        upload_folder: str = UPLOAD_FOLDER,
        blob_required: bool = False,
        image_required: bool = True
    ):
        self.repository = repository
        self.blob_client = blob_client
        self.upload_folder = upload_folder
        self.blob_required = blob_required
        self.image_required = image_required
        self._ensure_upload_folder()

    def _ensure_upload_folder(self) -> None:
        """Ensure the upload folder exists."""
        if not os.path.exists(self.upload_folder):
            os.makedirs(self.upload_folder)

    def _allowed_file(self, filename: str) -> bool:
        """Check if a file has an allowed extension."""
        return '.' in filename and \
               filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS

    def validate_image(self, file: Optional[FileStorage]) -> Optional[str]:
        """Return an error message if the upload is not an acceptable image."""
        if not file or not file.filename:
            return "Image is required" if self.image_required else None
        if not self._allowed_file(file.filename):
            return "Invalid file type. Only JPEG, JPG, GIF, and PNG are allowed."
        if (file.mimetype or '').lower() not in ALLOWED_MIME_TYPES:
            return "Invalid file type. Only JPEG, JPG, GIF, and PNG are allowed."
        return None

    def store_image(self, file: FileStorage) -> str:
        """
        Save an upload and relay it to the blob store.
        Returns the blob URL, or the local filename when the blob store is
        unavailable and local storage is allowed. Raises StorageError when
        the blob store is required and the upload failed.
        """
        filename = unique_filename(file.filename)
        path = os.path.join(self.upload_folder, filename)
        file.save(path)

        result = self.blob_client.put(f"{BLOB_KEY_PREFIX}/{filename}", path)
        if result.success:
            self._discard(path)
            return result.url

        if self.blob_required:
            self._discard(path)
            raise StorageError(f"Image upload failed: {result.error}")

        logger.warning("Blob upload failed, keeping local image {}: {}", filename, result.error)
        return filename

    def _discard(self, path: str) -> None:
        try:
            os.remove(path)
        except OSError:
            pass

    def list_events(self) -> List[Event]:
        """Get all events, newest first."""
        return self.repository.find_all()

    def get_event(self, event_id: int) -> Optional[Event]:
        """Get a single event by ID."""
        return self.repository.find_by_id(event_id)

    def create_event(
        self,
        form: Dict[str, Any],
        image_file: Optional[FileStorage] = None
    ) -> Tuple[Optional[Event], Dict[str, str]]:
        """
        Create a new event with validation.
        Returns tuple of (created_event, errors).
        """
        event = Event.from_form(form)

        errors = event.validate()
        image_error = self.validate_image(image_file)
        if image_error:
            errors['image'] = image_error
        if errors:
            return None, errors

        if image_file and image_file.filename:
            event.image = self.store_image(image_file)

        event.timestamp = utc_timestamp()
        event.id = self.repository.insert(event.fields(), event.image, event.timestamp)
        logger.info("Created event {}", event.id)
        return event, {}

    def update_event(
        self,
        existing: Event,
        form: Dict[str, Any],
        image_file: Optional[FileStorage] = None
    ) -> Tuple[Optional[Event], Dict[str, str]]:
        """
        Overwrite an existing event, replacing its image if a new one was sent.
        Returns tuple of (updated_event, errors).
        """
        event = Event.from_form(form)
        event.id = existing.id
        event.timestamp = existing.timestamp
        event.image = existing.image

        errors = event.validate()
        if image_file and image_file.filename:
            image_error = self.validate_image(image_file)
            if image_error:
                errors['image'] = image_error
        if errors:
            return None, errors

        if image_file and image_file.filename:
            event.image = self.store_image(image_file)

        if not self.repository.update(event.id, event.fields(), event.image, existing.image):
            raise PersistenceError("Failed to update event")

        previous = existing.image_ref
        if event.image != existing.image and previous.is_remote:
            self.blob_client.delete(previous.value)

        logger.info("Updated event {}", event.id)
        return event, {}

    def delete_event(self, event: Event) -> None:
        """Delete an event and its stored image."""
        if event.image_ref.is_remote:
            self.blob_client.delete(event.image)

        if not self.repository.delete(event.id):
            raise PersistenceError("Failed to delete event")
        logger.info("Deleted event {}", event.id)

    def distinct_values(self, column: str) -> List[Any]:
        """Sorted distinct values of a searchable column."""
        return self.repository.distinct(column)

    def search(self, column: str, value: str) -> List[Event]:
        """Events where column equals value, newest first."""
        return self.repository.search(column, value)
