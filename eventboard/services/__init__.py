"""Services package for EventBoard."""
from .blob_store import BlobStoreClient, BlobResult
from .event_service import EventService
