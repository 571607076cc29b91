"""
Event entity class with validation methods.
Represents a single listing in the events table.
"""
import re
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from ..config import REQUIRED_FIELDS

_REMOTE_PATTERN = re.compile(r'^https?://', re.IGNORECASE)


class ImageRef:
    """
    Where an event's image is stored, derived from the stored string.

    A stored value is remote when it is an http(s) URL, local when it is a
    bare filename under the uploads folder, and external when it is an
    absolute path (left alone by both cleanup paths).
    """

    LOCAL = 'local'
    REMOTE = 'remote'
    EXTERNAL = 'external'

    def __init__(self, value: Optional[str]):
        self.value = value or ''

    @property
    def kind(self) -> Optional[str]:
        if not self.value:
            return None
        if _REMOTE_PATTERN.match(self.value):
            return self.REMOTE
        if self.value.startswith('/'):
            return self.EXTERNAL
        return self.LOCAL

    @property
    def is_local(self) -> bool:
        return self.kind == self.LOCAL

    @property
    def is_remote(self) -> bool:
        return self.kind == self.REMOTE

    def __bool__(self) -> bool:
        return bool(self.value)

    def __eq__(self, other) -> bool:
        if isinstance(other, ImageRef):
            return self.value == other.value
        return NotImplemented

    def __repr__(self) -> str:
        return f"ImageRef(kind={self.kind!r}, value={self.value!r})"


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


class Event:
    """
    Entity class representing an event listing.
    Contains validation methods for the event entity.
    """

    def __init__(
        self,
        name: str,
        event: str,
        venue: str,
        topic: str,
        details: str,
        image: str = '',
        id: Optional[int] = None,
        timestamp: Optional[str] = None
    ):
        self.id = id
        self.name = name
        self.event = event
        self.venue = venue
        self.topic = topic
        self.details = details
        self.image = image or ''
        self.timestamp = timestamp

    @property
    def image_ref(self) -> ImageRef:
        return ImageRef(self.image)

    @classmethod
    def from_form(cls, form) -> 'Event':
        """Build an event from submitted form fields, trimming whitespace."""
        return cls(**{name: str(form.get(name) or '').strip() for name in REQUIRED_FIELDS})

    def fields(self) -> Dict[str, str]:
        """The user-editable text fields, in column order."""
        return {name: getattr(self, name) for name in REQUIRED_FIELDS}

    def validate(self) -> Dict[str, str]:
        """
        Validate the event data.
        Returns a dictionary of field names to error messages.
        Empty dictionary means validation passed.
        """
        errors = {}
        for name in REQUIRED_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                errors[name] = f"{name.capitalize()} is required"
        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert the Event to a dictionary."""
        return {
            'id': self.id,
            'name': self.name,
            'event': self.event,
            'venue': self.venue,
            'topic': self.topic,
            'details': self.details,
            'image': self.image,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """Create an Event from a dictionary (database row)."""
        timestamp = data.get('timestamp')
        if isinstance(timestamp, datetime):
            timestamp = timestamp.isoformat()
        return cls(
            id=data.get('id'),
            name=data.get('name') or '',
            event=data.get('event') or '',
            venue=data.get('venue') or '',
            topic=data.get('topic') or '',
            details=data.get('details') or '',
            image=data.get('image') or '',
            timestamp=timestamp
        )

    def __repr__(self) -> str:
        return f"Event(id={self.id}, name='{self.name}', event='{self.event}')"
