"""Models package for EventBoard."""
from .event import Event, ImageRef, utc_timestamp
