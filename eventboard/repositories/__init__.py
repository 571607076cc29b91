"""Repositories package for EventBoard."""
from .event_repository import EventRepository, check_column
