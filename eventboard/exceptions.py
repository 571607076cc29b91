"""Exception types raised by EventBoard."""


class EventBoardError(Exception):
    """Base class for application errors."""


class ConfigurationError(EventBoardError):
    """Startup configuration is missing or invalid."""


class PersistenceError(EventBoardError):
    """A database statement failed."""


class InvalidColumnError(EventBoardError, ValueError):
    """A column name outside the searchable allow-list was requested."""

    def __init__(self, column):
        super().__init__(f"Invalid column: {column!r}")
        self.column = column


class StorageError(EventBoardError):
    """An image could not be stored where it is required to go."""
