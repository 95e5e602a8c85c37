"""Storage layer errors."""


class StorageError(Exception):
    """Base exception for library storage operations."""


class EntityParseError(StorageError):
    """Raised when an entity file cannot be read or decoded."""


class LibraryNotConfiguredError(StorageError):
    """Raised when no library root has been configured."""
