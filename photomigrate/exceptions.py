"""
Exception types raised by the photo migration pipeline.
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for all migration errors."""
    pass


class ConfigError(MigrationError):
    """Raised when required configuration is missing or invalid."""
    pass


class ItemError(MigrationError):
    """
    Failure to download, transform or upload a single media item.

    Always caught at the per-item boundary and recorded on the item.
    """

    def __init__(self, message: str, item_id: Optional[str] = None):
        super().__init__(message)
        self.item_id = item_id


class ValidationError(MigrationError):
    """A source row has a malformed or absent folder reference."""

    def __init__(self, message: str, row_id: Optional[str] = None):
        super().__init__(message)
        self.row_id = row_id


class BatchFatalError(MigrationError):
    """
    Failure to list, claim or persist progress for a batch.

    The run is moved to the ``error`` state when this is raised.
    """
    pass
