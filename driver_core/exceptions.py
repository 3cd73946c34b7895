"""Domain-specific exceptions for the driver ledger core services."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when an entry or shift record cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""


class BackupError(ValidationError):
    """Raised when a backup snapshot is rejected; existing data is left untouched."""


class EmptyExportError(ValidationError):
    """Raised when an export is requested for a selection with no records."""
