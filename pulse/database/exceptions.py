"""Custom exceptions for database and activity operations."""


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Database connection failed."""
    pass


class DatabaseConstraintError(DatabaseError):
    """Database constraint violation (duplicate, foreign key, etc)."""
    pass


class DatabaseOperationError(DatabaseError):
    """General database operation failed."""
    pass


class TransactionFailedError(DatabaseOperationError):
    """A multi-step transaction was rolled back. Safe to retry."""
    pass


class ActivityConfigurationError(Exception):
    """Activity rules are missing or inconsistent."""
    pass


class UnmappedEventTypeError(ActivityConfigurationError):
    """Event type has no entry in the status mapping."""

    def __init__(self, event_type):
        self.event_type = event_type
        super().__init__(f"No status mapping for event type: {event_type!r}")
