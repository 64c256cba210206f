"""Exceptions for soft delete operations."""

from typing import Any, Optional


class SoftDeleteError(Exception):
    """Base exception for soft delete operations."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)


class SoftDeleteConfigurationError(SoftDeleteError):
    """Raised when a model cannot be registered as soft-deletable."""


class NotSoftDeletableError(SoftDeleteConfigurationError):
    """Raised when a soft delete operation targets an unregistered model."""

    def __init__(self, model: type):
        self.model = model
        super().__init__(
            f"{model.__name__} is not registered as soft-deletable; "
            "decorate it with @soft_deletable"
        )


class ReadOnlyRecordError(SoftDeleteError):
    """Raised when attempting to soft delete a record marked read-only."""

    def __init__(self, record: Any):
        self.record = record
        super().__init__(f"{type(record).__name__} is marked as readonly")


class DetachedRecordError(SoftDeleteError):
    """Raised when a persisted record has no session to write through."""

    def __init__(self, record: Any):
        self.record = record
        super().__init__(
            f"{type(record).__name__} is persisted but not attached to a session"
        )


class RecordNotDestroyed(SoftDeleteError):
    """Raised by the strict soft delete when a hook vetoed the transition."""

    def __init__(self, message: str, record: Any):
        self.record = record
        super().__init__(message)


class RecordNotRestored(SoftDeleteError):
    """Raised by the strict restore when a hook vetoed the transition."""

    def __init__(self, message: str, record: Any):
        self.record = record
        super().__init__(message)


class RecordNotFound(SoftDeleteError):
    """Raised when an identifier is not present among deleted records."""

    def __init__(self, model: type, identifier: Any):
        self.model = model
        self.identifier = identifier
        super().__init__(
            f"Couldn't find deleted {model.__name__} with identifier {identifier!r}",
            entity_id=str(identifier),
        )


class TransitionAborted(Exception):
    """Raised inside a before or around hook to veto a transition.

    Not an error: the lifecycle engine catches it and reports the transition
    as failed.
    """
