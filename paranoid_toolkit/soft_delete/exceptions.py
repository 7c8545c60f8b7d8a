"""Exceptions for paranoid (soft delete) operations."""

from typing import Optional


class ParanoidError(Exception):
    """Base exception for paranoid operations."""

    def __init__(self, message: str, entity_type: Optional[str] = None):
        self.entity_type = entity_type
        super().__init__(message)


class ParanoidConfigurationError(ParanoidError):
    """Raised when an entity type has no usable deletion-column configuration."""


class UnknownEntityTypeError(ParanoidConfigurationError):
    """Raised when a polymorphic discriminator names a type outside the registry."""

    def __init__(self, type_name: str):
        super().__init__(
            f"Entity type '{type_name}' is not registered and cannot be resolved",
            entity_type=type_name,
        )


class HookAbortedError(ParanoidError):
    """Raised when a lifecycle hook vetoes or fails a transition."""

    def __init__(self, entity_type: str, event: str, reason: str):
        self.event = event
        super().__init__(
            f"{event} hook aborted {entity_type}: {reason}",
            entity_type=entity_type,
        )


class FrozenRecordError(ParanoidError):
    """Raised when a permanently destroyed record is modified."""

    def __init__(self, entity_type: str, attribute: str):
        self.attribute = attribute
        super().__init__(
            f"{entity_type} has been permanently destroyed; "
            f"cannot assign '{attribute}'",
            entity_type=entity_type,
        )


class DetachedRecordError(ParanoidError):
    """Raised when a lifecycle method is called on a record without a session."""

    def __init__(self, entity_type: str):
        super().__init__(
            f"{entity_type} is not attached to a session",
            entity_type=entity_type,
        )
