"""
Soft Delete Module - recoverable deletion for SQLAlchemy models.

Provides the registry, default query scope, lifecycle service, cascade
engine and mixins that make up the paranoid model layer.
"""

from .cascade import CascadeEngine
from .exceptions import (
    DetachedRecordError,
    FrozenRecordError,
    HookAbortedError,
    ParanoidConfigurationError,
    ParanoidError,
    UnknownEntityTypeError,
)
from .hooks import HookRegistry, LifecycleEvent
from .mixins import ParanoidMixin, TimestampParanoidMixin
from .models import ColumnType, DependentPolicy, ParanoidOptions, RecoverOptions
from .predicate import active_marker, deleted_marker, is_deleted_value
from .registry import ParanoidRegistry, get_registry, paranoid, set_registry
from .scopes import (
    INCLUDE_DELETED,
    default_scope,
    delete_all_hard,
    delete_all_soft,
    deleted_after_time,
    deleted_before_time,
    deleted_inside_time_window,
    install_default_scope,
    only_deleted,
    uninstall_default_scope,
    with_deleted,
)
from .services import ParanoidService, is_deleted, is_persisted

__all__ = [
    # Mixins
    "ParanoidMixin",
    "TimestampParanoidMixin",
    # Services
    "ParanoidService",
    "CascadeEngine",
    "is_deleted",
    "is_persisted",
    # Registry
    "ParanoidRegistry",
    "get_registry",
    "set_registry",
    "paranoid",
    "HookRegistry",
    "LifecycleEvent",
    # Models
    "ColumnType",
    "DependentPolicy",
    "ParanoidOptions",
    "RecoverOptions",
    # Predicate
    "is_deleted_value",
    "deleted_marker",
    "active_marker",
    # Scopes
    "INCLUDE_DELETED",
    "default_scope",
    "with_deleted",
    "only_deleted",
    "deleted_after_time",
    "deleted_before_time",
    "deleted_inside_time_window",
    "delete_all_soft",
    "delete_all_hard",
    "install_default_scope",
    "uninstall_default_scope",
    # Exceptions
    "ParanoidError",
    "ParanoidConfigurationError",
    "UnknownEntityTypeError",
    "HookAbortedError",
    "FrozenRecordError",
    "DetachedRecordError",
]
