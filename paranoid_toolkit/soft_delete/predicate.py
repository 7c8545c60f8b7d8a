"""
Deletion predicate.

Decides whether a deletion-column value means "deleted" for a given entity
configuration, and which values destroy and recover write. The default query
scope in ``scopes`` uses the same case analysis so the two never diverge.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from .models import ColumnType, ParanoidOptions


def utc_now() -> datetime:
    """Naive UTC timestamp, as stored in deletion columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def string_type_with_deleted_value(options: ParanoidOptions) -> bool:
    return options.column_type == ColumnType.STRING and options.deleted_value is not None


def boolean_type_not_nullable(options: ParanoidOptions) -> bool:
    return options.column_type == ColumnType.BOOLEAN and not options.allow_nulls


def is_deleted_value(options: ParanoidOptions, value: Any) -> bool:
    """
    Return True if ``value`` marks a deleted record.

    Non-nullable boolean columns treat ``False`` as deleted and everything
    else as active. That polarity is part of the public contract.
    """
    if string_type_with_deleted_value(options):
        return value is not None and value == options.deleted_value
    if boolean_type_not_nullable(options):
        return value is False
    return value is not None


def deleted_marker(options: ParanoidOptions, now: Optional[datetime] = None) -> Any:
    """Value written to the deletion column by a soft destroy."""
    if options.column_type == ColumnType.TIME:
        return now or utc_now()
    if options.column_type == ColumnType.BOOLEAN:
        return not boolean_type_not_nullable(options)
    if options.deleted_value is not None:
        return options.deleted_value
    return options.string_marker


def active_marker(options: ParanoidOptions) -> Any:
    """Value written to the deletion column by a recover."""
    if boolean_type_not_nullable(options):
        return True
    return None
