"""
Default query scope for paranoid entity types.

Builds the SQL criteria that hide deleted rows from ordinary reads and the
statements that lift or invert that filter. Every builder returns a new
statement; nothing is modified in place.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Type

from sqlalchemy import Select, delete, event, or_, select, update
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import ParanoidConfigurationError
from .models import ColumnType, ParanoidOptions
from .predicate import (
    boolean_type_not_nullable,
    deleted_marker,
    string_type_with_deleted_value,
)
from .registry import ParanoidRegistry, get_registry

logger = logging.getLogger(__name__)

# Execution option that lifts the default scope for a statement
INCLUDE_DELETED = "include_deleted"


def active_clause(column: Any, options: ParanoidOptions) -> ColumnElement[bool]:
    """SQL equivalent of ``not is_deleted_value(options, column)``."""
    if string_type_with_deleted_value(options):
        return or_(column.is_(None), column != options.deleted_value)
    if boolean_type_not_nullable(options):
        return column.is_not(False)
    return column.is_(None)


def deleted_clause(column: Any, options: ParanoidOptions) -> ColumnElement[bool]:
    """SQL equivalent of ``is_deleted_value(options, column)``."""
    if string_type_with_deleted_value(options):
        return column == options.deleted_value
    if boolean_type_not_nullable(options):
        return column.is_(False)
    return column.is_not(None)


def active_criterion(
    entity_class: Type[Any], registry: Optional[ParanoidRegistry] = None
) -> ColumnElement[bool]:
    """Criterion matching the visible (not deleted) rows of a paranoid class."""
    options = (registry or get_registry()).resolve(entity_class)
    return active_clause(getattr(entity_class, options.column), options)


def deleted_criterion(
    entity_class: Type[Any], registry: Optional[ParanoidRegistry] = None
) -> ColumnElement[bool]:
    """Criterion matching the deleted rows of a paranoid class."""
    options = (registry or get_registry()).resolve(entity_class)
    return deleted_clause(getattr(entity_class, options.column), options)


def default_scope(
    entity_class: Type[Any], registry: Optional[ParanoidRegistry] = None
) -> Select[Any]:
    """SELECT of visible rows, filtered explicitly."""
    return with_deleted(entity_class).where(active_criterion(entity_class, registry))


def with_deleted(entity_class: Type[Any]) -> Select[Any]:
    """SELECT of every row, active and deleted."""
    return select(entity_class).execution_options(**{INCLUDE_DELETED: True})


def only_deleted(
    entity_class: Type[Any], registry: Optional[ParanoidRegistry] = None
) -> Select[Any]:
    """SELECT of deleted rows only."""
    return with_deleted(entity_class).where(deleted_criterion(entity_class, registry))


def _time_column(entity_class: Type[Any], registry: Optional[ParanoidRegistry]) -> Any:
    options = (registry or get_registry()).resolve(entity_class)
    if options.column_type != ColumnType.TIME:
        raise ParanoidConfigurationError(
            f"{entity_class.__name__}.{options.column} is not a time column",
            entity_type=entity_class.__name__,
        )
    return getattr(entity_class, options.column)


def deleted_after_time(
    entity_class: Type[Any],
    time: datetime,
    stmt: Optional[Select[Any]] = None,
    registry: Optional[ParanoidRegistry] = None,
) -> Select[Any]:
    """Rows deleted strictly after ``time``."""
    column = _time_column(entity_class, registry)
    base = stmt if stmt is not None else with_deleted(entity_class)
    return base.where(column > time)


def deleted_before_time(
    entity_class: Type[Any],
    time: datetime,
    stmt: Optional[Select[Any]] = None,
    registry: Optional[ParanoidRegistry] = None,
) -> Select[Any]:
    """Rows deleted strictly before ``time``."""
    column = _time_column(entity_class, registry)
    base = stmt if stmt is not None else with_deleted(entity_class)
    return base.where(column < time)


def deleted_inside_time_window(
    entity_class: Type[Any],
    time: datetime,
    window: timedelta,
    stmt: Optional[Select[Any]] = None,
    registry: Optional[ParanoidRegistry] = None,
) -> Select[Any]:
    """Rows deleted within ``window`` either side of ``time`` (exclusive)."""
    stmt = deleted_after_time(entity_class, time - window, stmt, registry)
    return deleted_before_time(entity_class, time + window, stmt, registry)


def delete_all_hard(
    session: Session,
    entity_class: Type[Any],
    *conditions: Any,
) -> int:
    """
    Permanently delete matching rows, deleted or not.

    Bypasses hooks, cascades and counter caches.

    Returns:
        Number of rows removed
    """
    stmt = delete(entity_class).execution_options(**{INCLUDE_DELETED: True})
    if conditions:
        stmt = stmt.where(*conditions)
    affected = session.execute(stmt).rowcount
    logger.debug(f"Hard deleted {affected} {entity_class.__name__} rows")
    return affected


def delete_all_soft(
    session: Session,
    entity_class: Type[Any],
    *conditions: Any,
    registry: Optional[ParanoidRegistry] = None,
) -> int:
    """
    Write the deletion marker on every matching active row.

    Bypasses hooks, cascades and counter caches.

    Returns:
        Number of rows marked deleted
    """
    options = (registry or get_registry()).resolve(entity_class)
    column = getattr(entity_class, options.column)
    stmt = (
        update(entity_class)
        .where(active_clause(column, options))
        .values({options.column: deleted_marker(options)})
    )
    if conditions:
        stmt = stmt.where(*conditions)
    affected = session.execute(stmt).rowcount
    logger.debug(f"Soft deleted {affected} {entity_class.__name__} rows")
    return affected


def _default_scope_listener(registry: Optional[ParanoidRegistry]) -> Any:
    def apply_default_scope(orm_execute_state: ORMExecuteState) -> None:
        if not orm_execute_state.is_select or orm_execute_state.is_column_load:
            return
        if orm_execute_state.execution_options.get(INCLUDE_DELETED, False):
            return

        resolved = registry or get_registry()
        criteria = [
            with_loader_criteria(entity_class, active_criterion(entity_class, resolved))
            for entity_class, _options in resolved.registered_types()
        ]
        if criteria:
            orm_execute_state.statement = orm_execute_state.statement.options(*criteria)

    return apply_default_scope


_installed: dict = {}


def install_default_scope(
    target: Any = Session, registry: Optional[ParanoidRegistry] = None
) -> None:
    """
    Hide deleted rows from ORM SELECTs issued through ``target``.

    Args:
        target: Session class, sessionmaker or Session instance
        registry: Registry whose types are filtered (global by default)

    The filter applies to relationship loads as well. A statement opts out
    with ``.execution_options(include_deleted=True)``, which ``with_deleted``
    and ``only_deleted`` set.
    """
    key = (id(target), id(registry))
    listener = _installed.get(key)
    if listener is not None and event.contains(target, "do_orm_execute", listener):
        return

    listener = _default_scope_listener(registry)
    event.listen(target, "do_orm_execute", listener)
    _installed[key] = listener
    logger.debug(f"Installed paranoid default scope on {target!r}")


def uninstall_default_scope(
    target: Any = Session, registry: Optional[ParanoidRegistry] = None
) -> None:
    """Remove a default scope installed by ``install_default_scope``."""
    listener = _installed.pop((id(target), id(registry)), None)
    if listener is not None and event.contains(target, "do_orm_execute", listener):
        event.remove(target, "do_orm_execute", listener)
