"""
Service layer for paranoid lifecycle operations.

Soft destroy, hard destroy and recover run as one atomic unit each: the
record, every cascaded dependent and every counter-cache update commit or
roll back together.
"""

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple, Type

from sqlalchemy import Select, delete, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import RelationshipProperty, Session
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.sql.elements import ColumnElement

from .cascade import CascadeEngine
from .counters import collect_counter_targets, decrement_counters
from .exceptions import HookAbortedError
from .hooks import LifecycleEvent
from .models import RecoverOptions
from .predicate import active_marker, deleted_marker, is_deleted_value
from .registry import ParanoidRegistry, freeze, get_registry, is_frozen
from .scopes import (
    INCLUDE_DELETED,
    active_clause,
    default_scope,
    delete_all_hard,
    delete_all_soft,
    only_deleted,
    with_deleted,
)

logger = logging.getLogger(__name__)


def is_deleted(record: Any, registry: Optional[ParanoidRegistry] = None) -> bool:
    """Whether a record's deletion column marks it deleted."""
    options = (registry or get_registry()).resolve(type(record))
    return is_deleted_value(options, getattr(record, options.column))


def is_persisted(record: Any) -> bool:
    """True unless the record was never saved or has been hard destroyed."""
    if is_frozen(record):
        return False
    state = sa_inspect(record)
    return state.has_identity and not state.was_deleted


def identity_criteria(record: Any) -> List[ColumnElement[bool]]:
    """Primary key criteria for a record, composite keys included."""
    mapper = sa_inspect(type(record))
    identity = mapper.primary_key_from_instance(record)
    return [column == value for column, value in zip(mapper.primary_key, identity)]


def column_snapshot(record: Any) -> Dict[str, Any]:
    """Loaded column attribute values of a record."""
    state = sa_inspect(record)
    return {
        key: state.dict[key]
        for key in state.mapper.column_attrs.keys()
        if key in state.dict
    }


class _OperationUnit:
    """State shared by one top-level operation and its cascades."""

    def __init__(self) -> None:
        self.journal: List[Tuple[Any, str, Any]] = []
        self.to_freeze: List[Tuple[Any, Dict[str, Any]]] = []
        self._seen: Set[int] = set()

    def visit(self, record: Any) -> bool:
        """False if the record was already handled in this operation."""
        if id(record) in self._seen:
            return False
        self._seen.add(id(record))
        return True

    def restore(self) -> None:
        for record, key, previous in reversed(self.journal):
            set_committed_value(record, key, previous)

    def mark(self) -> Tuple[int, int, Set[int]]:
        return len(self.journal), len(self.to_freeze), set(self._seen)

    def rewind(self, mark: Tuple[int, int, Set[int]]) -> None:
        """Undo everything recorded since ``mark``, newest first."""
        journal_size, freeze_size, seen = mark
        for record, key, previous in reversed(self.journal[journal_size:]):
            set_committed_value(record, key, previous)
        del self.journal[journal_size:]
        del self.to_freeze[freeze_size:]
        self._seen = seen

    def finish(self, session: Session) -> None:
        for record, snapshot in self.to_freeze:
            if record in session:
                session.expunge(record)
            # Commit may have expired the row's attributes; it no longer exists
            for key, value in snapshot.items():
                set_committed_value(record, key, value)
            freeze(record)


class ParanoidService:
    """
    Lifecycle controller for paranoid records.

    Usage:
        service = ParanoidService(session)
        service.destroy(post)        # soft delete, cascades to dependents
        service.recover(post)        # undo, recovering dependents too
        service.destroy(post)
        service.destroy(post)        # second destroy removes the row

    Operations return True on success and False when a hook vetoed the
    transition (see ``last_error``) or the transition does not apply.
    Database errors propagate after the unit has been rolled back.

    When the session is idle each operation commits its own transaction;
    inside an ongoing transaction it runs in a SAVEPOINT and the caller
    commits.
    """

    def __init__(self, session: Session, registry: Optional[ParanoidRegistry] = None):
        self.session = session
        self.registry = registry or get_registry()
        self.hooks = self.registry.hooks
        self.cascade = CascadeEngine(self)
        self.last_error: Optional[Exception] = None
        self._unit: Optional[_OperationUnit] = None

    # Queries

    def is_deleted(self, record: Any) -> bool:
        return is_deleted(record, self.registry)

    def is_persisted(self, record: Any) -> bool:
        return is_persisted(record)

    def default_scope(self, entity_class: Type[Any]) -> Select[Any]:
        return default_scope(entity_class, self.registry)

    def with_deleted(self, entity_class: Type[Any]) -> Select[Any]:
        return with_deleted(entity_class)

    def only_deleted(self, entity_class: Type[Any]) -> Select[Any]:
        return only_deleted(entity_class, self.registry)

    def delete_all(self, entity_class: Type[Any], *conditions: Any) -> int:
        """Soft delete matching active rows in bulk, without hooks."""
        self.registry.resolve(entity_class)
        return delete_all_soft(
            self.session, entity_class, *conditions, registry=self.registry
        )

    def delete_all_hard(self, entity_class: Type[Any], *conditions: Any) -> int:
        """Permanently delete matching rows in bulk, without hooks."""
        self.registry.resolve(entity_class)
        return delete_all_hard(self.session, entity_class, *conditions)

    # Lifecycle

    def destroy(self, record: Any) -> bool:
        """
        Soft delete a record.

        Destroying a record that is already deleted removes it permanently.

        Args:
            record: Paranoid record

        Returns:
            True if the record was destroyed
        """
        self.registry.resolve(type(record))
        if is_frozen(record):
            return self._not_applicable(record, "already permanently destroyed")
        return self._run(self._soft_destroy, record)

    def destroy_fully(self, record: Any) -> bool:
        """
        Permanently delete a record and its dependents.

        The in-memory record is frozen once the transaction commits.
        """
        self.registry.resolve(type(record))
        if is_frozen(record):
            return self._not_applicable(record, "already permanently destroyed")
        return self._run(self._destroy_fully, record)

    def recover(
        self,
        record: Any,
        recursive: Optional[bool] = None,
        recovery_window: Optional[timedelta] = None,
    ) -> bool:
        """
        Clear a record's deletion marker.

        Args:
            record: Soft-deleted record
            recursive: Recover dependents too (type default if None)
            recovery_window: Only recover time-deleted dependents deleted
                within this window of the record (type default if None)

        Returns:
            True if the record was recovered, False if it was not deleted
            or a hook vetoed the recovery
        """
        options = self.registry.resolve(type(record))
        if is_frozen(record):
            return self._not_applicable(record, "permanently destroyed")
        if not self.is_deleted(record):
            return self._not_applicable(record, "not deleted")

        recover_options = RecoverOptions.for_options(options, recursive, recovery_window)
        return self._run(self._recover, record, recover_options)

    # Steps, called within an operation unit

    def _soft_destroy(
        self, record: Any, cause: Optional[RelationshipProperty] = None
    ) -> None:
        if self.is_deleted(record):
            logger.debug(f"{self._describe(record)} already deleted; destroying fully")
            self._destroy_fully(record, cause)
            return
        if not self._current_unit().visit(record):
            return

        options = self.registry.resolve(type(record))
        column = getattr(type(record), options.column)

        self.hooks.run(LifecycleEvent.BEFORE_DESTROY, record)

        marker = deleted_marker(options)
        if self.is_persisted(record):
            self.cascade.destroy_dependents(record, permanent=False)
            targets = collect_counter_targets(record, self.registry, cause)
            affected = self.session.execute(
                update(type(record))
                .where(*identity_criteria(record))
                .where(active_clause(column, options))
                .values({options.column: marker})
                .execution_options(synchronize_session=False)
            ).rowcount
            decrement_counters(self.session, targets, affected)
            self._write(record, options.column, marker, committed=True)
        else:
            self._write(record, options.column, marker, committed=False)

        self.hooks.run(LifecycleEvent.AFTER_DESTROY, record)
        logger.debug(f"Soft destroyed {self._describe(record)}")

    def _destroy_fully(
        self, record: Any, cause: Optional[RelationshipProperty] = None
    ) -> None:
        unit = self._current_unit()
        if not unit.visit(record):
            return

        options = self.registry.resolve(type(record))

        self.hooks.run(LifecycleEvent.BEFORE_DESTROY, record)

        if self.is_persisted(record):
            self.cascade.destroy_dependents(record, permanent=True)
            # Soft-deleted rows were already taken off the counters
            if self.is_deleted(record):
                targets = []
            else:
                targets = collect_counter_targets(record, self.registry, cause)
            affected = self.session.execute(
                delete(type(record))
                .where(*identity_criteria(record))
                .execution_options(**{INCLUDE_DELETED: True})
            ).rowcount
            decrement_counters(self.session, targets, affected)
        elif record in self.session:
            # Never inserted
            self.session.expunge(record)

        self._write(record, options.column, deleted_marker(options), committed=True)
        unit.to_freeze.append((record, column_snapshot(record)))

        self.hooks.run(LifecycleEvent.AFTER_DESTROY, record)
        logger.debug(f"Destroyed {self._describe(record)} permanently")

    def _recover(self, record: Any, options: RecoverOptions) -> None:
        if not self._current_unit().visit(record):
            return

        paranoid_options = self.registry.resolve(type(record))

        self.hooks.run(LifecycleEvent.BEFORE_RECOVER, record)

        value = active_marker(paranoid_options)
        if self.is_persisted(record):
            if options.recursive:
                self.cascade.recover_dependents(record, options)
            self.session.execute(
                update(type(record))
                .where(*identity_criteria(record))
                .values({paranoid_options.column: value})
                .execution_options(synchronize_session=False)
            )
            self._write(record, paranoid_options.column, value, committed=True)
        else:
            self._write(record, paranoid_options.column, value, committed=False)

        self.hooks.run(LifecycleEvent.AFTER_RECOVER, record)
        logger.debug(f"Recovered {self._describe(record)}")

    # Plumbing

    def _run(self, step: Callable[..., None], *args: Any) -> bool:
        self.last_error = None
        try:
            with self._atomic():
                step(*args)
        except HookAbortedError as e:
            self.last_error = e
            logger.warning(f"Rolled back: {e}")
            return False
        self.last_error = None
        return True

    @contextmanager
    def _atomic(self) -> Iterator[_OperationUnit]:
        if self._unit is not None:
            # Called from a hook: roll back this operation without the outer one
            with self._nested(self._unit) as unit:
                yield unit
            return

        unit = _OperationUnit()
        self._unit = unit
        if self.session.in_transaction():
            begin = self.session.begin_nested
        else:
            begin = self.session.begin
        try:
            with begin():
                yield unit
        except BaseException:
            unit.restore()
            raise
        else:
            unit.finish(self.session)
        finally:
            self._unit = None

    @contextmanager
    def _nested(self, unit: _OperationUnit) -> Iterator[_OperationUnit]:
        mark = unit.mark()
        try:
            with self.session.begin_nested():
                yield unit
        except BaseException:
            unit.rewind(mark)
            raise

    def _current_unit(self) -> _OperationUnit:
        if self._unit is None:
            raise RuntimeError("Lifecycle steps must run inside an operation")
        return self._unit

    def _write(self, record: Any, key: str, value: Any, committed: bool) -> None:
        self._current_unit().journal.append((record, key, getattr(record, key)))
        if committed:
            # Already written to the row; keep the session from flushing it again
            set_committed_value(record, key, value)
        else:
            setattr(record, key, value)

    def _not_applicable(self, record: Any, reason: str) -> bool:
        self.last_error = None
        logger.warning(f"Ignoring lifecycle call on {self._describe(record)}: {reason}")
        return False

    @staticmethod
    def _describe(record: Any) -> str:
        state = sa_inspect(record)
        identity = state.identity if state.identity is not None else "new"
        return f"{type(record).__name__} {identity}"
