"""
Registry of paranoid entity types.

Maps each mapped class to its ParanoidOptions, keeps the closed set of type
names used to resolve polymorphic dependencies, and owns the hook registry.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from sqlalchemy import Boolean, DateTime, String, event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

from .dependencies import PolymorphicDependency
from .exceptions import (
    FrozenRecordError,
    ParanoidConfigurationError,
    UnknownEntityTypeError,
)
from .hooks import HookRegistry
from .models import ColumnType, DependentPolicy, ParanoidOptions

logger = logging.getLogger(__name__)

FROZEN_FLAG = "_paranoid_frozen"

_SQL_TYPES: Dict[ColumnType, Tuple[type, ...]] = {
    ColumnType.TIME: (DateTime,),
    ColumnType.BOOLEAN: (Boolean,),
    ColumnType.STRING: (String,),
}


def is_frozen(record: Any) -> bool:
    """True once a record has been permanently destroyed."""
    return bool(record.__dict__.get(FROZEN_FLAG, False))


def freeze(record: Any) -> None:
    record.__dict__[FROZEN_FLAG] = True


def _reject_frozen(target: Any, value: Any, oldvalue: Any, initiator: Any) -> Any:
    if is_frozen(target):
        raise FrozenRecordError(target.__class__.__name__, initiator.key)
    return value


class ParanoidRegistry:
    """
    Configuration resolver for paranoid entity types.

    Options are registered once per mapped class and treated as immutable
    afterwards; lookups need no locking.

    Usage:
        registry = ParanoidRegistry()
        registry.register(Post, ParanoidOptions(column="deleted_at"))
        options = registry.resolve(Post)
    """

    def __init__(self) -> None:
        self._options: Dict[Type[Any], ParanoidOptions] = {}
        self._type_names: Dict[str, Type[Any]] = {}
        self._polymorphic: Dict[Type[Any], List[PolymorphicDependency]] = {}
        self._guarded: set = set()
        self.hooks = HookRegistry()

    def register(
        self,
        entity_class: Type[Any],
        options: Optional[ParanoidOptions] = None,
        type_name: Optional[str] = None,
    ) -> ParanoidOptions:
        """
        Register a mapped class as paranoid.

        Args:
            entity_class: SQLAlchemy mapped class
            options: Deletion column configuration (defaults apply if omitted)
            type_name: Name used by polymorphic discriminators (class name
                by default)

        Returns:
            The registered options

        Raises:
            ParanoidConfigurationError: Class is not mapped, lacks the
                column, or the column's SQL type does not fit column_type
        """
        options = options or ParanoidOptions()
        mapper = self._mapper(entity_class)

        # mapper.columns is available before the mapper is configured, so
        # relationships may still name classes that are not defined yet
        column = mapper.columns.get(options.column)
        if column is None:
            raise ParanoidConfigurationError(
                f"{entity_class.__name__} has no mapped column '{options.column}'",
                entity_type=entity_class.__name__,
            )

        sql_type = column.type
        if not isinstance(sql_type, _SQL_TYPES[options.column_type]):
            raise ParanoidConfigurationError(
                f"{entity_class.__name__}.{options.column} is {sql_type!r}, "
                f"which cannot hold a {options.column_type.value} deletion marker",
                entity_type=entity_class.__name__,
            )

        self._options[entity_class] = options
        self.register_type(entity_class, type_name)
        self._guard(entity_class, mapper)

        logger.debug(
            f"Registered paranoid type {entity_class.__name__} "
            f"({options.column}: {options.column_type.value})"
        )
        return options

    def register_type(self, entity_class: Type[Any], type_name: Optional[str] = None) -> None:
        """Add a class to the set of names polymorphic dependencies may use."""
        self._type_names[type_name or entity_class.__name__] = entity_class

    def resolve(self, entity_class: Type[Any]) -> ParanoidOptions:
        """
        Return the options for a class, honouring mapped inheritance.

        Raises:
            ParanoidConfigurationError: The class is not paranoid
        """
        for klass in entity_class.__mro__:
            if klass in self._options:
                return self._options[klass]
        raise ParanoidConfigurationError(
            f"{entity_class.__name__} is not registered as a paranoid type",
            entity_type=entity_class.__name__,
        )

    def is_paranoid(self, entity_class: Type[Any]) -> bool:
        return any(klass in self._options for klass in entity_class.__mro__)

    def resolve_type_name(self, type_name: str) -> Type[Any]:
        """
        Resolve a stored discriminator value to a class.

        Raises:
            UnknownEntityTypeError: The name is not in the known set
        """
        try:
            return self._type_names[type_name]
        except KeyError:
            raise UnknownEntityTypeError(type_name) from None

    def registered_types(self) -> List[Tuple[Type[Any], ParanoidOptions]]:
        return sorted(self._options.items(), key=lambda item: item[0].__name__)

    def declare_polymorphic_dependency(
        self,
        entity_class: Type[Any],
        name: str,
        type_field: str,
        id_field: str,
        policy: Union[DependentPolicy, str] = DependentPolicy.DESTROY,
    ) -> PolymorphicDependency:
        """
        Declare a dependency whose target class is stored on the record.

        Args:
            entity_class: Owning (source) class
            name: Name for the dependency, used in logs
            type_field: Attribute holding the target's type name
            id_field: Attribute holding the target's primary key
            policy: Cascade policy on destroy
        """
        mapper = self._mapper(entity_class)
        for field in (type_field, id_field):
            if field not in mapper.columns:
                raise ParanoidConfigurationError(
                    f"{entity_class.__name__} has no mapped column '{field}'",
                    entity_type=entity_class.__name__,
                )

        dependency = PolymorphicDependency(
            name=name,
            policy=DependentPolicy(policy),
            type_field=type_field,
            id_field=id_field,
        )
        self._polymorphic.setdefault(entity_class, []).append(dependency)
        return dependency

    def polymorphic_dependencies(self, entity_class: Type[Any]) -> List[PolymorphicDependency]:
        dependencies: List[PolymorphicDependency] = []
        for klass in reversed(entity_class.__mro__):
            dependencies.extend(self._polymorphic.get(klass, []))
        return dependencies

    def clear(self) -> None:
        """Forget every registration. Attribute guards stay installed."""
        self._options.clear()
        self._type_names.clear()
        self._polymorphic.clear()
        self.hooks.clear()

    def _mapper(self, entity_class: Type[Any]) -> Mapper:
        try:
            return sa_inspect(entity_class)
        except NoInspectionAvailable:
            raise ParanoidConfigurationError(
                f"{entity_class.__name__} is not a mapped class",
                entity_type=getattr(entity_class, "__name__", str(entity_class)),
            ) from None

    def _guard(self, entity_class: Type[Any], mapper: Mapper) -> None:
        if entity_class in self._guarded:
            return
        for key in mapper.columns.keys():
            event.listen(
                getattr(entity_class, key),
                "set",
                _reject_frozen,
                retval=True,
                propagate=True,
            )
        self._guarded.add(entity_class)


_registry: Optional[ParanoidRegistry] = None


def get_registry() -> ParanoidRegistry:
    """Get the global registry instance."""
    global _registry

    if _registry is None:
        _registry = ParanoidRegistry()

    return _registry


def set_registry(registry: ParanoidRegistry) -> None:
    """Replace the global registry instance."""
    global _registry
    _registry = registry


def paranoid(
    column: Optional[str] = None,
    column_type: Optional[Union[ColumnType, str]] = None,
    deleted_value: Optional[str] = None,
    allow_nulls: bool = True,
    recursive: Optional[bool] = None,
    recovery_window: Optional[timedelta] = None,
    type_name: Optional[str] = None,
    registry: Optional[ParanoidRegistry] = None,
) -> Callable[[Type[Any]], Type[Any]]:
    """
    Class decorator registering a mapped class as paranoid.

    Omitted settings fall back to the toolkit configuration. Unless the
    configuration turns it off, the default scope is installed on every
    Session.

    Usage:
        @paranoid()
        class Post(Base, TimestampParanoidMixin):
            ...

        @paranoid(column="status", column_type="string", deleted_value="gone")
        class Ticket(Base, ParanoidMixin):
            ...
    """

    def decorator(cls: Type[Any]) -> Type[Any]:
        from ..config import get_config

        config = get_config()
        options = ParanoidOptions(
            column=column or config.default_column,
            column_type=column_type or config.default_column_type,
            deleted_value=deleted_value,
            allow_nulls=allow_nulls,
            recursive=config.recover_dependents if recursive is None else recursive,
            recovery_window=(
                timedelta(seconds=config.recovery_window_seconds)
                if recovery_window is None
                else recovery_window
            ),
            string_marker=config.string_deleted_marker,
        )
        (registry or get_registry()).register(cls, options, type_name=type_name)

        if config.install_default_scope:
            from .scopes import install_default_scope

            install_default_scope(registry=registry)
        return cls

    return decorator
