"""
Cascade engine.

Walks the dependencies of a record and applies destroy or recover to the
dependents whose type is itself paranoid. Dependents go through the same
lifecycle controller as the record that triggered them.
"""

import logging
from typing import TYPE_CHECKING, Any, List, Type, Union

from .dependencies import (
    PolymorphicDependency,
    RelationshipDependency,
    relationship_dependencies,
)
from .models import ColumnType, DependentPolicy, RecoverOptions
from .scopes import (
    delete_all_hard,
    delete_all_soft,
    deleted_inside_time_window,
    only_deleted,
    with_deleted,
)

if TYPE_CHECKING:
    from .services import ParanoidService

logger = logging.getLogger(__name__)

Dependency = Union[RelationshipDependency, PolymorphicDependency]


class CascadeEngine:
    """Propagates destroy and recover to dependent records."""

    def __init__(self, service: "ParanoidService"):
        self.service = service
        self.registry = service.registry
        self.session = service.session

    def dependencies(self, entity_class: Type[Any]) -> List[Dependency]:
        """All dependency declarations of a class, relationships first."""
        dependencies: List[Dependency] = list(relationship_dependencies(entity_class))
        dependencies.extend(self.registry.polymorphic_dependencies(entity_class))
        return dependencies

    def destroy_dependents(self, record: Any, permanent: bool) -> None:
        """
        Destroy every dependent of ``record``, deleted or not.

        Args:
            record: Record being destroyed
            permanent: Whether the record itself is being hard destroyed;
                bulk ``delete_all`` dependents follow the same form
        """
        for dependency in self.dependencies(type(record)):
            target = dependency.target_class(record, self.registry)
            if target is None or not self.registry.is_paranoid(target):
                continue

            criterion = dependency.criterion(record, target)

            if dependency.policy == DependentPolicy.DELETE_ALL:
                if permanent:
                    count = delete_all_hard(self.session, target, criterion)
                else:
                    count = delete_all_soft(
                        self.session, target, criterion, registry=self.registry
                    )
                logger.debug(
                    f"Cascaded delete_all of {count} {target.__name__} "
                    f"via {dependency.name}"
                )
            else:
                dependents = self.session.scalars(with_deleted(target).where(criterion)).all()
                for dependent in dependents:
                    self.service._destroy_fully(dependent, cause=dependency.relationship)
                logger.debug(
                    f"Cascaded destroy to {len(dependents)} {target.__name__} "
                    f"via {dependency.name}"
                )

            self._expire(record, dependency)

    def recover_dependents(self, record: Any, options: RecoverOptions) -> None:
        """
        Recover the deleted dependents of ``record``.

        When both sides use time columns only dependents deleted within
        ``options.recovery_window`` of the record itself are recovered.
        """
        parent_options = self.registry.resolve(type(record))
        deleted_at = getattr(record, parent_options.column)

        for dependency in self.dependencies(type(record)):
            target = dependency.target_class(record, self.registry)
            if target is None or not self.registry.is_paranoid(target):
                continue

            target_options = self.registry.resolve(target)
            stmt = only_deleted(target, self.registry).where(
                dependency.criterion(record, target)
            )
            if (
                parent_options.column_type == ColumnType.TIME
                and target_options.column_type == ColumnType.TIME
                and deleted_at is not None
            ):
                stmt = deleted_inside_time_window(
                    target, deleted_at, options.recovery_window, stmt, self.registry
                )

            dependents = self.session.scalars(stmt).all()
            for dependent in dependents:
                self.service._recover(dependent, options)
            logger.debug(
                f"Cascaded recover to {len(dependents)} {target.__name__} "
                f"via {dependency.name}"
            )

            self._expire(record, dependency)

    def _expire(self, record: Any, dependency: Dependency) -> None:
        # Loaded collections no longer match the rows
        if dependency.relationship is not None and record in self.session:
            self.session.expire(record, [dependency.relationship.key])
