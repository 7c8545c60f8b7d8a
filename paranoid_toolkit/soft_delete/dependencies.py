"""
Dependency declarations read by the cascade engine.

Two sources are supported:

* SQLAlchemy relationships carrying ``info={"dependent": "destroy"}`` (or
  ``"delete_all"``). Relationships without that key never cascade.
* Polymorphic dependencies declared on the registry, whose target class is
  named by a discriminator column on the source record.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Type

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import RelationshipProperty, with_parent
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import ParanoidConfigurationError
from .models import DependentPolicy

if TYPE_CHECKING:
    from .registry import ParanoidRegistry

DEPENDENT_KEY = "dependent"


@dataclass(frozen=True)
class RelationshipDependency:
    """Dependency backed by a mapped relationship."""

    relationship: RelationshipProperty
    policy: DependentPolicy

    @property
    def name(self) -> str:
        return self.relationship.key

    def target_class(self, record: Any, registry: "ParanoidRegistry") -> Optional[Type[Any]]:
        return self.relationship.mapper.class_

    def criterion(self, record: Any, target: Type[Any]) -> ColumnElement[bool]:
        return with_parent(record, getattr(type(record), self.relationship.key))


@dataclass(frozen=True)
class PolymorphicDependency:
    """Dependency whose target class is stored on the source record."""

    name: str
    policy: DependentPolicy
    type_field: str
    id_field: str

    @property
    def relationship(self) -> Optional[RelationshipProperty]:
        return None

    def target_class(self, record: Any, registry: "ParanoidRegistry") -> Optional[Type[Any]]:
        type_name = getattr(record, self.type_field)
        if type_name is None:
            return None
        return registry.resolve_type_name(type_name)

    def criterion(self, record: Any, target: Type[Any]) -> ColumnElement[bool]:
        primary_key = sa_inspect(target).primary_key
        if len(primary_key) != 1:
            raise ParanoidConfigurationError(
                f"Polymorphic dependency '{self.name}' needs a single-column "
                f"primary key on {target.__name__}",
                entity_type=target.__name__,
            )
        return primary_key[0] == getattr(record, self.id_field)


def relationship_dependencies(entity_class: Type[Any]) -> List[RelationshipDependency]:
    """
    Relationships of ``entity_class`` declared with a dependent policy.

    Raises:
        ParanoidConfigurationError: A relationship names an unknown policy
    """
    dependencies = []
    for relationship in sa_inspect(entity_class).relationships:
        policy = relationship.info.get(DEPENDENT_KEY)
        if policy is None:
            continue
        try:
            dependencies.append(RelationshipDependency(relationship, DependentPolicy(policy)))
        except ValueError:
            raise ParanoidConfigurationError(
                f"{entity_class.__name__}.{relationship.key} has unknown dependent "
                f"policy '{policy}'",
                entity_type=entity_class.__name__,
            ) from None
    return dependencies
