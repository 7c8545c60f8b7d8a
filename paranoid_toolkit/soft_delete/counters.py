"""
Counter caches on many-to-one associations.

A relationship declared with ``info={"counter_cache": "comments_count"}``
keeps ``comments_count`` on the parent equal to its number of visible
children. Destroying a visible child decrements it.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Type

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import update
from sqlalchemy.orm import RelationshipDirection, RelationshipProperty, Session

from .models import ParanoidOptions
from .scopes import active_clause

if TYPE_CHECKING:
    from .registry import ParanoidRegistry

logger = logging.getLogger(__name__)

COUNTER_CACHE_KEY = "counter_cache"


@dataclass(frozen=True)
class CounterTarget:
    """A parent record and the counter attribute to decrement."""

    parent: Any
    attribute: str
    parent_options: Optional[ParanoidOptions] = None


def counter_cached_relationships(entity_class: Type[Any]) -> List[RelationshipProperty]:
    return [
        relationship
        for relationship in sa_inspect(entity_class).relationships
        if relationship.direction is RelationshipDirection.MANYTOONE
        and relationship.info.get(COUNTER_CACHE_KEY)
    ]


def _same_association(
    relationship: RelationshipProperty, cause: Optional[RelationshipProperty]
) -> bool:
    # Both sides of one association join on the same column pairs
    if cause is None:
        return False
    ours = {frozenset(pair) for pair in relationship.local_remote_pairs}
    theirs = {frozenset(pair) for pair in cause.local_remote_pairs}
    return bool(ours & theirs)


def collect_counter_targets(
    record: Any,
    registry: "ParanoidRegistry",
    cause: Optional[RelationshipProperty] = None,
) -> List[CounterTarget]:
    """
    Find the counters a destroy of ``record`` must decrement.

    Must run before the record's row is removed so its associations can
    still be loaded.

    Args:
        record: Record about to be destroyed
        registry: Registry used to look up paranoid parents
        cause: Relationship through which the destroy cascaded, if any;
            its counter is left alone because the parent is going away
    """
    targets = []
    for relationship in counter_cached_relationships(type(record)):
        if _same_association(relationship, cause):
            continue

        parent = getattr(record, relationship.key)
        if parent is None:
            continue

        parent_class = type(parent)
        parent_options = None
        if registry.is_paranoid(parent_class):
            parent_options = registry.resolve(parent_class)

        targets.append(
            CounterTarget(
                parent, relationship.info[COUNTER_CACHE_KEY], parent_options
            )
        )
    return targets


def decrement_counters(
    session: Session, targets: List[CounterTarget], affected_rows: int
) -> None:
    """
    Decrement each target counter by one if any row was affected.

    A paranoid parent whose row is deleted in the database is left alone,
    whatever its in-memory state says.
    """
    if affected_rows <= 0:
        return

    for target in targets:
        parent_class = type(target.parent)
        mapper = sa_inspect(parent_class)
        identity = mapper.primary_key_from_instance(target.parent)
        counter = getattr(parent_class, target.attribute)

        stmt = update(parent_class).where(
            *[col == value for col, value in zip(mapper.primary_key, identity)]
        )
        if target.parent_options is not None:
            column = getattr(parent_class, target.parent_options.column)
            stmt = stmt.where(active_clause(column, target.parent_options))

        decremented = session.execute(
            stmt.values({target.attribute: counter - 1}).execution_options(
                synchronize_session=False
            )
        ).rowcount
        if target.parent in session:
            session.expire(target.parent, [target.attribute])

        if decremented:
            logger.debug(
                f"Decremented {parent_class.__name__}.{target.attribute} "
                f"for {identity}"
            )
        else:
            logger.debug(
                f"Skipped {parent_class.__name__}.{target.attribute} "
                f"for {identity}: parent is deleted"
            )
