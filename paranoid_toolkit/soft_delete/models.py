"""
Data models for paranoid (soft delete) configuration.

These models describe how an entity type records its deletion state and how
recovery cascades to its dependents.
"""

from datetime import timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ColumnType(str, Enum):
    """Kinds of deletion-state columns."""

    TIME = "time"
    BOOLEAN = "boolean"
    STRING = "string"


class DependentPolicy(str, Enum):
    """What happens to dependents when their parent is destroyed."""

    DESTROY = "destroy"  # each dependent goes through the lifecycle
    DELETE_ALL = "delete_all"  # bulk, no callbacks


class ParanoidOptions(BaseModel):
    """Per-entity-type deletion column configuration.

    Options are resolved once per mapped class and never change afterwards,
    so the deletion predicate and the default query scope always agree.

    Example:
        >>> ParanoidOptions(column="deleted_at")
        >>> ParanoidOptions(column="status", column_type="string",
        ...                 deleted_value="archived")
        >>> ParanoidOptions(column="is_deleted", column_type="boolean",
        ...                 allow_nulls=False)
    """

    model_config = ConfigDict(frozen=True)

    column: str = Field(
        "deleted_at",
        description="Attribute carrying the deletion state",
        min_length=1,
        max_length=100,
    )
    column_type: ColumnType = Field(
        ColumnType.TIME, description="Determines the deletion predicate"
    )
    deleted_value: Optional[str] = Field(
        None, description="Sentinel meaning 'deleted' for string columns"
    )
    allow_nulls: bool = Field(
        True, description="Whether a boolean deletion column may be null"
    )
    recursive: bool = Field(
        True, description="Whether recovery cascades to dependents by default"
    )
    recovery_window: timedelta = Field(
        timedelta(minutes=2),
        description="Window around the parent's deletion time for dependent recovery",
    )
    string_marker: str = Field(
        "deleted",
        description="Value written to string columns without a sentinel",
        min_length=1,
    )

    @field_validator("recovery_window")
    @classmethod
    def validate_recovery_window(cls, v: timedelta) -> timedelta:
        """Reject negative windows."""
        if v < timedelta(0):
            raise ValueError("Recovery window cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_deleted_value(self) -> "ParanoidOptions":
        """A sentinel only makes sense for string columns."""
        if self.deleted_value is not None and self.column_type != ColumnType.STRING:
            raise ValueError(
                "deleted_value can only be used with string deletion columns, "
                f"not {self.column_type.value}"
            )
        return self


class RecoverOptions(BaseModel):
    """Options for a single recover call, defaulted from ParanoidOptions."""

    model_config = ConfigDict(frozen=True)

    recursive: bool = Field(True, description="Recover dependents as well")
    recovery_window: timedelta = Field(
        timedelta(minutes=2), description="Dependent recovery window"
    )

    @classmethod
    def for_options(
        cls,
        options: ParanoidOptions,
        recursive: Optional[bool] = None,
        recovery_window: Optional[timedelta] = None,
    ) -> "RecoverOptions":
        """Merge explicit arguments over the entity type's defaults."""
        return cls(
            recursive=options.recursive if recursive is None else recursive,
            recovery_window=(
                options.recovery_window if recovery_window is None else recovery_window
            ),
        )
