"""
Configuration module for Paranoid Python Toolkit.

Provides toolkit-wide defaults used when entity types are registered.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin

from pydantic import BaseModel, Field, field_validator

from .soft_delete.models import ColumnType


class ParanoidConfig(BaseModel):
    """Central configuration for the paranoid toolkit.

    Values here are defaults for entity types registered through the
    ``paranoid`` decorator; options given explicitly to the decorator win.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (PARANOID_ prefix)
        3. Configuration files (JSON or YAML)
        4. Default values (lowest priority)

    Example:
        >>> config = ParanoidConfig(recovery_window_seconds=300)

        Loading from environment:

        >>> import os
        >>> os.environ['PARANOID_DEFAULT_COLUMN'] = 'removed_at'
        >>> config = ParanoidConfig.from_env()

        Loading from file:

        >>> config = ParanoidConfig.from_file('paranoid.yaml')

    Note:
        Options are resolved when a class is registered. Changing the
        configuration afterwards does not affect types already registered.
    """

    default_column: str = Field(
        "deleted_at", description="Default deletion column attribute", min_length=1
    )
    default_column_type: ColumnType = Field(
        ColumnType.TIME, description="Default deletion column type"
    )
    recover_dependents: bool = Field(
        True, description="Recover dependents together with their parent"
    )
    recovery_window_seconds: int = Field(
        120, description="Default dependent recovery window in seconds", ge=0
    )
    string_deleted_marker: str = Field(
        "deleted",
        description="Marker written to string columns without a sentinel",
        min_length=1,
    )
    install_default_scope: bool = Field(
        True, description="Filter deleted rows from ORM queries by default"
    )

    @field_validator("default_column")
    @classmethod
    def validate_column_name(cls, v: str) -> str:
        """Column names must be valid Python identifiers."""
        if not v.isidentifier():
            raise ValueError(f"'{v}' is not a valid attribute name")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_env(cls, prefix: str = "PARANOID_") -> "ParanoidConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var in os.environ:
                value = os.environ[env_var]

                field_type = field_info.annotation

                # Handle Optional types
                if get_origin(field_type) is Union:
                    args = get_args(field_type)
                    field_type = next(
                        (arg for arg in args if arg is not type(None)), str
                    )

                try:
                    if field_type == bool:
                        config_dict[field_name] = value.lower() in (
                            "true",
                            "1",
                            "yes",
                            "on",
                        )
                    elif field_type == int:
                        config_dict[field_name] = int(value)
                    elif isinstance(field_type, type) and issubclass(field_type, Enum):
                        config_dict[field_name] = field_type(value)
                    else:
                        config_dict[field_name] = value
                except (ValueError, TypeError):
                    # Let validation report the raw value
                    config_dict[field_name] = value

        return cls.model_validate(config_dict)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ParanoidConfig":
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: Path to a .json, .yaml or .yml file

        Returns:
            Configuration instance
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")

        if path.suffix.lower() in (".yaml", ".yml"):
            import yaml

            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")

        return cls.model_validate(data)


# Global configuration instance
_config: Optional[ParanoidConfig] = None


def get_config() -> ParanoidConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        _config = ParanoidConfig.from_env()

    return _config


def set_config(config: Optional[ParanoidConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> ParanoidConfig:
    """
    Configure the toolkit with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = ParanoidConfig(**kwargs)
    else:
        config_dict = _config.to_dict()
        config_dict.update(kwargs)
        _config = ParanoidConfig(**config_dict)

    return _config
