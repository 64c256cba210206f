"""
Configuration module for SoftDelete Toolkit.

Provides centralized configuration for the defaults applied when models are
registered as soft-deletable.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union, get_args, get_origin

import yaml
from pydantic import BaseModel, Field, field_validator

_NULL_WORDS = {"null", "none", "nil", ""}


def parse_sentinel(value: Optional[str]) -> Any:
    """
    Convert a textual sentinel value into a Python value.

    Args:
        value: Text such as ``"null"``, ``"true"`` or ``"active"``

    Returns:
        ``None`` for null words, a bool for true/false, the raw string otherwise
    """
    if value is None:
        return None

    lowered = value.strip().lower()
    if lowered in _NULL_WORDS:
        return None
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return value


class SoftDeleteConfig(BaseModel):
    """Central configuration for soft delete registration defaults.

    Every value here is a default. It is read once, when a model is decorated
    with :func:`~softdelete_toolkit.soft_delete.soft_deletable`, and copied into
    that model's frozen :class:`~softdelete_toolkit.soft_delete.SentinelPolicy`.
    Changing the configuration afterwards does not affect registered models.

    Configuration Sources (in order of precedence):
        1. Arguments passed to ``soft_deletable(...)`` (highest priority)
        2. Programmatic settings via :func:`configure` / :func:`set_config`
        3. Environment variables (SOFTDELETE_ prefix)
        4. Default values (lowest priority)

    Example:
        >>> config = SoftDeleteConfig(
        ...     default_column="archived_at",
        ...     timestamp_columns=["modified_at"],
        ... )

        Loading from environment:

        >>> import os
        >>> os.environ['SOFTDELETE_DEFAULT_COLUMN'] = 'removed_at'
        >>> config = SoftDeleteConfig.from_env()

        Loading from file:

        >>> config = SoftDeleteConfig.from_file('softdelete.yaml')
    """

    # Sentinel defaults
    default_column: str = Field(
        "deleted_at", description="Attribute holding the deletion state", min_length=1
    )
    default_sentinel_value: Any = Field(
        None, description="Value that means the record is not deleted"
    )
    null_is_deleted: bool = Field(
        True,
        description="Treat NULL as deleted when the sentinel itself is not NULL",
    )

    # Scoping
    install_default_scope: bool = Field(
        True, description="Filter deleted rows out of ORM queries by default"
    )

    # Persistence
    timestamp_columns: List[str] = Field(
        default_factory=lambda: ["updated_at", "updated_on"],
        description="Audit columns touched together with the deletion column",
    )
    use_utc: bool = Field(True, description="Write timezone-aware UTC timestamps")

    # Diagnostics
    log_transitions: bool = Field(
        True, description="Log soft delete and restore transitions at INFO"
    )
    warn_on_record_restore: bool = Field(
        True,
        description="Emit a deprecation notice when restore() receives records",
    )

    @field_validator("default_column")
    @classmethod
    def validate_column(cls, v: str) -> str:
        """Reject column names that cannot be attribute names."""
        v = v.strip()
        if not v.isidentifier():
            raise ValueError(f"'{v}' is not a valid attribute name")
        return v

    @field_validator("timestamp_columns")
    @classmethod
    def validate_timestamp_columns(cls, v: List[str]) -> List[str]:
        """Strip and de-duplicate timestamp column names."""
        seen: List[str] = []
        for name in v:
            name = name.strip()
            if name and name not in seen:
                seen.append(name)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()

    @classmethod
    def from_env(cls, prefix: str = "SOFTDELETE_") -> "SoftDeleteConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]

            if field_name == "default_sentinel_value":
                config_dict[field_name] = parse_sentinel(value)
                continue

            field_type = field_info.annotation
            if get_origin(field_type) is Union:
                args = get_args(field_type)
                field_type = next((arg for arg in args if arg is not type(None)), str)

            if field_type == bool:
                config_dict[field_name] = value.lower() in ("true", "1", "yes", "on")
            elif get_origin(field_type) is list:
                config_dict[field_name] = [
                    item.strip() for item in value.split(",") if item.strip()
                ]
            else:
                config_dict[field_name] = value

        return cls.model_validate(config_dict)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SoftDeleteConfig":
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: Path to a ``.json``, ``.yaml`` or ``.yml`` file

        Returns:
            Configuration instance

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file does not contain a mapping
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")

        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")

        return cls.model_validate(data)


# Global configuration instance
_config: Optional[SoftDeleteConfig] = None


def get_config() -> SoftDeleteConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        _config = SoftDeleteConfig.from_env()

    return _config


def set_config(config: SoftDeleteConfig) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> SoftDeleteConfig:
    """
    Configure the toolkit with keyword arguments.

    Only models registered after this call pick up the new defaults.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = SoftDeleteConfig(**kwargs)
    else:
        config_dict = _config.to_dict()
        config_dict.update(kwargs)
        _config = SoftDeleteConfig(**config_dict)

    return _config


def reset_config() -> None:
    """Drop the global configuration so the next access reloads it."""
    global _config
    _config = None
