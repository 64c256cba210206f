"""
Sentinel policy for soft-deletable models.

A policy answers three questions for a model: which column marks deletion,
which value in that column means "not deleted", and how to express both states
as SQL predicates.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import ColumnElement, or_

from ..config import SoftDeleteConfig, get_config


class _Unset:
    """Marker for arguments that were not supplied."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class SentinelPolicy(BaseModel):
    """Immutable description of how a model tracks deletion.

    Attributes:
        column: Attribute key of the column holding the deletion state.
        sentinel_value: Value of that column meaning "not deleted".
        install_default_scope: Whether ORM queries exclude deleted rows by default.
        null_is_deleted: With a non-NULL sentinel, whether NULL counts as deleted.
        timestamp_columns: Audit columns written together with the deletion column.
        use_utc: Whether generated timestamps are timezone-aware UTC.

    Example:
        Boolean flag where ``True`` means active:

        >>> policy = SentinelPolicy(column="is_active", sentinel_value=True)
        >>> policy.deleted_marker()
        False
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    column: str = Field(..., min_length=1)
    sentinel_value: Any = None
    install_default_scope: bool = True
    null_is_deleted: bool = True
    timestamp_columns: Tuple[str, ...] = ()
    use_utc: bool = True

    @field_validator("column")
    @classmethod
    def validate_column(cls, v: str) -> str:
        """Ensure the column is a usable attribute name."""
        if not v.isidentifier():
            raise ValueError(f"'{v}' is not a valid attribute name")
        return v

    @classmethod
    def resolve(
        cls,
        available_columns: Iterable[str],
        config: Optional[SoftDeleteConfig] = None,
        column: Optional[str] = None,
        sentinel_value: Any = UNSET,
        install_default_scope: Optional[bool] = None,
        null_is_deleted: Optional[bool] = None,
        timestamp_columns: Optional[Iterable[str]] = None,
    ) -> "SentinelPolicy":
        """
        Build a policy from explicit arguments, falling back to configuration.

        Args:
            available_columns: Column attribute keys the model maps
            config: Configuration supplying defaults (global config if omitted)
            column: Deletion column override
            sentinel_value: Sentinel override (``UNSET`` keeps the default)
            install_default_scope: Default-scope override
            null_is_deleted: NULL handling override
            timestamp_columns: Explicit audit columns; when omitted, the
                configured names the model actually maps are used

        Returns:
            Resolved policy
        """
        config = config or get_config()
        available = list(available_columns)

        if timestamp_columns is None:
            resolved_timestamps = tuple(
                name for name in config.timestamp_columns if name in available
            )
        else:
            resolved_timestamps = tuple(timestamp_columns)

        return cls(
            column=column or config.default_column,
            sentinel_value=(
                config.default_sentinel_value
                if sentinel_value is UNSET
                else sentinel_value
            ),
            install_default_scope=(
                config.install_default_scope
                if install_default_scope is None
                else install_default_scope
            ),
            null_is_deleted=(
                config.null_is_deleted if null_is_deleted is None else null_is_deleted
            ),
            timestamp_columns=resolved_timestamps,
            use_utc=config.use_utc,
        )

    def now(self) -> datetime:
        """Current time in the policy's timezone convention."""
        if self.use_utc:
            return datetime.now(timezone.utc)
        return datetime.now()

    def deleted_marker(self) -> Any:
        """Value written into the deletion column when a record is deleted."""
        if isinstance(self.sentinel_value, bool):
            return not self.sentinel_value
        return self.now()

    def timestamp_attributes(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Audit columns to touch, mapped to ``now``."""
        now = now or self.now()
        return {name: now for name in self.timestamp_columns}

    def delete_attributes(self) -> Dict[str, Any]:
        """Column values written on soft delete."""
        attributes = {self.column: self.deleted_marker()}
        attributes.update(self.timestamp_attributes())
        return attributes

    def restore_attributes(self) -> Dict[str, Any]:
        """Column values written on restore."""
        attributes = {self.column: self.sentinel_value}
        attributes.update(self.timestamp_attributes())
        return attributes

    def is_active(self, record: Any) -> bool:
        """In-memory counterpart of :meth:`active_clause`."""
        value = getattr(record, self.column)
        if self.sentinel_value is None:
            return value is None
        return bool(value == self.sentinel_value)

    def is_deleted(self, record: Any) -> bool:
        """
        In-memory counterpart of :meth:`deleted_clause`.

        With a non-NULL sentinel and ``null_is_deleted`` off, a NULL is neither
        active nor deleted.
        """
        value = getattr(record, self.column)
        if self.sentinel_value is None:
            return value is not None
        if value is None:
            return self.null_is_deleted
        return bool(value != self.sentinel_value)

    def active_clause(self, column: Any) -> ColumnElement[bool]:
        """Predicate selecting rows that are not deleted."""
        if self.sentinel_value is None:
            return column.is_(None)
        return column == self.sentinel_value

    def deleted_clause(self, column: Any) -> ColumnElement[bool]:
        """
        Predicate selecting deleted rows.

        ``NULL != value`` is never true in SQL, so with a non-NULL sentinel a
        row holding NULL would be invisible to both predicates unless NULL is
        matched explicitly.
        """
        if self.sentinel_value is None:
            return column.is_not(None)
        if self.null_is_deleted:
            return or_(column.is_(None), column != self.sentinel_value)
        return column != self.sentinel_value
