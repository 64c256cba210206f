"""
SQLAlchemy mixin and registration decorator for soft-deletable models.

Usage:
    class Base(DeclarativeBase):
        pass

    @soft_deletable(counter_caches=[CounterCache("employer", "jobs_count")])
    class Job(Base, SoftDeleteMixin):
        __tablename__ = "jobs"
        id: Mapped[int] = mapped_column(primary_key=True)
        deleted_at: Mapped[Optional[datetime]]
        employer_id: Mapped[int] = mapped_column(ForeignKey("employers.id"))
        employer: Mapped["Employer"] = relationship(back_populates="jobs")

    job.soft_delete()
    session.scalars(Job.with_deleted()).all()
    Job.restore_ids(session, [1, 2])
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ..config import SoftDeleteConfig
from .counter_cache import CounterCache, CounterCacheSynchronizer
from .exceptions import SoftDeleteConfigurationError
from .hooks import Hook, HookRegistry
from .lifecycle import READONLY, LifecycleEngine, is_readonly
from .policy import UNSET, SentinelPolicy
from .registry import SoftDeleteRegistration, get_registration, is_soft_deletable, register
from .scopes import ScopeProvider

logger = logging.getLogger(__name__)


class SoftDeleteMixin:
    """
    Mixin exposing soft delete operations on a mapped model.

    The mixin maps no columns: the model declares its own deletion column and
    is registered with :func:`soft_deletable`.
    """

    # Query operations

    @classmethod
    def with_deleted(cls, stmt: Any = None) -> Any:
        """Query including deleted records."""
        return get_registration(cls).scopes.with_deleted(stmt)

    @classmethod
    def without_deleted(cls, stmt: Any = None) -> Any:
        """Query restricted to active records."""
        return get_registration(cls).scopes.without_deleted(stmt)

    @classmethod
    def only_deleted(cls, stmt: Any = None) -> Any:
        """Query restricted to deleted records."""
        return get_registration(cls).scopes.only_deleted(stmt)

    @classmethod
    def deleted(cls, stmt: Any = None) -> Any:
        return cls.only_deleted(stmt)

    @classmethod
    def restore_ids(
        cls, session: Session, id_or_ids: Any, recursive: bool = False
    ) -> List[Any]:
        """
        Restore deleted records by identifier.

        Args:
            session: SQLAlchemy session
            id_or_ids: Identifier or list of identifiers
            recursive: Also restore associated records

        Returns:
            Restored records in input order

        Raises:
            RecordNotFound: If an identifier is not among deleted records
        """
        return get_registration(cls).scopes.restore(
            session, id_or_ids, recursive=recursive
        )

    @classmethod
    def register_hook(cls, name: str, fn: Hook) -> Hook:
        """Add a hook from outside the class body, e.g. ``before_restore``."""
        return get_registration(cls).hooks.add(name, fn)

    @classmethod
    def is_soft_deletable(cls) -> bool:
        return is_soft_deletable(cls)

    # Instance operations

    def soft_delete(self) -> bool:
        """
        Soft delete this record.

        Returns:
            False if a hook vetoed, True otherwise

        Raises:
            ReadOnlyRecordError: If the record is marked read-only
        """
        return get_registration(self).lifecycle.soft_delete(self)

    def soft_delete_or_raise(self) -> Any:
        """Soft delete this record, raising ``RecordNotDestroyed`` on veto."""
        return get_registration(self).lifecycle.soft_delete_or_raise(self)

    def restore(self, recursive: bool = False) -> bool:
        """
        Restore this record.

        Args:
            recursive: Also call :meth:`restore_associated_records`

        Returns:
            False if a hook vetoed, True otherwise
        """
        return get_registration(self).lifecycle.restore(self, recursive=recursive)

    def restore_or_raise(self, recursive: bool = False) -> Any:
        """Restore this record, raising ``RecordNotRestored`` on veto."""
        return get_registration(self).lifecycle.restore_or_raise(
            self, recursive=recursive
        )

    @property
    def is_soft_deleted(self) -> bool:
        return get_registration(self).lifecycle.is_deleted(self)

    def soft_delete_attributes(self) -> Dict[str, Any]:
        """Columns written on soft delete. Override to write extra columns."""
        return get_registration(self).policy.delete_attributes()

    def restore_attributes(self) -> Dict[str, Any]:
        """Columns written on restore. Override to write extra columns."""
        return get_registration(self).policy.restore_attributes()

    def restore_associated_records(self) -> None:
        """Called by a recursive restore; restores nothing by default."""

    def mark_readonly(self) -> None:
        """Refuse any later soft delete of this instance."""
        inspect(self).info[READONLY] = True

    @property
    def readonly(self) -> bool:
        return is_readonly(self)


def _install_sentinel_default(model: type, policy: SentinelPolicy) -> None:
    def set_sentinel(target: Any, args: Any, kwargs: Dict[str, Any]) -> None:
        if policy.column not in kwargs:
            setattr(target, policy.column, policy.sentinel_value)

    event.listen(model, "init", set_sentinel, propagate=True)


def _check_deleted_marker(model: type, mapper: Any, policy: SentinelPolicy) -> None:
    """Reject a deletion column that cannot store the default deleted marker."""
    if isinstance(policy.sentinel_value, bool):
        return
    if model.soft_delete_attributes is not SoftDeleteMixin.soft_delete_attributes:
        return
    try:
        python_type = mapper.columns[policy.column].type.python_type
    except NotImplementedError:
        return
    if not issubclass(python_type, date):
        raise SoftDeleteConfigurationError(
            f"{model.__name__}.{policy.column} is a {python_type.__name__} column; "
            "deletion writes a timestamp unless the sentinel is a bool, so "
            "override soft_delete_attributes() to choose the deleted value"
        )


def soft_deletable(
    cls: Optional[type] = None,
    *,
    column: Optional[str] = None,
    sentinel_value: Any = UNSET,
    default_scope: Optional[bool] = None,
    null_is_deleted: Optional[bool] = None,
    timestamp_columns: Optional[Iterable[str]] = None,
    counter_caches: Sequence[CounterCache] = (),
    observers: Sequence[Any] = (),
    config: Optional[SoftDeleteConfig] = None,
) -> Any:
    """
    Register a mapped :class:`SoftDeleteMixin` subclass as soft-deletable.

    Usable bare (``@soft_deletable``) or with arguments. Arguments left out
    fall back to :class:`~softdelete_toolkit.config.SoftDeleteConfig`.

    Soft delete writes the negated flag for a bool sentinel and the current
    time for any other sentinel. A model whose deletion column holds neither
    (a status string, an integer code) must override
    :meth:`SoftDeleteMixin.soft_delete_attributes`.

    Args:
        column: Attribute key of the deletion column
        sentinel_value: Value meaning "not deleted"
        default_scope: Whether ORM queries hide deleted records by default
        null_is_deleted: With a non-NULL sentinel, whether NULL counts as deleted
        timestamp_columns: Audit columns touched by transitions
        counter_caches: Counter caches maintained on owners of this model
        observers: Objects notified of transitions
        config: Configuration to resolve defaults from

    Raises:
        TypeError: If the class does not use :class:`SoftDeleteMixin`
        SoftDeleteConfigurationError: If the class does not map the column, or
            its column cannot hold the deleted marker
    """

    def decorate(model: type) -> type:
        if not issubclass(model, SoftDeleteMixin):
            raise TypeError(
                f"{model.__name__} must inherit SoftDeleteMixin to be soft-deletable"
            )

        mapper = inspect(model, raiseerr=False)
        if mapper is None:
            raise SoftDeleteConfigurationError(f"{model.__name__} is not mapped")
        available = list(mapper.columns.keys())

        policy = SentinelPolicy.resolve(
            available,
            config=config,
            column=column,
            sentinel_value=sentinel_value,
            install_default_scope=default_scope,
            null_is_deleted=null_is_deleted,
            timestamp_columns=timestamp_columns,
        )
        missing = [
            name
            for name in (policy.column, *policy.timestamp_columns)
            if name not in available
        ]
        if missing:
            raise SoftDeleteConfigurationError(
                f"{model.__name__} does not map column(s) {', '.join(missing)}"
            )
        _check_deleted_marker(model, mapper, policy)

        hooks = HookRegistry.collect(model)
        for observer in observers:
            hooks.observe(observer)
        counters = CounterCacheSynchronizer(model, policy, counter_caches)
        lifecycle = LifecycleEngine(model, policy, hooks, counters)
        scopes = ScopeProvider(model, policy, lifecycle)

        register(
            SoftDeleteRegistration(
                model=model,
                policy=policy,
                hooks=hooks,
                counter_caches=counters,
                lifecycle=lifecycle,
                scopes=scopes,
            )
        )
        counters.install()
        _install_sentinel_default(model, policy)

        logger.debug(
            f"Registered {model.__name__} as soft-deletable "
            f"({policy.column}, sentinel={policy.sentinel_value!r})"
        )
        return model

    if cls is not None:
        return decorate(cls)
    return decorate

