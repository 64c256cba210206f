"""
Query scoping for soft-deletable models.

Importing this module installs a ``do_orm_execute`` listener on every
:class:`~sqlalchemy.orm.Session`. For each ORM SELECT it adds
``with_loader_criteria`` for every registered model whose policy installs a
default scope, so deleted rows disappear from queries, relationship loads and
joins alike. Column refreshes of already-loaded objects are left untouched.

A statement opts out per model through :meth:`ScopeProvider.with_deleted`,
which records the model in the ``WITH_DELETED`` execution option. Passing
``WITH_DELETED: True`` opts out for every model.
"""

import logging
import warnings
from typing import Any, FrozenSet, Iterator, List, Optional, Union

from sqlalchemy import Table, event, inspect, select
from sqlalchemy.orm import InstanceState, ORMExecuteState, Session, with_loader_criteria
from sqlalchemy.sql.expression import (
    ClauseElement,
    ColumnClause,
    ScalarSelect,
    Select,
    Subquery,
)

from ..config import get_config
from .exceptions import RecordNotFound
from .lifecycle import LifecycleEngine, identity_clause, transaction
from .policy import SentinelPolicy
from .registry import registrations

logger = logging.getLogger(__name__)

WITH_DELETED = "softdelete_with_deleted"


def _unscoped(statement: Any) -> Union[bool, FrozenSet[type]]:
    value = statement.get_execution_options().get(WITH_DELETED, frozenset())
    return True if value is True else frozenset(value)


class ScopeProvider:
    """Query operations for one soft-deletable model."""

    def __init__(self, model: type, policy: SentinelPolicy, lifecycle: LifecycleEngine):
        self.model = model
        self.policy = policy
        self.lifecycle = lifecycle

    @property
    def column(self) -> Any:
        return getattr(self.model, self.policy.column)

    @property
    def table_column(self) -> Any:
        """The mapped table column behind the deletion attribute."""
        return inspect(self.model).get_property(self.policy.column).columns[0]

    def active_clause(self) -> Any:
        return self.policy.active_clause(self.column)

    def deleted_clause(self) -> Any:
        return self.policy.deleted_clause(self.column)

    def _base(self, stmt: Any) -> Any:
        return select(self.model) if stmt is None else stmt

    def with_deleted(self, stmt: Any = None) -> Any:
        """
        Remove this model's default filter from a query.

        Args:
            stmt: ``Select``, ``Query`` or association query; defaults to
                ``select(model)``

        Returns:
            A new statement; ``stmt`` itself is not modified
        """
        stmt = self._base(stmt)
        unscoped = _unscoped(stmt)
        if unscoped is True:
            return stmt
        return stmt.execution_options(**{WITH_DELETED: unscoped | {self.model}})

    def without_deleted(self, stmt: Any = None) -> Any:
        """Restrict a query to active records explicitly."""
        return self._base(stmt).where(self.active_clause())

    def only_deleted(self, stmt: Any = None) -> Any:
        """Restrict a query to deleted records, keeping its other criteria."""
        return self.with_deleted(stmt).where(self.deleted_clause())

    deleted = only_deleted

    def restore(
        self, session: Session, id_or_ids: Any, recursive: bool = False
    ) -> List[Any]:
        """
        Restore deleted records by identifier.

        Each identifier is looked up among deleted records and restored in its
        own transaction, or SAVEPOINT when ``session`` is already in one.

        Args:
            session: Session to load and write through
            id_or_ids: An identifier or a (possibly nested) list of them
            recursive: Passed through to the lifecycle restore

        Returns:
            Restored records, in input order

        Raises:
            RecordNotFound: If an identifier is not among deleted records.
                Records restored before it stay restored.
        """
        identities = list(self._identities(id_or_ids))
        mapper = inspect(self.model)
        restored = []
        for identity in identities:
            with transaction(session):
                stmt = self.only_deleted().where(
                    *identity_clause(mapper, _as_tuple(identity))
                )
                record = session.scalars(stmt).one_or_none()
                if record is None:
                    raise RecordNotFound(self.model, identity)
                self.lifecycle.restore(record, recursive=recursive)
            restored.append(record)
        return restored

    def _identities(self, id_or_ids: Any) -> Iterator[Any]:
        composite = len(inspect(self.model).primary_key) > 1
        flat = list(_flatten(id_or_ids, composite))
        if not any(_is_record(item) for item in flat):
            yield from flat
            return

        message = (
            f"Passing {self.model.__name__} instances to restore() is deprecated; "
            "pass their identifiers instead"
        )
        if get_config().warn_on_record_restore:
            warnings.warn(message, DeprecationWarning, stacklevel=4)
            logger.warning(message)
        for item in flat:
            if not _is_record(item):
                yield item
                continue
            identity = inspect(item).identity
            yield identity if composite else identity[0]


def _flatten(value: Any, composite: bool) -> Iterator[Any]:
    if isinstance(value, (list, set, frozenset)) or (
        isinstance(value, tuple) and not composite
    ):
        for item in value:
            yield from _flatten(item, composite)
    else:
        yield value


def _is_record(value: Any) -> bool:
    return isinstance(inspect(value, raiseerr=False), InstanceState)


def _as_tuple(identity: Any) -> tuple:
    return identity if isinstance(identity, tuple) else (identity,)


def _referenced_tables(clause: Optional[ClauseElement]) -> Iterator[Table]:
    """Tables referenced by columns of a WHERE clause, not descending into subqueries."""
    if clause is None:
        return
    stack = [clause]
    while stack:
        element = stack.pop()
        if isinstance(element, (Select, Subquery, ScalarSelect)):
            continue
        if isinstance(element, ColumnClause) and isinstance(element.table, Table):
            yield element.table
            continue
        stack.extend(element.get_children())


@event.listens_for(Session, "do_orm_execute")
def _apply_default_scope(execute_state: ORMExecuteState) -> None:
    if (
        not execute_state.is_select
        or not execute_state.is_orm_statement
        or execute_state.is_column_load
    ):
        return

    unscoped = execute_state.execution_options.get(WITH_DELETED, frozenset())
    if unscoped is True:
        return

    scoped = [
        registration
        for registration in registrations()
        if registration.policy.install_default_scope
        and registration.model not in unscoped
    ]
    if not scoped:
        return

    statement = execute_state.statement
    statement = statement.options(
        *(
            with_loader_criteria(
                registration.model,
                registration.scopes.active_clause(),
                include_aliases=True,
            )
            for registration in scoped
        )
    )

    # Has-many-through: a secondary table belonging to a soft-deletable model
    # is not an entity, so loader criteria never reach it.
    entity_mappers = set(execute_state.all_mappers)
    referenced = set(_referenced_tables(statement.whereclause))
    for registration in scoped:
        mapper = inspect(registration.model)
        if mapper in entity_mappers or mapper.local_table not in referenced:
            continue
        statement = statement.where(
            registration.policy.active_clause(registration.scopes.table_column)
        )

    execute_state.statement = statement
