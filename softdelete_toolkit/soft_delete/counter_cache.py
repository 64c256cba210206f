"""
Counter caches kept in step with soft deletion.

A counter cache is an integer column on the owning side of a many-to-one
relationship that stores how many *active* dependents reference the owner.
SQLAlchemy has no native counter caches, so this module maintains them in two
places:

* ordinary persistence (insert, hard delete, moving a dependent to another
  owner) through mapper flush events, and
* soft delete / restore transitions, through :class:`CounterCacheSynchronizer`,
  which adjusts each counter exactly once per genuine transition.

While a transition runs for a record, the flush-event maintenance is suspended
for that record so the two paths never both count the same change.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import event, inspect, update
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Mapper, RelationshipProperty, Session
from sqlalchemy.orm.interfaces import MANYTOONE

from .exceptions import SoftDeleteConfigurationError
from .policy import SentinelPolicy

logger = logging.getLogger(__name__)

_SUSPENDED = "softdelete.counter_cache_suspended"


@dataclass(frozen=True)
class CounterCache:
    """Declares a counter cache on a dependent model.

    Attributes:
        relationship: Name of the many-to-one relationship to the owner.
        column: Attribute key of the integer counter on the owner.
    """

    relationship: str
    column: str


@dataclass(frozen=True)
class _ResolvedCounter:
    cache: CounterCache
    owner: Mapper[Any]
    # (dependent attribute key, owner attribute key) per foreign key column
    keys: Tuple[Tuple[str, str], ...]
    counter_key: str


class CounterCacheSynchronizer:
    """Adjusts owner counters for one dependent model."""

    def __init__(
        self, model: type, policy: SentinelPolicy, caches: Sequence[CounterCache]
    ):
        self.model = model
        self.policy = policy
        self.caches = tuple(caches)
        self._resolved: Optional[List[_ResolvedCounter]] = None

    def __bool__(self) -> bool:
        return bool(self.caches)

    def install(self) -> None:
        """Attach the flush-event maintenance to the model."""
        if not self.caches:
            return
        event.listen(self.model, "after_insert", self._after_insert, propagate=True)
        event.listen(self.model, "before_delete", self._before_delete, propagate=True)
        event.listen(self.model, "after_update", self._after_update, propagate=True)

    def resolved(self) -> List[_ResolvedCounter]:
        """Resolve relationship names lazily, once mappers are configured."""
        if self._resolved is None:
            mapper = inspect(self.model)
            self._resolved = [self._resolve(mapper, cache) for cache in self.caches]
        return self._resolved

    def _resolve(self, mapper: Mapper[Any], cache: CounterCache) -> _ResolvedCounter:
        prop = mapper.relationships.get(cache.relationship)
        if not isinstance(prop, RelationshipProperty):
            raise SoftDeleteConfigurationError(
                f"{self.model.__name__} has no relationship '{cache.relationship}'"
            )
        if prop.direction is not MANYTOONE:
            raise SoftDeleteConfigurationError(
                f"Counter cache on {self.model.__name__}.{cache.relationship} "
                "requires a many-to-one relationship"
            )

        owner = prop.mapper
        if cache.column not in owner.column_attrs:
            raise SoftDeleteConfigurationError(
                f"{owner.class_.__name__} has no counter column '{cache.column}'"
            )

        keys = tuple(
            (
                mapper.get_property_by_column(local).key,
                owner.get_property_by_column(remote).key,
            )
            for local, remote in prop.local_remote_pairs
        )
        return _ResolvedCounter(cache, owner, keys, cache.column)

    @contextmanager
    def suspended(self, record: Any) -> Iterator[None]:
        """Suspend flush-event maintenance for ``record``."""
        info = inspect(record).info
        info[_SUSPENDED] = True
        try:
            yield
        finally:
            info.pop(_SUSPENDED, None)

    def increment(self, session: Session, record: Any) -> None:
        self._adjust_in_session(session, record, 1)

    def decrement(self, session: Session, record: Any) -> None:
        self._adjust_in_session(session, record, -1)

    def _adjust_in_session(self, session: Session, record: Any, delta: int) -> None:
        for counter in self.resolved():
            owner_key = _owner_key(counter, record)
            if owner_key is None:
                continue
            owner_cls = counter.owner.class_
            counter_attr = getattr(owner_cls, counter.counter_key)
            stmt = (
                update(owner_cls)
                .where(
                    *(
                        getattr(owner_cls, owner_attr) == value
                        for (_, owner_attr), value in zip(counter.keys, owner_key)
                    )
                )
                .values({counter_attr: counter_attr + delta})
            )
            session.execute(stmt)
            logger.debug(
                f"{owner_cls.__name__}.{counter.counter_key} {delta:+d} "
                f"for {type(record).__name__} (owner {owner_key})"
            )

    def expire_owners(self, session: Session, record: Any) -> None:
        """Expire cached counters of ``record``'s owners loaded in ``session``."""
        for counter in self.resolved():
            owner_key = _owner_key(counter, record)
            if owner_key is None:
                continue
            for owner in list(session.identity_map.values()):
                if not isinstance(owner, counter.owner.class_):
                    continue
                values = tuple(getattr(owner, attr) for _, attr in counter.keys)
                if values == owner_key:
                    session.expire(owner, [counter.counter_key])

    def _adjust_on_connection(
        self,
        connection: Connection,
        counter: _ResolvedCounter,
        owner_key: Tuple[Any, ...],
        delta: int,
    ) -> None:
        owner = counter.owner
        counter_column = owner.get_property(counter.counter_key).columns[0]
        table = counter_column.table
        conditions = [
            owner.get_property(owner_attr).columns[0] == value
            for (_, owner_attr), value in zip(counter.keys, owner_key)
        ]
        connection.execute(
            update(table)
            .where(*conditions)
            .values({counter_column: counter_column + delta})
        )

    def _maintains(self, target: Any) -> bool:
        return not inspect(target).info.get(_SUSPENDED) and self.policy.is_active(target)

    def _after_insert(self, mapper: Mapper[Any], connection: Connection, target: Any) -> None:
        if not self._maintains(target):
            return
        for counter in self.resolved():
            owner_key = _owner_key(counter, target)
            if owner_key is not None:
                self._adjust_on_connection(connection, counter, owner_key, 1)

    def _before_delete(self, mapper: Mapper[Any], connection: Connection, target: Any) -> None:
        if not self._maintains(target):
            return
        for counter in self.resolved():
            owner_key = _owner_key(counter, target)
            if owner_key is not None:
                self._adjust_on_connection(connection, counter, owner_key, -1)

    def _after_update(self, mapper: Mapper[Any], connection: Connection, target: Any) -> None:
        if not self._maintains(target):
            return
        state = inspect(target)
        for counter in self.resolved():
            histories = [state.attrs[local].history for local, _ in counter.keys]
            if not any(history.has_changes() for history in histories):
                continue

            previous = tuple(
                history.deleted[0] if history.deleted else history.unchanged[0]
                for history in histories
                if history.deleted or history.unchanged
            )
            if len(previous) == len(counter.keys) and None not in previous:
                self._adjust_on_connection(connection, counter, previous, -1)

            current = _owner_key(counter, target)
            if current is not None:
                self._adjust_on_connection(connection, counter, current, 1)


def _owner_key(counter: _ResolvedCounter, record: Any) -> Optional[Tuple[Any, ...]]:
    values = tuple(getattr(record, local) for local, _ in counter.keys)
    if any(value is None for value in values):
        return None
    return values
