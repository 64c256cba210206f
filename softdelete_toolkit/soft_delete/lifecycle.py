"""
Soft delete lifecycle engine.

Orchestrates the ``Active <-> Deleted`` transitions of a record: transaction
wrapping, hook invocation, the raw column update and counter cache adjustment.
"""

import logging
from contextlib import contextmanager, nullcontext
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
)

from sqlalchemy import event, inspect, update
from sqlalchemy.orm import Session, SessionTransaction, object_session
from sqlalchemy.orm.attributes import set_committed_value

from ..config import get_config
from .counter_cache import CounterCacheSynchronizer
from .exceptions import (
    DetachedRecordError,
    ReadOnlyRecordError,
    RecordNotDestroyed,
    RecordNotRestored,
    TransitionAborted,
)
from .hooks import HookRegistry
from .policy import SentinelPolicy

logger = logging.getLogger(__name__)

READONLY = "softdelete.readonly"

_PENDING = "softdelete.after_commit"
_COMMITTED = "softdelete.committed"


@contextmanager
def transaction(session: Session) -> Iterator[None]:
    """
    Run a block in its own transaction.

    Joins an active transaction through a SAVEPOINT so a failure only rolls
    back the block; otherwise begins and commits a new transaction.
    """
    if session.in_transaction():
        with session.begin_nested():
            yield
    else:
        with session.begin():
            yield


def identity_clause(mapper: Any, identity: Iterable[Any]) -> List[Any]:
    """WHERE conditions matching a primary key identity."""
    return [column == value for column, value in zip(mapper.primary_key, identity)]


def is_readonly(record: Any) -> bool:
    return bool(inspect(record).info.get(READONLY))


# -- after-commit dispatch ---------------------------------------------------


def _enqueue_after_commit(
    session: Session, callbacks: Iterable[Callable[[], Any]]
) -> None:
    callbacks = list(callbacks)
    if not callbacks:
        return
    tag = session.get_nested_transaction() or session.get_transaction()
    pending: List[Tuple[Optional[SessionTransaction], Callable[[], Any]]]
    pending = session.info.setdefault(_PENDING, [])
    pending.extend((tag, callback) for callback in callbacks)


def _within(transaction: Optional[SessionTransaction], ancestor: SessionTransaction) -> bool:
    while transaction is not None:
        if transaction is ancestor:
            return True
        transaction = transaction.parent
    return False


@event.listens_for(Session, "after_commit")
def _mark_committed(session: Session) -> None:
    # Also dispatched when a SAVEPOINT is released.
    if not session.in_nested_transaction():
        session.info[_COMMITTED] = True


@event.listens_for(Session, "after_soft_rollback")
def _discard_rolled_back(session: Session, previous_transaction: SessionTransaction) -> None:
    pending = session.info.get(_PENDING)
    if not pending:
        return
    session.info[_PENDING] = [
        (tag, callback)
        for tag, callback in pending
        if not _within(tag, previous_transaction)
    ]


@event.listens_for(Session, "after_transaction_end")
def _run_after_commit(session: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is not None:
        return
    pending = session.info.pop(_PENDING, [])
    committed = session.info.pop(_COMMITTED, False)
    if not committed:
        return
    for _, callback in pending:
        callback()


class LifecycleEngine:
    """Soft delete and restore for the records of one model."""

    def __init__(
        self,
        model: type,
        policy: SentinelPolicy,
        hooks: HookRegistry,
        counter_caches: CounterCacheSynchronizer,
    ):
        self.model = model
        self.policy = policy
        self.hooks = hooks
        self.counter_caches = counter_caches

    def is_deleted(self, record: Any) -> bool:
        """Whether the record is soft-deleted, judged from in-memory state."""
        return self.policy.is_deleted(record)

    def soft_delete(self, record: Any) -> bool:
        """
        Soft delete a record.

        Args:
            record: Record to delete

        Returns:
            True on success (including when already deleted), False if a hook
            vetoed the transition

        Raises:
            ReadOnlyRecordError: If the record is marked read-only
            DetachedRecordError: If the record is persisted but has no session
        """
        if is_readonly(record):
            raise ReadOnlyRecordError(record)
        return self._transition("soft_delete", record, recursive=False)

    def soft_delete_or_raise(self, record: Any) -> Any:
        """
        Soft delete a record, raising when a hook vetoes.

        Raises:
            RecordNotDestroyed: If a hook vetoed the transition
        """
        if not self.soft_delete(record):
            raise RecordNotDestroyed("Failed to soft-delete the record", record)
        return record

    def restore(self, record: Any, recursive: bool = False) -> bool:
        """
        Restore a soft-deleted record.

        Args:
            record: Record to restore
            recursive: Also call the record's ``restore_associated_records()``

        Returns:
            True on success (including when already active), False if a hook
            vetoed the transition
        """
        return self._transition("restore", record, recursive=recursive)

    def restore_or_raise(self, record: Any, recursive: bool = False) -> Any:
        """
        Restore a record, raising when a hook vetoes.

        Raises:
            RecordNotRestored: If a hook vetoed the transition
        """
        if not self.restore(record, recursive=recursive):
            raise RecordNotRestored("Failed to restore the record", record)
        return record

    def _transition(self, transition: str, record: Any, recursive: bool) -> bool:
        state = inspect(record)
        session = object_session(record)
        persisted = state.has_identity and not state.was_deleted
        if persisted and session is None:
            raise DetachedRecordError(record)

        # Unsaved records are only changed in memory, so no transaction is
        # opened (beginning one would flush them).
        scope: ContextManager[Any] = (
            transaction(session) if persisted and session is not None else nullcontext()
        )
        acted = False
        snapshot: Dict[str, Any] = {}

        def action() -> None:
            nonlocal acted
            acted = True
            if transition == "soft_delete":
                self._delete(
                    session, record, persisted, was_deleted, was_active, snapshot
                )
            else:
                self._restore(
                    session, record, persisted, was_active, recursive, snapshot
                )

        try:
            with scope:
                was_deleted = self.is_deleted(record)
                was_active = self.policy.is_active(record)
                completed = self.hooks.run(transition, record, action)
                if not completed and acted:
                    # An around hook vetoed after the update ran.
                    raise TransitionAborted(f"{transition} vetoed after update")
                if completed and session is not None:
                    _enqueue_after_commit(
                        session, self.hooks.after_commit_callbacks(transition, record)
                    )
        except TransitionAborted:
            self._undo(session, record, persisted, snapshot)
            return False
        except Exception:
            self._undo(session, record, persisted, snapshot)
            raise

        if completed:
            changed = not was_active if transition == "restore" else not was_deleted
            self._log(transition, record, state, changed)
        return completed

    def _delete(
        self,
        session: Optional[Session],
        record: Any,
        persisted: bool,
        was_deleted: bool,
        was_active: bool,
        snapshot: Dict[str, Any],
    ) -> None:
        if was_deleted:
            return

        state = inspect(record)
        if not persisted:
            if not state.was_deleted:
                self._assign(record, record.soft_delete_attributes(), snapshot)
            return

        assert session is not None
        with self.counter_caches.suspended(record):
            self._update_columns(session, record, record.soft_delete_attributes())
            if self.counter_caches and was_active:
                self.counter_caches.decrement(session, record)

    def _restore(
        self,
        session: Optional[Session],
        record: Any,
        persisted: bool,
        was_active: bool,
        recursive: bool,
        snapshot: Dict[str, Any],
    ) -> None:
        if not was_active:
            if not persisted:
                self._assign(record, record.restore_attributes(), snapshot)
            else:
                assert session is not None
                with self.counter_caches.suspended(record):
                    self._update_columns(session, record, record.restore_attributes())
                    if self.counter_caches:
                        self.counter_caches.increment(session, record)

        if recursive:
            record.restore_associated_records()

    def _undo(
        self,
        session: Optional[Session],
        record: Any,
        persisted: bool,
        snapshot: Dict[str, Any],
    ) -> None:
        """Revert a transition that was vetoed or failed."""
        if persisted:
            self._discard_changes(session, record)
            return
        for key, value in snapshot.items():
            setattr(record, key, value)

    def _discard_changes(self, session: Optional[Session], record: Any) -> None:
        """Drop in-memory state written by a transition that was rolled back."""
        if session is None:
            return
        if self.counter_caches:
            self.counter_caches.expire_owners(session, record)
        session.expire(record)

    @staticmethod
    def _assign(
        record: Any, attributes: Dict[str, Any], snapshot: Dict[str, Any]
    ) -> None:
        for key, value in attributes.items():
            snapshot.setdefault(key, getattr(record, key))
            setattr(record, key, value)

    def _update_columns(
        self, session: Session, record: Any, attributes: Dict[str, Any]
    ) -> None:
        """
        Write ``attributes`` with a single UPDATE, bypassing the flush.

        The in-memory values become the committed state so the record is not
        left dirty.
        """
        state = inspect(record)
        mapper = state.mapper
        cls = mapper.class_
        stmt = (
            update(cls)
            .where(*identity_clause(mapper, state.identity))
            .values({getattr(cls, key): value for key, value in attributes.items()})
            .execution_options(synchronize_session=False)
        )
        session.execute(stmt)
        for key, value in attributes.items():
            set_committed_value(record, key, value)

    def _log(self, transition: str, record: Any, state: Any, changed: bool) -> None:
        if not changed:
            logger.debug(
                f"{transition} of {type(record).__name__} {state.identity} was a no-op"
            )
            return
        message = f"{transition} {type(record).__name__} {state.identity}"
        if get_config().log_transitions:
            logger.info(message)
        else:
            logger.debug(message)
