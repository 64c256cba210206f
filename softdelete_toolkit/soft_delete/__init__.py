"""
Soft Delete Module - sentinel-based record deletion for SQLAlchemy models.

Provides the mixin, registration decorator, query scoping, lifecycle hooks and
counter caches for models whose records are hidden rather than removed.
"""

from .counter_cache import CounterCache, CounterCacheSynchronizer
from .exceptions import (
    DetachedRecordError,
    NotSoftDeletableError,
    ReadOnlyRecordError,
    RecordNotDestroyed,
    RecordNotFound,
    RecordNotRestored,
    SoftDeleteConfigurationError,
    SoftDeleteError,
    TransitionAborted,
)
from .hooks import (
    HookRegistry,
    after_restore,
    after_restore_commit,
    after_soft_delete,
    after_soft_delete_commit,
    around_restore,
    around_soft_delete,
    before_restore,
    before_soft_delete,
)
from .lifecycle import LifecycleEngine, transaction
from .mixins import SoftDeleteMixin, soft_deletable
from .policy import SentinelPolicy
from .registry import (
    SoftDeleteRegistration,
    find_registration,
    get_registration,
    is_soft_deletable,
    unregister,
)
from .scopes import WITH_DELETED, ScopeProvider
from .uniqueness import scope_to_active_records

__all__ = [
    # Mixin and registration
    "SoftDeleteMixin",
    "soft_deletable",
    "SoftDeleteRegistration",
    "find_registration",
    "get_registration",
    "is_soft_deletable",
    "unregister",
    # Components
    "SentinelPolicy",
    "ScopeProvider",
    "LifecycleEngine",
    "HookRegistry",
    "CounterCache",
    "CounterCacheSynchronizer",
    "scope_to_active_records",
    "transaction",
    "WITH_DELETED",
    # Hook decorators
    "before_soft_delete",
    "around_soft_delete",
    "after_soft_delete",
    "after_soft_delete_commit",
    "before_restore",
    "around_restore",
    "after_restore",
    "after_restore_commit",
    # Exceptions
    "SoftDeleteError",
    "SoftDeleteConfigurationError",
    "NotSoftDeletableError",
    "ReadOnlyRecordError",
    "DetachedRecordError",
    "RecordNotDestroyed",
    "RecordNotRestored",
    "RecordNotFound",
    "TransitionAborted",
]
