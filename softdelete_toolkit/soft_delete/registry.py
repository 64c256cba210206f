"""Process-wide registry of soft-deletable models."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .exceptions import NotSoftDeletableError

if TYPE_CHECKING:
    from .counter_cache import CounterCacheSynchronizer
    from .hooks import HookRegistry
    from .lifecycle import LifecycleEngine
    from .policy import SentinelPolicy
    from .scopes import ScopeProvider


@dataclass(frozen=True)
class SoftDeleteRegistration:
    """Everything wired to a model when it is registered."""

    model: type
    policy: "SentinelPolicy"
    hooks: "HookRegistry"
    counter_caches: "CounterCacheSynchronizer"
    lifecycle: "LifecycleEngine"
    scopes: "ScopeProvider"


_registrations: Dict[type, SoftDeleteRegistration] = {}


def register(registration: SoftDeleteRegistration) -> None:
    _registrations[registration.model] = registration


def unregister(model: type) -> None:
    _registrations.pop(model, None)


def find_registration(obj: Any) -> Optional[SoftDeleteRegistration]:
    """
    Look up the registration for a model class or instance.

    Subclasses of a registered model share its registration unless they were
    registered themselves.
    """
    model = obj if isinstance(obj, type) else type(obj)
    for klass in model.__mro__:
        registration = _registrations.get(klass)
        if registration is not None:
            return registration
    return None


def get_registration(obj: Any) -> SoftDeleteRegistration:
    registration = find_registration(obj)
    if registration is None:
        raise NotSoftDeletableError(obj if isinstance(obj, type) else type(obj))
    return registration


def is_soft_deletable(obj: Any) -> bool:
    """Whether a model class or instance is registered as soft-deletable."""
    return find_registration(obj) is not None


def registrations() -> List[SoftDeleteRegistration]:
    return list(_registrations.values())
