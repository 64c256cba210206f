"""
Lifecycle hooks for soft delete and restore transitions.

Each soft-deletable model owns a :class:`HookRegistry` holding ordered lists of
callables per transition (``soft_delete``, ``restore``) and stage (``before``,
``around``, ``after``, ``after_commit``).

Hooks are usually declared in the class body with the decorators exported here:

    @soft_deletable
    class Document(Base, SoftDeleteMixin):
        ...

        @before_soft_delete
        def check_not_locked(self):
            if self.locked:
                return False  # veto

        @around_restore
        def timed(self, proceed):
            started = time.monotonic()
            proceed()
            self.restore_seconds = time.monotonic() - started

Before hooks veto the transition by returning ``False`` or raising
:class:`TransitionAborted`. Around hooks receive a ``proceed`` callable and veto
by not calling it. Any other exception propagates to the caller.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .exceptions import TransitionAborted

logger = logging.getLogger(__name__)

TRANSITIONS = ("soft_delete", "restore")
STAGES = ("before", "around", "after", "after_commit")

_MARKER = "__soft_delete_hook__"

Hook = Callable[..., Any]


def hook_name(stage: str, transition: str) -> str:
    """Public name of a hook point, e.g. ``before_restore``."""
    if stage == "after_commit":
        return f"after_{transition}_commit"
    return f"{stage}_{transition}"


HOOK_POINTS: Dict[str, Tuple[str, str]] = {
    hook_name(stage, transition): (transition, stage)
    for transition in TRANSITIONS
    for stage in STAGES
}


def _marker(transition: str, stage: str) -> Callable[[Hook], Hook]:
    def decorator(fn: Hook) -> Hook:
        setattr(fn, _MARKER, (transition, stage))
        return fn

    decorator.__name__ = hook_name(stage, transition)
    decorator.__doc__ = f"Mark a method as a {stage} hook of {transition}."
    return decorator


before_soft_delete = _marker("soft_delete", "before")
around_soft_delete = _marker("soft_delete", "around")
after_soft_delete = _marker("soft_delete", "after")
after_soft_delete_commit = _marker("soft_delete", "after_commit")
before_restore = _marker("restore", "before")
around_restore = _marker("restore", "around")
after_restore = _marker("restore", "after")
after_restore_commit = _marker("restore", "after_commit")


class HookRegistry:
    """Ordered hooks and observers for one model."""

    def __init__(self) -> None:
        self._hooks: Dict[Tuple[str, str], List[Hook]] = {
            (transition, stage): [] for transition in TRANSITIONS for stage in STAGES
        }
        self._observers: List[Any] = []

    @classmethod
    def collect(cls, model: type) -> "HookRegistry":
        """
        Build a registry from hook-marked methods of a model and its bases.

        Base-class hooks run first. A method overridden in a subclass is
        collected once, from the most derived class.
        """
        registry = cls()
        seen: Dict[str, Tuple[str, str]] = {}
        for klass in reversed(model.__mro__):
            for name, value in vars(klass).items():
                point = getattr(value, _MARKER, None)
                if point is None:
                    continue
                if name in seen:
                    registry._hooks[seen[name]].remove(getattr(model, name))
                seen[name] = point
                registry._hooks[point].append(getattr(model, name))
        return registry

    def add(self, name: str, fn: Hook) -> Hook:
        """
        Append a hook by point name (``before_soft_delete``, ``around_restore`` ...).

        Returns the function so the method can be used as a decorator.
        """
        try:
            point = HOOK_POINTS[name]
        except KeyError:
            raise ValueError(
                f"Unknown hook point '{name}'; expected one of "
                f"{', '.join(sorted(HOOK_POINTS))}"
            ) from None
        self._hooks[point].append(fn)
        return fn

    def observe(self, observer: Any) -> None:
        """Register an observer notified through methods named after hook points."""
        self._observers.append(observer)

    def hooks(self, transition: str, stage: str) -> List[Hook]:
        return list(self._hooks[(transition, stage)])

    def notify(self, name: str, record: Any) -> None:
        for observer in self._observers:
            callback = getattr(observer, name, None)
            if callback is not None:
                callback(record)

    def run(self, transition: str, record: Any, action: Callable[[], Any]) -> bool:
        """
        Run a transition's hooks around ``action``.

        Args:
            transition: ``soft_delete`` or ``restore``
            record: Record undergoing the transition
            action: Performs the state change

        Returns:
            False if a before or around hook vetoed, True otherwise
        """
        self.notify(hook_name("before", transition), record)

        try:
            for hook in self._hooks[(transition, "before")]:
                if hook(record) is False:
                    logger.debug(f"{hook_name('before', transition)} vetoed by {hook}")
                    return False

            completed = False

            def innermost() -> None:
                nonlocal completed
                action()
                completed = True

            proceed = innermost
            for hook in reversed(self._hooks[(transition, "around")]):
                proceed = _wrap_around(hook, record, proceed)
            proceed()
        except TransitionAborted:
            logger.debug(f"{transition} of {type(record).__name__} aborted by hook")
            return False

        if not completed:
            logger.debug(f"{hook_name('around', transition)} did not proceed")
            return False

        for hook in self._hooks[(transition, "after")]:
            hook(record)

        self.notify(hook_name("after", transition), record)
        return True

    def after_commit_callbacks(
        self, transition: str, record: Any
    ) -> Iterable[Callable[[], Any]]:
        """Bind the after-commit hooks of a transition to a record."""
        return [
            _bind(hook, record) for hook in self._hooks[(transition, "after_commit")]
        ]


def _wrap_around(hook: Hook, record: Any, inner: Callable[[], None]) -> Callable[[], None]:
    def call() -> None:
        hook(record, inner)

    return call


def _bind(hook: Hook, record: Any) -> Callable[[], Any]:
    def call() -> Any:
        return hook(record)

    return call
