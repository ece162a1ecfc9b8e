from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ._errors import LimitExceededError


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._registry import Lifetime


logger = logging.getLogger(__name__)


class HookEventType(Enum):
    BEFORE_CREATE = "before_create"
    AFTER_CREATE = "after_create"
    BEFORE_RESOLVE = "before_resolve"
    AFTER_RESOLVE = "after_resolve"


@dataclass(frozen=True)
class HookEvent:
    event: HookEventType
    name: str
    lifetime: Lifetime | None = None
    scope: str | None = None
    instance: Any = None


class HookDispatcher:
    """Synchronous observer list per event.

    Callbacks run in registration order; a failing callback is logged and the
    remaining callbacks still run.
    """

    def __init__(self, max_per_event: int = 50) -> None:
        self._max_per_event = max_per_event
        self._hooks: dict[HookEventType, list[Callable[[HookEvent], object]]] = {e: [] for e in HookEventType}

    def add(self, event: HookEventType | str, callback: Callable[[HookEvent], object]) -> None:
        kind = _coerce_event(event)
        if not callable(callback):
            msg = f"Hook callback for {kind.value!r} must be callable, got {callback!r}"
            raise ValueError(msg)

        callbacks = self._hooks[kind]
        if len(callbacks) >= self._max_per_event:
            msg = f"Hook limit exceeded for {kind.value!r}. Max: {self._max_per_event}"
            raise LimitExceededError(msg)
        callbacks.append(callback)

    def clear(self, event: HookEventType | str | None = None) -> None:
        if event is None:
            for callbacks in self._hooks.values():
                callbacks.clear()
            return
        self._hooks[_coerce_event(event)].clear()

    def has_hooks(self, event: HookEventType) -> bool:
        return bool(self._hooks[event])

    def fire(self, payload: HookEvent) -> None:
        for callback in list(self._hooks[payload.event]):
            try:
                callback(payload)
            except Exception:
                logger.exception("Hook %s failed for service '%s'", payload.event.value, payload.name)


def _coerce_event(event: HookEventType | str) -> HookEventType:
    if isinstance(event, HookEventType):
        return event
    try:
        return HookEventType(event)
    except ValueError:
        valid = ", ".join(e.value for e in HookEventType)
        msg = f"Unknown hook event {event!r}. Use one of: {valid}"
        raise ValueError(msg) from None
