from __future__ import annotations

import functools
import inspect
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ._errors import DuplicateRegistrationError, LimitExceededError, ServiceNotFoundError
from ._signature import Dependency, extract_dependencies, infer_name


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from ._tags import TagIndex


logger = logging.getLogger(__name__)

OwnerT = TypeVar("OwnerT")


class Lifetime(Enum):
    VALUE = "value"
    TRANSIENT = "transient"
    SINGLETON = "singleton"
    SCOPED = "scoped"


@dataclass(frozen=True)
class ServiceDefinition:
    name: str
    constructible: Callable[..., Any] | None
    lifetime: Lifetime
    dependencies: tuple[Dependency, ...] = ()
    tags: frozenset[str] = frozenset()
    value: Any = None
    is_async: bool = False

    @property
    def dependency_names(self) -> tuple[str, ...]:
        return tuple(dep.name for dep in self.dependencies)


def is_async_callable(fn: object) -> bool:
    """True for coroutine functions, objects with an `async def __call__`, and partials of either."""
    while isinstance(fn, functools.partial):
        fn = fn.func
    if inspect.iscoroutinefunction(fn):
        return True
    # calling a class builds an instance, whatever its __call__ does
    return not inspect.isclass(fn) and inspect.iscoroutinefunction(getattr(fn, "__call__", None))


def validate_name(name: object, what: str = "Service name") -> str:
    if not isinstance(name, str) or not name:
        msg = f"{what} must be a non-empty string, got {name!r}"
        raise ValueError(msg)
    return name


class ServiceBuilder(Generic[OwnerT]):
    """Registration window for one service.

    Tags, conditions and the replace flag are collected here; the terminal
    `as_*` call seals an immutable ServiceDefinition, commits it and returns
    the owning container so registrations can be chained.

    Example:
      container.register(UserRepository).with_tags("repository", "db").as_scoped()

    """

    def __init__(
        self,
        owner: OwnerT,
        registry: Registry,
        constructible: Any,
        name: str | None = None,
        *,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self._owner = owner
        self._registry = registry
        self._constructible = constructible
        self.name = validate_name(name) if name is not None else infer_name(constructible)
        self._aliases = dict(aliases or {})
        self._tags: dict[str, None] = {}
        self._conditions: list[Callable[[], object]] = []
        self._replace = False
        self._sealed = False

    def with_tag(self, tag: str) -> ServiceBuilder[OwnerT]:
        self._tags[validate_name(tag, "Tag")] = None
        return self

    def with_tags(self, *tags: str) -> ServiceBuilder[OwnerT]:
        for tag in tags:
            self.with_tag(tag)
        return self

    def when(self, condition: Callable[[], object]) -> ServiceBuilder[OwnerT]:
        """Only commit the registration if every condition returns truthy."""
        if not callable(condition):
            msg = f"Condition must be callable, got {condition!r}"
            raise ValueError(msg)
        self._conditions.append(condition)
        return self

    def replace(self) -> ServiceBuilder[OwnerT]:
        self._replace = True
        return self

    def as_singleton(self) -> OwnerT:
        return self.commit(Lifetime.SINGLETON)

    def as_transient(self) -> OwnerT:
        return self.commit(Lifetime.TRANSIENT)

    def as_scoped(self) -> OwnerT:
        return self.commit(Lifetime.SCOPED)

    def as_value(self) -> OwnerT:
        return self.commit(Lifetime.VALUE)

    def _seal(self, lifetime: Lifetime) -> ServiceDefinition:
        tags = frozenset(self._tags)
        if lifetime is Lifetime.VALUE:
            return ServiceDefinition(
                name=self.name,
                constructible=None,
                lifetime=lifetime,
                tags=tags,
                value=self._constructible,
            )

        return ServiceDefinition(
            name=self.name,
            constructible=self._constructible,
            lifetime=lifetime,
            dependencies=extract_dependencies(self._constructible, self._aliases),
            tags=tags,
            is_async=is_async_callable(self._constructible),
        )

    def commit(self, lifetime: Lifetime = Lifetime.TRANSIENT) -> OwnerT:
        """Seal and register the definition. Each builder commits at most once."""
        if self._sealed:
            msg = f"Registration of {self.name!r} was already completed"
            raise RuntimeError(msg)
        self._sealed = True

        definition = self._seal(lifetime)
        if not self._conditions_hold():
            logger.debug("Skipped registration of '%s': condition not met", self.name)
            return self._owner

        self._registry.add(definition, replace=self._replace)
        return self._owner

    def _conditions_hold(self) -> bool:
        for condition in self._conditions:
            try:
                if not condition():
                    return False
            except Exception:  # noqa: BLE001
                logger.warning("Condition check failed for '%s'", self.name, exc_info=True)
                return False
        return True


class Registry:
    """Definitions by name, in registration order, plus the tag index they feed."""

    def __init__(
        self,
        tags: TagIndex,
        *,
        max_services: int = 1000,
        verbose: bool = False,
        on_replace: Callable[[str], None] | None = None,
    ) -> None:
        self.tags = tags
        self._max_services = max_services
        self._log_level = logging.INFO if verbose else logging.DEBUG
        self._on_replace = on_replace
        self._definitions: dict[str, ServiceDefinition] = {}
        self._lock = threading.RLock()

    def add(self, definition: ServiceDefinition, *, replace: bool = False) -> None:
        name = definition.name
        with self._lock:
            exists = name in self._definitions
            if exists and not replace:
                raise DuplicateRegistrationError(name)
            if not exists and len(self._definitions) >= self._max_services:
                msg = f"Service limit exceeded. Max: {self._max_services}"
                raise LimitExceededError(msg)

            if exists:
                self.tags.discard(name)
            # a replaced definition keeps its original registration position
            self._definitions[name] = definition
            self.tags.add(name, definition.tags)

            if exists and self._on_replace is not None:
                self._on_replace(name)

        logger.log(self._log_level, "Registered '%s' [%s]", name, definition.lifetime.value)

    def lookup(self, name: str) -> ServiceDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise ServiceNotFoundError(name) from None

    def get(self, name: str) -> ServiceDefinition | None:
        return self._definitions.get(name)

    def has(self, name: str) -> bool:
        return name in self._definitions

    def names(self) -> list[str]:
        return list(self._definitions)

    def definitions(self, names: Iterable[str]) -> list[ServiceDefinition]:
        return [self._definitions[name] for name in names]

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
