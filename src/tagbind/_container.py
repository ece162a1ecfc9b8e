from __future__ import annotations

import abc
import inspect
import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._discovery import Discovery
from ._errors import (
    AsyncResolutionError,
    CircularDependencyError,
    DisposalError,
    LimitExceededError,
    ScopeDisposedError,
    ScopeNotFoundError,
    ScopeRequiredError,
)
from ._hooks import HookDispatcher, HookEvent, HookEventType
from ._registry import Lifetime, Registry, ServiceBuilder, ServiceDefinition, validate_name
from ._signature import infer_name
from ._tags import TagIndex, TagMode


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from types import TracebackType

    T = TypeVar("T")
    Token = type[T] | str


logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class ContainerOptions:
    """Container configuration.

    - verbose: trace registrations and resolution steps at INFO instead of DEBUG.
    - auto_binding: resolving an unregistered class registers it as transient.
    - max_services / max_scopes / max_hooks_per_event: hard limits. max_scopes counts
      live scopes only: a scope frees its slot when disposed, or when it is
      dropped without being disposed and garbage collected.
    - discovery_name: if set, a `Discovery` is registered under this name so
      components can ask for it like any other dependency.

    Scoped services can only be resolved from a scope; resolving one from the
    root container raises ScopeRequiredError.
    """

    verbose: bool = False
    auto_binding: bool = False
    max_services: int = 1000
    max_scopes: int = 100
    max_hooks_per_event: int = 50
    discovery_name: str | None = None

    def __post_init__(self) -> None:
        for field_name in ("max_services", "max_scopes", "max_hooks_per_event"):
            value = getattr(self, field_name)
            if not isinstance(value, int) or value < 1:
                msg = f"{field_name} must be a positive integer, got {value!r}"
                raise ValueError(msg)
        if self.discovery_name is not None:
            validate_name(self.discovery_name, "discovery_name")


class Disposable(abc.ABC):
    """Capability for components that release resources when their scope ends."""

    @abc.abstractmethod
    def dispose(self) -> None: ...


@dataclass
class CacheEntry:
    instance: Any
    disposable: bool


@dataclass(frozen=True)
class ServiceInfo:
    name: str
    tags: tuple[str, ...]
    lifetime: Lifetime


@dataclass(frozen=True)
class ResolvedService:
    name: str
    tags: tuple[str, ...]
    lifetime: Lifetime
    instance: Any


class _ResolutionContext:
    """Names currently being built during one top-level resolve, in order."""

    def __init__(self) -> None:
        self._resolving: dict[str, None] = {}

    def enter(self, name: str) -> None:
        if name in self._resolving:
            stack = list(self._resolving)
            raise CircularDependencyError([*stack[stack.index(name) :], name])
        self._resolving[name] = None

    def leave(self, name: str) -> None:
        self._resolving.pop(name, None)


class _Resolver:
    """Resolution engine shared by the root container and its scopes."""

    _root: Container

    @property
    def _scope_label(self) -> str | None:
        return None

    def _scoped_cache(self, definition: ServiceDefinition) -> dict[str, CacheEntry]:
        msg = (
            f"Service {definition.name!r} is scoped and cannot be resolved from the root container. "
            "Resolve it from a scope created with create_scope()"
        )
        raise ScopeRequiredError(msg)

    def _check_open(self) -> None:
        pass

    @overload
    def resolve(self, token: type[T]) -> T: ...

    @overload
    def resolve(self, token: str) -> Any: ...

    def resolve(self, token: Token[T]) -> Any:
        """Resolve `token` (a service name, or a class whose name is inferred) to an instance.

        Each call gets a fresh cycle-detection context. Instances cached before a
        failure stay cached.
        """
        self._check_open()
        name = self._root._token_name(token)  # noqa: SLF001
        self._fire(HookEventType.BEFORE_RESOLVE, name)
        instance = self._resolve(name, _ResolutionContext())
        self._fire(HookEventType.AFTER_RESOLVE, name, instance=instance)
        return instance

    async def aresolve(self, token: Token[T]) -> Any:
        """Like `resolve`, awaiting coroutine-function factories.

        Dependencies are resolved one at a time in declaration order.
        """
        self._check_open()
        name = self._root._token_name(token)  # noqa: SLF001
        self._fire(HookEventType.BEFORE_RESOLVE, name)
        instance = await self._aresolve(name, _ResolutionContext())
        self._fire(HookEventType.AFTER_RESOLVE, name, instance=instance)
        return instance

    def resolve_all(self, names: Iterable[str]) -> dict[str, Any]:
        if isinstance(names, str):
            msg = "resolve_all expects an iterable of service names, not a single string"
            raise ValueError(msg)
        return {name: self.resolve(name) for name in names}

    def get_resolver(self, token: Token[T]) -> Callable[[], Any]:
        """Return a callable that resolves `token` from this container when invoked."""
        name = self._root._token_name(token)  # noqa: SLF001
        return lambda: self.resolve(name)

    def create_scope(self, label: str) -> Scope:
        self._check_open()
        return Scope(self._root, self, validate_name(label, "Scope label"), _from_parent=True)

    def has(self, name: str) -> bool:
        return self._root._registry.has(name)  # noqa: SLF001

    def get_service_names(self) -> list[str]:
        return self._root._registry.names()  # noqa: SLF001

    def get_definition(self, name: str) -> ServiceDefinition:
        return self._root._registry.lookup(name)  # noqa: SLF001

    # ---- tag discovery ----

    def get_service_names_by_tags(self, tags: Iterable[str], mode: TagMode | str = TagMode.AND) -> list[str]:
        tags, tag_mode = _validate_tag_query(tags, mode)
        return self._root._tags.query(tags, tag_mode)  # noqa: SLF001

    def get_services_by_tags(self, tags: Iterable[str], mode: TagMode | str = TagMode.AND) -> list[ServiceInfo]:
        names = self.get_service_names_by_tags(tags, mode)
        return [
            ServiceInfo(name=d.name, tags=tuple(sorted(d.tags)), lifetime=d.lifetime)
            for d in self._root._registry.definitions(names)  # noqa: SLF001
        ]

    def resolve_services_by_tags(
        self,
        tags: Iterable[str],
        mode: TagMode | str = TagMode.AND,
    ) -> list[ResolvedService]:
        return [
            ResolvedService(name=info.name, tags=info.tags, lifetime=info.lifetime, instance=self.resolve(info.name))
            for info in self.get_services_by_tags(tags, mode)
        ]

    def get_all_tags(self) -> list[str]:
        return self._root._tags.all_tags()  # noqa: SLF001

    def get_services_by_tag(self) -> dict[str, list[str]]:
        return self._root._tags.group_by_tag()  # noqa: SLF001

    # ---- engine ----

    def _lookup(
        self,
        name: str,
        ctx: _ResolutionContext,
    ) -> tuple[ServiceDefinition, dict[str, CacheEntry] | None, Any]:
        """Find the definition and its cache; the third item is the cached instance or _MISSING."""
        self._check_open()
        definition = self._root._registry.lookup(name)  # noqa: SLF001
        lifetime = definition.lifetime

        if lifetime is Lifetime.VALUE:
            return definition, None, definition.value

        self._trace("Resolving '%s' [%s]", name, lifetime.value)
        if lifetime is Lifetime.SINGLETON:
            cache: dict[str, CacheEntry] | None = self._root._singletons  # noqa: SLF001
        elif lifetime is Lifetime.SCOPED:
            cache = self._scoped_cache(definition)
        else:
            cache = None

        if cache is not None and name in cache:
            return definition, cache, cache[name].instance

        ctx.enter(name)
        return definition, cache, _MISSING

    def _resolve(self, name: str, ctx: _ResolutionContext) -> Any:
        definition, cache, instance = self._lookup(name, ctx)
        if instance is not _MISSING:
            return instance

        try:
            if definition.is_async:
                msg = f"Service {name!r} has an async factory; use aresolve() instead of resolve()"
                raise AsyncResolutionError(msg)

            kwargs: dict[str, Any] = {}
            for dep in definition.dependencies:
                if dep.optional and not self.has(dep.name):
                    continue
                kwargs[dep.param] = self._resolve(dep.name, ctx)

            self._fire(HookEventType.BEFORE_CREATE, name, definition.lifetime)
            instance = definition.constructible(**kwargs)  # type: ignore[misc]
            self._fire(HookEventType.AFTER_CREATE, name, definition.lifetime, instance)
        finally:
            ctx.leave(name)

        return self._store(cache, name, instance)

    async def _aresolve(self, name: str, ctx: _ResolutionContext) -> Any:
        definition, cache, instance = self._lookup(name, ctx)
        if instance is not _MISSING:
            return instance

        try:
            kwargs: dict[str, Any] = {}
            for dep in definition.dependencies:
                if dep.optional and not self.has(dep.name):
                    continue
                kwargs[dep.param] = await self._aresolve(dep.name, ctx)

            self._fire(HookEventType.BEFORE_CREATE, name, definition.lifetime)
            instance = definition.constructible(**kwargs)  # type: ignore[misc]
            if definition.is_async:
                instance = await instance
            self._fire(HookEventType.AFTER_CREATE, name, definition.lifetime, instance)
        finally:
            ctx.leave(name)

        return self._store(cache, name, instance)

    def _store(self, cache: dict[str, CacheEntry] | None, name: str, instance: Any) -> Any:
        if cache is not None:
            cache[name] = CacheEntry(instance=instance, disposable=isinstance(instance, Disposable))
        return instance

    def _fire(
        self,
        event: HookEventType,
        name: str,
        lifetime: Lifetime | None = None,
        instance: Any = None,
    ) -> None:
        hooks = self._root._hooks  # noqa: SLF001
        if hooks.has_hooks(event):
            hooks.fire(HookEvent(event=event, name=name, lifetime=lifetime, scope=self._scope_label, instance=instance))

    def _trace(self, msg: str, *args: Any) -> None:
        logger.log(self._root._log_level, msg, *args)  # noqa: SLF001


class Container(_Resolver):
    """Root container.

    - holds the definitions, the tag index, the hooks and the singleton cache
    - register values, classes and factories with a lifetime and tags
    - resolve names into fully built instances
    - create scopes for scoped lifetimes.
    """

    def __init__(self, options: ContainerOptions | None = None) -> None:
        self.options = options or ContainerOptions()
        self._root = self
        self._log_level = logging.INFO if self.options.verbose else logging.DEBUG
        self._tags = TagIndex()
        self._registry = Registry(
            self._tags,
            max_services=self.options.max_services,
            verbose=self.options.verbose,
            on_replace=self._forget_instance,
        )
        self._hooks = HookDispatcher(max_per_event=self.options.max_hooks_per_event)
        self._singletons: dict[str, CacheEntry] = {}
        # live scopes by label; dropped scopes fall out once collected
        self._scopes: weakref.WeakValueDictionary[str, Scope] = weakref.WeakValueDictionary()

        if self.options.discovery_name is not None:
            self.value(self.options.discovery_name, Discovery(self))

    # ---- registration ----

    def register(
        self,
        constructible: Callable[..., Any],
        name: str | None = None,
        *,
        aliases: Mapping[str, str] | None = None,
    ) -> ServiceBuilder[Container]:
        """Start registering a class or factory. Finish with one of the `as_*` calls.

        The name defaults to the snake_case class/function name. `aliases` maps
        a parameter name to the service name injected into it.
        """
        return ServiceBuilder(self, self._registry, constructible, name, aliases=aliases)

    def value(self, name: str, literal: Any, *, tags: Iterable[str] = (), replace: bool = False) -> Container:
        """Register a literal. It is returned by reference and never instantiated."""
        builder = ServiceBuilder(self, self._registry, literal, validate_name(name)).with_tags(*tags)
        if replace:
            builder.replace()
        return builder.as_value()

    def factory(
        self,
        name: str,
        fn: Callable[..., Any],
        *,
        aliases: Mapping[str, str] | None = None,
    ) -> ServiceBuilder[Container]:
        if not callable(fn):
            msg = f"Factory for {name!r} must be callable, got {fn!r}"
            raise ValueError(msg)
        return self.register(fn, validate_name(name), aliases=aliases)

    def singleton(self, name_or_ctor: str | Callable[..., Any], ctor: Callable[..., Any] | None = None) -> Container:
        return self._register_shortcut(name_or_ctor, ctor).as_singleton()

    def transient(self, name_or_ctor: str | Callable[..., Any], ctor: Callable[..., Any] | None = None) -> Container:
        return self._register_shortcut(name_or_ctor, ctor).as_transient()

    def scoped(self, name_or_ctor: str | Callable[..., Any], ctor: Callable[..., Any] | None = None) -> Container:
        return self._register_shortcut(name_or_ctor, ctor).as_scoped()

    def register_all(self, services: Mapping[str, Any]) -> Container:
        """Register many services at once: callables as singletons, anything else as values."""
        for name, impl in services.items():
            if callable(impl):
                self.register(impl, name).as_singleton()
            else:
                self.value(name, impl)
        return self

    def _register_shortcut(
        self,
        name_or_ctor: str | Callable[..., Any],
        ctor: Callable[..., Any] | None,
    ) -> ServiceBuilder[Container]:
        if isinstance(name_or_ctor, str):
            if ctor is None:
                msg = f"An implementation is required to register {name_or_ctor!r}"
                raise ValueError(msg)
            return self.register(ctor, name_or_ctor)
        if ctor is not None:
            msg = "Pass the service name first when providing an implementation"
            raise ValueError(msg)
        return self.register(name_or_ctor)

    def _forget_instance(self, name: str) -> None:
        self._singletons.pop(name, None)
        for scope in list(self._scopes.values()):
            scope._instances.pop(name, None)  # noqa: SLF001

    # ---- scopes ----

    def scope(self, label: str) -> Scope:
        """Return the live scope created with `label`, at any nesting depth."""
        scope = self._scopes.get(label)
        if scope is None:
            raise ScopeNotFoundError(label)
        return scope

    def get_scope_labels(self) -> list[str]:
        return list(self._scopes.keys())

    # ---- hooks ----

    def hook(self, event: HookEventType | str, callback: Callable[[HookEvent], object]) -> Container:
        self._hooks.add(event, callback)
        return self

    def clear_hooks(self, event: HookEventType | str | None = None) -> Container:
        self._hooks.clear(event)
        return self

    # ---- internals ----

    def _token_name(self, token: Token[Any]) -> str:
        if isinstance(token, str):
            return validate_name(token)
        if not inspect.isclass(token):
            msg = f"Cannot resolve {token!r}: expected a service name or a class"
            raise TypeError(msg)

        name = infer_name(token)
        if self.options.auto_binding and not self._registry.has(name):
            self._trace("Auto-binding '%s' to %s", name, token.__qualname__)
            self.register(token, name).as_transient()
        return name

    def _scope_opened(self, scope: Scope) -> None:
        if scope.label in self._scopes:
            msg = f"Scope {scope.label!r} already exists. Use a different label or dispose the existing scope."
            raise ValueError(msg)
        if len(self._scopes) >= self.options.max_scopes:
            msg = f"Scope limit exceeded. Max: {self.options.max_scopes}"
            raise LimitExceededError(msg)
        self._scopes[scope.label] = scope

    def _scope_closed(self, scope: Scope) -> None:
        if self._scopes.get(scope.label) is scope:
            del self._scopes[scope.label]


class Scope(_Resolver):
    """Bounded lifetime for scoped services.

    Keeps its own scoped instances and delegates definitions, singletons,
    transients and values to the root container. Disposing a scope never
    disposes its parent or its child scopes.
    """

    def __init__(self, root: Container, parent: _Resolver, label: str, *, _from_parent: bool = False) -> None:
        if not _from_parent:
            msg = "Scope instances must be created via create_scope()"
            raise RuntimeError(msg)
        self._root = root
        self.parent = parent
        self.label = label
        self._instances: dict[str, CacheEntry] = {}
        self._disposed = False
        root._scope_opened(self)  # noqa: SLF001

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def _scope_label(self) -> str | None:
        return self.label

    def _scoped_cache(self, definition: ServiceDefinition) -> dict[str, CacheEntry]:
        return self._instances

    def _check_open(self) -> None:
        if self._disposed:
            msg = f"Scope {self.label!r} has been disposed"
            raise ScopeDisposedError(msg)

    def instances(self) -> dict[str, Any]:
        """Scoped instances created in this scope, in creation order."""
        return {name: entry.instance for name, entry in self._instances.items()}

    def dispose(self) -> None:
        """Dispose every Disposable scoped instance once, newest first, then close the scope.

        All instances are attempted; failures are raised together afterwards as
        a DisposalError.
        """
        if self._disposed:
            return

        failures: list[tuple[str, BaseException]] = []
        for name, entry in reversed(list(self._instances.items())):
            if not entry.disposable:
                continue
            try:
                entry.instance.dispose()
            except Exception as e:  # noqa: BLE001
                logger.warning("Failed to dispose '%s' in scope '%s'", name, self.label, exc_info=True)
                failures.append((name, e))

        self._instances.clear()
        self._disposed = True
        self._root._scope_closed(self)  # noqa: SLF001
        self._trace("Disposed scope '%s'", self.label)

        if failures:
            raise DisposalError(self.label, failures)

    def __enter__(self) -> Scope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.dispose()
            return
        # keep the exception raised inside the block
        try:
            self.dispose()
        except DisposalError:
            logger.exception("Disposal of scope '%s' failed while handling %s", self.label, exc_type.__name__)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else f"{len(self._instances)} instances"
        return f"<Scope {self.label!r} ({state})>"


def create_container(**options: Any) -> Container:
    """Create a root container; keyword arguments are ContainerOptions fields."""
    return Container(ContainerOptions(**options))


def _validate_tag_query(tags: Iterable[str], mode: TagMode | str) -> tuple[list[str], TagMode]:
    if isinstance(tags, str):
        msg = "tags must be an iterable of tag names, not a single string"
        raise ValueError(msg)
    tags = list(tags)
    if not tags:
        msg = "At least one tag must be provided"
        raise ValueError(msg)
    for tag in tags:
        validate_name(tag, "Tag")

    if isinstance(mode, TagMode):
        return tags, mode
    try:
        return tags, TagMode(str(mode).upper())
    except ValueError:
        msg = f"Mode must be 'AND' or 'OR', got {mode!r}"
        raise ValueError(msg) from None
