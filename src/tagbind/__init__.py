"""Tag-aware dependency injection container.

This package builds object graphs from named registrations. Components declare
their dependencies as keyword parameters; the container resolves them by name,
caches instances per lifetime and lets callers discover services by tag.

Exports:
- `Container` / `create_container`: root container with registration, resolution,
  tag discovery and hooks.
- `ContainerOptions`: container configuration.
- `Lifetime`: value, transient, singleton or scoped.
- `Scope`: child container owning scoped instances; dispose it to release them.
- `Disposable`: capability for components that release resources on scope disposal.
- `Discovery`: read-only tag discovery facade that can be injected into components.
- `TagMode`, `HookEventType`, `HookEvent`, `ServiceInfo`, `ResolvedService`,
  `ServiceDefinition`, `ServiceBuilder`, `Dependency`: supporting types.
- Errors, all subclasses of `ContainerError`.
"""

from ._container import (
    Container,
    ContainerOptions,
    Disposable,
    ResolvedService,
    Scope,
    ServiceInfo,
    create_container,
)
from ._discovery import Discovery
from ._errors import (
    AsyncResolutionError,
    CircularDependencyError,
    ContainerError,
    DisposalError,
    DuplicateRegistrationError,
    InvalidComponentError,
    LimitExceededError,
    ResolutionError,
    ScopeDisposedError,
    ScopeNotFoundError,
    ScopeRequiredError,
    ServiceNotFoundError,
)
from ._hooks import HookEvent, HookEventType
from ._registry import Lifetime, ServiceBuilder, ServiceDefinition
from ._signature import Dependency, extract_dependencies
from ._tags import TagMode


__all__ = [
    "AsyncResolutionError",
    "CircularDependencyError",
    "Container",
    "ContainerError",
    "ContainerOptions",
    "Dependency",
    "Discovery",
    "Disposable",
    "DisposalError",
    "DuplicateRegistrationError",
    "HookEvent",
    "HookEventType",
    "InvalidComponentError",
    "Lifetime",
    "LimitExceededError",
    "ResolutionError",
    "ResolvedService",
    "Scope",
    "ScopeDisposedError",
    "ScopeNotFoundError",
    "ScopeRequiredError",
    "ServiceBuilder",
    "ServiceDefinition",
    "ServiceInfo",
    "ServiceNotFoundError",
    "TagMode",
    "create_container",
    "extract_dependencies",
]
