from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Sequence


class ContainerError(RuntimeError):
    pass


class ResolutionError(ContainerError):
    pass


class ServiceNotFoundError(ResolutionError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Service {name!r} not found. Did you forget to register it?")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class CircularDependencyError(ResolutionError):
    """Raised when a name reappears while it is still being resolved.

    `chain` runs from the first occurrence of the repeated name to the repeat,
    e.g. ``("a", "b", "c", "a")``.
    """

    def __init__(self, chain: Sequence[str]) -> None:
        self.chain = tuple(chain)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.chain)}")


class ScopeRequiredError(ResolutionError):
    pass


class ScopeNotFoundError(ContainerError, KeyError):
    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Scope {label!r} not found. Create it first with create_scope()")

    def __str__(self) -> str:
        return str(self.args[0])


class AsyncResolutionError(ResolutionError):
    pass


class ScopeDisposedError(ContainerError):
    pass


class InvalidComponentError(ContainerError, TypeError):
    pass


class DuplicateRegistrationError(ContainerError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Service {name!r} is already registered. Use replace() to overwrite it.")

    def __str__(self) -> str:
        return str(self.args[0])


class LimitExceededError(ContainerError):
    pass


class DisposalError(ContainerError):
    def __init__(self, label: str, failures: Sequence[tuple[str, BaseException]]) -> None:
        self.label = label
        self.failures = tuple(failures)
        names = ", ".join(name for name, _ in self.failures)
        super().__init__(f"Scope {label!r} failed to dispose: {names}")
