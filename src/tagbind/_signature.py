"""Dependency discovery for constructibles.

Dependencies are declared by the keyword parameters of a class constructor or a
factory function. Each parameter name is the service name that gets injected,
unless an alias maps it to a different registered name.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._errors import InvalidComponentError


if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


_INJECTABLE_KINDS = (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)


@dataclass(frozen=True)
class Dependency:
    param: str
    name: str
    optional: bool = False


def extract_dependencies(
    constructible: Callable[..., Any],
    aliases: Mapping[str, str] | None = None,
) -> tuple[Dependency, ...]:
    """Return the dependencies `constructible` declares, in declaration order.

    Raises InvalidComponentError when the constructible can't be called with
    keyword arguments only (positional-only, `*args`, `**kwargs`).
    """
    label = _label(constructible)
    if not callable(constructible):
        msg = f"{label} is not callable and cannot be registered as a component"
        raise InvalidComponentError(msg)

    if inspect.isclass(constructible) and _uses_object_init(constructible):
        if aliases:
            msg = f"{label} takes no parameters; aliases cannot apply"
            raise InvalidComponentError(msg)
        return ()

    try:
        sig = inspect.signature(constructible)
    except (TypeError, ValueError) as e:
        msg = f"Unable to inspect the signature of {label}: {e}"
        raise InvalidComponentError(msg) from e

    aliases = dict(aliases or {})
    deps: list[Dependency] = []
    for param in sig.parameters.values():
        if param.kind not in _INJECTABLE_KINDS:
            msg = (
                f"{label} declares {param.kind.description} parameter '{param.name}'; "
                "components must take their dependencies as keyword parameters"
            )
            raise InvalidComponentError(msg)

        deps.append(
            Dependency(
                param=param.name,
                name=aliases.pop(param.name, param.name),
                optional=param.default is not inspect.Parameter.empty,
            )
        )

    if aliases:
        msg = f"Aliases for unknown parameters of {label}: {', '.join(sorted(aliases))}"
        raise InvalidComponentError(msg)

    return tuple(deps)


def infer_name(constructible: Any) -> str:
    """Derive a service name from a class or function name (`UserService` -> `user_service`)."""
    raw = getattr(constructible, "__name__", None)
    if not raw or raw == "<lambda>":
        msg = f"A service name is required when registering {constructible!r}"
        raise ValueError(msg)

    out: list[str] = []
    for i, ch in enumerate(raw):
        if ch.isupper():
            prev = raw[i - 1] if i else ""
            nxt = raw[i + 1] if i + 1 < len(raw) else ""
            if i and prev != "_" and (prev.islower() or prev.isdigit() or nxt.islower()):
                out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def _uses_object_init(cls: type) -> bool:
    return cls.__init__ is object.__init__ and cls.__new__ is object.__new__


def _label(constructible: Any) -> str:
    return getattr(constructible, "__qualname__", None) or repr(constructible)
