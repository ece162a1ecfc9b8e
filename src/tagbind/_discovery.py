from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Iterable

    from ._container import Container, ResolvedService, ServiceInfo
    from ._tags import TagMode


class Discovery:
    """Read-only view of a container for components that look services up by tag.

    Registered as a value when `ContainerOptions.discovery_name` is set, so it
    is injected like any other dependency instead of handing out the container.
    """

    def __init__(self, container: Container) -> None:
        self._container = container

    def has(self, name: str) -> bool:
        return self._container.has(name)

    def get_service_names(self) -> list[str]:
        return self._container.get_service_names()

    def get_services_by_tags(self, tags: Iterable[str], mode: TagMode | str = "AND") -> list[ServiceInfo]:
        return self._container.get_services_by_tags(tags, mode)

    def get_service_names_by_tags(self, tags: Iterable[str], mode: TagMode | str = "AND") -> list[str]:
        return self._container.get_service_names_by_tags(tags, mode)

    def resolve_services_by_tags(self, tags: Iterable[str], mode: TagMode | str = "AND") -> list[ResolvedService]:
        return self._container.resolve_services_by_tags(tags, mode)

    def resolve(self, name: str) -> Any:
        return self._container.resolve(name)

    def get_all_tags(self) -> list[str]:
        return self._container.get_all_tags()

    def get_services_by_tag(self) -> dict[str, list[str]]:
        return self._container.get_services_by_tag()
