"""Upstream package description (read-only input to the engine)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from debianize.domain.versions import Dependency

if TYPE_CHECKING:
    from debianize.domain.model.primitives import PackageIdentity


class ComponentKind(StrEnum):
    LIBRARY = "library"
    EXECUTABLE = "executable"


@dataclass(frozen=True, slots=True, kw_only=True)
class Component:
    """One buildable unit of the upstream package."""

    name: str
    kind: ComponentKind
    build_depends: tuple[Dependency, ...] = ()
    build_tools: tuple[Dependency, ...] = ()
    extra_libraries: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class PackageDescription:
    identity: PackageIdentity
    license: str | None = None
    copyright: str | None = None
    author: str | None = None
    maintainer: str | None = None
    homepage: str | None = None
    synopsis: str | None = None
    description: str | None = None
    components: tuple[Component, ...] = ()

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def library(self) -> Component | None:
        return next(
            (component for component in self.components if component.kind is ComponentKind.LIBRARY),
            None,
        )

    @property
    def executables(self) -> tuple[Component, ...]:
        return tuple(
            component for component in self.components if component.kind is ComponentKind.EXECUTABLE
        )

    def build_depends(self) -> tuple[Dependency, ...]:
        """Dependencies of every component; repeated names have their ranges intersected."""

        seen: dict[str, Dependency] = {}
        for component in self.components:
            for dependency in component.build_depends:
                if dependency.name == self.name:
                    continue
                if dependency.name in seen:
                    merged = seen[dependency.name].version_range.intersect(dependency.version_range)
                    seen[dependency.name] = Dependency(dependency.name, merged)
                else:
                    seen[dependency.name] = dependency
        return tuple(seen.values())

    def build_tools(self) -> tuple[Dependency, ...]:
        return tuple(
            {tool.name: tool for component in self.components for tool in component.build_tools}.values()
        )

    def extra_libraries(self) -> tuple[str, ...]:
        return tuple(
            dict.fromkeys(
                library for component in self.components for library in component.extra_libraries
            )
        )
