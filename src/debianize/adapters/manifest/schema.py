"""Pydantic models describing the upstream package manifest."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from debianize.domain.versions import parse_dependency, parse_version


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _check_dependencies(values: list[str]) -> list[str]:
    for value in values:
        parse_dependency(value)
    return values


class ManifestBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ComponentPayload(ManifestBaseModel):
    build_depends: list[str] = Field(default_factory=list, alias="build-depends")
    build_tools: list[str] = Field(default_factory=list, alias="build-tools")
    extra_libraries: list[str] = Field(default_factory=list, alias="extra-libraries")

    _check_build_depends = field_validator("build_depends")(_check_dependencies)
    _check_build_tools = field_validator("build_tools")(_check_dependencies)


class LibraryPayload(ComponentPayload):
    pass


class ExecutablePayload(ComponentPayload):
    name: str


class ManifestPayload(ManifestBaseModel):
    name: str
    version: str
    license: str | None = None
    copyright: str | None = None
    author: str | None = None
    maintainer: str | None = None
    homepage: str | None = None
    synopsis: str | None = None
    description: str | None = None
    library: LibraryPayload | None = None
    executables: list[ExecutablePayload] = Field(default_factory=list)

    _normalize_optional = field_validator(
        "license",
        "copyright",
        "author",
        "maintainer",
        "homepage",
        "synopsis",
        "description",
        mode="before",
    )(_blank_to_none)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("package name must not be empty")
        return value.strip()

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        parse_version(value)
        return value.strip()


type ManifestInput = ManifestPayload | dict[str, Any]
