"""Debian policy values and the static lookup tables the finalizer consults.

``PolicyTables`` is built once at startup (see ``debianize.config.policy``)
and handed to ``finalize`` explicitly; nothing in the domain reaches for a
global instance.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from debianize.domain.naming import PackageType

if TYPE_CHECKING:
    from collections.abc import Mapping

    from debianize.domain.naming import VersionSplits
    from debianize.domain.relations import Relations

_STANDARDS_RE: Final = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:\.(\d+))?$")
_MAINTAINER_RE: Final = re.compile(r"^\s*\"?([^\"<]*?)\"?\s*<([^>]+)>\s*$")


class PackagePriority(StrEnum):
    REQUIRED = "required"
    IMPORTANT = "important"
    STANDARD = "standard"
    OPTIONAL = "optional"
    EXTRA = "extra"


class SourceFormat(StrEnum):
    NATIVE = "3.0 (native)"
    QUILT = "3.0 (quilt)"


class PackageArchitectures(StrEnum):
    ANY = "any"
    ALL = "all"


@dataclass(frozen=True, slots=True, order=True)
class StandardsVersion:
    major: int
    minor: int
    patch: int
    build: int | None = None

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return base if self.build is None else f"{base}.{self.build}"


def parse_standards_version(text: str) -> StandardsVersion:
    match = _STANDARDS_RE.match(text.strip())
    if match is None:
        raise ValueError(f"Invalid Standards-Version: {text!r}")
    major, minor, patch, build = match.groups()
    return StandardsVersion(
        int(major),
        int(minor),
        int(patch),
        int(build) if build is not None else None,
    )


@dataclass(frozen=True, slots=True)
class Maintainer:
    name: str
    email: str

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


def parse_maintainer(text: str) -> Maintainer:
    """Parse ``Name <email>``; quoted names (``"Powell, IV" <x@y>``) are accepted."""

    match = _MAINTAINER_RE.match(text)
    if match is None or not match.group(1).strip():
        raise ValueError(f"Invalid maintainer: {text!r}")
    return Maintainer(name=match.group(1).strip(), email=match.group(2).strip())


@dataclass(frozen=True, slots=True)
class License:
    """A Debian copyright-format license short name.

    ``upstream`` keeps the identifier the manifest used so an unknown license
    is still traceable.
    """

    short_name: str
    upstream: str | None = None
    known: bool = True

    def __str__(self) -> str:
        return self.short_name


@dataclass(frozen=True, slots=True, kw_only=True)
class BuildToolchain:
    """Packages every generated source package build-depends on."""

    debhelper: str = "debhelper"
    devscripts: str = "haskell-devscripts"
    devscripts_version: str | None = "0.13"
    cdbs: str = "cdbs"
    compiler: str = "ghc"
    profiling_compiler: str = "ghc-prof"
    documentation_compiler: str = "ghc-doc"


def _frozen[K, V](mapping: Mapping[K, V] | None = None) -> Mapping[K, V]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True, kw_only=True)
class PolicyTables:
    """Versioned policy data. Immutable once constructed."""

    policy_version: str
    standards_version: StandardsVersion
    compat_level: int
    source_format: SourceFormat = SourceFormat.QUILT
    default_priority: PackagePriority = PackagePriority.OPTIONAL
    revision: str = "-1"
    default_maintainer: Maintainer | None = None
    toolchain: BuildToolchain = field(default_factory=BuildToolchain)
    sections: Mapping[PackageType, str] = field(default_factory=_frozen)
    architectures: Mapping[PackageType, PackageArchitectures] = field(default_factory=_frozen)
    license_map: Mapping[str, str] = field(default_factory=_frozen)
    bundled_packages: frozenset[str] = frozenset()
    version_splits: Mapping[str, VersionSplits] = field(default_factory=_frozen)
    epochs: Mapping[str, int] = field(default_factory=_frozen)
    exec_map: Mapping[str, Relations] = field(default_factory=_frozen)
    extra_lib_map: Mapping[str, Relations] = field(default_factory=_frozen)

    def __post_init__(self) -> None:
        if self.compat_level < 1:
            raise ValueError(f"Invalid debhelper compat level: {self.compat_level}")
        for name in (
            "sections",
            "architectures",
            "license_map",
            "version_splits",
            "epochs",
            "exec_map",
            "extra_lib_map",
        ):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    def license_for(self, identifier: str) -> License:
        key = identifier.strip()
        folded = {name.lower(): short for name, short in self.license_map.items()}
        short_name = folded.get(key.lower())
        if short_name is None:
            return License(short_name=key, upstream=key, known=False)
        return License(short_name=short_name, upstream=key)

    def section_for(self, package_type: PackageType) -> str:
        if package_type in self.sections:
            return self.sections[package_type]
        return self.sections.get(PackageType.SOURCE, "misc")

    def architecture_for(self, package_type: PackageType) -> PackageArchitectures:
        if package_type in self.architectures:
            return self.architectures[package_type]
        if package_type is PackageType.DOCUMENTATION:
            return PackageArchitectures.ALL
        return PackageArchitectures.ANY
