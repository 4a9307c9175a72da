"""Mapping upstream package identities to Debian package names.

Resolution order for one identity:

1. an exact identity override (name and version)
2. a name-wide override
3. the version-split rule for the upstream name
4. the default transformation (lower-case, ``_`` becomes ``-``)

Every produced name is checked against Debian's package naming rules; a
name that cannot be made legal raises ``UnresolvedIdentity``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from debianize.domain.errors import InconsistentOverride, UnresolvedIdentity
from debianize.domain.model.atoms import Atoms, BinaryField, FieldKind, SourceField, field_of
from debianize.domain.model.primitives import PackageIdentity
from debianize.domain.relations import rename_in_relations
from debianize.domain.versions import Bound, Interval, VersionRange, parse_version

if TYPE_CHECKING:
    from collections.abc import Mapping

    from debianize.domain.model.primitives import BinPkgName, DebBase
    from debianize.domain.versions import UpstreamVersion

_DEBIAN_NAME_RE: Final = re.compile(r"^[a-z0-9][a-z0-9+.-]+$")


class PackageType(StrEnum):
    """Role of a Debian package relative to its upstream unit."""

    SOURCE = "source"
    DEVELOPMENT = "development"
    PROFILING = "profiling"
    DOCUMENTATION = "documentation"
    UTILITIES = "utilities"
    EXECUTABLE = "executable"


_LIBRARY_SUFFIXES: Final = {
    PackageType.DEVELOPMENT: "-dev",
    PackageType.PROFILING: "-prof",
    PackageType.DOCUMENTATION: "-doc",
}
_LIBRARY_PREFIX: Final = "libghc-"
_SOURCE_PREFIX: Final = "haskell-"


@dataclass(frozen=True, slots=True)
class DebianPackageName:
    """A base name qualified by the role of the package built from it."""

    base: DebBase
    package_type: PackageType

    @property
    def name(self) -> BinPkgName:
        match self.package_type:
            case PackageType.SOURCE:
                return f"{_SOURCE_PREFIX}{self.base}"
            case PackageType.DEVELOPMENT | PackageType.PROFILING | PackageType.DOCUMENTATION:
                return f"{_LIBRARY_PREFIX}{self.base}{_LIBRARY_SUFFIXES[self.package_type]}"
            case PackageType.UTILITIES:
                return f"{self.base}-utils"
            case PackageType.EXECUTABLE:
                return self.base

    def __str__(self) -> str:
        return self.name


def parse_package_name(name: BinPkgName) -> DebianPackageName:
    """Best-effort inverse of ``DebianPackageName.name``."""

    if name.startswith(_LIBRARY_PREFIX):
        for package_type, suffix in _LIBRARY_SUFFIXES.items():
            if name.endswith(suffix) and len(name) > len(_LIBRARY_PREFIX) + len(suffix):
                return DebianPackageName(name[len(_LIBRARY_PREFIX) : -len(suffix)], package_type)
    if name.startswith(_SOURCE_PREFIX):
        return DebianPackageName(name[len(_SOURCE_PREFIX) :], PackageType.SOURCE)
    if name.endswith("-utils"):
        return DebianPackageName(name[: -len("-utils")], PackageType.UTILITIES)
    return DebianPackageName(name, PackageType.EXECUTABLE)


def is_legal_package_name(name: str) -> bool:
    return bool(_DEBIAN_NAME_RE.match(name))


def default_base(upstream_name: str) -> DebBase:
    return upstream_name.strip().lower().replace("_", "-")


def checked(package: DebianPackageName, identity: object) -> DebianPackageName:
    if not is_legal_package_name(package.name):
        raise UnresolvedIdentity(
            str(identity),
            f"{package.name!r} is not a legal Debian package name",
        )
    return package


@dataclass(frozen=True, slots=True)
class VersionSplits:
    """Base names for an upstream package over successive version ranges.

    Versions below the first boundary use ``default``; a boundary version
    belongs to the range it opens.
    """

    default: DebBase
    splits: tuple[tuple[UpstreamVersion, DebBase], ...] = ()

    def __post_init__(self) -> None:
        boundaries = [boundary for boundary, _ in self.splits]
        if any(later <= earlier for earlier, later in zip(boundaries, boundaries[1:], strict=False)):
            raise ValueError(
                f"Version split boundaries must be strictly increasing: "
                f"{', '.join(str(boundary) for boundary in boundaries)}"
            )

    def base_for(self, version: UpstreamVersion) -> DebBase:
        selected = self.default
        for boundary, base in self.splits:
            if version < boundary:
                break
            selected = base
        return selected

    def ranges(self) -> tuple[tuple[VersionRange, DebBase], ...]:
        if not self.splits:
            return ((VersionRange.any(), self.default),)
        pieces: list[tuple[VersionRange, DebBase]] = [
            (VersionRange.below(self.splits[0][0]), self.default)
        ]
        for index, (boundary, base) in enumerate(self.splits):
            if index + 1 < len(self.splits):
                upper = self.splits[index + 1][0]
                pieces.append((VersionRange.between(boundary, upper), base))
            else:
                pieces.append((VersionRange.at_least(boundary), base))
        return tuple(pieces)

    def with_split(self, below: DebBase, boundary: UpstreamVersion) -> VersionSplits:
        """Insert ``boundary`` so that the versions just below it use ``below``.

        The segment containing ``boundary`` is cut in two: its lower half is
        renamed to ``below`` and its upper half keeps its previous base.
        """

        if any(existing == boundary for existing, _ in self.splits):
            raise ValueError(f"Version split at {boundary} already exists")
        if not self.splits or boundary < self.splits[0][0]:
            return VersionSplits(below, ((boundary, self.default), *self.splits))
        splits = list(self.splits)
        for index in range(len(splits) - 1, -1, -1):
            start, base = splits[index]
            if start < boundary:
                splits[index] = (start, below)
                splits.insert(index + 1, (boundary, base))
                break
        return VersionSplits(self.default, tuple(splits))


def _frozen[K, V](mapping: Mapping[K, V] | None = None) -> Mapping[K, V]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class OverrideTable:
    """Caller-supplied and built-in naming rules for upstream packages."""

    identities: Mapping[PackageIdentity, DebBase] = field(default_factory=_frozen)
    names: Mapping[str, DebBase] = field(default_factory=_frozen)
    splits: Mapping[str, VersionSplits] = field(default_factory=_frozen)

    def __post_init__(self) -> None:
        object.__setattr__(self, "identities", _frozen(self.identities))
        object.__setattr__(self, "names", _frozen(self.names))
        object.__setattr__(self, "splits", _frozen(self.splits))

    def amend(self, other: OverrideTable) -> OverrideTable:
        """Layer ``other`` (the more specific table) over this one."""

        return OverrideTable(
            identities={**self.identities, **other.identities},
            names={**self.names, **other.names},
            splits={**self.splits, **other.splits},
        )


def map_name(
    identity: PackageIdentity,
    overrides: OverrideTable,
    package_type: PackageType = PackageType.DEVELOPMENT,
) -> DebianPackageName:
    """Resolve ``identity`` to the Debian name of its ``package_type`` package."""

    base: DebBase
    if identity in overrides.identities:
        base = overrides.identities[identity]
    elif identity.name in overrides.names:
        base = overrides.names[identity.name]
    elif identity.name in overrides.splits:
        rules = overrides.splits[identity.name]
        if identity.version is None:
            base = rules.default
        else:
            try:
                version = parse_version(identity.version)
            except ValueError as exc:
                raise UnresolvedIdentity(str(identity), str(exc)) from exc
            base = rules.base_for(version)
    else:
        base = default_base(identity.name)
    if not base:
        raise UnresolvedIdentity(str(identity), "empty base name")
    return checked(DebianPackageName(base, package_type), identity)


def split_range(name: str, overrides: OverrideTable) -> list[tuple[VersionRange, DebBase]]:
    """Partition all versions of ``name`` by the base name they map to."""

    pieces: list[tuple[VersionRange, DebBase]]
    if name in overrides.names:
        pieces = [(VersionRange.any(), overrides.names[name])]
    elif name in overrides.splits:
        pieces = list(overrides.splits[name].ranges())
    else:
        pieces = [(VersionRange.any(), default_base(name))]

    for version, base in _point_overrides(name, overrides):
        excluded = VersionRange(
            (
                Interval(upper=Bound(version, inclusive=False)),
                Interval(lower=Bound(version, inclusive=False)),
            )
        )
        pieces = [(segment.intersect(excluded), segment_base) for segment, segment_base in pieces]
        point = Bound(version, inclusive=True)
        pieces.append((VersionRange((Interval(point, point),)), base))

    pieces = [(segment, base) for segment, base in pieces if not segment.is_empty]
    return sorted(pieces, key=lambda piece: _range_sort_key(piece[0]))


def _point_overrides(
    name: str,
    overrides: OverrideTable,
) -> list[tuple[UpstreamVersion, DebBase]]:
    points: list[tuple[UpstreamVersion, DebBase]] = []
    for identity, base in overrides.identities.items():
        if identity.name != name or identity.version is None:
            continue
        try:
            points.append((parse_version(identity.version), base))
        except ValueError as exc:
            raise UnresolvedIdentity(str(identity), str(exc)) from exc
    return sorted(points, key=lambda point: point[0])


def _range_sort_key(version_range: VersionRange) -> tuple[int, tuple[int, ...]]:
    lower = version_range.intervals[0].lower
    if lower is None:
        return (0, ())
    return (1, lower.version.parts)


def remap(
    atoms: Atoms,
    old: DebianPackageName | BinPkgName,
    new: DebianPackageName | BinPkgName,
) -> Atoms:
    """Rename a binary package and re-point everything that references it.

    Returns a new ``Atoms`` value; the input is left untouched. The renamed
    binary is marked as explicitly named so validation accepts it.
    """

    old_name = str(old)
    new_name = str(new)
    if not is_legal_package_name(new_name):
        raise InconsistentOverride(f"Cannot remap {old_name} to illegal name {new_name!r}")

    binaries: tuple[BinPkgName, ...] = atoms.get(SourceField.BINARIES, default=())
    if new_name != old_name and (new_name in binaries or new_name in atoms.binary_names()):
        raise InconsistentOverride(f"Cannot remap {old_name} to {new_name}: {new_name} already exists")
    if not _is_referenced(atoms, old_name):
        raise InconsistentOverride(f"Dangling override: {old_name} is not referenced anywhere")

    result = atoms.thaw()
    if new_name != old_name:
        result.rename_binary(old_name, new_name)
        for key, value, state in list(result.items()):
            rewritten = _rename_value(field_of(key).kind, value, old_name, new_name)
            if rewritten is not value:
                result.replace_key(key, rewritten, state=state)
        result.replace(BinaryField.EXPLICIT_NAME, value=True, binary=new_name)
    return result.freeze() if atoms.frozen else result


def _is_referenced(atoms: Atoms, name: BinPkgName) -> bool:
    if name in atoms.binary_names():
        return True
    return any(_mentions(field_of(key).kind, value, name) for key, value, _state in atoms.items())


def _mentions(kind: FieldKind, value: Any, name: BinPkgName) -> bool:
    match kind:
        case FieldKind.BINARY_NAMES | FieldKind.BINARY_MAPPING:
            return name in value
        case FieldKind.RELATIONS:
            return any(relation.name == name for group in value for relation in group)
        case FieldKind.INSTALL_RULES:
            return any(rule.binary == name for rule in value)
        case _:
            return False


def _rename_value(kind: FieldKind, value: Any, old: BinPkgName, new: BinPkgName) -> Any:
    match kind:
        case FieldKind.BINARY_NAMES:
            if old not in value:
                return value
            return tuple(new if name == old else name for name in value)
        case FieldKind.RELATIONS:
            return rename_in_relations(value, old, new)
        case FieldKind.INSTALL_RULES:
            renamed = tuple(rule.rename(old, new) for rule in value)
            return value if renamed == value else renamed
        case FieldKind.BINARY_MAPPING:
            if old not in value:
                return value
            return {(new if key == old else key): item for key, item in value.items()}
        case _:
            return value
