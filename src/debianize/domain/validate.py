"""Structural validation and field-by-field comparison of debianizations."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from debianize.domain.errors import StaleOutput, StructuralViolation, UnresolvedIdentity
from debianize.domain.model.atoms import (
    Atoms,
    BinaryField,
    FieldKind,
    SourceField,
    binary_of,
    field_of,
    mapping_of,
)
from debianize.domain.model.debian import ChangelogEntry, CopyrightDescription
from debianize.domain.naming import (
    DebianPackageName,
    OverrideTable,
    PackageType,
    default_base,
    is_legal_package_name,
    map_name,
    parse_package_name,
)
from debianize.domain.policy import License
from debianize.domain.relations import format_relations, relation_set

if TYPE_CHECKING:
    from collections.abc import Iterator

    from debianize.domain.model.atoms import AtomField, FieldKey
    from debianize.domain.model.description import PackageDescription
    from debianize.domain.model.primitives import BinPkgName, DebBase
    from debianize.domain.policy import PolicyTables
    from debianize.domain.relations import Relations

log = getLogger(__name__)

_FIELD_ORDER: Final[dict[AtomField, int]] = {
    **{field: index for index, field in enumerate(SourceField)},
    **{field: index for index, field in enumerate(BinaryField)},
}
_OWN_TYPES: Final = frozenset(
    {PackageType.DEVELOPMENT, PackageType.PROFILING, PackageType.DOCUMENTATION, PackageType.UTILITIES}
)


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------


def validate(atoms: Atoms, *, policy: PolicyTables | None = None) -> list[StructuralViolation]:
    """Report dangling and stale references; nothing is fixed.

    Binary names are re-derived from the upstream description through the
    name mapper, with the version splits of ``policy`` when given.
    """

    violations: list[StructuralViolation] = []
    source: str | None = atoms.get(SourceField.SOURCE_NAME)
    if source is None:
        return [StructuralViolation("No source package name", field=str(SourceField.SOURCE_NAME))]
    if not is_legal_package_name(source):
        violations.append(
            StructuralViolation(
                f"Illegal source package name {source!r}", field=str(SourceField.SOURCE_NAME)
            )
        )

    binaries: tuple[BinPkgName, ...] = atoms.get(SourceField.BINARIES, default=())
    declared = frozenset(binaries)
    for binary, count in Counter(binaries).items():
        if count > 1:
            violations.append(
                StructuralViolation(f"Binary package {binary} is declared {count} times", binary=binary)
            )
    base = _expected_base(atoms, source, policy, violations)
    for binary in binaries:
        violations.extend(_check_binary_name(atoms, source, base, binary))

    for binary in sorted(atoms.binary_names() - declared):
        if any(field.emitted for field in atoms.binary_fields(binary)):
            violations.append(
                StructuralViolation(
                    f"Fields are set for undeclared binary package {binary}", binary=binary
                )
            )

    for rule in atoms.get(SourceField.INSTALL_RULES, default=()):
        if rule.binary not in declared:
            violations.append(
                StructuralViolation(
                    f"Install rule {rule.source} -> {rule.destination} targets "
                    f"missing binary package {rule.binary}",
                    binary=rule.binary,
                    field=str(SourceField.INSTALL_RULES),
                )
            )

    own = _own_names(base)
    for key, value, _state in atoms.items():
        field = field_of(key)
        if field.kind is not FieldKind.RELATIONS or not field.emitted:
            continue
        violations.extend(_check_relations(value, key, own, declared))

    if violations:
        log.debug("Validation found %s violation(s)", len(violations))
    return violations


def _expected_base(
    atoms: Atoms,
    source: str,
    policy: PolicyTables | None,
    violations: list[StructuralViolation],
) -> DebBase:
    description: PackageDescription | None = atoms.get(SourceField.PACKAGE_DESCRIPTION)
    if description is None:
        return parse_package_name(source).base
    overrides = OverrideTable() if policy is None else OverrideTable(splits=policy.version_splits)
    supplied: OverrideTable | None = atoms.get(SourceField.NAME_OVERRIDES)
    if supplied is not None:
        overrides = overrides.amend(supplied)
    try:
        return map_name(description.identity, overrides, PackageType.SOURCE).base
    except UnresolvedIdentity as exc:
        violations.append(StructuralViolation(str(exc), field=str(SourceField.SOURCE_NAME)))
        return parse_package_name(source).base


def _check_binary_name(
    atoms: Atoms,
    source: str,
    base: DebBase,
    binary: BinPkgName,
) -> Iterator[StructuralViolation]:
    if not is_legal_package_name(binary):
        yield StructuralViolation(f"Illegal binary package name {binary!r}", binary=binary)
        return
    if atoms.get(BinaryField.EXPLICIT_NAME, binary, default=False):
        return
    if binary in mapping_of(atoms, SourceField.EXECUTABLES):
        return

    package_type: PackageType = atoms.get(
        BinaryField.PACKAGE_TYPE, binary, default=parse_package_name(binary).package_type
    )
    if package_type is PackageType.EXECUTABLE:
        if _ships_executable(atoms, base, binary):
            return
        yield StructuralViolation(
            f"Executable package {binary} does not correspond to an executable of {source}",
            binary=binary,
        )
        return
    if package_type is PackageType.UTILITIES and binary == atoms.get(SourceField.UTILITIES_PACKAGE):
        return
    expected = DebianPackageName(base, package_type).name
    if expected != binary:
        yield StructuralViolation(
            f"Binary package {binary} does not derive from source {source} (expected {expected})",
            binary=binary,
        )


def _ships_executable(atoms: Atoms, base: str, binary: BinPkgName) -> bool:
    if binary == base:
        return True
    if any(rule.binary == binary for rule in atoms.get(SourceField.INSTALL_RULES, default=())):
        return True
    description: PackageDescription | None = atoms.get(SourceField.PACKAGE_DESCRIPTION)
    if description is None:
        return False
    return any(default_base(component.name) == binary for component in description.executables)


def _own_names(base: str) -> frozenset[str]:
    return frozenset(DebianPackageName(base, package_type).name for package_type in _OWN_TYPES)


def _check_relations(
    relations: Relations,
    key: FieldKey,
    own: frozenset[str],
    declared: frozenset[BinPkgName],
) -> Iterator[StructuralViolation]:
    field = field_of(key)
    binary = binary_of(key)
    for group in relations:
        for relation in group:
            if not is_legal_package_name(relation.name):
                yield StructuralViolation(
                    f"{field} references illegal package name {relation.name!r}",
                    binary=binary,
                    field=str(field),
                )
            elif relation.name in own and relation.name not in declared:
                yield StructuralViolation(
                    f"{field} references {relation.name}, which this source does not build",
                    binary=binary,
                    field=str(field),
                )


def validate_against(expected: Atoms, actual: Atoms) -> list[StructuralViolation]:
    """Check that two debianizations agree on source and binary package names."""

    violations: list[StructuralViolation] = []
    expected_source = expected.get(SourceField.SOURCE_NAME)
    actual_source = actual.get(SourceField.SOURCE_NAME)
    if expected_source != actual_source:
        violations.append(
            StructuralViolation(
                f"Source package name mismatch: expected {expected_source}, found {actual_source}",
                field=str(SourceField.SOURCE_NAME),
            )
        )
    expected_binaries = frozenset(expected.get(SourceField.BINARIES, default=()))
    actual_binaries = frozenset(actual.get(SourceField.BINARIES, default=()))
    for binary in sorted(expected_binaries - actual_binaries):
        violations.append(StructuralViolation(f"Binary package {binary} is missing", binary=binary))
    for binary in sorted(actual_binaries - expected_binaries):
        violations.append(StructuralViolation(f"Unexpected binary package {binary}", binary=binary))
    return violations


# ---------------------------------------------------------------------------
# Differences
# ---------------------------------------------------------------------------


class ChangeKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: AtomField
    binary: BinPkgName | None
    kind: ChangeKind
    old: Any = None
    new: Any = None

    def describe(self) -> str:
        match self.kind:
            case ChangeKind.ADDED:
                return f"+ {self.field}: {_display(self.field, self.new)}"
            case ChangeKind.REMOVED:
                return f"- {self.field}: {_display(self.field, self.old)}"
            case ChangeKind.CHANGED:
                return (
                    f"~ {self.field}: {_display(self.field, self.old)} "
                    f"-> {_display(self.field, self.new)}"
                )


@dataclass(frozen=True, slots=True)
class DiffReport:
    changes: tuple[FieldChange, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def by_binary(self) -> dict[BinPkgName | None, list[FieldChange]]:
        grouped: dict[BinPkgName | None, list[FieldChange]] = {}
        for change in self.changes:
            grouped.setdefault(change.binary, []).append(change)
        return grouped

    def stale_errors(self) -> list[StaleOutput]:
        return [
            StaleOutput(str(change.field), binary=change.binary, old=change.old, new=change.new)
            for change in self.changes
        ]

    def format(self) -> str:
        if self.is_empty:
            return "No changes"
        lines: list[str] = []
        for binary, changes in self.by_binary().items():
            lines.append("Source:" if binary is None else f"Package {binary}:")
            lines.extend(f"  {change.describe()}" for change in changes)
        return "\n".join(lines)


def compare(old: Atoms, new: Atoms) -> DiffReport:
    """Field-by-field differences between two debianizations.

    Only fields that end up in a debian file are compared. Relation fields
    compare as the sets of relations they denote.
    """

    old_values = _emitted(old)
    new_values = _emitted(new)
    changes: list[FieldChange] = []
    for key in sorted(old_values.keys() | new_values.keys(), key=_sort_key):
        field = field_of(key)
        binary = binary_of(key)
        before = old_values.get(key)
        after = new_values.get(key)
        if before is None:
            changes.append(FieldChange(field, binary, ChangeKind.ADDED, new=after))
        elif after is None:
            changes.append(FieldChange(field, binary, ChangeKind.REMOVED, old=before))
        elif _comparable(field, before) != _comparable(field, after):
            changes.append(FieldChange(field, binary, ChangeKind.CHANGED, old=before, new=after))
    return DiffReport(tuple(changes))


def describe(atoms: Atoms) -> DiffReport:
    """Everything ``atoms`` would emit, as additions against nothing."""

    return compare(Atoms(), atoms)


def _emitted(atoms: Atoms) -> dict[FieldKey, Any]:
    values: dict[FieldKey, Any] = {}
    for key, value, _state in atoms.items():
        field = field_of(key)
        if not field.emitted or value is None or value == ():
            continue
        values[key] = value
    return values


def _sort_key(key: FieldKey) -> tuple[int, str, int]:
    binary = binary_of(key)
    return (0 if binary is None else 1, binary or "", _FIELD_ORDER[field_of(key)])


def _comparable(field: AtomField, value: Any) -> Any:
    if field.kind is FieldKind.RELATIONS:
        return relation_set(value)
    if field.kind in {FieldKind.BINARY_NAMES, FieldKind.INSTALL_RULES}:
        return frozenset(value)
    if isinstance(value, License):
        return value.short_name
    if isinstance(value, CopyrightDescription):
        return (value.upstream_name, value.license.short_name, value.holders)
    if isinstance(value, tuple) and value and isinstance(value[0], ChangelogEntry):
        return tuple(replace(entry, date=None) for entry in value)
    if isinstance(value, str):
        return value.strip()
    return value


def _display(field: AtomField, value: Any) -> str:
    if field.kind is FieldKind.RELATIONS:
        return format_relations(value)
    if field.kind in {FieldKind.BINARY_NAMES, FieldKind.INSTALL_RULES}:
        return ", ".join(str(item) for item in value)
    if isinstance(value, tuple) and value and isinstance(value[0], ChangelogEntry):
        return value[0].version
    if isinstance(value, CopyrightDescription):
        return f"{value.upstream_name} ({value.license})"
    text = str(value)
    return text.splitlines()[0] if "\n" in text else text
