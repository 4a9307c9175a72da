"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from debianize.adapters.debian_dir import read_debianization, write_debianization
from debianize.adapters.manifest import read_manifest
from debianize.config import load_policy_tables
from debianize.domain.finalize import finalize
from debianize.domain.goodies import apply_customizations
from debianize.domain.model.atoms import Atoms, FieldState, SourceField
from debianize.domain.model.description import PackageDescription
from debianize.domain.validate import DiffReport, compare, describe, validate, validate_against

if TYPE_CHECKING:
    from collections.abc import Sequence

    from debianize.domain.errors import DebianizeError, StaleOutput, StructuralViolation
    from debianize.domain.goodies import Customization
    from debianize.domain.policy import PolicyTables

log = getLogger(__name__)


@dataclass(slots=True)
class DebianizeResult:
    """Outcome of one debianize run."""

    atoms: Atoms
    errors: tuple[DebianizeError, ...] = ()
    fatal: bool = False
    violations: tuple[StructuralViolation, ...] = ()
    diff: DiffReport = DiffReport()
    written: tuple[Path, ...] = ()
    compared_with_existing: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors and not self.violations

    @property
    def stale(self) -> list[StaleOutput]:
        if not self.compared_with_existing:
            return []
        return self.diff.stale_errors()


def debianize(
    manifest: PackageDescription | Path,
    *,
    debian_dir: Path | None = None,
    customizations: Sequence[Customization] = (),
    policy: PolicyTables | None = None,
    dry_run: bool = False,
    merge_existing: bool = False,
    validate_only: bool = False,
) -> DebianizeResult:
    """Run input, customize, finalize, then validate and emit.

    ``dry_run`` and ``validate_only`` never write. With ``validate_only`` the
    existing debian directory is compared against the freshly computed one
    and must agree on package names.
    """

    effective_policy = policy or load_policy_tables()
    description = manifest if isinstance(manifest, PackageDescription) else read_manifest(Path(manifest))
    log.info(
        "Debianizing %s (policy %s): dry_run=%s, merge_existing=%s, validate=%s",
        description.identity,
        effective_policy.policy_version,
        dry_run,
        merge_existing,
        validate_only,
    )

    atoms = Atoms()
    atoms.set_if_absent(SourceField.PACKAGE_DESCRIPTION, description)
    atoms = apply_customizations(atoms, customizations)

    existing: Atoms | None = None
    if debian_dir is not None and (debian_dir / "control").is_file():
        existing = read_debianization(debian_dir)
        if merge_existing and not validate_only:
            atoms.merge(_carry_over(existing))

    result = finalize(atoms, effective_policy)
    if not result.ok:
        return DebianizeResult(atoms=result.atoms, errors=result.errors, fatal=result.fatal)

    finalized = result.atoms
    violations = validate(finalized, policy=effective_policy)
    diff = compare(existing, finalized) if existing is not None else describe(finalized)
    if validate_only and existing is not None:
        violations.extend(validate_against(finalized, existing))

    written: tuple[Path, ...] = ()
    if violations:
        log.warning("Not writing: %s structural violation(s)", len(violations))
    elif debian_dir is not None and not dry_run and not validate_only:
        written = tuple(write_debianization(finalized, debian_dir))

    return DebianizeResult(
        atoms=finalized,
        violations=tuple(violations),
        diff=diff,
        written=written,
        compared_with_existing=existing is not None,
    )


def _carry_over(existing: Atoms) -> Atoms:
    """Existing fields to keep; the old version becomes the previous version."""

    carried = existing.thaw()
    version = carried.get(SourceField.VERSION)
    entries = carried.get(SourceField.CHANGELOG)
    carried.discard(SourceField.VERSION)
    carried.discard(SourceField.CHANGELOG)
    if version is not None:
        carried.set_if_absent(SourceField.PREVIOUS_VERSION, version, state=FieldState.USER_SUPPLIED)
    if entries:
        carried.set_if_absent(SourceField.PREVIOUS_CHANGELOG, entries, state=FieldState.USER_SUPPLIED)
    return carried
