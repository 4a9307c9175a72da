"""Customizations: small ``Atoms -> Atoms`` transformations.

Each builder returns a function that writes with "set if absent", so the
first customization to touch a field wins. Customizations run before any
existing debian directory is merged and before finalization.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from debianize.domain.model.atoms import Atoms, BinaryField, FieldState, SourceField
from debianize.domain.model.debian import Executable, InstallKind, InstallRule
from debianize.domain.model.primitives import PackageIdentity
from debianize.domain.naming import OverrideTable, VersionSplits, default_base, is_legal_package_name
from debianize.domain.relations import parse_relations
from debianize.domain.versions import parse_version

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from debianize.domain.model.atoms import AtomField
    from debianize.domain.model.primitives import BinPkgName, DebBase
    from debianize.domain.policy import Maintainer, PolicyTables
    from debianize.domain.relations import Relations

type Customization = Callable[[Atoms], Atoms]

log = getLogger(__name__)


def apply_customizations(atoms: Atoms, customizations: Iterable[Customization]) -> Atoms:
    """Apply ``customizations`` in order to a copy of ``atoms``."""

    result = atoms.thaw()
    for customization in customizations:
        result = customization(result)
    return result


def set_field(field: AtomField, value: Any, *, binary: BinPkgName | None = None) -> Customization:
    def apply(atoms: Atoms) -> Atoms:
        if not atoms.set_if_absent(field, value, binary=binary, state=FieldState.USER_SUPPLIED):
            log.debug("Keeping earlier value of %s", field)
        return atoms

    return apply


def _overrides(table: OverrideTable) -> Customization:
    return set_field(SourceField.NAME_OVERRIDES, table)


def map_cabal(name: str, base: DebBase, version: str | None = None) -> Customization:
    """Map upstream ``name`` (optionally only at ``version``) to Debian base ``base``."""

    if version is None:
        return _overrides(OverrideTable(names={name: base}))
    parse_version(version)
    return _overrides(OverrideTable(identities={PackageIdentity(name, version): base}))


def split_cabal(
    name: str,
    below: DebBase,
    boundary: str,
    *,
    policy: PolicyTables | None = None,
) -> Customization:
    """Versions of ``name`` just below ``boundary`` map to ``below``.

    The split is inserted into the split table ``policy`` already has for
    ``name``, or into a fresh table whose default base is derived from the
    name.
    """

    version = parse_version(boundary)

    def apply(atoms: Atoms) -> Atoms:
        existing: OverrideTable | None = atoms.get(SourceField.NAME_OVERRIDES)
        splits = None
        if existing is not None:
            splits = existing.splits.get(name)
        if splits is None and policy is not None:
            splits = policy.version_splits.get(name)
        if splits is None:
            splits = VersionSplits(default_base(name))
        table = OverrideTable(splits={name: splits.with_split(below, version)})
        if existing is not None:
            # a later split on the same name extends the earlier one
            atoms.replace(
                SourceField.NAME_OVERRIDES,
                existing.amend(table),
                state=FieldState.USER_SUPPLIED,
            )
            return atoms
        atoms.set_if_absent(SourceField.NAME_OVERRIDES, table)
        return atoms

    return apply


def set_epoch(name: str, epoch: int) -> Customization:
    if epoch < 0:
        raise ValueError(f"Epoch must be non-negative, got {epoch}")
    return set_field(SourceField.EPOCHS, {name: epoch})


def add_depends(binary: BinPkgName, relations: Relations | str) -> Customization:
    """Add explicit runtime dependencies of ``binary``; unioned into the inferred set."""

    parsed = parse_relations(relations) if isinstance(relations, str) else relations
    return set_field(BinaryField.EXTRA_DEPENDS, parsed, binary=binary)


def add_build_depends(relations: Relations | str) -> Customization:
    parsed = parse_relations(relations) if isinstance(relations, str) else relations
    return set_field(SourceField.EXTRA_BUILD_DEPENDS, parsed)


def missing_dependency(*names: str) -> Customization:
    """Declare packages the build environment provides; they are never inferred."""

    return set_field(SourceField.MISSING_DEPENDENCIES, frozenset(names))


def do_executable(
    binary: BinPkgName,
    executable: Executable | str | None = None,
) -> Customization:
    """Ship an upstream executable in its own binary package ``binary``."""

    if not is_legal_package_name(binary):
        raise ValueError(f"Illegal binary package name {binary!r}")
    if executable is None:
        executable = Executable(binary)
    elif isinstance(executable, str):
        executable = Executable(executable)
    return set_field(SourceField.EXECUTABLES, {binary: executable})


def no_documentation_library() -> Customization:
    return set_field(SourceField.NO_DOCUMENTATION, value=True)


def no_profiling_library() -> Customization:
    return set_field(SourceField.NO_PROFILING, value=True)


def set_maintainer(maintainer: Maintainer) -> Customization:
    return set_field(SourceField.MAINTAINER, maintainer)


def set_revision(revision: str) -> Customization:
    """Debian revision appended to the upstream version; an empty string drops it."""

    return set_field(SourceField.REVISION, revision)


def omit_lt_deps() -> Customization:
    """Leave upper bounds (``<<``, ``<=``) out of the generated library relations."""

    return set_field(SourceField.OMIT_LT_DEPS, value=True)


def omit_prof_version_deps() -> Customization:
    return set_field(SourceField.OMIT_PROF_VERSION_DEPS, value=True)


def add_dev_depends(relations: Relations | str) -> Customization:
    """Extra Depends of the library's development package, whatever it ends up named."""

    parsed = parse_relations(relations) if isinstance(relations, str) else relations
    return set_field(SourceField.EXTRA_DEV_DEPENDS, parsed)


def set_utilities_package(binary: BinPkgName) -> Customization:
    """Name of the package that collects executables not shipped on their own."""

    if not is_legal_package_name(binary):
        raise ValueError(f"Illegal binary package name {binary!r}")
    return set_field(SourceField.UTILITIES_PACKAGE, binary)


def _install(rule: InstallRule) -> Customization:
    if not is_legal_package_name(rule.binary):
        raise ValueError(f"Illegal binary package name {rule.binary!r}")
    if not rule.source or not rule.destination:
        raise ValueError(f"Install rule needs a source and a destination: {rule}")
    return set_field(SourceField.EXTRA_INSTALL_RULES, (rule,))


def install(binary: BinPkgName, source: str, directory: str) -> Customization:
    """Copy ``source`` into ``directory`` of ``binary``."""

    return _install(InstallRule(binary, source, directory.strip("/")))


def install_to(binary: BinPkgName, source: str, destination: str) -> Customization:
    """Copy ``source`` to the exact path ``destination`` of ``binary``."""

    return _install(InstallRule(binary, source, destination.strip("/"), InstallKind.FILE))


def install_data(binary: BinPkgName, source: str, destination: str) -> Customization:
    """Copy a data file to ``destination`` under ``binary``'s share directory."""

    path = f"usr/share/{binary}/{destination.strip('/')}"
    return _install(InstallRule(binary, source, path, InstallKind.FILE))


def link(binary: BinPkgName, target: str, name: str) -> Customization:
    """Ship a symlink ``name`` pointing at ``target`` in ``binary``."""

    return _install(InstallRule(binary, target.strip("/"), name.strip("/"), InstallKind.LINK))


def add_rules_fragment(text: str) -> Customization:
    """Append ``text`` to the rules fragments; fragments accumulate in order."""

    fragment = text.strip()

    def apply(atoms: Atoms) -> Atoms:
        existing: str | None = atoms.get(SourceField.RULES_FRAGMENTS)
        if existing and fragment in existing:
            return atoms
        combined = f"{existing.rstrip()}\n\n{fragment}" if existing else fragment
        atoms.replace(SourceField.RULES_FRAGMENTS, combined, state=FieldState.USER_SUPPLIED)
        return atoms

    return apply


def tight_dependency_fixup(
    pairs: Iterable[tuple[BinPkgName, BinPkgName]],
    binary: BinPkgName,
) -> Customization:
    """Pin ``binary`` to the exact build-time versions of library packages.

    Each pair is ``(installed, dependent)``: at build time the version of
    ``installed`` is looked up with dpkg-query, and ``binary`` depends on
    ``dependent`` at exactly that version and conflicts with newer ones.
    """

    pairs = tuple(pairs)
    if not pairs:
        raise ValueError("Tight dependency fixup needs at least one package pair")
    substvars = f"debian/{binary}.substvars"
    separator = f"\techo -n ', ' >> {substvars}"

    def query(installed: BinPkgName, dependent: BinPkgName, op: str) -> str:
        return f"\t(dpkg-query -W -f='{dependent} ({op}$${{Version}})' {installed}) >> {substvars}"

    lines = [f"binary-fixup/{binary}::", f"\techo -n 'haskell:Depends=' >> {substvars}"]
    lines.extend(_interleave([query(installed, dependent, "=") for installed, dependent in pairs], separator))
    lines.extend([f"\techo '' >> {substvars}", f"\techo -n 'haskell:Conflicts=' >> {substvars}"])
    lines.extend(_interleave([query(installed, dependent, ">>") for installed, dependent in pairs], separator))
    lines.append(f"\techo '' >> {substvars}")
    return add_rules_fragment("\n".join(lines))


def _interleave(items: list[str], separator: str) -> list[str]:
    result: list[str] = []
    for index, item in enumerate(items):
        if index:
            result.append(separator)
        result.append(item)
    return result
