"""Finalization: fill every still-missing field of an ``Atoms`` value.

Fields are visited in a fixed order because later derivations read earlier
results: source name and version come before the binary list, the binary
list before per-binary relations, license before copyright, compat before
the rules file. Every derived value is written with "set if absent", so
anything supplied before finalization (customizations, an existing debian
directory) is kept, and running ``finalize`` on its own output is a no-op.

Independent failures are collected and returned together. Failures that
make the rest meaningless (no source name, no version, a dependency that
cannot be named) stop the run immediately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from debianize.domain.dependencies import (
    extra_library_relations,
    tool_relations,
    translate_dependencies,
)
from debianize.domain.errors import (
    DebianizeError,
    FinalizationError,
    InconsistentOverride,
    MissingRequiredField,
    UnresolvedIdentity,
)
from debianize.domain.model.atoms import Atoms, BinaryField, FieldState, SourceField, mapping_of
from debianize.domain.model.debian import ChangelogEntry, CopyrightDescription, InstallRule
from debianize.domain.naming import (
    DebianPackageName,
    OverrideTable,
    PackageType,
    checked,
    default_base,
    map_name,
    parse_package_name,
)
from debianize.domain.policy import SourceFormat, parse_maintainer
from debianize.domain.relations import (
    ConstraintOp,
    Relation,
    VersionConstraint,
    union_relations,
    unversioned,
    without_names,
    without_upper_bounds,
)
from debianize.domain.versions import debian_version, sorts_after, version_epoch

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from debianize.domain.model.debian import Executable
    from debianize.domain.model.description import PackageDescription
    from debianize.domain.model.primitives import BinPkgName, DebBase
    from debianize.domain.policy import PolicyTables
    from debianize.domain.relations import Relations

log = getLogger(__name__)

HACKAGE_URL: Final = "https://hackage.haskell.org/package"
GENERATED_CHANGE: Final = "Debianization generated by debianize"
CDBS_DEBHELPER: Final = "include /usr/share/cdbs/1/rules/debhelper.mk"
CDBS_HLIBRARY: Final = "include /usr/share/cdbs/1/class/hlibrary.mk"

_LIBRARY_TYPES: Final = (
    PackageType.DEVELOPMENT,
    PackageType.PROFILING,
    PackageType.DOCUMENTATION,
)
_SYNOPSIS_SUFFIXES: Final = {
    PackageType.PROFILING: "; profiling libraries",
    PackageType.DOCUMENTATION: "; documentation",
    PackageType.UTILITIES: "; utilities",
}
_DESCRIPTION_TRAILERS: Final = {
    PackageType.DEVELOPMENT: "This package provides a library for the Haskell programming language.",
    PackageType.PROFILING: (
        "This package provides a library for the Haskell programming language, "
        "compiled for profiling."
    ),
    PackageType.DOCUMENTATION: (
        "This package provides the documentation for a library for the Haskell "
        "programming language."
    ),
    PackageType.UTILITIES: "This package provides the executables shipped with the library.",
}


class _Fatal(Exception):  # noqa: N818
    def __init__(self, error: DebianizeError) -> None:
        self.error = error
        super().__init__(str(error))


@dataclass(frozen=True, slots=True)
class FinalizeResult:
    """Outcome of ``finalize``: the finalized atoms or the accumulated errors."""

    atoms: Atoms
    errors: tuple[DebianizeError, ...] = ()
    fatal: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> Atoms:
        if self.errors:
            raise FinalizationError(self.errors, fatal=self.fatal)
        return self.atoms


@dataclass(slots=True)
class _Context:
    atoms: Atoms
    policy: PolicyTables
    errors: list[DebianizeError] = field(default_factory=list[DebianizeError])
    _translations: dict[PackageType, Relations] = field(default_factory=dict)

    def compute(self, target: SourceField, value: Any) -> None:
        if value is None:
            return
        if self.atoms.set_if_absent(target, value, state=FieldState.COMPUTED):
            log.debug("Computed %s = %r", target, value)

    def compute_binary(self, target: BinaryField, binary: BinPkgName, value: Any) -> None:
        if value is None or value == ():
            return
        if self.atoms.set_if_absent(target, value, binary=binary, state=FieldState.COMPUTED):
            log.debug("Computed %s of %s = %r", target, binary, value)

    def fail(self, error: DebianizeError) -> None:
        log.debug("Finalization error: %s", error)
        self.errors.append(error)

    @property
    def description(self) -> PackageDescription | None:
        return self.atoms.get(SourceField.PACKAGE_DESCRIPTION)

    def require_description(self, target: SourceField) -> PackageDescription:
        description = self.description
        if description is None:
            raise _Fatal(MissingRequiredField(str(target), reason="no package description"))
        return description

    @property
    def overrides(self) -> OverrideTable:
        builtin = OverrideTable(splits=self.policy.version_splits)
        supplied: OverrideTable | None = self.atoms.get(SourceField.NAME_OVERRIDES)
        return builtin if supplied is None else builtin.amend(supplied)

    def merged(self, target: SourceField, builtin: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType({**builtin, **mapping_of(self.atoms, target)})

    @property
    def excluded(self) -> frozenset[str]:
        missing: frozenset[str] = self.atoms.get(SourceField.MISSING_DEPENDENCIES, default=frozenset())
        return missing | self.policy.bundled_packages

    @property
    def base(self) -> DebBase:
        base: DebBase | None = self.atoms.get(SourceField.DEB_BASE)
        if base is None:
            base = parse_package_name(self.atoms.get(SourceField.SOURCE_NAME)).base
        return base

    @property
    def binaries(self) -> tuple[BinPkgName, ...]:
        return self.atoms.get(SourceField.BINARIES, default=())

    @property
    def profiling(self) -> bool:
        return not self.atoms.get(SourceField.NO_PROFILING, default=False)

    @property
    def documentation(self) -> bool:
        return not self.atoms.get(SourceField.NO_DOCUMENTATION, default=False)

    @property
    def utilities_package(self) -> BinPkgName:
        named: BinPkgName | None = self.atoms.get(SourceField.UTILITIES_PACKAGE)
        return named or DebianPackageName(self.base, PackageType.UTILITIES).name

    def package_type(self, binary: BinPkgName) -> PackageType:
        return self.atoms.get(BinaryField.PACKAGE_TYPE, binary, default=PackageType.EXECUTABLE)

    def translated(self, package_type: PackageType) -> Relations:
        """Library dependencies of the upstream package, for one package flavour."""

        if package_type not in self._translations:
            description = self.description
            dependencies = () if description is None else description.build_depends()
            try:
                relations = translate_dependencies(
                    dependencies,
                    package_type,
                    self.overrides,
                    epochs=self.merged(SourceField.EPOCHS, self.policy.epochs),
                    excluded=self.excluded,
                )
            except UnresolvedIdentity as exc:
                raise _Fatal(exc) from exc
            if self.atoms.get(SourceField.OMIT_LT_DEPS, default=False):
                relations = without_upper_bounds(relations)
            self._translations[package_type] = relations
        return self._translations[package_type]

    def extra_libraries(self) -> Relations:
        description = self.description
        if description is None:
            return ()
        return extra_library_relations(
            description.extra_libraries(),
            self.merged(SourceField.EXTRA_LIB_MAP, self.policy.extra_lib_map),
            excluded=self.excluded,
        )


def finalize(atoms: Atoms, policy: PolicyTables) -> FinalizeResult:
    """Derive every missing field of ``atoms``; the input is never modified.

    On success the returned atoms are frozen. On failure they hold whatever
    was derived before the run stopped.
    """

    context = _Context(atoms=atoms.thaw(), policy=policy)
    for step in _STEPS:
        try:
            step(context)
        except _Fatal as exc:
            context.fail(exc.error)
            log.warning("Finalization aborted: %s", exc.error)
            return FinalizeResult(atoms=context.atoms, errors=tuple(context.errors), fatal=True)

    if context.errors:
        log.warning("Finalization finished with %s error(s)", len(context.errors))
        return FinalizeResult(atoms=context.atoms, errors=tuple(context.errors))
    log.info(
        "Finalized %s %s: %s",
        context.atoms.get(SourceField.SOURCE_NAME),
        context.atoms.get(SourceField.VERSION),
        ", ".join(context.binaries),
    )
    return FinalizeResult(atoms=context.atoms.freeze())


def _source_name(context: _Context) -> None:
    description = context.description
    if description is not None and not context.atoms.is_set(SourceField.DEB_BASE):
        # the base every binary and reverse dependency name is derived from
        try:
            package = map_name(description.identity, context.overrides, PackageType.SOURCE)
        except UnresolvedIdentity as exc:
            raise _Fatal(exc) from exc
        context.compute(SourceField.DEB_BASE, package.base)

    if context.atoms.is_set(SourceField.SOURCE_NAME):
        return
    description = context.require_description(SourceField.SOURCE_NAME)
    package_type = PackageType.SOURCE if description.library is not None else PackageType.EXECUTABLE
    try:
        source = checked(DebianPackageName(context.base, package_type), description.identity)
    except UnresolvedIdentity as exc:
        raise _Fatal(exc) from exc
    context.compute(SourceField.SOURCE_NAME, source.name)


def _version(context: _Context) -> None:
    if context.atoms.is_set(SourceField.VERSION):
        return
    description = context.require_description(SourceField.VERSION)
    upstream = description.identity.version
    if not upstream:
        raise _Fatal(MissingRequiredField(str(SourceField.VERSION), reason="upstream version unknown"))

    epoch = context.merged(SourceField.EPOCHS, context.policy.epochs).get(description.name)
    revision: str | None = context.atoms.get(SourceField.REVISION, default=context.policy.revision)
    if context.atoms.get(SourceField.SOURCE_FORMAT) is SourceFormat.NATIVE:
        revision = None
    version = debian_version(upstream, epoch=epoch, revision=revision)

    previous: str | None = context.atoms.get(SourceField.PREVIOUS_VERSION)
    if previous is not None and sorts_after(previous, version):
        # reuse the previous epoch when that is enough
        retried = max(epoch or 0, version_epoch(previous))
        version = debian_version(upstream, epoch=retried, revision=revision)
        if sorts_after(previous, version):
            retried += 1
            version = debian_version(upstream, epoch=retried, revision=revision)
        log.info("Version %s sorts before %s; using epoch %s", upstream, previous, retried)
    context.compute(SourceField.VERSION, version)


def _maintainer(context: _Context) -> None:
    if context.atoms.is_set(SourceField.MAINTAINER):
        return
    description = context.description
    maintainer = None
    if description is not None and description.maintainer:
        try:
            maintainer = parse_maintainer(description.maintainer)
        except ValueError:
            log.debug("Ignoring unparsable upstream maintainer %r", description.maintainer)
    maintainer = maintainer or context.policy.default_maintainer
    if maintainer is None:
        context.fail(MissingRequiredField(str(SourceField.MAINTAINER)))
        return
    context.compute(SourceField.MAINTAINER, maintainer)


def _source_defaults(context: _Context) -> None:
    policy = context.policy
    description = context.description
    context.compute(SourceField.SECTION, policy.section_for(PackageType.SOURCE))
    context.compute(SourceField.PRIORITY, policy.default_priority)
    if description is not None:
        context.compute(
            SourceField.HOMEPAGE,
            description.homepage or f"{HACKAGE_URL}/{description.name}",
        )
    context.compute(SourceField.SOURCE_FORMAT, policy.source_format)
    context.compute(SourceField.STANDARDS_VERSION, policy.standards_version)
    context.compute(SourceField.COMPAT, policy.compat_level)


def _binaries(context: _Context) -> None:
    executables: Mapping[BinPkgName, Executable] = mapping_of(context.atoms, SourceField.EXECUTABLES)
    if not context.atoms.is_set(SourceField.BINARIES):
        derived = _derive_binaries(context, executables)
        if not derived:
            context.fail(
                MissingRequiredField(
                    str(SourceField.BINARIES),
                    reason="no library or executable components",
                )
            )
            return
        for binary, package_type in derived.items():
            context.compute_binary(BinaryField.PACKAGE_TYPE, binary, package_type)
        context.compute(SourceField.BINARIES, tuple(derived))

    for binary in context.binaries:
        if binary in executables:
            package_type = PackageType.EXECUTABLE
        elif binary == context.atoms.get(SourceField.UTILITIES_PACKAGE):
            package_type = PackageType.UTILITIES
        else:
            package_type = parse_package_name(binary).package_type
        context.compute_binary(BinaryField.PACKAGE_TYPE, binary, package_type)

    for binary in sorted(context.atoms.binary_names() - frozenset(context.binaries)):
        context.fail(
            InconsistentOverride(
                f"Fields {', '.join(sorted(str(name) for name in context.atoms.binary_fields(binary)))} "
                f"are set for {binary}, which is not a binary package of "
                f"{context.atoms.get(SourceField.SOURCE_NAME)}"
            )
        )


def _derive_binaries(
    context: _Context,
    executables: Mapping[BinPkgName, Executable],
) -> dict[BinPkgName, PackageType]:
    description = context.description
    derived: dict[BinPkgName, PackageType] = {}
    if description is None:
        return derived

    base = context.base
    if description.library is not None:
        for package_type in _LIBRARY_TYPES:
            if package_type is PackageType.PROFILING and not context.profiling:
                continue
            if package_type is PackageType.DOCUMENTATION and not context.documentation:
                continue
            derived[DebianPackageName(base, package_type).name] = package_type

    explicit = {executable.name for executable in executables.values()}
    remaining = [component for component in description.executables if component.name not in explicit]
    if remaining and description.library is not None:
        derived[context.utilities_package] = PackageType.UTILITIES
    else:
        for component in remaining:
            package = checked(
                DebianPackageName(default_base(component.name), PackageType.EXECUTABLE),
                component.name,
            )
            derived[package.name] = PackageType.EXECUTABLE
    for binary in executables:
        derived.setdefault(binary, PackageType.EXECUTABLE)
    return derived


def _binary_fields(context: _Context) -> None:
    policy = context.policy
    binaries = context.binaries
    for binary in binaries:
        package_type = context.package_type(binary)
        context.compute_binary(BinaryField.ARCHITECTURE, binary, policy.architecture_for(package_type))
        context.compute_binary(BinaryField.SECTION, binary, policy.section_for(package_type))
        _binary_description(context, binary, package_type)

        extra: Relations = context.atoms.get(BinaryField.EXTRA_DEPENDS, binary, default=())
        depends = union_relations(_inferred_depends(context, package_type), extra)
        context.compute_binary(BinaryField.DEPENDS, binary, without_names(depends, context.excluded))
        if package_type is PackageType.DOCUMENTATION:
            context.compute_binary(
                BinaryField.RECOMMENDS, binary, context.translated(PackageType.DOCUMENTATION)
            )
        if package_type is PackageType.DEVELOPMENT:
            siblings = [
                ((Relation(other),),)
                for other in binaries
                if context.package_type(other) in {PackageType.PROFILING, PackageType.DOCUMENTATION}
            ]
            context.compute_binary(BinaryField.SUGGESTS, binary, union_relations(*siblings))


def _binary_description(context: _Context, binary: BinPkgName, package_type: PackageType) -> None:
    if context.atoms.is_set(BinaryField.DESCRIPTION, binary):
        return
    description = context.description
    if description is None:
        context.fail(
            MissingRequiredField(
                str(BinaryField.DESCRIPTION), binary=binary, reason="no package description"
            )
        )
        return
    headline = (description.synopsis or f"Haskell package {description.name}").strip()
    synopsis = headline + _SYNOPSIS_SUFFIXES.get(package_type, "")
    paragraphs = [description.description.strip()] if description.description else []
    trailer = _DESCRIPTION_TRAILERS.get(package_type)
    if trailer is not None:
        paragraphs.append(trailer)
    context.compute_binary(
        BinaryField.DESCRIPTION,
        binary,
        "\n".join([synopsis, "\n\n".join(paragraphs)]) if paragraphs else synopsis,
    )


def _inferred_depends(context: _Context, package_type: PackageType) -> Relations:
    match package_type:
        case PackageType.DEVELOPMENT:
            return union_relations(
                context.translated(package_type),
                context.extra_libraries(),
                context.atoms.get(SourceField.EXTRA_DEV_DEPENDS, default=()),
            )
        case PackageType.PROFILING:
            if context.atoms.get(SourceField.OMIT_PROF_VERSION_DEPS, default=False):
                return unversioned(context.translated(package_type))
            return context.translated(package_type)
        case _:
            return ()


def _build_depends(context: _Context) -> None:
    description = context.description
    if description is None:
        return
    toolchain = context.policy.toolchain
    compat = context.atoms.get(SourceField.COMPAT, default=context.policy.compat_level)
    has_library = description.library is not None

    groups: list[Relations] = [
        (
            (Relation(toolchain.debhelper, VersionConstraint(ConstraintOp.LATER_EQUAL, str(compat))),),
            (Relation(toolchain.cdbs),),
            (Relation(toolchain.compiler),),
            (_versioned(toolchain.devscripts, toolchain.devscripts_version),),
        ),
        context.translated(PackageType.DEVELOPMENT),
        tool_relations(
            description.build_tools(),
            context.merged(SourceField.EXEC_MAP, context.policy.exec_map),
            excluded=context.excluded,
        ),
        context.extra_libraries(),
        context.atoms.get(SourceField.EXTRA_BUILD_DEPENDS, default=()),
    ]
    if has_library and context.profiling:
        groups.append(((Relation(toolchain.profiling_compiler),),))
        groups.append(context.translated(PackageType.PROFILING))
    context.compute(SourceField.BUILD_DEPENDS, without_names(union_relations(*groups), context.excluded))

    if has_library and context.documentation:
        indep = union_relations(
            ((Relation(toolchain.documentation_compiler),),),
            context.translated(PackageType.DOCUMENTATION),
        )
        context.compute(SourceField.BUILD_DEPENDS_INDEP, without_names(indep, context.excluded))


def _versioned(name: str, version: str | None) -> Relation:
    if version is None:
        return Relation(name)
    return Relation(name, VersionConstraint(ConstraintOp.LATER_EQUAL, version))


def _license(context: _Context) -> None:
    description = context.description
    if not context.atoms.is_set(SourceField.LICENSE):
        if description is None or not description.license:
            context.fail(MissingRequiredField(str(SourceField.LICENSE)))
        else:
            license_ = context.policy.license_for(description.license)
            if not license_.known:
                log.warning("Unknown license %r is copied verbatim", description.license)
            context.compute(SourceField.LICENSE, license_)

    if context.atoms.is_set(SourceField.COPYRIGHT):
        return
    license_ = context.atoms.get(SourceField.LICENSE)
    if license_ is None or description is None:
        context.fail(MissingRequiredField(str(SourceField.COPYRIGHT), reason="license unknown"))
        return
    holders = tuple(
        holder.strip()
        for holder in (description.copyright or description.author or "").splitlines()
        if holder.strip()
    )
    context.compute(
        SourceField.COPYRIGHT,
        CopyrightDescription(
            upstream_name=description.name,
            license=license_,
            holders=holders,
            source=context.atoms.get(SourceField.HOMEPAGE),
        ),
    )


def _install_rules(context: _Context) -> None:
    description = context.description
    executables: Mapping[BinPkgName, Executable] = mapping_of(context.atoms, SourceField.EXECUTABLES)
    rules: list[InstallRule] = [
        InstallRule(binary, executable.build_path, executable.destination)
        for binary, executable in executables.items()
    ]
    if description is not None:
        explicit = {executable.name for executable in executables.values()}
        utilities = [b for b in context.binaries if context.package_type(b) is PackageType.UTILITIES]
        for component in description.executables:
            if component.name in explicit:
                continue
            path = f"dist-ghc/build/{component.name}/{component.name}"
            if utilities:
                rules.append(InstallRule(utilities[0], path, "usr/bin"))
                continue
            binary = default_base(component.name)
            if binary in context.binaries:
                rules.append(InstallRule(binary, path, "usr/bin"))
    rules.extend(context.atoms.get(SourceField.EXTRA_INSTALL_RULES, default=()))
    context.compute(SourceField.INSTALL_RULES, tuple(dict.fromkeys(rules)) or None)


def _rules(context: _Context) -> None:
    description = context.description
    lines = ["#!/usr/bin/make -f", ""]
    if description is not None:
        lines.append(f"DEB_CABAL_PACKAGE = {context.base}")
        if not context.profiling:
            lines.append("DEB_ENABLE_PROFILING = no")
        lines.append("")
    lines.extend([CDBS_DEBHELPER, CDBS_HLIBRARY])
    context.compute(SourceField.RULES_HEAD, "\n".join(lines))


def _changelog(context: _Context) -> None:
    description = context.description
    version: str | None = context.atoms.get(SourceField.VERSION)
    if not context.atoms.is_set(SourceField.CHANGELOG) and version is not None:
        previous: tuple[ChangelogEntry, ...] = context.atoms.get(
            SourceField.PREVIOUS_CHANGELOG, default=()
        )
        if previous and previous[0].version == version:
            context.compute(SourceField.CHANGELOG, previous)
        else:
            entry = ChangelogEntry(
                package=context.atoms.get(SourceField.SOURCE_NAME),
                version=version,
                maintainer=str(context.atoms.get(SourceField.MAINTAINER, default="")),
                changes=(GENERATED_CHANGE,),
            )
            context.compute(SourceField.CHANGELOG, (entry, *previous))

    if description is not None:
        context.compute(
            SourceField.WATCH,
            "version=4\n"
            f"{HACKAGE_URL}/{description.name}/distro-monitor "
            r".*-([0-9\.]+)\.(?:zip|tgz|tbz|txz|(?:tar\.(?:gz|bz2|xz)))",
        )


_STEPS: Final[tuple[Callable[[_Context], None], ...]] = (
    _source_name,
    _version,
    _maintainer,
    _source_defaults,
    _binaries,
    _binary_fields,
    _build_depends,
    _license,
    _install_rules,
    _rules,
    _changelog,
)
