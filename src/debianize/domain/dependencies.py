"""Translation of upstream dependency ranges into Debian relations.

An upstream dependency ``bar >=2.0 && <3.0`` may span several Debian
packages when ``bar`` has version splits. The range is cut along the split
segments; each piece becomes a conjunction of single-bound relations on the
package serving that segment, and the disjunction of all pieces is turned
into the conjunctive form a ``Depends:`` field expects.
"""

from __future__ import annotations

from itertools import product
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING

from debianize.domain.errors import UnresolvedIdentity
from debianize.domain.model.primitives import PackageIdentity
from debianize.domain.naming import DebianPackageName, PackageType, checked, default_base, split_range
from debianize.domain.relations import (
    ConstraintOp,
    Relation,
    VersionConstraint,
    normalize_relations,
    relation_names,
    union_relations,
    without_names,
)
from debianize.domain.versions import debian_version

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from debianize.domain.naming import OverrideTable
    from debianize.domain.relations import Relations
    from debianize.domain.versions import Bound, Dependency, Interval, VersionRange

log = getLogger(__name__)

_NO_EPOCHS: Mapping[str, int] = MappingProxyType({})


def translate_dependency(
    dependency: Dependency,
    package_type: PackageType,
    overrides: OverrideTable,
    epochs: Mapping[str, int] = _NO_EPOCHS,
) -> Relations:
    """Translate one upstream dependency for the ``package_type`` flavour.

    Raises ``UnresolvedIdentity`` when no Debian package can satisfy the
    range or a segment maps to an illegal name.
    """

    epoch = epochs.get(dependency.name)
    alternatives: list[tuple[Relation, ...]] = []
    for segment, base in split_range(dependency.name, overrides):
        accepted = segment.intersect(dependency.version_range)
        if accepted.is_empty:
            continue
        package = checked(
            DebianPackageName(base, package_type),
            PackageIdentity(dependency.name),
        )
        alternatives.extend(
            _interval_relations(package.name, interval, segment, epoch)
            for interval in accepted.intervals
        )

    if not alternatives:
        raise UnresolvedIdentity(
            str(dependency),
            f"no Debian package satisfies {dependency.version_range}",
        )
    # disjunction of conjunctions -> conjunction of disjunctions
    return normalize_relations(product(*alternatives))


def _interval_relations(
    name: str,
    interval: Interval,
    segment: VersionRange,
    epoch: int | None,
) -> tuple[Relation, ...]:
    if interval.is_point and interval.lower is not None:
        return (Relation(name, _constraint(ConstraintOp.EXACTLY, interval.lower, epoch)),)

    enclosing = next(
        (
            candidate
            for candidate in segment.intervals
            if candidate.intersect(interval) == interval
        ),
        None,
    )
    relations: list[Relation] = []
    lower = interval.lower
    if lower is not None and (enclosing is None or enclosing.lower != lower):
        op = ConstraintOp.LATER_EQUAL if lower.inclusive else ConstraintOp.LATER
        relations.append(Relation(name, _constraint(op, lower, epoch)))
    upper = interval.upper
    if upper is not None and (enclosing is None or enclosing.upper != upper):
        op = ConstraintOp.EARLIER_EQUAL if upper.inclusive else ConstraintOp.EARLIER
        relations.append(Relation(name, _constraint(op, upper, epoch)))
    return tuple(relations) or (Relation(name),)


def _constraint(op: ConstraintOp, bound: Bound, epoch: int | None) -> VersionConstraint:
    return VersionConstraint(op, debian_version(str(bound.version), epoch=epoch))


def translate_dependencies(
    dependencies: Iterable[Dependency],
    package_type: PackageType,
    overrides: OverrideTable,
    *,
    epochs: Mapping[str, int] = _NO_EPOCHS,
    excluded: Collection[str] = (),
) -> Relations:
    """Translate and union several dependencies, skipping ``excluded`` names.

    ``excluded`` matches either upstream names or the resulting Debian
    package names.
    """

    translated = [
        translate_dependency(dependency, package_type, overrides, epochs)
        for dependency in dependencies
        if dependency.name not in excluded
    ]
    relations = union_relations(*translated)
    suppressed = relation_names(relations) & frozenset(excluded)
    if suppressed:
        log.debug("Suppressing missing dependencies: %s", ", ".join(sorted(suppressed)))
    return normalize_relations(without_names(relations, suppressed))


def tool_relations(
    tools: Iterable[Dependency],
    exec_map: Mapping[str, Relations],
    *,
    excluded: Collection[str] = (),
) -> Relations:
    """Build tools map through ``exec_map``; unknown tools are named after themselves."""

    groups: list[Relations] = []
    for tool in tools:
        if tool.name in excluded:
            continue
        mapped = exec_map.get(tool.name)
        groups.append(mapped if mapped is not None else ((Relation(default_base(tool.name)),),))
    return without_names(union_relations(*groups), frozenset(excluded))


def extra_library_relations(
    libraries: Iterable[str],
    extra_lib_map: Mapping[str, Relations],
    *,
    excluded: Collection[str] = (),
) -> Relations:
    """Foreign C libraries map through ``extra_lib_map``, defaulting to ``lib<name>-dev``."""

    groups: list[Relations] = []
    for library in libraries:
        if library in excluded:
            continue
        mapped = extra_lib_map.get(library)
        groups.append(mapped if mapped is not None else ((Relation(f"lib{default_base(library)}-dev"),),))
    return without_names(union_relations(*groups), frozenset(excluded))
