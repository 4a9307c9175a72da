"""Debian package relations.

``Relations`` is a conjunction of groups, each group a disjunction of
alternatives, exactly as in a ``Depends:`` field. Parsing and rendering go
through python-debian's ``PkgRelation`` so the textual form matches what
dpkg tools produce.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from debian.deb822 import PkgRelation
from debian.debian_support import Version as DebianVersion

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable


class ConstraintOp(StrEnum):
    EARLIER = "<<"
    EARLIER_EQUAL = "<="
    EXACTLY = "="
    LATER_EQUAL = ">="
    LATER = ">>"


@dataclass(frozen=True, slots=True)
class VersionConstraint:
    op: ConstraintOp
    version: str

    def satisfied_by(self, version: str) -> bool:
        candidate = DebianVersion(version)
        bound = DebianVersion(self.version)
        match self.op:
            case ConstraintOp.EARLIER:
                return candidate < bound
            case ConstraintOp.EARLIER_EQUAL:
                return candidate <= bound
            case ConstraintOp.EXACTLY:
                return candidate == bound
            case ConstraintOp.LATER_EQUAL:
                return candidate >= bound
            case ConstraintOp.LATER:
                return candidate > bound

    def __str__(self) -> str:
        return f"({self.op} {self.version})"


@dataclass(frozen=True, slots=True)
class Relation:
    name: str
    constraint: VersionConstraint | None = None

    def __str__(self) -> str:
        if self.constraint is None:
            return self.name
        return f"{self.name} {self.constraint}"


type OrRelation = tuple[Relation, ...]
type Relations = tuple[OrRelation, ...]

_SUBSTVAR_RE: Final = re.compile(r"^\s*\$\{[^}]*\}\s*$")


# lower bounds sort before upper bounds on the same package
_OP_RANK: Final = {
    ConstraintOp.LATER_EQUAL: 1,
    ConstraintOp.LATER: 2,
    ConstraintOp.EXACTLY: 3,
    ConstraintOp.EARLIER_EQUAL: 4,
    ConstraintOp.EARLIER: 5,
}
_UPPER_BOUNDS: Final = frozenset({ConstraintOp.EARLIER, ConstraintOp.EARLIER_EQUAL})
# obsolete single-character operators, read the way dpkg reads them
_LEGACY_OPS: Final = {"<": ConstraintOp.EARLIER_EQUAL, ">": ConstraintOp.LATER_EQUAL}


type _RelationKey = tuple[str, int, tuple[int, DebianVersion | str]]


def _version_key(version: str) -> tuple[int, DebianVersion | str]:
    # substitution variables such as ${binary:Version} sort after real versions
    try:
        return (0, DebianVersion(version))
    except ValueError:
        return (1, version)


def _relation_key(relation: Relation) -> _RelationKey:
    if relation.constraint is None:
        return (relation.name, 0, (1, ""))
    return (relation.name, _OP_RANK[relation.constraint.op], _version_key(relation.constraint.version))


def _group_key(group: OrRelation) -> tuple[_RelationKey, ...]:
    return tuple(_relation_key(relation) for relation in group)


def normalize_relations(groups: Iterable[Iterable[Relation]]) -> Relations:
    """Deduplicate, drop absorbed groups and sort into a canonical order.

    A group whose alternatives are a strict superset of another group's is
    implied by it and removed. Alternative order inside a group is kept.
    """

    unique: dict[frozenset[Relation], OrRelation] = {}
    for group in groups:
        alternatives = tuple(dict.fromkeys(group))
        if not alternatives:
            continue
        unique.setdefault(frozenset(alternatives), alternatives)

    kept = [
        group
        for members, group in unique.items()
        if not any(other < members for other in unique)
    ]
    return tuple(sorted(kept, key=_group_key))


def union_relations(*relations: Relations) -> Relations:
    return normalize_relations(group for item in relations for group in item)


def relation_set(relations: Relations) -> frozenset[frozenset[Relation]]:
    return frozenset(frozenset(group) for group in relations)


def relation_names(relations: Relations) -> frozenset[str]:
    return frozenset(relation.name for group in relations for relation in group)


def without_names(relations: Relations, names: Collection[str]) -> Relations:
    """Drop alternatives naming ``names``; groups left empty disappear."""

    if not names:
        return relations
    kept: list[OrRelation] = []
    for group in relations:
        remaining = tuple(relation for relation in group if relation.name not in names)
        if remaining:
            kept.append(remaining)
    return tuple(kept)


def unversioned(relations: Relations) -> Relations:
    return normalize_relations(tuple(Relation(relation.name) for relation in group) for group in relations)


def without_upper_bounds(relations: Relations) -> Relations:
    """Drop ``<<`` and ``<=`` constraints.

    An upper-bounded alternative becomes unversioned; a group that only
    restated an upper bound of a package another group already requires is
    dropped.
    """

    required = {group[0].name for group in relations if len(group) == 1 and not _is_upper_bound(group[0])}
    kept: list[OrRelation] = []
    for group in relations:
        if len(group) == 1 and _is_upper_bound(group[0]) and group[0].name in required:
            continue
        kept.append(
            tuple(Relation(relation.name) if _is_upper_bound(relation) else relation for relation in group)
        )
    return normalize_relations(kept)


def _is_upper_bound(relation: Relation) -> bool:
    return relation.constraint is not None and relation.constraint.op in _UPPER_BOUNDS


def rename_in_relations(relations: Relations, old: str, new: str) -> Relations:
    if old not in relation_names(relations):
        return relations
    return tuple(
        tuple(
            Relation(new, relation.constraint) if relation.name == old else relation
            for relation in group
        )
        for group in relations
    )


def parse_relations(text: str) -> Relations:
    """Parse a relation field; substitution variables (``${misc:Depends}``) are skipped."""

    groups: list[OrRelation] = []
    plain = ",".join(item for item in text.split(",") if not _SUBSTVAR_RE.match(item))
    if not plain.strip():
        return ()
    for raw_group in PkgRelation.parse_relations(plain):
        alternatives: list[Relation] = []
        for raw in raw_group:
            name = str(raw["name"])
            if not name or name.startswith("${"):
                continue
            version = raw.get("version")
            constraint = None
            if version is not None:
                op, number = version
                constraint = VersionConstraint(_LEGACY_OPS.get(op) or ConstraintOp(op), number)
            alternatives.append(Relation(name, constraint))
        if alternatives:
            groups.append(tuple(alternatives))
    return tuple(groups)


def format_relations(relations: Relations) -> str:
    return PkgRelation.str(
        [
            [
                {
                    "name": relation.name,
                    "version": (
                        None
                        if relation.constraint is None
                        else (relation.constraint.op.value, relation.constraint.version)
                    ),
                }
                for relation in group
            ]
            for group in relations
        ]
    )
