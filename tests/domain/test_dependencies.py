from __future__ import annotations

import pytest

from debianize.domain.dependencies import (
    extra_library_relations,
    tool_relations,
    translate_dependencies,
    translate_dependency,
)
from debianize.domain.errors import UnresolvedIdentity
from debianize.domain.naming import OverrideTable, PackageType, VersionSplits
from debianize.domain.relations import (
    ConstraintOp,
    Relation,
    VersionConstraint,
    format_relations,
    parse_relations,
    relation_set,
)
from debianize.domain.versions import parse_dependency, parse_version

FOO_SPLIT = OverrideTable(
    splits={"foo": VersionSplits("foo", ((parse_version("1.0"), "foo1"),))},
)


def _relation(name: str, op: ConstraintOp, version: str) -> Relation:
    return Relation(name, VersionConstraint(op, version))


def test_bounded_range_becomes_two_single_bound_relations() -> None:
    relations = translate_dependency(
        parse_dependency("bar >=2.0 && <3.0"),
        PackageType.DEVELOPMENT,
        OverrideTable(),
    )

    assert relation_set(relations) == {
        frozenset({_relation("libghc-bar-dev", ConstraintOp.LATER_EQUAL, "2.0")}),
        frozenset({_relation("libghc-bar-dev", ConstraintOp.EARLIER, "3.0")}),
    }
    assert format_relations(relations) == "libghc-bar-dev (>= 2.0), libghc-bar-dev (<< 3.0)"


def test_unbounded_dependency_is_unversioned() -> None:
    relations = translate_dependency(parse_dependency("text"), PackageType.PROFILING, OverrideTable())

    assert relations == ((Relation("libghc-text-prof"),),)


def test_exact_version_uses_equals() -> None:
    relations = translate_dependency(parse_dependency("bar ==1.5"), PackageType.DEVELOPMENT, OverrideTable())

    assert relations == ((_relation("libghc-bar-dev", ConstraintOp.EXACTLY, "1.5"),),)


def test_range_spanning_a_split_becomes_alternatives() -> None:
    relations = translate_dependency(parse_dependency("foo >=0.5"), PackageType.DEVELOPMENT, FOO_SPLIT)

    assert relations == (
        (
            _relation("libghc-foo-dev", ConstraintOp.LATER_EQUAL, "0.5"),
            Relation("libghc-foo1-dev"),
        ),
    )


def test_range_inside_one_segment_uses_that_package_only() -> None:
    relations = translate_dependency(
        parse_dependency("foo >=1.2 && <2"),
        PackageType.DEVELOPMENT,
        FOO_SPLIT,
    )

    assert format_relations(relations) == "libghc-foo1-dev (>= 1.2), libghc-foo1-dev (<< 2)"


def test_segment_bounds_are_not_repeated() -> None:
    relations = translate_dependency(parse_dependency("foo <0.8"), PackageType.DEVELOPMENT, FOO_SPLIT)

    assert format_relations(relations) == "libghc-foo-dev (<< 0.8)"


def test_epochs_prefix_versions() -> None:
    relations = translate_dependency(
        parse_dependency("HaXml >=1.20"),
        PackageType.DEVELOPMENT,
        OverrideTable(),
        {"HaXml": 1},
    )

    assert format_relations(relations) == "libghc-haxml-dev (>= 1:1.20)"


def test_unsatisfiable_range_is_unresolved() -> None:
    with pytest.raises(UnresolvedIdentity, match="no Debian package satisfies"):
        translate_dependency(parse_dependency("bar -none"), PackageType.DEVELOPMENT, OverrideTable())


def test_illegal_name_is_unresolved() -> None:
    with pytest.raises(UnresolvedIdentity):
        translate_dependency(
            parse_dependency("bar"),
            PackageType.DEVELOPMENT,
            OverrideTable(names={"bar": "Not_Legal"}),
        )


def test_excluded_names_match_upstream_or_debian_names() -> None:
    dependencies = [parse_dependency(text) for text in ("base >=4", "bar >=2", "baz", "qux")]

    relations = translate_dependencies(
        dependencies,
        PackageType.DEVELOPMENT,
        OverrideTable(),
        excluded={"base", "libghc-baz-dev"},
    )

    assert format_relations(relations) == "libghc-bar-dev (>= 2), libghc-qux-dev"


def test_repeated_dependencies_are_merged() -> None:
    dependencies = [parse_dependency("bar >=2"), parse_dependency("bar >=2")]

    relations = translate_dependencies(dependencies, PackageType.DEVELOPMENT, OverrideTable())

    assert relations == ((_relation("libghc-bar-dev", ConstraintOp.LATER_EQUAL, "2"),),)


def test_build_tools_map_through_exec_map() -> None:
    exec_map = {"hsc2hs": parse_relations("ghc"), "happy": parse_relations("happy")}
    tools = [parse_dependency(text) for text in ("hsc2hs", "happy >=1.19", "My_Tool", "alex")]

    relations = tool_relations(tools, exec_map, excluded={"alex"})

    assert relation_set(relations) == relation_set(parse_relations("ghc, happy, my-tool"))


def test_extra_libraries_default_to_dev_packages() -> None:
    relations = extra_library_relations(
        ["z", "curl", "gmp"],
        {"z": parse_relations("zlib1g-dev")},
        excluded={"libgmp-dev"},
    )

    assert relation_set(relations) == relation_set(parse_relations("zlib1g-dev, libcurl-dev"))
