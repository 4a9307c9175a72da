from __future__ import annotations

from debianize.domain.relations import (
    ConstraintOp,
    Relation,
    VersionConstraint,
    format_relations,
    normalize_relations,
    parse_relations,
    relation_names,
    relation_set,
    rename_in_relations,
    union_relations,
    unversioned,
    without_names,
    without_upper_bounds,
)


def test_parse_relations_skips_substitution_variables() -> None:
    relations = parse_relations("libghc-bar-dev (>= 2.0), foo | bar, ${misc:Depends}")

    assert relations == (
        (Relation("libghc-bar-dev", VersionConstraint(ConstraintOp.LATER_EQUAL, "2.0")),),
        (Relation("foo"), Relation("bar")),
    )


def test_format_relations_matches_control_syntax() -> None:
    text = "libghc-bar-dev (>= 2.0), libghc-bar-dev (<< 3.0), foo | bar"

    assert format_relations(parse_relations(text)) == text


def test_normalize_removes_duplicates_and_absorbed_groups() -> None:
    a = Relation("a")
    b = Relation("b")

    normalized = normalize_relations([(b,), (a, b), (b,), (), (a, a)])

    assert normalized == ((a,), (b,))


def test_normalize_puts_lower_bounds_first() -> None:
    upper = Relation("bar", VersionConstraint(ConstraintOp.EARLIER, "3.0"))
    lower = Relation("bar", VersionConstraint(ConstraintOp.LATER_EQUAL, "2.0"))

    assert normalize_relations([(upper,), (lower,)]) == ((lower,), (upper,))


def test_union_is_order_insensitive() -> None:
    first = parse_relations("a, b (>= 1)")
    second = parse_relations("c, a")

    assert relation_set(union_relations(first, second)) == relation_set(union_relations(second, first))
    assert relation_names(union_relations(first, second)) == {"a", "b", "c"}


def test_without_names_drops_alternatives_and_empty_groups() -> None:
    relations = parse_relations("a | b, c, d (>= 1)")

    assert without_names(relations, {"a", "c"}) == parse_relations("b, d (>= 1)")
    assert without_names(relations, ()) is relations


def test_rename_in_relations_keeps_constraints() -> None:
    relations = parse_relations("old (>= 1.0) | other")

    assert rename_in_relations(relations, "old", "new") == parse_relations("new (>= 1.0) | other")
    assert rename_in_relations(relations, "missing", "new") is relations


def test_constraints_compare_with_epochs() -> None:
    constraint = VersionConstraint(ConstraintOp.LATER_EQUAL, "2.0")

    assert constraint.satisfied_by("1:0.5")
    assert not constraint.satisfied_by("1.9-1")
    assert VersionConstraint(ConstraintOp.EARLIER, "3.0").satisfied_by("3.0~rc1")
    assert str(constraint) == "(>= 2.0)"


def test_obsolete_single_character_operators_are_inclusive() -> None:
    assert parse_relations("a (< 2.0), b (> 1.0)") == parse_relations("a (<= 2.0), b (>= 1.0)")


def test_normalize_orders_versions_numerically() -> None:
    ten = (Relation("bar", VersionConstraint(ConstraintOp.EARLIER, "10.0")),)
    two = (Relation("bar", VersionConstraint(ConstraintOp.EARLIER, "2.0")),)

    assert normalize_relations([ten, two]) == (two, ten)


def test_normalize_accepts_substitution_variable_versions() -> None:
    pinned = (Relation("foo", VersionConstraint(ConstraintOp.EXACTLY, "${binary:Version}")),)
    exact = (Relation("foo", VersionConstraint(ConstraintOp.EXACTLY, "1.0")),)

    assert normalize_relations([pinned, exact, (Relation("foo"),)]) == ((Relation("foo"),), exact, pinned)


def test_without_upper_bounds() -> None:
    relations = parse_relations("a (>= 1.0), a (<< 2.0), b (<< 3.0), c (<= 1.0) | d (>= 2)")

    assert without_upper_bounds(relations) == parse_relations("a (>= 1.0), b, c | d (>= 2)")


def test_unversioned_collapses_duplicate_names() -> None:
    relations = parse_relations("a (>= 1.0), a (<< 2.0), b | c (= 1)")

    assert unversioned(relations) == parse_relations("a, b | c")
