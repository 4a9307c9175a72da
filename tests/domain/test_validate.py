from __future__ import annotations

from debianize.domain import goodies
from debianize.domain.errors import StaleOutput
from debianize.domain.model.atoms import Atoms, BinaryField, FieldState, SourceField
from debianize.domain.model.debian import InstallRule
from debianize.domain.relations import parse_relations
from debianize.domain.validate import ChangeKind, compare, describe, validate, validate_against
from tests.support.packages import finalized, make_description

DEV = "libghc-mylib-dev"
LIBRARY = (DEV, "libghc-mylib-prof", "libghc-mylib-doc")


def _edited(atoms: Atoms, *edits: tuple[object, ...]) -> Atoms:
    copy = atoms.thaw()
    for field, value, *binary in edits:
        copy.replace(field, value, binary=binary[0] if binary else None)  # type: ignore[arg-type]
    return copy


def test_finalized_output_has_no_violations() -> None:
    assert validate(finalized()) == []


def test_missing_source_name_is_reported() -> None:
    (violation,) = validate(Atoms())

    assert violation.field == "source"


def test_binary_not_derived_from_source_is_reported() -> None:
    atoms = _edited(
        finalized(),
        (SourceField.BINARIES, (*LIBRARY, "libghc-other-dev")),
    )

    violations = validate(atoms)

    assert [violation.binary for violation in violations] == ["libghc-other-dev"]
    assert "expected libghc-mylib-dev" in str(violations[0])


def test_duplicate_and_illegal_binaries_are_reported() -> None:
    atoms = _edited(finalized(), (SourceField.BINARIES, (*LIBRARY, DEV, "Bad_Name")))

    messages = [str(violation) for violation in validate(atoms)]

    assert any("declared 2 times" in message for message in messages)
    assert any("Illegal binary package name 'Bad_Name'" in message for message in messages)


def test_dangling_install_rule_is_reported() -> None:
    atoms = _edited(
        finalized(),
        (SourceField.INSTALL_RULES, (InstallRule("mylib-utils", "dist/mytool", "usr/bin"),)),
    )

    (violation,) = validate(atoms)

    assert violation.binary == "mylib-utils"
    assert violation.field == "install_rules"


def test_fields_for_undeclared_binaries_are_reported() -> None:
    atoms = _edited(finalized(), (BinaryField.SECTION, "misc", "mylib-extra"))

    (violation,) = validate(atoms)

    assert violation.binary == "mylib-extra"


def test_references_to_packages_this_source_does_not_build() -> None:
    atoms = finalized(
        make_description(),
        goodies.no_profiling_library(),
        goodies.add_depends(DEV, "libghc-mylib-prof"),
    )

    (violation,) = validate(atoms)

    assert violation.binary == DEV
    assert violation.field == "depends"


def test_explicitly_named_binaries_are_accepted() -> None:
    atoms = _edited(
        finalized(),
        (SourceField.BINARIES, (*LIBRARY, "mylib-extras")),
        (BinaryField.EXPLICIT_NAME, True, "mylib-extras"),
    )

    assert validate(atoms) == []


def test_compare_identical_is_empty() -> None:
    atoms = finalized()

    report = compare(atoms, atoms.thaw())

    assert report.is_empty
    assert report.format() == "No changes"
    assert report.stale_errors() == []


def test_compare_ignores_relation_order_and_states() -> None:
    atoms = finalized()
    reordered = atoms.thaw()
    build_depends = atoms.get(SourceField.BUILD_DEPENDS)
    reordered.replace(
        SourceField.BUILD_DEPENDS,
        tuple(reversed(build_depends)),
        state=FieldState.USER_SUPPLIED,
    )

    assert compare(atoms, reordered).is_empty


def test_diff_is_symmetric() -> None:
    old = finalized()
    new = _edited(
        old,
        (SourceField.SECTION, "devel"),
        (SourceField.UPLOADERS, ("Jane Doe <jane@example.org>",)),
        (BinaryField.DEPENDS, parse_relations("libfoo1"), DEV),
    )
    new.discard(SourceField.WATCH)

    forward = compare(old, new)
    backward = compare(new, old)

    mirrored = {
        ChangeKind.ADDED: ChangeKind.REMOVED,
        ChangeKind.REMOVED: ChangeKind.ADDED,
        ChangeKind.CHANGED: ChangeKind.CHANGED,
    }
    assert {(c.field, c.binary, c.kind) for c in forward.changes} == {
        (c.field, c.binary, mirrored[c.kind]) for c in backward.changes
    }
    assert {(c.field, c.binary, c.old, c.new) for c in forward.changes} == {
        (c.field, c.binary, c.new, c.old) for c in backward.changes
    }
    assert len(forward.changes) == 4


def test_diff_report_groups_and_formats_changes() -> None:
    old = finalized()
    new = _edited(old, (SourceField.SECTION, "devel"), (BinaryField.SECTION, "devel", DEV))

    report = compare(old, new)

    assert set(report.by_binary()) == {None, DEV}
    assert report.format().splitlines() == [
        "Source:",
        "  ~ section: haskell -> devel",
        f"Package {DEV}:",
        "  ~ section: haskell -> devel",
    ]
    stale = report.stale_errors()
    assert all(isinstance(error, StaleOutput) for error in stale)
    assert stale[1].binary == DEV


def test_describe_lists_every_emitted_field() -> None:
    atoms = finalized()

    report = describe(atoms)

    assert all(change.kind is ChangeKind.ADDED for change in report.changes)
    fields = {change.field for change in report.changes}
    assert SourceField.SOURCE_NAME in fields
    assert SourceField.NAME_OVERRIDES not in fields
    assert SourceField.PACKAGE_DESCRIPTION not in fields
    assert report.changes[0].field is SourceField.SOURCE_NAME


def test_validate_against_reports_name_mismatches() -> None:
    expected = finalized()
    actual = _edited(
        expected,
        (SourceField.SOURCE_NAME, "haskell-other"),
        (SourceField.BINARIES, (DEV, "libghc-mylib-extra")),
    )

    messages = [str(violation) for violation in validate_against(expected, actual)]

    assert messages == [
        "Source package name mismatch: expected haskell-mylib, found haskell-other",
        "Binary package libghc-mylib-doc is missing",
        "Binary package libghc-mylib-prof is missing",
        "Unexpected binary package libghc-mylib-extra",
    ]


def test_binary_names_derive_from_the_upstream_name_not_the_source_name() -> None:
    atoms = finalized(make_description("haskell-foo"))
    edited = _edited(
        atoms,
        (SourceField.BINARIES, (*atoms.get(SourceField.BINARIES), "libghc-foo-dev")),
    )

    (violation,) = validate(edited)

    assert atoms.get(SourceField.SOURCE_NAME) == "haskell-haskell-foo"
    assert violation.binary == "libghc-foo-dev"
    assert "expected libghc-haskell-foo-dev" in str(violation)
