from __future__ import annotations

from pathlib import Path

import pytest

from debianize.adapters.debian_dir import (
    DebianDirectoryError,
    format_description,
    parse_description,
    read_debianization,
    render_control,
    render_debianization,
    write_debianization,
)
from debianize.domain import goodies
from debianize.domain.model.atoms import BinaryField, FieldState, SourceField
from debianize.domain.model.debian import InstallRule
from debianize.domain.relations import parse_relations
from debianize.domain.validate import compare, validate, validate_against
from tests.support.packages import finalized, make_description

POSTINST = "#!/bin/sh\nset -e\n\n#DEBHELPER#"


def test_render_produces_every_debian_file() -> None:
    files = render_debianization(finalized())

    assert set(files) == {
        Path("control"),
        Path("rules"),
        Path("compat"),
        Path("source/format"),
        Path("changelog"),
        Path("copyright"),
        Path("watch"),
    }
    assert files[Path("compat")] == "13\n"
    assert files[Path("source/format")] == "3.0 (quilt)\n"
    assert files[Path("rules")].startswith("#!/usr/bin/make -f\n")
    assert "DEB_CABAL_PACKAGE = mylib" in files[Path("rules")]
    assert files[Path("changelog")].startswith("haskell-mylib (1.3.0-1) UNRELEASED; urgency=low")
    assert "License: BSD-3-clause" in files[Path("copyright")]


def test_control_carries_substitution_variables() -> None:
    control = render_control(finalized())

    paragraphs = control.split("\n\n")
    assert paragraphs[0].startswith("Source: haskell-mylib\n")
    assert "Standards-Version: 4.7.0" in paragraphs[0]
    assert "Package: libghc-mylib-dev" in paragraphs[1]
    assert "Depends: ${haskell:Depends}, ${misc:Depends}" in paragraphs[1]
    assert "Suggests: libghc-mylib-doc, libghc-mylib-prof, ${haskell:Suggests}" in paragraphs[1]
    assert "Architecture: all" in paragraphs[3]


def test_written_directory_reads_back_unchanged(tmp_path: Path) -> None:
    atoms = finalized()

    write_debianization(atoms, tmp_path)
    restored = read_debianization(tmp_path)

    assert compare(atoms, restored).is_empty
    assert validate(restored) == []
    assert validate_against(atoms, restored) == []
    assert restored.state(SourceField.SOURCE_NAME) is FieldState.USER_SUPPLIED


def test_scripts_and_install_files(tmp_path: Path) -> None:
    atoms = finalized(
        make_description("hello", "0.2", library=False, executables=("hello",)),
        goodies.set_field(BinaryField.POSTINST, POSTINST, binary="hello"),
    )

    written = write_debianization(atoms, tmp_path)

    assert tmp_path / "hello.postinst" in written
    assert (tmp_path / "hello.postinst").stat().st_mode & 0o777 == 0o755
    assert (tmp_path / "rules").stat().st_mode & 0o777 == 0o755
    assert (tmp_path / "compat").stat().st_mode & 0o111 == 0
    assert (tmp_path / "hello.install").read_text(encoding="utf-8") == (
        "dist-ghc/build/hello/hello usr/bin\n"
    )

    restored = read_debianization(tmp_path)
    assert restored.get(BinaryField.POSTINST, "hello") == POSTINST
    assert restored.get(SourceField.INSTALL_RULES) == (
        InstallRule("hello", "dist-ghc/build/hello/hello", "usr/bin"),
    )
    assert compare(atoms, restored).is_empty


@pytest.mark.parametrize(
    "description",
    [
        "A short synopsis",
        "Synopsis\nFirst paragraph line.\n\nSecond paragraph.",
        "Synopsis\n  indented code\n\n\nafter two blanks",
    ],
)
def test_description_layout_round_trips(description: str) -> None:
    formatted = format_description(description)

    assert all(line.startswith(" ") for line in formatted.splitlines()[1:])
    assert parse_description(formatted) == description


def test_missing_control_file(tmp_path: Path) -> None:
    with pytest.raises(DebianDirectoryError, match="No control file"):
        read_debianization(tmp_path)


@pytest.mark.parametrize(
    ("name", "content", "message"),
    [
        ("control", "Package: orphan\n", "no source paragraph"),
        ("compat", "thirteen\n", "Invalid compat level"),
        ("changelog", "not a changelog\n", "Invalid changelog"),
    ],
)
def test_malformed_files_are_rejected(tmp_path: Path, name: str, content: str, message: str) -> None:
    write_debianization(finalized(), tmp_path)
    (tmp_path / name).write_text(content, encoding="utf-8")

    with pytest.raises(DebianDirectoryError, match=message):
        read_debianization(tmp_path)


def test_rules_fragments_follow_the_last_include(tmp_path: Path) -> None:
    write_debianization(finalized(), tmp_path)
    rules = tmp_path / "rules"
    rules.write_text(
        rules.read_text(encoding="utf-8") + "\noverride_dh_auto_test:\n\ttrue\n",
        encoding="utf-8",
    )

    restored = read_debianization(tmp_path)

    assert restored.get(SourceField.RULES_FRAGMENTS) == "override_dh_auto_test:\n\ttrue"
    assert restored.get(SourceField.RULES_HEAD).endswith("hlibrary.mk")


def test_links_and_file_installs_round_trip(tmp_path: Path) -> None:
    atoms = finalized(
        make_description(executables=("mytool",)),
        goodies.install_data("mylib-utils", "data/words.txt", "words.txt"),
        goodies.link("mylib-utils", "usr/bin/mytool", "usr/bin/mt"),
    )

    write_debianization(atoms, tmp_path)

    assert (tmp_path / "mylib-utils.links").read_text(encoding="utf-8") == "usr/bin/mytool usr/bin/mt\n"
    rules = (tmp_path / "rules").read_text(encoding="utf-8")
    assert rules.endswith(
        "binary-fixup/mylib-utils::\n"
        "\tinstall -Dp data/words.txt debian/mylib-utils/usr/share/mylib-utils/words.txt\n"
    )
    restored = read_debianization(tmp_path)
    assert set(restored.get(SourceField.INSTALL_RULES)) == set(atoms.get(SourceField.INSTALL_RULES))
    assert not restored.is_set(SourceField.RULES_FRAGMENTS)
    assert compare(atoms, restored).is_empty


def _control_only(tmp_path: Path, depends: str) -> Path:
    (tmp_path / "control").write_text(
        f"Source: haskell-mylib\n\nPackage: libghc-mylib-dev\nArchitecture: any\nDepends: {depends}\n",
        encoding="utf-8",
    )
    return tmp_path


def test_obsolete_relation_operators_are_read_inclusively(tmp_path: Path) -> None:
    restored = read_debianization(_control_only(tmp_path, "libfoo (< 2.0), libbar (> 1.0)"))

    assert restored.get(BinaryField.DEPENDS, "libghc-mylib-dev") == parse_relations(
        "libfoo (<= 2.0), libbar (>= 1.0)"
    )


def test_unknown_relation_operator_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(DebianDirectoryError, match="Invalid Depends"):
        read_debianization(_control_only(tmp_path, "libfoo (<> 2.0)"))
