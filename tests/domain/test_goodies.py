from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from debianize.domain import goodies
from debianize.domain.model.atoms import Atoms, BinaryField, FieldState, SourceField
from debianize.domain.model.debian import Executable, InstallKind, InstallRule
from debianize.domain.model.primitives import PackageIdentity
from debianize.domain.naming import map_name
from debianize.domain.policy import Maintainer
from debianize.domain.relations import parse_relations, relation_set

if TYPE_CHECKING:
    from debianize.domain.policy import PolicyTables


def _apply(*customizations: goodies.Customization) -> Atoms:
    return goodies.apply_customizations(Atoms(), customizations)


def _dev_name(atoms: Atoms, name: str, version: str) -> str:
    return map_name(PackageIdentity(name, version), atoms.get(SourceField.NAME_OVERRIDES)).name


def test_first_customization_wins() -> None:
    atoms = _apply(goodies.set_revision("2"), goodies.set_revision("3"))

    assert atoms.get(SourceField.REVISION) == "2"
    assert atoms.state(SourceField.REVISION) is FieldState.USER_SUPPLIED


def test_apply_customizations_leaves_input_untouched() -> None:
    original = Atoms()

    result = goodies.apply_customizations(original, [goodies.no_profiling_library()])

    assert result.get(SourceField.NO_PROFILING) is True
    assert not original.is_set(SourceField.NO_PROFILING)


def test_map_cabal_by_name_and_by_identity() -> None:
    atoms = _apply(
        goodies.map_cabal("foo", "bar"),
        goodies.map_cabal("baz", "baz-legacy", "0.9"),
    )

    assert _dev_name(atoms, "foo", "1.0") == "libghc-bar-dev"
    assert _dev_name(atoms, "baz", "0.9") == "libghc-baz-legacy-dev"
    assert _dev_name(atoms, "baz", "1.0") == "libghc-baz-dev"


def test_split_cabal_extends_the_policy_table(policy: PolicyTables) -> None:
    atoms = _apply(goodies.split_cabal("parsec", "parsec1", "2", policy=policy))

    assert _dev_name(atoms, "parsec", "1.5") == "libghc-parsec1-dev"
    assert _dev_name(atoms, "parsec", "2.5") == "libghc-parsec2-dev"
    assert _dev_name(atoms, "parsec", "3.1") == "libghc-parsec3-dev"


def test_split_cabal_calls_combine() -> None:
    atoms = _apply(
        goodies.split_cabal("foo", "foo1", "2"),
        goodies.split_cabal("foo", "foo2", "3"),
    )

    assert _dev_name(atoms, "foo", "1.0") == "libghc-foo1-dev"
    assert _dev_name(atoms, "foo", "2.5") == "libghc-foo2-dev"
    assert _dev_name(atoms, "foo", "3.5") == "libghc-foo-dev"


def test_split_cabal_rejects_invalid_boundaries() -> None:
    with pytest.raises(ValueError, match="Invalid upstream version"):
        goodies.split_cabal("foo", "foo1", "not a version")


def test_set_epoch() -> None:
    atoms = _apply(goodies.set_epoch("HaXml", 1), goodies.set_epoch("HaXml", 2))

    assert dict(atoms.get(SourceField.EPOCHS)) == {"HaXml": 1}
    with pytest.raises(ValueError, match="non-negative"):
        goodies.set_epoch("HaXml", -1)


def test_add_depends_accepts_control_syntax() -> None:
    atoms = _apply(
        goodies.add_depends("libghc-mylib-dev", "libfoo1 (>= 2)"),
        goodies.add_depends("libghc-mylib-dev", parse_relations("libbar1")),
    )

    assert relation_set(atoms.get(BinaryField.EXTRA_DEPENDS, "libghc-mylib-dev")) == relation_set(
        parse_relations("libfoo1 (>= 2), libbar1")
    )


def test_add_build_depends_and_missing_dependencies_are_additive() -> None:
    atoms = _apply(
        goodies.add_build_depends("libz-dev"),
        goodies.add_build_depends("pkg-config"),
        goodies.missing_dependency("foo"),
        goodies.missing_dependency("bar", "libghc-baz-dev"),
    )

    assert relation_set(atoms.get(SourceField.EXTRA_BUILD_DEPENDS)) == relation_set(
        parse_relations("libz-dev, pkg-config")
    )
    assert atoms.get(SourceField.MISSING_DEPENDENCIES) == {"foo", "bar", "libghc-baz-dev"}


def test_do_executable() -> None:
    atoms = _apply(
        goodies.do_executable("mytool"),
        goodies.do_executable("other-tool", Executable("other", destination="usr/sbin")),
    )

    assert dict(atoms.get(SourceField.EXECUTABLES)) == {
        "mytool": Executable("mytool"),
        "other-tool": Executable("other", destination="usr/sbin"),
    }
    assert Executable("mytool").build_path == "dist-ghc/build/mytool/mytool"
    with pytest.raises(ValueError, match="Illegal binary package name"):
        goodies.do_executable("My_Tool")


def test_flags_and_maintainer() -> None:
    maintainer = Maintainer("Jane Doe", "jane@example.org")

    atoms = _apply(
        goodies.no_documentation_library(),
        goodies.set_maintainer(maintainer),
        goodies.set_field(BinaryField.SECTION, "devel", binary="mytool"),
    )

    assert atoms.get(SourceField.NO_DOCUMENTATION) is True
    assert atoms.get(SourceField.MAINTAINER) == maintainer
    assert atoms.get(BinaryField.SECTION, "mytool") == "devel"


def test_map_cabal_rejects_invalid_versions() -> None:
    with pytest.raises(ValueError, match="Invalid upstream version"):
        goodies.map_cabal("bar", "barx", "1.0-beta")


def test_install_helpers_build_rules() -> None:
    atoms = _apply(
        goodies.install("mytool", "man/mytool.1", "/usr/share/man/man1/"),
        goodies.install_to("mytool", "conf/mytool.conf", "/etc/mytool/config"),
        goodies.install_data("mytool", "data/words.txt", "/words.txt"),
        goodies.link("mytool", "/usr/bin/mytool", "usr/bin/mt"),
    )

    assert atoms.get(SourceField.EXTRA_INSTALL_RULES) == (
        InstallRule("mytool", "man/mytool.1", "usr/share/man/man1"),
        InstallRule("mytool", "conf/mytool.conf", "etc/mytool/config", InstallKind.FILE),
        InstallRule("mytool", "data/words.txt", "usr/share/mytool/words.txt", InstallKind.FILE),
        InstallRule("mytool", "usr/bin/mytool", "usr/bin/mt", InstallKind.LINK),
    )
    assert str(atoms.get(SourceField.EXTRA_INSTALL_RULES)[3]) == "mytool: usr/bin/mytool -> usr/bin/mt"


def test_install_helpers_validate_their_arguments() -> None:
    with pytest.raises(ValueError, match="Illegal binary package name"):
        goodies.install("My_Tool", "a", "usr/bin")
    with pytest.raises(ValueError, match="needs a source and a destination"):
        goodies.link("mytool", "usr/bin/mytool", "/")


def test_set_utilities_package() -> None:
    atoms = _apply(goodies.set_utilities_package("mylib-tools"), goodies.set_utilities_package("other"))

    assert atoms.get(SourceField.UTILITIES_PACKAGE) == "mylib-tools"
    with pytest.raises(ValueError, match="Illegal binary package name"):
        goodies.set_utilities_package("Tools")


def test_rules_fragments_accumulate_once() -> None:
    first = "override_dh_auto_test:\n\ttrue"
    second = "build/mylib-utils::\n\ttouch stamp\n"

    atoms = _apply(
        goodies.add_rules_fragment(first),
        goodies.add_rules_fragment(second),
        goodies.add_rules_fragment(first),
    )

    assert atoms.get(SourceField.RULES_FRAGMENTS) == f"{first}\n\n{second.strip()}"
    assert atoms.state(SourceField.RULES_FRAGMENTS) is FieldState.USER_SUPPLIED


def test_tight_dependency_fixup() -> None:
    atoms = _apply(
        goodies.tight_dependency_fixup(
            [("libghc-pandoc-dev", "pandoc-data"), ("libghc-citeproc-dev", "citeproc-data")],
            "pandoc",
        )
    )

    substvars = "debian/pandoc.substvars"
    assert atoms.get(SourceField.RULES_FRAGMENTS).splitlines() == [
        "binary-fixup/pandoc::",
        f"\techo -n 'haskell:Depends=' >> {substvars}",
        f"\t(dpkg-query -W -f='pandoc-data (=$${{Version}})' libghc-pandoc-dev) >> {substvars}",
        f"\techo -n ', ' >> {substvars}",
        f"\t(dpkg-query -W -f='citeproc-data (=$${{Version}})' libghc-citeproc-dev) >> {substvars}",
        f"\techo '' >> {substvars}",
        f"\techo -n 'haskell:Conflicts=' >> {substvars}",
        f"\t(dpkg-query -W -f='pandoc-data (>>$${{Version}})' libghc-pandoc-dev) >> {substvars}",
        f"\techo -n ', ' >> {substvars}",
        f"\t(dpkg-query -W -f='citeproc-data (>>$${{Version}})' libghc-citeproc-dev) >> {substvars}",
        f"\techo '' >> {substvars}",
    ]
    with pytest.raises(ValueError, match="at least one package pair"):
        goodies.tight_dependency_fixup([], "pandoc")
