from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from debianize.adapters.manifest import ManifestError, parse_package_description, read_manifest
from debianize.domain.model.description import ComponentKind
from debianize.domain.versions import parse_dependency

if TYPE_CHECKING:
    from pathlib import Path

TOML_MANIFEST = """
name = "hello"
version = "0.2.1"
license = "MIT"
synopsis = "   "

[[executables]]
name = "hello"
build-depends = ["base >=4 && <5", "text"]
build-tools = ["alex"]

[[executables]]
name = "hello-admin"
build_depends = ["text >=2"]
extra-libraries = ["z"]
"""


def test_read_json_manifest(mylib_manifest: Path) -> None:
    description = read_manifest(mylib_manifest)

    assert description.name == "mylib"
    assert description.identity.version == "1.3.0"
    assert description.license == "BSD-3"
    assert description.library is not None
    assert description.library.build_depends == (parse_dependency("base >=4 && <5"),)
    assert description.executables == ()


def test_read_toml_manifest_with_aliases(tmp_path: Path) -> None:
    path = tmp_path / "hello.toml"
    path.write_text(TOML_MANIFEST, encoding="utf-8")

    description = read_manifest(path)

    assert description.library is None
    assert [component.name for component in description.executables] == ["hello", "hello-admin"]
    assert all(component.kind is ComponentKind.EXECUTABLE for component in description.components)
    assert description.synopsis is None
    assert description.build_tools() == (parse_dependency("alex"),)
    assert description.extra_libraries() == ("z",)
    (base, text) = description.build_depends()
    assert base == parse_dependency("base >=4 && <5")
    assert text == parse_dependency("text >=2")


def test_unknown_keys_are_ignored() -> None:
    description = parse_package_description(
        {"name": " mylib ", "version": "1.0", "x-custom": True, "library": {}}
    )

    assert description.name == "mylib"
    assert description.library is not None


@pytest.mark.parametrize(
    "document",
    [
        {"version": "1.0"},
        {"name": "", "version": "1.0"},
        {"name": "mylib", "version": "one"},
        {"name": "mylib", "version": "1.0", "library": {"build-depends": ["base >=>4"]}},
    ],
)
def test_invalid_manifests_are_rejected(tmp_path: Path, document: dict[str, object]) -> None:
    path = tmp_path / "mylib.json"
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(ManifestError, match="Invalid manifest"):
        read_manifest(path)


def test_unreadable_and_malformed_manifests(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="Cannot read manifest"):
        read_manifest(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ManifestError, match="Cannot parse manifest"):
        read_manifest(broken)

    listing = tmp_path / "list.json"
    listing.write_text("[]", encoding="utf-8")
    with pytest.raises(ManifestError, match="must contain an object"):
        read_manifest(listing)
