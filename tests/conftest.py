from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from debianize.config import load_default_policy_tables
from debianize.config.settings import EMAIL_ENV, EXTRA_ARGUMENTS_ENV, FULLNAME_ENV, POLICY_FILE_ENV
from tests.support.packages import make_description

if TYPE_CHECKING:
    from pathlib import Path

    from debianize.domain.model.description import PackageDescription
    from debianize.domain.policy import PolicyTables


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (POLICY_FILE_ENV, EXTRA_ARGUMENTS_ENV, EMAIL_ENV, FULLNAME_ENV):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def policy() -> PolicyTables:
    return load_default_policy_tables()


@pytest.fixture
def mylib() -> PackageDescription:
    return make_description()


@pytest.fixture
def mylib_manifest(tmp_path: Path) -> Path:
    path = tmp_path / "mylib.json"
    path.write_text(
        json.dumps(
            {
                "name": "mylib",
                "version": "1.3.0",
                "license": "BSD-3",
                "synopsis": "An example library",
                "library": {"build-depends": ["base >=4 && <5"]},
            }
        ),
        encoding="utf-8",
    )
    return path
