"""Loading the versioned policy tables.

The tables ship as ``debianize/data/policy.toml``. ``DEBIANIZE_POLICY_FILE``
(or an explicit path) replaces the packaged file entirely.
"""

from __future__ import annotations

import tomllib
from functools import cache
from importlib import resources
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from debianize.domain.naming import PackageType, VersionSplits
from debianize.domain.policy import (
    BuildToolchain,
    Maintainer,
    PackageArchitectures,
    PackagePriority,
    PolicyTables,
    SourceFormat,
    parse_standards_version,
)
from debianize.domain.relations import parse_relations
from debianize.domain.versions import parse_version

from .errors import ConfigurationError, MissingConfigurationError
from .settings import get_settings

if TYPE_CHECKING:
    from pathlib import Path

    from debianize.domain.relations import Relations

POLICY_RESOURCE = "data/policy.toml"

log = getLogger(__name__)


class PolicyBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MaintainerModel(PolicyBaseModel):
    name: str
    email: str


class ToolchainModel(PolicyBaseModel):
    debhelper: str = "debhelper"
    devscripts: str = "haskell-devscripts"
    devscripts_version: str | None = None
    cdbs: str = "cdbs"
    compiler: str = "ghc"
    profiling_compiler: str = "ghc-prof"
    documentation_compiler: str = "ghc-doc"


class SplitModel(PolicyBaseModel):
    boundary: str
    base: str

    @field_validator("boundary")
    @classmethod
    def _check_boundary(cls, value: str) -> str:
        parse_version(value)
        return value


class VersionSplitModel(PolicyBaseModel):
    default: str
    splits: list[SplitModel] = Field(default_factory=list)


class PolicyDocument(PolicyBaseModel):
    """Schema of ``policy.toml``."""

    schema_version: Literal[1]
    policy_version: str
    standards_version: str
    compat_level: int = Field(ge=1)
    source_format: SourceFormat = SourceFormat.QUILT
    default_priority: PackagePriority = PackagePriority.OPTIONAL
    revision: str = "-1"
    default_maintainer: MaintainerModel | None = None
    toolchain: ToolchainModel = Field(default_factory=ToolchainModel)
    sections: dict[PackageType, str] = Field(default_factory=dict)
    architectures: dict[PackageType, PackageArchitectures] = Field(default_factory=dict)
    license_map: dict[str, str] = Field(default_factory=dict)
    bundled_packages: list[str] = Field(default_factory=list)
    version_splits: dict[str, VersionSplitModel] = Field(default_factory=dict)
    epochs: dict[str, int] = Field(default_factory=dict)
    exec_map: dict[str, str] = Field(default_factory=dict)
    extra_lib_map: dict[str, str] = Field(default_factory=dict)

    @field_validator("standards_version")
    @classmethod
    def _check_standards_version(cls, value: str) -> str:
        parse_standards_version(value)
        return value

    def to_policy_tables(self) -> PolicyTables:
        return PolicyTables(
            policy_version=self.policy_version,
            standards_version=parse_standards_version(self.standards_version),
            compat_level=self.compat_level,
            source_format=self.source_format,
            default_priority=self.default_priority,
            revision=self.revision,
            default_maintainer=(
                None
                if self.default_maintainer is None
                else Maintainer(name=self.default_maintainer.name, email=self.default_maintainer.email)
            ),
            toolchain=BuildToolchain(**self.toolchain.model_dump()),
            sections=self.sections,
            architectures=self.architectures,
            license_map=self.license_map,
            bundled_packages=frozenset(self.bundled_packages),
            version_splits={
                name: VersionSplits(
                    split.default,
                    tuple((parse_version(entry.boundary), entry.base) for entry in split.splits),
                )
                for name, split in self.version_splits.items()
            },
            epochs=self.epochs,
            exec_map=_relation_map(self.exec_map),
            extra_lib_map=_relation_map(self.extra_lib_map),
        )


def _relation_map(raw: dict[str, str]) -> dict[str, Relations]:
    return {name: parse_relations(text) for name, text in raw.items()}


def parse_policy_document(text: str, *, origin: str = "<string>") -> PolicyTables:
    try:
        document = PolicyDocument.model_validate(tomllib.loads(text))
        return document.to_policy_tables()
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Policy file {origin} is not valid TOML: {exc}") from exc
    except ValidationError as exc:
        raise ConfigurationError(f"Policy file {origin} is invalid: {exc}") from exc
    except ValueError as exc:
        raise ConfigurationError(f"Policy file {origin} is inconsistent: {exc}") from exc


def load_policy_tables(path: Path | None = None) -> PolicyTables:
    """Load policy tables from ``path``, ``DEBIANIZE_POLICY_FILE`` or the packaged default."""

    effective = path or get_settings().policy_file
    if effective is None:
        return load_default_policy_tables()
    if not effective.is_file():
        raise MissingConfigurationError(f"Policy file not found: {effective}")
    log.debug("Loading policy tables from %s", effective)
    return parse_policy_document(effective.read_text(encoding="utf-8"), origin=str(effective))


@cache
def load_default_policy_tables() -> PolicyTables:
    resource = resources.files("debianize").joinpath(POLICY_RESOURCE)
    tables = parse_policy_document(resource.read_text(encoding="utf-8"), origin=str(resource))
    log.debug("Loaded packaged policy tables %s", tables.policy_version)
    return tables

