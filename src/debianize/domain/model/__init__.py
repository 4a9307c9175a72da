"""Public domain model surface."""

from __future__ import annotations

from debianize.domain.model.atoms import (
    Atoms,
    BinaryField,
    DebianFile,
    FieldKind,
    FieldState,
    SourceField,
)
from debianize.domain.model.debian import (
    ChangelogEntry,
    CopyrightDescription,
    Executable,
    InstallRule,
)
from debianize.domain.model.description import Component, ComponentKind, PackageDescription
from debianize.domain.model.primitives import BinPkgName, DebBase, PackageIdentity, SrcPkgName

__all__ = [  # noqa: RUF022
    # atoms
    "Atoms",
    "SourceField",
    "BinaryField",
    "FieldKind",
    "FieldState",
    "DebianFile",
    # upstream
    "PackageIdentity",
    "PackageDescription",
    "Component",
    "ComponentKind",
    # debian
    "ChangelogEntry",
    "CopyrightDescription",
    "Executable",
    "InstallRule",
    # primitives
    "BinPkgName",
    "SrcPkgName",
    "DebBase",
]
