"""Value objects describing pieces of the generated debianization."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from debianize.domain.model.primitives import BinPkgName
    from debianize.domain.policy import License

DEFAULT_DISTRIBUTION = "UNRELEASED"
DEFAULT_URGENCY = "low"


class InstallKind(StrEnum):
    DIRECTORY = "directory"  # copy into a directory, debian/<binary>.install
    FILE = "file"  # copy to an exact path, a binary-fixup rule
    LINK = "link"  # symlink, debian/<binary>.links


@dataclass(frozen=True, slots=True)
class InstallRule:
    """Install ``source`` (relative to the build tree) into ``destination`` of ``binary``.

    For links ``source`` is the link target and ``destination`` the link itself.
    """

    binary: BinPkgName
    source: str
    destination: str
    kind: InstallKind = InstallKind.DIRECTORY

    def rename(self, old: BinPkgName, new: BinPkgName) -> InstallRule:
        if self.binary != old:
            return self
        return replace(self, binary=new)

    def __str__(self) -> str:
        arrow = "->" if self.kind is InstallKind.LINK else "=>"
        return f"{self.binary}: {self.source} {arrow} {self.destination}"


@dataclass(frozen=True, slots=True)
class Executable:
    """An upstream executable shipped in its own binary package."""

    name: str
    destination: str = "usr/bin"
    source: str | None = None

    @property
    def build_path(self) -> str:
        return self.source or f"dist-ghc/build/{self.name}/{self.name}"


@dataclass(frozen=True, slots=True, kw_only=True)
class ChangelogEntry:
    package: str
    version: str
    maintainer: str
    distribution: str = DEFAULT_DISTRIBUTION
    urgency: str = DEFAULT_URGENCY
    changes: tuple[str, ...] = ()
    date: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CopyrightDescription:
    """Machine-readable ``debian/copyright`` content."""

    upstream_name: str
    license: License
    holders: tuple[str, ...] = ()
    source: str | None = None
