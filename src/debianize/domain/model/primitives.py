"""Domain primitives: scalar aliases + small value objects."""

from __future__ import annotations

from dataclasses import dataclass

type BinPkgName = str
type SrcPkgName = str
type DebBase = str


@dataclass(frozen=True, slots=True)
class PackageIdentity:
    """Upstream name plus version, as declared by the upstream manifest.

    ``version`` is ``None`` when an identity names a package independent of
    any release (for example a name-wide override).
    """

    name: str
    version: str | None = None

    def __str__(self) -> str:
        return self.name if self.version is None else f"{self.name}-{self.version}"
