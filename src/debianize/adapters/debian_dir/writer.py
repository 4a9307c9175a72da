"""Write a rendered debianization to disk."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from .render import MAINTAINER_SCRIPTS, render_debianization

if TYPE_CHECKING:
    from pathlib import Path

    from debianize.domain.model.atoms import Atoms

log = getLogger(__name__)

EXECUTABLE_MODE: Final = 0o755
_EXECUTABLE_SUFFIXES: Final = frozenset(f".{script}" for script in MAINTAINER_SCRIPTS)


def write_debianization(atoms: Atoms, directory: Path) -> list[Path]:
    """Write every rendered file below ``directory`` and return the written paths."""

    if not atoms.frozen:
        log.warning("Writing a debianization that has not been finalized")
    written: list[Path] = []
    for relative, content in sorted(render_debianization(atoms).items()):
        target = directory / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        if relative.name == "rules" or relative.suffix in _EXECUTABLE_SUFFIXES:
            target.chmod(EXECUTABLE_MODE)
        written.append(target)
    log.info("Wrote %s file(s) to %s", len(written), directory)
    return written
