"""Reconstruct an ``Atoms`` value from an existing ``debian/`` directory.

Every field read from disk is marked as user supplied, so merging the result
before finalization keeps the hand-maintained values.
"""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from debian.changelog import Changelog, ChangelogParseError
from debian.deb822 import Deb822

from debianize.domain.model.atoms import Atoms, BinaryField, FieldState, SourceField
from debianize.domain.model.debian import ChangelogEntry, CopyrightDescription, InstallKind, InstallRule
from debianize.domain.policy import (
    License,
    PackageArchitectures,
    PackagePriority,
    SourceFormat,
    parse_maintainer,
    parse_standards_version,
)
from debianize.domain.relations import parse_relations

from .render import MAINTAINER_SCRIPTS

if TYPE_CHECKING:
    from collections.abc import Callable
    from enum import StrEnum
    from pathlib import Path

    from debianize.domain.model.atoms import AtomField
    from debianize.domain.model.primitives import BinPkgName

log = getLogger(__name__)

_UPLOADER_SPLIT_RE: Final = re.compile(r"(?<=>)\s*,\s*")
_INCLUDE_PREFIX: Final = "include "
_INSTALL_FIXUP_RE: Final = re.compile(
    r"^binary-fixup/(?P<binary>\S+)::\n\tinstall -Dp (?P<source>\S+) debian/(?P=binary)/(?P<destination>\S+)\n?",
    re.MULTILINE,
)

_SOURCE_RELATIONS: Final = {
    "Build-Depends": SourceField.BUILD_DEPENDS,
    "Build-Depends-Indep": SourceField.BUILD_DEPENDS_INDEP,
}
_BINARY_RELATIONS: Final = {
    "Pre-Depends": BinaryField.PRE_DEPENDS,
    "Depends": BinaryField.DEPENDS,
    "Recommends": BinaryField.RECOMMENDS,
    "Suggests": BinaryField.SUGGESTS,
    "Conflicts": BinaryField.CONFLICTS,
    "Breaks": BinaryField.BREAKS,
    "Provides": BinaryField.PROVIDES,
    "Replaces": BinaryField.REPLACES,
}


class DebianDirectoryError(ValueError):
    """Raised when an existing debian directory cannot be parsed."""


def read_debianization(directory: Path) -> Atoms:
    """Read ``directory`` (a ``debian/`` directory) into user-supplied atoms."""

    control = directory / "control"
    if not control.is_file():
        raise DebianDirectoryError(f"No control file in {directory}")

    atoms = Atoms()
    _read_control(atoms, control.read_text(encoding="utf-8"))
    binaries: tuple[BinPkgName, ...] = atoms.get(SourceField.BINARIES, default=())

    rules_read: list[InstallRule] = []
    if (rules := directory / "rules").is_file():
        rules_read.extend(_read_rules(atoms, rules.read_text(encoding="utf-8")))
    if (compat := directory / "compat").is_file():
        text = compat.read_text(encoding="utf-8").strip()
        try:
            _put(atoms, SourceField.COMPAT, int(text))
        except ValueError as exc:
            raise DebianDirectoryError(f"Invalid compat level {text!r}") from exc
    if (source_format := directory / "source" / "format").is_file():
        _put(
            atoms,
            SourceField.SOURCE_FORMAT,
            _enum_or_text(SourceFormat, source_format.read_text(encoding="utf-8").strip()),
        )
    if (changelog := directory / "changelog").is_file():
        _read_changelog(atoms, changelog.read_text(encoding="utf-8"))
    if (copyright_ := directory / "copyright").is_file():
        _read_copyright(atoms, copyright_.read_text(encoding="utf-8"))
    if (watch := directory / "watch").is_file():
        _put(atoms, SourceField.WATCH, watch.read_text(encoding="utf-8").strip())

    for binary in binaries:
        for suffix, kind in ((".install", InstallKind.DIRECTORY), (".links", InstallKind.LINK)):
            path = directory / f"{binary}{suffix}"
            if path.is_file():
                rules_read.extend(_parse_install(binary, path, kind))
        for script in MAINTAINER_SCRIPTS:
            path = directory / f"{binary}.{script}"
            if path.is_file():
                _put(atoms, script, path.read_text(encoding="utf-8").rstrip(), binary=binary)
    if rules_read:
        _put(atoms, SourceField.INSTALL_RULES, tuple(rules_read))

    log.debug("Read existing debianization of %s from %s", atoms.get(SourceField.SOURCE_NAME), directory)
    return atoms


def _put(atoms: Atoms, field: AtomField, value: Any, *, binary: BinPkgName | None = None) -> None:
    atoms.set_if_absent(field, value, binary=binary, state=FieldState.USER_SUPPLIED)


def _enum_or_text[E: StrEnum](enum: type[E], text: str) -> E | str:
    try:
        return enum(text)
    except ValueError:
        return text


def _parsed[T](parse: Callable[[str], T], text: str, what: str) -> T:
    try:
        return parse(text)
    except ValueError as exc:
        raise DebianDirectoryError(f"Invalid {what}: {text!r}") from exc


def _read_control(atoms: Atoms, text: str) -> None:
    paragraphs = [paragraph for paragraph in Deb822.iter_paragraphs(text.splitlines()) if paragraph]
    if not paragraphs or "Source" not in paragraphs[0]:
        raise DebianDirectoryError("The control file has no source paragraph")
    source, *packages = paragraphs

    _put(atoms, SourceField.SOURCE_NAME, source["Source"].strip())
    if "Maintainer" in source:
        _put(atoms, SourceField.MAINTAINER, _parsed(parse_maintainer, source["Maintainer"], "maintainer"))
    if "Uploaders" in source:
        uploaders = tuple(
            _parsed(parse_maintainer, item, "uploader")
            for item in _UPLOADER_SPLIT_RE.split(source["Uploaders"].strip())
            if item.strip()
        )
        _put(atoms, SourceField.UPLOADERS, uploaders)
    if "Section" in source:
        _put(atoms, SourceField.SECTION, source["Section"].strip())
    if "Priority" in source:
        _put(atoms, SourceField.PRIORITY, _enum_or_text(PackagePriority, source["Priority"].strip()))
    if "Standards-Version" in source:
        _put(
            atoms,
            SourceField.STANDARDS_VERSION,
            _parsed(parse_standards_version, source["Standards-Version"], "Standards-Version"),
        )
    if "Homepage" in source:
        _put(atoms, SourceField.HOMEPAGE, source["Homepage"].strip())
    for name, field in _SOURCE_RELATIONS.items():
        if name in source and (relations := _parsed(parse_relations, source[name], name)):
            _put(atoms, field, relations)

    binaries: list[BinPkgName] = []
    for package in packages:
        if "Package" not in package:
            raise DebianDirectoryError("Binary paragraph without a Package field")
        binary = package["Package"].strip()
        binaries.append(binary)
        if "Architecture" in package:
            _put(
                atoms,
                BinaryField.ARCHITECTURE,
                _enum_or_text(PackageArchitectures, package["Architecture"].strip()),
                binary=binary,
            )
        if "Section" in package:
            _put(atoms, BinaryField.SECTION, package["Section"].strip(), binary=binary)
        if "Priority" in package:
            _put(
                atoms,
                BinaryField.PRIORITY,
                _enum_or_text(PackagePriority, package["Priority"].strip()),
                binary=binary,
            )
        for name, field in _BINARY_RELATIONS.items():
            if name in package and (relations := _parsed(parse_relations, package[name], name)):
                _put(atoms, field, relations, binary=binary)
        if "Description" in package:
            _put(atoms, BinaryField.DESCRIPTION, parse_description(package["Description"]), binary=binary)
    if binaries:
        _put(atoms, SourceField.BINARIES, tuple(binaries))


def parse_description(value: str) -> str:
    """Inverse of the control-file description layout."""

    synopsis, *body = value.splitlines()
    lines = [synopsis.strip()]
    for line in body:
        stripped = line[1:] if line.startswith(" ") else line
        lines.append("" if stripped.strip() == "." else stripped.rstrip())
    return "\n".join(lines)


def _read_rules(atoms: Atoms, text: str) -> list[InstallRule]:
    """Split the rules file into head and fragments; install fixups become rules."""

    fixups: list[InstallRule] = []

    def collect(match: re.Match[str]) -> str:
        fixups.append(
            InstallRule(match["binary"], match["source"], match["destination"], InstallKind.FILE)
        )
        return ""

    lines = _INSTALL_FIXUP_RE.sub(collect, text).rstrip().splitlines()
    last_include = max(
        (index for index, line in enumerate(lines) if line.startswith(_INCLUDE_PREFIX)),
        default=len(lines) - 1,
    )
    head = "\n".join(lines[: last_include + 1]).rstrip()
    fragments = re.sub(r"\n{3,}", "\n\n", "\n".join(lines[last_include + 1 :])).strip()
    _put(atoms, SourceField.RULES_HEAD, head)
    if fragments:
        _put(atoms, SourceField.RULES_FRAGMENTS, fragments)
    return fixups


def _read_changelog(atoms: Atoms, text: str) -> None:
    try:
        changelog = Changelog(text, strict=True)
    except ChangelogParseError as exc:
        raise DebianDirectoryError(f"Invalid changelog: {exc}") from exc
    entries = tuple(
        ChangelogEntry(
            package=block.package,
            version=str(block.version),
            maintainer=block.author or "",
            distribution=block.distributions or "",
            urgency=block.urgency or "",
            changes=tuple(
                line.strip().removeprefix("* ") for line in block.changes() if line.strip()
            ),
            date=block.date,
        )
        for block in changelog
    )
    if entries:
        _put(atoms, SourceField.VERSION, entries[0].version)
        _put(atoms, SourceField.CHANGELOG, entries)


def _read_copyright(atoms: Atoms, text: str) -> None:
    paragraphs = [paragraph for paragraph in Deb822.iter_paragraphs(text.splitlines()) if paragraph]
    if not paragraphs:
        return
    header = paragraphs[0]
    files = next((paragraph for paragraph in paragraphs if paragraph.get("Files", "").strip() == "*"), None)
    if files is None or "License" not in files:
        log.debug("Copyright file has no Files: * paragraph with a license")
        return
    license_ = License(short_name=files["License"].splitlines()[0].strip())
    _put(atoms, SourceField.LICENSE, license_)
    holders = tuple(line.strip() for line in files.get("Copyright", "").splitlines() if line.strip())
    _put(
        atoms,
        SourceField.COPYRIGHT,
        CopyrightDescription(
            upstream_name=header.get("Upstream-Name", atoms.get(SourceField.SOURCE_NAME) or "").strip(),
            license=license_,
            holders=holders,
            source=header.get("Source"),
        ),
    )


def _parse_install(binary: BinPkgName, path: Path, kind: InstallKind) -> list[InstallRule]:
    rules: list[InstallRule] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        source, _, destination = stripped.rpartition(" ")
        if not source:
            raise DebianDirectoryError(f"Line without a destination in {path.name}: {line!r}")
        rules.append(InstallRule(binary, source.strip(), destination, kind))
    return rules
