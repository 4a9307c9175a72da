"""Render a finalized ``Atoms`` value into the files of a ``debian/`` directory."""

from __future__ import annotations

from email.utils import formatdate
from pathlib import Path
from typing import TYPE_CHECKING, Final

from debian.changelog import Changelog
from debian.deb822 import Deb822

from debianize.domain.model.atoms import BinaryField, SourceField
from debianize.domain.model.debian import InstallKind
from debianize.domain.naming import PackageType, parse_package_name
from debianize.domain.relations import format_relations

if TYPE_CHECKING:
    from collections.abc import Iterable

    from debianize.domain.model.atoms import Atoms
    from debianize.domain.model.debian import ChangelogEntry, CopyrightDescription, InstallRule
    from debianize.domain.model.primitives import BinPkgName
    from debianize.domain.relations import Relations

COPYRIGHT_FORMAT: Final = "https://www.debian.org/doc/packaging-manuals/copyright-format/1.0/"

MAINTAINER_SCRIPTS: Final = (
    BinaryField.PREINST,
    BinaryField.POSTINST,
    BinaryField.PRERM,
    BinaryField.POSTRM,
)

_RELATION_FIELDS: Final = (
    ("Pre-Depends", BinaryField.PRE_DEPENDS),
    ("Depends", BinaryField.DEPENDS),
    ("Recommends", BinaryField.RECOMMENDS),
    ("Suggests", BinaryField.SUGGESTS),
    ("Conflicts", BinaryField.CONFLICTS),
    ("Breaks", BinaryField.BREAKS),
    ("Provides", BinaryField.PROVIDES),
    ("Replaces", BinaryField.REPLACES),
)

# dh_haskell substitution variables appended after the computed relations
_SUBSTVARS: Final[dict[PackageType, dict[BinaryField, tuple[str, ...]]]] = {
    PackageType.DEVELOPMENT: {
        BinaryField.DEPENDS: ("${haskell:Depends}", "${misc:Depends}"),
        BinaryField.RECOMMENDS: ("${haskell:Recommends}",),
        BinaryField.SUGGESTS: ("${haskell:Suggests}",),
        BinaryField.PROVIDES: ("${haskell:Provides}",),
    },
    PackageType.PROFILING: {
        BinaryField.DEPENDS: ("${haskell:Depends}", "${misc:Depends}"),
        BinaryField.PROVIDES: ("${haskell:Provides}",),
    },
    PackageType.DOCUMENTATION: {
        BinaryField.DEPENDS: ("${misc:Depends}",),
        BinaryField.RECOMMENDS: ("${haskell:Recommends}",),
        BinaryField.SUGGESTS: ("${haskell:Suggests}",),
    },
    PackageType.UTILITIES: {
        BinaryField.DEPENDS: ("${shlibs:Depends}", "${haskell:Depends}", "${misc:Depends}"),
    },
    PackageType.EXECUTABLE: {
        BinaryField.DEPENDS: ("${shlibs:Depends}", "${haskell:Depends}", "${misc:Depends}"),
    },
}


def render_debianization(atoms: Atoms) -> dict[Path, str]:
    """Map paths relative to the ``debian/`` directory to their contents."""

    files: dict[Path, str] = {Path("control"): render_control(atoms)}

    install_rules: tuple[InstallRule, ...] = atoms.get(SourceField.INSTALL_RULES, default=())
    rules_head: str | None = atoms.get(SourceField.RULES_HEAD)
    if rules_head is not None:
        parts = [rules_head.rstrip()]
        fragments: str | None = atoms.get(SourceField.RULES_FRAGMENTS)
        if fragments:
            parts.append(fragments.strip())
        parts.extend(
            _install_fixup(rule) for rule in install_rules if rule.kind is InstallKind.FILE
        )
        files[Path("rules")] = "\n\n".join(parts) + "\n"

    compat = atoms.get(SourceField.COMPAT)
    if compat is not None:
        files[Path("compat")] = f"{compat}\n"

    source_format = atoms.get(SourceField.SOURCE_FORMAT)
    if source_format is not None:
        files[Path("source/format")] = f"{source_format}\n"

    entries: tuple[ChangelogEntry, ...] = atoms.get(SourceField.CHANGELOG, default=())
    if entries:
        files[Path("changelog")] = render_changelog(entries)

    copyright_: CopyrightDescription | None = atoms.get(SourceField.COPYRIGHT)
    if copyright_ is not None:
        files[Path("copyright")] = render_copyright(copyright_)

    watch: str | None = atoms.get(SourceField.WATCH)
    if watch:
        files[Path("watch")] = watch.rstrip() + "\n"

    for (binary, suffix), lines in _install_files(install_rules).items():
        files[Path(f"{binary}.{suffix}")] = "\n".join(lines) + "\n"

    for binary in atoms.get(SourceField.BINARIES, default=()):
        for script in MAINTAINER_SCRIPTS:
            text: str | None = atoms.get(script, binary)
            if text:
                files[Path(f"{binary}.{script}")] = text.rstrip() + "\n"
    return files


def render_control(atoms: Atoms) -> str:
    source = Deb822()
    source["Source"] = atoms.get(SourceField.SOURCE_NAME)
    _set(source, "Maintainer", atoms.get(SourceField.MAINTAINER))
    uploaders = atoms.get(SourceField.UPLOADERS)
    if uploaders:
        source["Uploaders"] = ", ".join(str(uploader) for uploader in uploaders)
    _set(source, "Section", atoms.get(SourceField.SECTION))
    _set(source, "Priority", atoms.get(SourceField.PRIORITY))
    _set_relations(source, "Build-Depends", atoms.get(SourceField.BUILD_DEPENDS, default=()))
    _set_relations(
        source, "Build-Depends-Indep", atoms.get(SourceField.BUILD_DEPENDS_INDEP, default=())
    )
    _set(source, "Standards-Version", atoms.get(SourceField.STANDARDS_VERSION))
    _set(source, "Homepage", atoms.get(SourceField.HOMEPAGE))

    paragraphs = [source]
    for binary in atoms.get(SourceField.BINARIES, default=()):
        paragraphs.append(_binary_paragraph(atoms, binary))
    return "\n".join(paragraph.dump() for paragraph in paragraphs)


def _binary_paragraph(atoms: Atoms, binary: BinPkgName) -> Deb822:
    package_type: PackageType = atoms.get(
        BinaryField.PACKAGE_TYPE, binary, default=parse_package_name(binary).package_type
    )
    substvars = _SUBSTVARS.get(package_type, {})

    paragraph = Deb822()
    paragraph["Package"] = binary
    _set(paragraph, "Architecture", atoms.get(BinaryField.ARCHITECTURE, binary))
    _set(paragraph, "Section", atoms.get(BinaryField.SECTION, binary))
    _set(paragraph, "Priority", atoms.get(BinaryField.PRIORITY, binary))
    for name, field in _RELATION_FIELDS:
        _set_relations(
            paragraph,
            name,
            atoms.get(field, binary, default=()),
            substvars.get(field, ()),
        )
    description: str | None = atoms.get(BinaryField.DESCRIPTION, binary)
    if description:
        paragraph["Description"] = format_description(description)
    return paragraph


def _set(paragraph: Deb822, name: str, value: object) -> None:
    if value is not None:
        paragraph[name] = str(value)


def _set_relations(
    paragraph: Deb822,
    name: str,
    relations: Relations,
    substvars: Iterable[str] = (),
) -> None:
    items = [format_relations((group,)) for group in relations]
    items.extend(substvars)
    if items:
        paragraph[name] = ", ".join(items)


def format_description(description: str) -> str:
    """Control-file layout: synopsis, then indented lines with ``.`` for blanks."""

    synopsis, _, body = description.partition("\n")
    lines = [synopsis.strip()]
    lines.extend(f" {line}" if line.strip() else " ." for line in body.splitlines())
    return "\n".join(lines)


def render_changelog(entries: Iterable[ChangelogEntry]) -> str:
    changelog = Changelog()
    for entry in reversed(tuple(entries)):
        changelog.new_block(
            package=entry.package,
            version=entry.version,
            distributions=entry.distribution,
            urgency=entry.urgency,
            author=entry.maintainer,
            date=entry.date or formatdate(localtime=True),
            changes=["", *(f"  * {change}" for change in entry.changes), ""],
        )
    return "\n".join(str(block) for block in changelog)


def render_copyright(description: CopyrightDescription) -> str:
    header = Deb822()
    header["Format"] = COPYRIGHT_FORMAT
    header["Upstream-Name"] = description.upstream_name
    _set(header, "Source", description.source)

    files = Deb822()
    files["Files"] = "*"
    if description.holders:
        files["Copyright"] = "\n ".join(description.holders)
    files["License"] = description.license.short_name
    return "\n".join(paragraph.dump() for paragraph in (header, files))


_INSTALL_SUFFIXES: Final = {InstallKind.DIRECTORY: "install", InstallKind.LINK: "links"}


def _install_fixup(rule: InstallRule) -> str:
    """A cdbs target copying one file to an exact path of its package."""

    return f"binary-fixup/{rule.binary}::\n\tinstall -Dp {rule.source} debian/{rule.binary}/{rule.destination}"


def _install_files(rules: Iterable[InstallRule]) -> dict[tuple[BinPkgName, str], list[str]]:
    grouped: dict[tuple[BinPkgName, str], list[str]] = {}
    for rule in rules:
        suffix = _INSTALL_SUFFIXES.get(rule.kind)
        if suffix is not None:
            grouped.setdefault((rule.binary, suffix), []).append(f"{rule.source} {rule.destination}")
    return grouped
