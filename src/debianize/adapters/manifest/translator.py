"""Translate manifest payloads into the domain ``PackageDescription``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from debianize.domain.model.description import Component, ComponentKind, PackageDescription
from debianize.domain.model.primitives import PackageIdentity
from debianize.domain.versions import parse_dependency

from .schema import ManifestPayload

if TYPE_CHECKING:
    from .schema import ComponentPayload, ManifestInput


def _ensure_manifest_payload(manifest: ManifestInput) -> ManifestPayload:
    if isinstance(manifest, ManifestPayload):
        return manifest
    return ManifestPayload.model_validate(manifest)


def _component(name: str, kind: ComponentKind, payload: ComponentPayload) -> Component:
    return Component(
        name=name,
        kind=kind,
        build_depends=tuple(parse_dependency(text) for text in payload.build_depends),
        build_tools=tuple(parse_dependency(text) for text in payload.build_tools),
        extra_libraries=tuple(payload.extra_libraries),
    )


def parse_package_description(manifest: ManifestInput) -> PackageDescription:
    payload = _ensure_manifest_payload(manifest)
    components: list[Component] = []
    if payload.library is not None:
        components.append(_component(payload.name, ComponentKind.LIBRARY, payload.library))
    components.extend(
        _component(executable.name, ComponentKind.EXECUTABLE, executable)
        for executable in payload.executables
    )
    return PackageDescription(
        identity=PackageIdentity(payload.name, payload.version),
        license=payload.license,
        copyright=payload.copyright,
        author=payload.author,
        maintainer=payload.maintainer,
        homepage=payload.homepage,
        synopsis=payload.synopsis,
        description=payload.description,
        components=tuple(components),
    )
