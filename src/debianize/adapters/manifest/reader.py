"""Read an upstream manifest file (JSON or TOML)."""

from __future__ import annotations

import json
import tomllib
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .schema import ManifestPayload
from .translator import parse_package_description

if TYPE_CHECKING:
    from pathlib import Path

    from debianize.domain.model.description import PackageDescription

log = getLogger(__name__)


class ManifestError(ValueError):
    """Raised when a manifest file cannot be read or does not validate."""


def _load_document(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".toml":
        return tomllib.loads(text)
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ManifestError(f"Manifest {path} must contain an object, got {type(document).__name__}")
    return document


def read_manifest(path: Path) -> PackageDescription:
    try:
        document = _load_document(path)
        payload = ManifestPayload.model_validate(document)
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest {path}: {exc}") from exc
    except ValidationError as exc:
        raise ManifestError(f"Invalid manifest {path}: {exc}") from exc
    except ValueError as exc:
        raise ManifestError(f"Cannot parse manifest {path}: {exc}") from exc
    description = parse_package_description(payload)
    log.debug(
        "Read manifest %s: %s with %s component(s)",
        path,
        description.identity,
        len(description.components),
    )
    return description
