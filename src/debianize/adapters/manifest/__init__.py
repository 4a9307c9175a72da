"""Public interface for the upstream manifest adapter."""

from __future__ import annotations

from .reader import ManifestError, read_manifest
from .schema import ManifestInput, ManifestPayload
from .translator import parse_package_description

__all__ = [
    "ManifestError",
    "ManifestInput",
    "ManifestPayload",
    "parse_package_description",
    "read_manifest",
]
