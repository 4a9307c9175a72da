"""Public interface for the debian directory adapter."""

from __future__ import annotations

from .reader import DebianDirectoryError, parse_description, read_debianization
from .render import format_description, render_control, render_debianization
from .writer import write_debianization

__all__ = [
    "DebianDirectoryError",
    "format_description",
    "parse_description",
    "read_debianization",
    "render_control",
    "render_debianization",
    "write_debianization",
]
