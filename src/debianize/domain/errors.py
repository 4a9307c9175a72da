"""Error taxonomy for the packaging engine.

Errors are plain exception classes so they can be raised where a failure is
immediately fatal, but the finalizer and validator mostly collect them as
values and hand the whole set back to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class DebianizeError(Exception):
    """Base class for every error raised or reported by the engine."""


class UnresolvedIdentity(DebianizeError):
    """No override, split rule or default produces a legal package name."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        self.reason = reason
        super().__init__(f"Cannot derive a Debian package name for {identity!r}: {reason}")


class MissingRequiredField(DebianizeError):
    """A mandatory field is unset and cannot be derived."""

    def __init__(
        self,
        field: str,
        *,
        binary: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.field = field
        self.binary = binary
        self.reason = reason
        where = f"{field} of {binary}" if binary else field
        message = f"Missing required field: {where}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InconsistentOverride(DebianizeError):
    """An override or remap contradicts data that is already present."""


class StructuralViolation(DebianizeError):
    """A finalized debianization contains a dangling or stale reference."""

    def __init__(
        self,
        message: str,
        *,
        binary: str | None = None,
        field: str | None = None,
    ) -> None:
        self.binary = binary
        self.field = field
        super().__init__(message)


class StaleOutput(DebianizeError):
    """The on-disk debianization differs from the freshly computed one."""

    def __init__(
        self,
        field: str,
        *,
        binary: str | None = None,
        old: object = None,
        new: object = None,
    ) -> None:
        self.field = field
        self.binary = binary
        self.old = old
        self.new = new
        where = f"{field} of {binary}" if binary else field
        super().__init__(f"Stale debianization: {where} is {old!r}, expected {new!r}")


class FrozenAtomsError(DebianizeError):
    """Raised when writing to an ``Atoms`` value after finalization."""


class FinalizationError(DebianizeError):
    """The accumulated set of errors produced by one finalization run."""

    def __init__(self, errors: Iterable[DebianizeError], *, fatal: bool = False) -> None:
        self.errors = tuple(errors)
        self.fatal = fatal
        lines = "; ".join(str(error) for error in self.errors)
        prefix = "Fatal finalization error" if fatal else "Finalization failed"
        super().__init__(f"{prefix}: {lines}")
