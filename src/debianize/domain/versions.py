"""Upstream versions, version ranges and Debian version rendering.

Upstream versions are dotted numeric sequences ordered component-wise.
Ranges are kept as a normalized union of disjoint intervals so that set
operations (intersection with a version-split segment, emptiness checks)
stay exact. Debian versions are compared with python-debian, which knows
about epochs, revisions and ``~``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from debian.debian_support import Version as DebianVersion

if TYPE_CHECKING:
    from collections.abc import Iterable

_VERSION_RE: Final = re.compile(r"^\d+(?:\.\d+)*$")
_TOKEN_RE: Final = re.compile(
    r"\s*(\^>=|==|>=|<=|&&|\|\||>|<|\(|\)|-any|-none|any|\*|\d+(?:\.\d+)*(?:\.\*)?)"
)
_DEPENDENCY_RE: Final = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._+-]*)\s*(.*?)\s*$")


@dataclass(frozen=True, slots=True, order=True)
class UpstreamVersion:
    parts: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError("Version must have at least one component")
        if any(part < 0 for part in self.parts):
            raise ValueError(f"Version components must be non-negative: {self.parts}")

    def __str__(self) -> str:
        return ".".join(str(part) for part in self.parts)

    def bump(self, position: int) -> UpstreamVersion:
        """Return the smallest version above every version sharing the first ``position + 1`` parts."""

        padded = self.parts + (0,) * max(0, position + 1 - len(self.parts))
        head = padded[:position]
        return UpstreamVersion((*head, padded[position] + 1))


def parse_version(text: str) -> UpstreamVersion:
    value = text.strip()
    if not _VERSION_RE.match(value):
        raise ValueError(f"Invalid upstream version: {text!r}")
    return UpstreamVersion(tuple(int(part) for part in value.split(".")))


@dataclass(frozen=True, slots=True)
class Bound:
    version: UpstreamVersion
    inclusive: bool


@dataclass(frozen=True, slots=True)
class Interval:
    """A contiguous set of versions; ``None`` bounds are open-ended."""

    lower: Bound | None = None
    upper: Bound | None = None

    @property
    def is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        if self.lower.version > self.upper.version:
            return True
        if self.lower.version == self.upper.version:
            return not (self.lower.inclusive and self.upper.inclusive)
        return False

    @property
    def is_point(self) -> bool:
        return (
            self.lower is not None
            and self.upper is not None
            and self.lower == self.upper
            and self.lower.inclusive
        )

    def contains(self, version: UpstreamVersion) -> bool:
        if self.lower is not None:
            if version < self.lower.version:
                return False
            if version == self.lower.version and not self.lower.inclusive:
                return False
        if self.upper is not None:
            if version > self.upper.version:
                return False
            if version == self.upper.version and not self.upper.inclusive:
                return False
        return True

    def intersect(self, other: Interval) -> Interval:
        return Interval(
            lower=_tighter_lower(self.lower, other.lower),
            upper=_tighter_upper(self.upper, other.upper),
        )

    def __str__(self) -> str:
        if self.is_point and self.lower is not None:
            return f"=={self.lower.version}"
        pieces: list[str] = []
        if self.lower is not None:
            pieces.append(f"{'>=' if self.lower.inclusive else '>'}{self.lower.version}")
        if self.upper is not None:
            pieces.append(f"{'<=' if self.upper.inclusive else '<'}{self.upper.version}")
        return " && ".join(pieces) if pieces else "-any"


def _tighter_lower(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version > b.version else b
    return a if not a.inclusive else b


def _tighter_upper(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version < b.version else b
    return a if not a.inclusive else b


def _looser_upper(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None or b is None:
        return None
    if a.version != b.version:
        return a if a.version > b.version else b
    return a if a.inclusive else b


def _lower_sort_key(interval: Interval) -> tuple[int, tuple[int, ...], int]:
    if interval.lower is None:
        return (0, (), 0)
    return (1, interval.lower.version.parts, 0 if interval.lower.inclusive else 1)


def _touches(current: Interval, following: Interval) -> bool:
    """Whether ``following`` (which starts no earlier) overlaps or abuts ``current``."""

    if current.upper is None or following.lower is None:
        return True
    if following.lower.version < current.upper.version:
        return True
    if following.lower.version == current.upper.version:
        return following.lower.inclusive or current.upper.inclusive
    return False


def _normalize(intervals: Iterable[Interval]) -> tuple[Interval, ...]:
    ordered = sorted(
        (interval for interval in intervals if not interval.is_empty),
        key=_lower_sort_key,
    )
    merged: list[Interval] = []
    for interval in ordered:
        if merged and _touches(merged[-1], interval):
            last = merged[-1]
            merged[-1] = Interval(lower=last.lower, upper=_looser_upper(last.upper, interval.upper))
        else:
            merged.append(interval)
    return tuple(merged)


@dataclass(frozen=True, slots=True)
class VersionRange:
    """A normalized union of disjoint, ascending intervals."""

    intervals: tuple[Interval, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "intervals", _normalize(self.intervals))

    @classmethod
    def any(cls) -> VersionRange:
        return cls((Interval(),))

    @classmethod
    def none(cls) -> VersionRange:
        return cls(())

    @classmethod
    def at_least(cls, version: UpstreamVersion) -> VersionRange:
        return cls((Interval(lower=Bound(version, inclusive=True)),))

    @classmethod
    def below(cls, version: UpstreamVersion) -> VersionRange:
        return cls((Interval(upper=Bound(version, inclusive=False)),))

    @classmethod
    def between(cls, lower: UpstreamVersion, upper: UpstreamVersion) -> VersionRange:
        return cls((Interval(Bound(lower, inclusive=True), Bound(upper, inclusive=False)),))

    @property
    def is_empty(self) -> bool:
        return not self.intervals

    @property
    def is_any(self) -> bool:
        return len(self.intervals) == 1 and self.intervals[0] == Interval()

    def contains(self, version: UpstreamVersion) -> bool:
        return any(interval.contains(version) for interval in self.intervals)

    def intersect(self, other: VersionRange) -> VersionRange:
        return VersionRange(
            tuple(mine.intersect(theirs) for mine in self.intervals for theirs in other.intervals)
        )

    def union(self, other: VersionRange) -> VersionRange:
        return VersionRange(self.intervals + other.intervals)

    def __str__(self) -> str:
        if self.is_empty:
            return "-none"
        return " || ".join(str(interval) for interval in self.intervals)


def parse_range(text: str) -> VersionRange:
    """Parse an upstream version range such as ``>=2.0 && <3.0 || ==4.*``."""

    tokens = _tokenize(text)
    if not tokens:
        return VersionRange.any()
    parser = _RangeParser(tokens, text)
    result = parser.expression()
    if parser.position != len(tokens):
        raise ValueError(f"Unexpected token {tokens[parser.position]!r} in range {text!r}")
    return result


def _tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    position = 0
    stripped = text.rstrip()
    while position < len(stripped):
        match = _TOKEN_RE.match(stripped, position)
        if match is None:
            raise ValueError(f"Invalid version range {text!r} at offset {position}")
        tokens.append(match.group(1))
        position = match.end()
    return tokens


class _RangeParser:
    def __init__(self, tokens: list[str], source: str) -> None:
        self.tokens = tokens
        self.source = source
        self.position = 0

    def _peek(self) -> str | None:
        return self.tokens[self.position] if self.position < len(self.tokens) else None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise ValueError(f"Unexpected end of range {self.source!r}")
        self.position += 1
        return token

    def expression(self) -> VersionRange:
        result = self.conjunction()
        while self._peek() == "||":
            self._take()
            result = result.union(self.conjunction())
        return result

    def conjunction(self) -> VersionRange:
        result = self.atom()
        while self._peek() == "&&":
            self._take()
            result = result.intersect(self.atom())
        return result

    def atom(self) -> VersionRange:
        token = self._take()
        if token == "(":
            inner = self.expression()
            if self._take() != ")":
                raise ValueError(f"Unbalanced parentheses in range {self.source!r}")
            return inner
        if token in {"-any", "any", "*"}:
            return VersionRange.any()
        if token == "-none":
            return VersionRange.none()
        operand = self._take()
        return _comparison(token, operand, self.source)


def _comparison(operator: str, operand: str, source: str) -> VersionRange:
    if operand.endswith(".*"):
        if operator != "==":
            raise ValueError(f"Wildcards are only allowed with '==' in {source!r}")
        base = parse_version(operand[:-2])
        return VersionRange.between(base, base.bump(len(base.parts) - 1))
    version = parse_version(operand)
    match operator:
        case "==":
            bound = Bound(version, inclusive=True)
            return VersionRange((Interval(bound, bound),))
        case ">=":
            return VersionRange.at_least(version)
        case ">":
            return VersionRange((Interval(lower=Bound(version, inclusive=False)),))
        case "<=":
            return VersionRange((Interval(upper=Bound(version, inclusive=True)),))
        case "<":
            return VersionRange.below(version)
        case "^>=":
            return VersionRange.between(version, version.bump(1))
        case _:
            raise ValueError(f"Unknown operator {operator!r} in range {source!r}")


@dataclass(frozen=True, slots=True)
class Dependency:
    """An upstream dependency: package name plus accepted version range."""

    name: str
    version_range: VersionRange

    def __str__(self) -> str:
        if self.version_range.is_any:
            return self.name
        return f"{self.name} {self.version_range}"


def parse_dependency(text: str) -> Dependency:
    match = _DEPENDENCY_RE.match(text)
    if match is None:
        raise ValueError(f"Invalid dependency: {text!r}")
    name, constraint = match.groups()
    return Dependency(name=name, version_range=parse_range(constraint))


def debian_version(upstream: str, *, epoch: int | None = None, revision: str | None = None) -> str:
    """Render ``[epoch:]upstream[-revision]``."""

    rendered = upstream
    if epoch:
        rendered = f"{epoch}:{rendered}"
    if revision:
        rendered = f"{rendered}{revision if revision.startswith('-') else '-' + revision}"
    return rendered


def version_epoch(version: str) -> int:
    epoch = DebianVersion(version).epoch
    return int(epoch) if epoch else 0


def sorts_after(candidate: str, previous: str) -> bool:
    """Whether ``candidate`` sorts strictly after ``previous`` under dpkg rules."""

    return DebianVersion(candidate) > DebianVersion(previous)
