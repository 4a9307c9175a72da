from __future__ import annotations

import pytest

from debianize.domain.versions import (
    debian_version,
    parse_dependency,
    parse_range,
    parse_version,
    sorts_after,
    version_epoch,
)


def test_upstream_versions_order_componentwise() -> None:
    assert parse_version("1.2") < parse_version("1.10")
    assert parse_version("1.2") < parse_version("1.2.0")
    assert str(parse_version(" 1.3.0 ")) == "1.3.0"


@pytest.mark.parametrize("text", ["", "1.0-beta", "v1", "1..2"])
def test_parse_version_rejects_non_numeric(text: str) -> None:
    with pytest.raises(ValueError, match="Invalid upstream version"):
        parse_version(text)


def test_conjunction_range_is_half_open() -> None:
    version_range = parse_range(">=2.0 && <3.0")

    assert version_range.contains(parse_version("2.0"))
    assert version_range.contains(parse_version("2.9.9"))
    assert not version_range.contains(parse_version("3.0"))
    assert not version_range.contains(parse_version("1.9"))


def test_wildcard_and_major_bound() -> None:
    wildcard = parse_range("==1.2.*")
    major = parse_range("^>=1.2")

    assert wildcard.contains(parse_version("1.2.5"))
    assert not wildcard.contains(parse_version("1.3"))
    assert major.contains(parse_version("1.2.9"))
    assert not major.contains(parse_version("1.3"))


def test_adjacent_intervals_are_merged() -> None:
    version_range = parse_range(">=1 && <2 || >=2 && <3")

    assert len(version_range.intervals) == 1
    assert str(version_range) == ">=1 && <3"


def test_any_and_none_ranges() -> None:
    assert parse_range("").is_any
    assert parse_range("-any").is_any
    assert parse_range("-none").is_empty
    assert parse_range(">=3 && <2").is_empty


def test_parenthesized_range() -> None:
    version_range = parse_range("(>=1 && <2) || ==4.0")

    assert version_range.contains(parse_version("1.5"))
    assert version_range.contains(parse_version("4.0"))
    assert not version_range.contains(parse_version("3"))


@pytest.mark.parametrize("text", [">=", ">=1 &&", "(>=1", "~1.0", ">=1.*"])
def test_invalid_ranges_raise(text: str) -> None:
    with pytest.raises(ValueError):  # noqa: PT011
        parse_range(text)


def test_parse_dependency() -> None:
    dependency = parse_dependency("bar >=2.0 && <3.0")

    assert dependency.name == "bar"
    assert str(dependency) == "bar >=2.0 && <3.0"
    assert parse_dependency("text").version_range.is_any


def test_debian_version_rendering() -> None:
    assert debian_version("1.3.0") == "1.3.0"
    assert debian_version("1.3.0", revision="-1") == "1.3.0-1"
    assert debian_version("1.3.0", epoch=2, revision="1") == "2:1.3.0-1"
    assert debian_version("1.3.0", epoch=0, revision="") == "1.3.0"


def test_epoch_aware_ordering() -> None:
    assert sorts_after("1:1.0-1", "2.0-1")
    assert not sorts_after("1.0-1", "1.0-1")
    assert version_epoch("3:1.0") == 3
    assert version_epoch("1.0") == 0
