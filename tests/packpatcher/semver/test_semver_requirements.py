# tests/packpatcher/semver/test_semver_requirements.py
import pytest

from packpatcher.semver.semver import (
    Comparator,
    Version,
    checkRequirement,
    parseRequirement,
    parseVersion,
)


def _comparators(raw: str) -> list[tuple[str, str]]:
    return [(comparator.operator, str(comparator.version)) for comparator in parseRequirement(raw).comparators]


# ----- Versions -----

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.21.1", Version(1, 21, 1)),
        ("21", Version(21, 0, 0)),
        ("v1.2", Version(1, 2, 0)),
        ("0.16.14", Version(0, 16, 14)),
        ("1.2.3-alpha.1+build.5", Version(1, 2, 3, ("alpha", "1"), ("build", "5"))),
    ],
)
def test_parseVersion_valid(raw, expected):
    assert parseVersion(raw) == expected


@pytest.mark.parametrize("raw", ["", "  ", ".1", "1.", "1..3", "1.2.3.4", "01.2.3", "1.2.x", "1.2.3-"])
def test_parseVersion_invalid(raw):
    with pytest.raises(ValueError):
        parseVersion(raw)


def test_parseVersion_type_errors():
    with pytest.raises(ValueError):
        parseVersion(None)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        parseVersion(123)  # type: ignore[arg-type]


def test_version_ordering():
    ordered = ["1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-alpha.beta", "1.0.0-beta.2", "1.0.0-beta.11", "1.0.0", "1.0.1"]
    versions = [parseVersion(v) for v in ordered]
    assert sorted(reversed(versions)) == versions


def test_version_build_metadata_ignored_for_equality():
    assert parseVersion("1.0.0+a") == parseVersion("1.0.0+b")
    assert hash(parseVersion("1.0.0+a")) == hash(parseVersion("1.0.0"))
    assert str(parseVersion("1.0.0+a")) == "1.0.0+a"


# ----- Requirements -----

@pytest.mark.parametrize("raw", [None, "", "   ", "*"])
def test_requirement_parse_any(raw):
    assert parseRequirement(raw) is None


def test_requirement_exact_version():
    assert _comparators("1.2.3") == [("==", "1.2.3")]
    assert _comparators("=1.2.3") == [("==", "1.2.3")]
    assert _comparators("==1.2.3") == [("==", "1.2.3")]


def test_requirement_basic_inequalities():
    assert _comparators(">=1.2.0 <2.0.0") == [(">=", "1.2.0"), ("<", "2.0.0")]
    assert _comparators(">0.1 <=3") == [(">", "0.1.0"), ("<=", "3.0.0")]


def test_requirement_keeps_parsed_versions():
    (comparator,) = parseRequirement(">=0.16.14").comparators
    assert comparator == Comparator(">=", Version(0, 16, 14))


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("^1.2.3", [(">=", "1.2.3"), ("<", "2.0.0")]),
        ("^0.2.3", [(">=", "0.2.3"), ("<", "0.3.0")]),
        ("^0.0.3", [(">=", "0.0.3"), ("<", "0.0.4")]),
    ],
)
def test_requirement_caret_bounds(raw, expected):
    assert _comparators(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("~1.21.1", [(">=", "1.21.1"), ("<", "1.22.0")]),
        ("~1", [(">=", "1.0.0"), ("<", "2.0.0")]),
    ],
)
def test_requirement_tilde_bounds(raw, expected):
    assert _comparators(raw) == expected


def test_requirement_hyphen_range():
    assert _comparators("1.2.3 - 2.0.0") == [(">=", "1.2.3"), ("<=", "2.0.0")]


def test_invalid_hyphen_range_upper_less_than_lower():
    with pytest.raises(ValueError):
        parseRequirement("2.0.0 - 1.0.0")


@pytest.mark.parametrize("raw", [">=", "^", "~", ">=1.x", "<=1..2"])
def test_requirement_invalid(raw):
    with pytest.raises(ValueError):
        parseRequirement(raw)


def test_checkRequirement_strips_and_validates():
    assert checkRequirement("  >=0.16.14 ") == ">=0.16.14"
    assert checkRequirement("*") == "*"
    with pytest.raises(ValueError):
        checkRequirement(">=nope")
    with pytest.raises(TypeError):
        checkRequirement(None)  # type: ignore[arg-type]
