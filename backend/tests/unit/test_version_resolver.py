"""
Unit tests for version directory resolution.

Tests verify:
- Range filtering (inclusive bounds, missing and malformed bounds)
- Single survivor, preferred version and integer-name tie-breaks
- Failure sentinel when nothing can be selected
- Catalog branch selection
"""

import pytest

from catalog.version_resolver import (
    NO_SELECTION,
    UNAVAILABLE,
    CandidateDirectory,
    DirectorySelection,
    InvalidVersion,
    VersionRange,
    catalog_branch,
    filter_candidates,
    parse_version,
    resolve_version_directory,
)


def candidate(name, declared="", lower=None, upper=None):
    return CandidateDirectory(name, declared, VersionRange.from_text(lower, upper))


class TestParseVersion:
    @pytest.mark.parametrize("text,expected", [
        ("v1.6.10", "1.6.10"),
        ("1.6.10", "1.6.10"),
        ("v2.0.0-rc1", "2.0.0-rc1"),
        ("v2.0.0-rc1-hotfix", "2.0.0-rc1-hotfix"),
        ("v1.0.0-alpha.beta", "1.0.0-alpha.beta"),
        ("v2.0.0-beta3-rc1", "2.0.0-beta3-rc1"),
        ("1.6.10+build.7", "1.6.10+build.7"),
        (" v1.2.3 ", "1.2.3"),
    ])
    def test_parses_release_tags(self, text, expected):
        assert str(parse_version(text)) == expected

    @pytest.mark.parametrize("text", ["", None, "latest", "v", "stable", "1.6", "1", "1.6.0rc1", "01.2.3"])
    def test_rejects_non_versions(self, text):
        with pytest.raises(InvalidVersion):
            parse_version(text)

    def test_prerelease_sorts_before_release(self):
        assert parse_version("v1.6.0-rc1") < parse_version("v1.6.0")

    def test_semver_precedence(self):
        ordered = ["1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-beta.2", "1.0.0-beta.11", "1.0.0-rc.1", "1.0.0"]
        parsed = [parse_version(v) for v in ordered]

        assert parsed == sorted(parsed)

    def test_build_metadata_does_not_affect_range(self):
        r = VersionRange.from_text("v1.6.10", "v1.6.10")

        assert r.contains(parse_version("1.6.10+build.7"))


class TestVersionRange:
    def test_bounds_are_inclusive(self):
        r = VersionRange.from_text("v1.0.0", "v1.9.9")

        assert r.contains(parse_version("1.0.0"))
        assert r.contains(parse_version("1.9.9"))
        assert not r.contains(parse_version("0.9.9"))
        assert not r.contains(parse_version("1.9.10"))

    def test_missing_bounds_are_unbounded(self):
        r = VersionRange.from_text(None, "")

        assert r.lower is None and r.upper is None
        assert r.contains(parse_version("0.0.1"))
        assert r.contains(parse_version("99.0.0"))

    @pytest.mark.parametrize("bad", ["not-a-version", "v", "1.x", "1.6", "v2"])
    def test_malformed_bound_is_unbounded(self, bad):
        r = VersionRange.from_text(bad, bad)

        assert r == VersionRange()
        assert r.contains(parse_version("5.0.0"))


class TestResolveVersionDirectory:
    @pytest.fixture
    def two_lines(self):
        return [
            candidate("1", "v1", "v1.0.0", "v1.9.9"),
            candidate("2", "v2", "v2.0.0", None),
        ]

    @pytest.mark.parametrize("version,expected", [
        ("1.5.0", DirectorySelection("1", "v1")),
        ("2.3.0", DirectorySelection("2", "v2")),
        ("0.9.0", NO_SELECTION),
    ])
    def test_range_examples(self, two_lines, version, expected):
        assert resolve_version_directory(parse_version(version), two_lines) == expected

    def test_failure_sentinel(self):
        assert NO_SELECTION.name == ""
        assert NO_SELECTION.declared_version == UNAVAILABLE
        assert not NO_SELECTION.selected

    def test_preferred_declared_version_wins(self):
        candidates = [candidate("9", "a"), candidate("1", "b")]

        result = resolve_version_directory(parse_version("1.0.0"), candidates, preferred="b")

        assert result == DirectorySelection("1", "b")

    def test_preferred_ignored_for_single_survivor(self):
        candidates = [candidate("0", "a", upper="v0.5.0"), candidate("1", "b", lower="v1.0.0")]

        result = resolve_version_directory(parse_version("1.2.0"), candidates, preferred="a")

        assert result == DirectorySelection("1", "b")

    def test_preferred_loader_called_only_when_needed(self):
        calls = []

        def load():
            calls.append(1)
            return "a"

        single = [candidate("0", "a", upper="v0.5.0"), candidate("1", "b", lower="v1.0.0")]
        assert resolve_version_directory(parse_version("1.2.0"), single, load) == DirectorySelection("1", "b")
        assert resolve_version_directory(parse_version("0.1.0"), [], load) == NO_SELECTION
        assert calls == []

        overlapping = [candidate("0", "a"), candidate("1", "b")]
        assert resolve_version_directory(parse_version("1.2.0"), overlapping, load) == DirectorySelection("0", "a")
        assert calls == [1]

    def test_preferred_without_match_falls_back_to_largest_integer(self):
        candidates = [candidate("3", "x"), candidate("7", "y")]

        result = resolve_version_directory(parse_version("1.0.0"), candidates, preferred="z")

        assert result == DirectorySelection("7", "y")

    def test_integer_order_is_numeric_not_lexical(self):
        candidates = [candidate("9", "nine"), candidate("10", "ten"), candidate("2", "two")]

        assert resolve_version_directory(parse_version("1.0.0"), candidates).name == "10"

    def test_non_integer_names_are_skipped(self):
        candidates = [candidate("legacy", "l"), candidate("-5", "neg"), candidate("3", "three")]

        assert resolve_version_directory(parse_version("1.0.0"), candidates).name == "3"

    def test_no_integer_names_fails(self):
        candidates = [candidate("alpha", "a"), candidate("beta", "b")]

        assert resolve_version_directory(parse_version("1.0.0"), candidates) == NO_SELECTION

    def test_duplicate_preferred_picks_lowest_name(self):
        candidates = [candidate("5", "same"), candidate("4", "same")]

        result = resolve_version_directory(parse_version("1.0.0"), candidates, preferred="same")

        assert result == DirectorySelection("4", "same")

    def test_result_independent_of_input_order(self):
        candidates = [candidate(str(i), f"v{i}") for i in range(6)]

        forward = resolve_version_directory(parse_version("1.0.0"), candidates)
        backward = resolve_version_directory(parse_version("1.0.0"), list(reversed(candidates)))

        assert forward == backward == DirectorySelection("5", "v5")

    def test_empty_candidates(self):
        assert resolve_version_directory(parse_version("1.0.0"), []) == NO_SELECTION

    @pytest.mark.parametrize("version", ["0.1.0", "1.0.0", "1.5.0", "2.0.0", "3.0.0"])
    def test_widening_range_never_drops_candidate(self, version):
        v = parse_version(version)
        bounded = candidate("1", "x", "v1.0.0", "v2.0.0")
        widened = [
            candidate("1", "x", None, "v2.0.0"),
            candidate("1", "x", "v1.0.0", None),
            candidate("1", "x", None, None),
        ]

        if filter_candidates(v, [bounded]):
            for wider in widened:
                assert filter_candidates(v, [wider]) == [wider]


class TestCatalogBranch:
    @pytest.mark.parametrize("version,branch", [
        ("1.5.9", "master"),
        ("1.6.0", "master"),
        ("1.6.1", "v1.6-release"),
        ("1.6.14", "v1.6-release"),
        ("2.0.0-rc1", "v1.6-release"),
        ("2.0.0", "v2.0-release"),
        ("2.1.3", "v2.0-release"),
    ])
    def test_branch_for_version(self, version, branch):
        assert catalog_branch(parse_version(version)) == branch
