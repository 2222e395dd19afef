from pathlib import Path

import pytest

from flowly.core.directory import (
    InMemoryDirectory,
    MatchStatus,
    levenshtein,
    load_directory,
    match_slug,
)

ROOT = Path(__file__).resolve().parents[1]

KNOWN = ["marketing", "test-123", "website-redesign", "alpha"]


class TestMatchSlug:
    def test_exact_match_is_case_insensitive(self):
        match = match_slug("  Marketing ", KNOWN)
        assert (match.status, match.slug) == (MatchStatus.EXACT, "marketing")

    def test_small_typo_is_fuzzy(self):
        match = match_slug("marketng", KNOWN)
        assert (match.status, match.slug) == (MatchStatus.FUZZY, "marketing")

    def test_short_candidates_allow_one_edit(self):
        assert match_slug("alpa", KNOWN).slug == "alpha"
        assert match_slug("alp", KNOWN).status is MatchStatus.NOT_FOUND

    def test_unrelated_is_not_found(self):
        assert match_slug("finance", KNOWN).status is MatchStatus.NOT_FOUND
        assert match_slug("", KNOWN).status is MatchStatus.NOT_FOUND

    def test_ties_break_alphabetically(self):
        assert match_slug("cat", ["cut", "bat"]).slug == "bat"

    def test_fuzzy_result_is_a_known_slug_within_threshold(self):
        for candidate in ["marketin", "markting", "tset-123", "website-redisign", "zzz"]:
            match = match_slug(candidate, KNOWN)
            if match.status is MatchStatus.FUZZY:
                assert match.slug in KNOWN
                assert levenshtein(candidate, match.slug) <= 2


class TestLevenshtein:
    @pytest.mark.parametrize(
        "left, right, distance",
        [("", "", 0), ("abc", "abc", 0), ("kitten", "sitting", 3), ("", "abc", 3)],
    )
    def test_distance(self, left, right, distance):
        assert levenshtein(left, right) == distance

    def test_limit_short_circuits(self):
        assert levenshtein("kitten", "sitting", limit=1) == 2


class TestInMemoryDirectory:
    @pytest.mark.asyncio
    async def test_lookups(self, directory):
        assert await directory.workspace_slugs("org-1") == ["marketing", "beta"]
        assert await directory.workspace_slugs("") == []
        assert await directory.workspace_slugs("org-2") == []
        assert await directory.workspace_id("beta") == "ws-2"
        assert await directory.workspace_id("nope") is None
        assert await directory.project_slugs("ws-2") == ["alpha"]

    @pytest.mark.asyncio
    async def test_resolve_project_slug(self, directory):
        match = await directory.resolve_project_slug("website-redesing")
        assert (match.status, match.slug) == (MatchStatus.FUZZY, "website-redesign")

    @pytest.mark.asyncio
    async def test_load_bundled_directory(self):
        directory = load_directory(ROOT / "config" / "directory.yaml")
        assert "marketing" in await directory.workspace_slugs("org-1")

    def test_missing_file_gives_empty_directory(self, tmp_path):
        assert isinstance(load_directory(tmp_path / "none.yaml"), InMemoryDirectory)
