"""Tests for matching issues across sources."""

from __future__ import annotations

import pytest

from fakes import FakeProvider, make_issue
from helixio.core.matching.cross_source import (
    SeriesSourceRef,
    find_issue_cross_matches,
    find_matching_issue,
)
from helixio.core.providers.registry import ProviderRegistry

PRIMARY = make_issue("comicvine", "cv-100", "1", cover_date="2012-03")


class TestFindMatchingIssue:
    def test_picks_best_numbered_candidate(self) -> None:
        exact = make_issue("metron", "m-1", "1", cover_date="March 2012")
        close = make_issue("metron", "m-2", "001", cover_date="2012-04")
        other = make_issue("metron", "m-3", "2", cover_date="2012-03")

        match = find_matching_issue(PRIMARY, [close, other, exact], threshold=0.6)

        assert match is not None
        assert match.issue.source_id == "m-1"
        assert match.source == "metron"
        # number + exact date + neutral title credit
        assert match.confidence == pytest.approx(0.50 + 0.25 + 0.075)
        assert match.match_factors.cover_date_match == "exact"

    def test_number_mismatch_never_matches(self) -> None:
        candidate = make_issue("metron", "m-3", "2", cover_date="2012-03")

        assert find_matching_issue(PRIMARY, [candidate], threshold=0.0) is None

    def test_below_threshold(self) -> None:
        primary = make_issue("comicvine", "cv-100", "1", title="Chapter One")
        candidate = make_issue("metron", "m-1", "1")

        assert find_matching_issue(primary, [candidate]) is None

    def test_no_candidates(self) -> None:
        assert find_matching_issue(PRIMARY, []) is None


class TestFindIssueCrossMatches:
    async def test_queries_each_mapped_source(self) -> None:
        metron = FakeProvider("metron", issues=[make_issue("metron", "m-1", "1", cover_date="2012-03")])
        gcd = FakeProvider("gcd", issues=[make_issue("gcd", "g-1", "1", cover_date="2012-04")])
        comicvine = FakeProvider("comicvine")
        registry = ProviderRegistry()
        for provider in (metron, gcd, comicvine):
            registry.register(provider)

        matches = await find_issue_cross_matches(
            PRIMARY,
            [
                SeriesSourceRef(source="comicvine", source_id="cv-1"),
                SeriesSourceRef(source="gcd", source_id="g-series"),
                SeriesSourceRef(source="metron", source_id="m-series"),
            ],
            threshold=0.6,
            registry=registry,
        )

        assert [m.source for m in matches] == ["metron", "gcd"]
        assert comicvine.issue_requests == []
        assert metron.issue_requests == [("m-series", 200)]
        assert gcd.issue_requests == [("g-series", 200)]

    async def test_provider_error_skips_source(self) -> None:
        registry = ProviderRegistry()
        registry.register(FakeProvider("metron", error=RuntimeError("timeout")))
        registry.register(FakeProvider("gcd", issues=[make_issue("gcd", "g-1", "1", cover_date="2012-03")]))

        matches = await find_issue_cross_matches(
            PRIMARY,
            [
                SeriesSourceRef(source="metron", source_id="m-series"),
                SeriesSourceRef(source="gcd", source_id="g-series"),
                SeriesSourceRef(source="mal", source_id="unregistered"),
            ],
            registry=registry,
        )

        assert [m.issue.source_id for m in matches] == ["g-1"]

    async def test_no_mappings(self) -> None:
        assert await find_issue_cross_matches(PRIMARY, [], registry=ProviderRegistry()) == []
