"""Tests for cache-first reordering by provider availability."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from rdpassthrough.services.availability import extract_cached_hashes, prioritize_by_availability

from conftest import FakeDebrid, make_candidate


class TestExtractCachedHashes:
    def test_only_non_empty_objects_count(self) -> None:
        availability = {
            "AAA": {"rd": [{"1": {"filename": "a.mkv", "filesize": 1}}]},
            "bbb": [],
            "ccc": {},
            "ddd": None,
        }
        assert extract_cached_hashes(availability) == {"aaa"}

    def test_non_dict_payload(self) -> None:
        assert extract_cached_hashes([]) == set()
        assert extract_cached_hashes(None) == set()


class TestPrioritizeByAvailability:
    @pytest.mark.asyncio()
    async def test_cached_first_order_preserved(self) -> None:
        candidates = [make_candidate(h) for h in ("a1", "b2", "c3", "d4")]
        debrid = FakeDebrid(cached=["b2", "d4"])

        ordered = await prioritize_by_availability(candidates, debrid)

        assert [c.info_hash for c in ordered] == ["b2", "d4", "a1", "c3"]
        assert debrid.availability_calls == [["a1", "b2", "c3", "d4"]]

    @pytest.mark.asyncio()
    async def test_result_is_a_permutation(self) -> None:
        candidates = [make_candidate(h) for h in ("a1", "b2", "c3")]
        ordered = await prioritize_by_availability(candidates, FakeDebrid(cached=["c3"]))
        assert sorted(c.info_hash for c in ordered) == ["a1", "b2", "c3"]

    @pytest.mark.asyncio()
    async def test_provider_failure_keeps_order(self) -> None:
        candidates = [make_candidate(h) for h in ("a1", "b2")]
        debrid = FakeDebrid(cached=["b2"], availability_error=RuntimeError("HTTP 503"))

        ordered = await prioritize_by_availability(candidates, debrid)

        assert [c.info_hash for c in ordered] == ["a1", "b2"]

    @pytest.mark.asyncio()
    async def test_empty_input_skips_provider(self) -> None:
        debrid = AsyncMock()
        assert await prioritize_by_availability([], debrid) == []
        debrid.get_cached_availability.assert_not_awaited()
