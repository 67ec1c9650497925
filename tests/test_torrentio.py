"""Tests for the Torrentio torrent source."""

from __future__ import annotations

import httpx
import pytest
import respx

from rdpassthrough.services.torrentio import TorrentioService, normalize_streams
from rdpassthrough.utils.cache import CacheStore
from rdpassthrough.utils.http_client import http_client

from conftest import TORRENTIO_URL

_EPISODE_URL = f"{TORRENTIO_URL}/stream/series/tt0434665:6:3.json"
_STREAMS = {
    "streams": [
        {
            "name": "Torrentio\n1080p",
            "title": "The.Office.US.S06E03.1080p.WEB-DL\n👤 35 💾 1.2 GB ⚙️ EZTV",
            "infoHash": "AAAA1111",
            "fileIdx": 0,
        },
        {
            "name": "Torrentio\n720p",
            "title": "The.Office.US.S06.720p.Pack\n👤 90 💾 14.3 GB ⚙️ ThePirateBay",
            "infoHash": "bbbb2222",
        },
    ]
}


@pytest.fixture()
def service(store: CacheStore) -> TorrentioService:
    return TorrentioService(store, http_client, TORRENTIO_URL)


class TestNormalizeStreams:
    def test_maps_fields(self) -> None:
        candidates = normalize_streams(_STREAMS["streams"])

        first = candidates[0]
        assert first.info_hash == "aaaa1111"
        assert first.magnet_link == "magnet:?xt=urn:btih:aaaa1111"
        assert first.quality == "Torrentio\n1080p"
        assert first.size == "1.2 GB"
        assert first.title.startswith("The.Office.US.S06E03")

    def test_skips_entries_without_hash(self) -> None:
        streams = [{"name": "x", "title": "no hash"}, {"url": "https://direct"}, "garbage"]
        assert normalize_streams(streams) == []

    def test_drops_duplicate_hashes(self) -> None:
        streams = [
            {"title": "one", "infoHash": "ABC"},
            {"title": "two", "infoHash": "abc"},
        ]
        candidates = normalize_streams(streams)
        assert [c.title for c in candidates] == ["one"]

    def test_title_fallbacks(self) -> None:
        candidates = normalize_streams([{"infoHash": "abc"}, {"name": "Torrentio\n4k", "infoHash": "def"}])
        assert candidates[0].title == "abc"
        assert candidates[0].quality == "unknown"
        assert candidates[0].size == "unknown"
        assert candidates[1].title == "Torrentio\n4k"

    def test_malformed_entry_is_skipped_alone(self) -> None:
        streams = [
            {"title": "Good.S01E01 💾 700 MB", "infoHash": "a" * 40},
            {"title": 12345, "infoHash": "b" * 40},
            {"name": ["Torrentio"], "infoHash": "c" * 40},
            {"title": "Other.S01E01", "infoHash": "d" * 40},
        ]

        candidates = normalize_streams(streams)

        assert [c.info_hash for c in candidates] == ["a" * 40, "d" * 40]
        assert candidates[0].size == "700 MB"

    def test_malformed_entry_does_not_claim_its_hash(self) -> None:
        streams = [{"title": 12345, "infoHash": "abc"}, {"title": "Fixed", "infoHash": "ABC"}]
        assert [c.title for c in normalize_streams(streams)] == ["Fixed"]


class TestTorrentioService:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_search_caches_results(self, service: TorrentioService) -> None:
        route = respx.get(_EPISODE_URL).respond(200, json=_STREAMS)

        first = await service.search("tt0434665:6:3", "series")
        second = await service.search("tt0434665:6:3", "series")

        assert [c.info_hash for c in first] == ["aaaa1111", "bbbb2222"]
        assert second == first
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio()
    async def test_cached_list_is_a_copy(self, service: TorrentioService) -> None:
        respx.get(_EPISODE_URL).respond(200, json=_STREAMS)

        await service.search("tt0434665:6:3", "series")
        cached = await service.search("tt0434665:6:3", "series")
        cached.clear()

        assert len(await service.search("tt0434665:6:3", "series")) == 2

    @respx.mock
    @pytest.mark.asyncio()
    async def test_empty_results_are_not_cached(self, service: TorrentioService) -> None:
        route = respx.get(_EPISODE_URL).respond(200, json={"streams": []})

        assert await service.search("tt0434665:6:3", "series") == []
        assert await service.search("tt0434665:6:3", "series") == []
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio()
    async def test_http_error(self, service: TorrentioService) -> None:
        respx.get(_EPISODE_URL).respond(500)
        assert await service.search("tt0434665:6:3", "series") == []

    @respx.mock
    @pytest.mark.asyncio()
    async def test_timeout(self, service: TorrentioService) -> None:
        respx.get(_EPISODE_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        assert await service.search("tt0434665:6:3", "series") == []

    @respx.mock
    @pytest.mark.asyncio()
    async def test_payload_without_streams(self, service: TorrentioService) -> None:
        respx.get(_EPISODE_URL).respond(200, json={"error": "not found"})
        assert await service.search("tt0434665:6:3", "series") == []
