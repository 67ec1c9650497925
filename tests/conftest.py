"""Shared fixtures: fake clock, cache store, scripted debrid provider, candidates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from unittest.mock import AsyncMock, patch

import pytest

from rdpassthrough.core.models import TorrentCandidate, TorrentFile, TorrentInfo
from rdpassthrough.debrid.base import BaseDebridService, DebridError, READY_STATUSES
from rdpassthrough.utils.cache import CacheStore
from rdpassthrough.utils.helpers import build_magnet_link, extract_info_hash
from rdpassthrough.utils.http_client import http_client

CINEMETA_URL = "https://v3-cinemeta.strem.io"
TORRENTIO_URL = "https://torrentio.strem.fun"
REALDEBRID_URL = "https://api.real-debrid.com/rest/1.0"


# ---------------------------------------------------------------------------
# Clock and cache
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> CacheStore:
    """Cache store with short, distinct TTLs driven by the fake clock."""
    return CacheStore(
        metadata_ttl=100,
        torrent_search_ttl=50,
        streams_ttl=10,
        maxsize=100,
        timer=clock,
    )


@pytest.fixture(autouse=True)
def _reset_http_client() -> Iterable[None]:
    """Each test gets its own event loop, so never reuse the pooled client."""
    yield
    http_client._client = None


@pytest.fixture()
def no_sleep() -> Iterable[AsyncMock]:
    """Readiness polling without real delays."""
    with patch("rdpassthrough.services.resolver.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


def make_candidate(info_hash: str, title: str = "", quality: str = "1080p") -> TorrentCandidate:
    return TorrentCandidate(
        title=title or f"Release {info_hash}",
        info_hash=info_hash,
        magnet_link=build_magnet_link(info_hash),
        quality=quality,
    )


@pytest.fixture()
def movie_candidate() -> TorrentCandidate:
    return make_candidate(
        "aaaa1111",
        title="The.Shawshank.Redemption.1994.1080p.BluRay.x264\n👤 120 💾 2.1 GB ⚙️ ThePirateBay",
        quality="Torrentio\n1080p",
    )


# ---------------------------------------------------------------------------
# Scripted debrid provider
# ---------------------------------------------------------------------------


@dataclass
class FakeTorrent:
    """Provider-side torrent. ``statuses`` are consumed one per info fetch; the last one sticks."""

    filename: str = "Release.mkv"
    files: List[TorrentFile] = field(default_factory=lambda: [TorrentFile(id=1, path="/Release.mkv")])
    links: List[str] = field(default_factory=lambda: ["https://real-debrid.com/d/LINK1"])
    statuses: List[str] = field(default_factory=lambda: ["downloaded"])
    fail_on_add: bool = False


class FakeDebrid(BaseDebridService):
    """In-memory provider that records every call it receives."""

    def __init__(
        self,
        torrents: Optional[Dict[str, FakeTorrent]] = None,
        cached: Sequence[str] = (),
        availability_error: Optional[Exception] = None,
    ) -> None:
        self.torrents = torrents or {}
        self.cached = {h.lower() for h in cached}
        self.availability_error = availability_error
        self.added: List[str] = []
        self.selected: List[tuple] = []
        self.unrestricted: List[str] = []
        self.availability_calls: List[List[str]] = []

    def get_service_name(self) -> str:
        return "Fake-Debrid"

    async def add_magnet(self, magnet_link: str) -> str:
        info_hash = extract_info_hash(magnet_link) or ""
        self.added.append(info_hash)
        torrent = self.torrents.get(info_hash)
        if torrent is None or torrent.fail_on_add:
            raise DebridError("/torrents/addMagnet HTTP 400: infringing_file", status_code=400)
        return info_hash

    async def get_torrent_info(self, torrent_id: str) -> TorrentInfo:
        torrent = self.torrents[torrent_id]
        status = torrent.statuses.pop(0) if len(torrent.statuses) > 1 else torrent.statuses[0]
        return TorrentInfo(
            id=torrent_id,
            filename=torrent.filename,
            status=status,
            files=torrent.files,
            links=torrent.links if status in READY_STATUSES else [],
        )

    async def select_files(self, torrent_id: str, file_ids: Union[str, Sequence[int]] = "all") -> None:
        self.selected.append((torrent_id, file_ids))

    async def unrestrict_link(self, link: str) -> str:
        self.unrestricted.append(link)
        return f"https://download.real-debrid.com/d/{link.rsplit('/', 1)[-1]}/file.mkv"

    async def get_cached_availability(self, info_hashes: List[str]) -> Dict[str, Any]:
        self.availability_calls.append(list(info_hashes))
        if self.availability_error:
            raise self.availability_error
        return {
            h: {"rd": [{"1": {"filename": "file.mkv", "filesize": 1}}]} if h.lower() in self.cached else []
            for h in info_hashes
        }


@pytest.fixture()
def fake_debrid() -> FakeDebrid:
    return FakeDebrid()
