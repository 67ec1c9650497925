from typing import Any, Dict, List

from pydantic import ValidationError

from rdpassthrough.config.settings import settings
from rdpassthrough.core.models import TorrentCandidate
from rdpassthrough.utils.cache import CacheStore, cache_store
from rdpassthrough.utils.helpers import build_magnet_link, parse_size_label
from rdpassthrough.utils.http_client import HTTPClient, http_client
from rdpassthrough.utils.logger import search_logger

# ===========================
# Result Normalization
# ===========================
def normalize_streams(streams: List[Dict[str, Any]]) -> List[TorrentCandidate]:
    candidates = []
    seen_hashes = set()

    for stream in streams:
        if not isinstance(stream, dict):
            continue

        info_hash = str(stream.get("infoHash") or "").strip().lower()
        if not info_hash or info_hash in seen_hashes:
            continue

        title = stream.get("title") or stream.get("name") or info_hash
        try:
            candidate = TorrentCandidate(
                title=title,
                info_hash=info_hash,
                magnet_link=build_magnet_link(info_hash),
                quality=stream.get("name") or "unknown",
                size=parse_size_label(stream.get("title"))
            )
        except (TypeError, ValidationError) as e:
            search_logger.debug(f"Skipping malformed result {info_hash[:8]}: {type(e).__name__}")
            continue

        seen_hashes.add(info_hash)
        candidates.append(candidate)

    return candidates


# ===========================
# Torrentio Service Class
# ===========================
class TorrentioService:

    def __init__(self, cache: CacheStore, client: HTTPClient, base_url: str = settings.TORRENTIO_URL):
        self.cache = cache
        self.client = client
        self.base_url = base_url

    @staticmethod
    def cache_key(content_type: str, content_id: str) -> str:
        return f"torrents_{content_type}_{content_id}"

    async def search(self, content_id: str, content_type: str) -> List[TorrentCandidate]:
        cache_key = self.cache_key(content_type, content_id)

        cached = self.cache.get_torrent_search(cache_key)
        if cached:
            return list(cached)

        url = f"{self.base_url}/stream/{content_type}/{content_id}.json"
        search_logger.debug(f"Searching: {url}")

        try:
            response = await self.client.get(url, timeout=settings.TORRENT_SEARCH_TIMEOUT)

            if response.status_code != 200:
                search_logger.error(f"Torrentio HTTP {response.status_code} for {content_id}")
                return []

            data = response.json()
            streams = data.get("streams") if isinstance(data, dict) else None
            if not isinstance(streams, list):
                search_logger.debug(f"No streams payload for {content_id}")
                return []

            candidates = normalize_streams(streams)

        except Exception as e:
            search_logger.error(f"Torrent search error: {type(e).__name__}")
            return []

        if candidates:
            self.cache.set_torrent_search(cache_key, tuple(candidates))
            search_logger.debug(f"Cached {len(candidates)} torrents for {content_id}")

        return candidates

# ===========================
# Singleton Instance
# ===========================
torrentio_service = TorrentioService(cache_store, http_client)
