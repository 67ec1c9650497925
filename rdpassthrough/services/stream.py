import time
from typing import Any, Callable, Dict, List, Optional

from rdpassthrough.config.settings import settings
from rdpassthrough.core.models import (
    PipelineConfig, ResolutionOutcome, ScoredCandidate, SeasonEpisode, Stream, TorrentCandidate
)
from rdpassthrough.debrid.base import BaseDebridService
from rdpassthrough.debrid.realdebrid import realdebrid_service
from rdpassthrough.services.availability import prioritize_by_availability
from rdpassthrough.services.cinemeta import CinemetaService, cinemeta_service
from rdpassthrough.services.resolver import BatchScheduler, StreamResolver
from rdpassthrough.services.torrentio import TorrentioService, torrentio_service
from rdpassthrough.utils.cache import CacheStore, cache_store
from rdpassthrough.utils.episode import extract_season_episode, rank_candidates_for_episode
from rdpassthrough.utils.logger import stream_logger


# ===========================
# Stream Formatting
# ===========================
def format_stream(outcome: ResolutionOutcome) -> Stream:
    candidate = outcome.candidate
    return Stream(
        name=f"RD+ {candidate.quality or ''}".strip(),
        title=candidate.title,
        url=outcome.stream.url
    )


# ===========================
# Stream Service Class
# ===========================
class StreamService:

    def __init__(
        self,
        metadata_service: CinemetaService,
        torrent_service: TorrentioService,
        debrid_service: BaseDebridService,
        cache: CacheStore,
        config: PipelineConfig,
        resolver: Optional[StreamResolver] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.metadata = metadata_service
        self.torrents = torrent_service
        self.debrid = debrid_service
        self.cache = cache
        self.config = config
        self.resolver = resolver or StreamResolver(debrid_service, cache)
        self.clock = clock

    async def get_streams(self, content_type: str, content_id: str) -> Dict[str, List[Dict[str, Any]]]:
        stream_logger.info(f"Stream request: {content_type} {content_id}")

        try:
            streams = await self._get_streams(content_type, content_id)
        except Exception as e:
            stream_logger.error(f"Stream pipeline failed: {type(e).__name__}: {e}")
            streams = []

        return {"streams": [stream.model_dump(by_alias=True) for stream in streams]}

    async def _get_streams(self, content_type: str, content_id: str) -> List[Stream]:
        start_time = self.clock()

        season_episode = extract_season_episode(content_id) if content_type == "series" else None
        if season_episode:
            stream_logger.debug(f"Looking for Season {season_episode.season}, Episode {season_episode.episode}")

        metadata = await self.metadata.get_metadata(content_type, content_id)
        if not metadata:
            stream_logger.info(f"No metadata found for: {content_id}")
            return []

        stream_logger.debug(f"Found metadata: {metadata.name} ({metadata.year})")

        candidates = await self.torrents.search(content_id, content_type)
        if not candidates:
            stream_logger.info(f"No torrents found for: {content_id}")
            return []

        stream_logger.debug(f"Found {len(candidates)} torrents")

        ordered: List[TorrentCandidate] = list(candidates)
        if season_episode:
            ordered = rank_candidates_for_episode(candidates, season_episode)

        limited = ordered[:self.config.availability_check_limit]
        prioritized = await prioritize_by_availability(limited, self.debrid)
        to_process = prioritized[:self.config.torrent_limit]

        scheduler = BatchScheduler(
            max_concurrency=self.config.max_concurrency,
            max_streams=self.config.max_streams,
            deadline=self.config.request_deadline,
            clock=self.clock
        )

        async def job(candidate: TorrentCandidate) -> ResolutionOutcome:
            return await self._resolve_candidate(candidate, season_episode)

        report = await scheduler.run(to_process, job, started_at=start_time)

        for failure in report.failures:
            stream_logger.debug(f"Failed {failure.candidate.info_hash[:8]}: {failure.reason}")
        if report.timed_out:
            stream_logger.info(f"Request deadline reached after {report.batches} batches")

        streams = [format_stream(outcome) for outcome in report.streams]

        elapsed = self.clock() - start_time
        stream_logger.info(
            f"Returning {len(streams)} streams (processed {report.attempted} torrents in {elapsed:.1f}s)"
        )
        return streams

    async def _resolve_candidate(
        self,
        candidate: TorrentCandidate,
        season_episode: Optional[SeasonEpisode]
    ) -> ResolutionOutcome:
        match_info = ""
        if season_episode and isinstance(candidate, ScoredCandidate) and candidate.matches:
            match_info = f" [MATCHES {season_episode.tag()}]"
        stream_logger.debug(f"Processing torrent: {candidate.title[:50]}{match_info}")

        outcome = await self.resolver.resolve(candidate, season_episode)
        if outcome.succeeded:
            source = "cache" if outcome.from_cache else "provider"
            stream_logger.debug(f"Added stream ({source}): {candidate.title[:40]}")
        return outcome


# ===========================
# Singleton Instance
# ===========================
stream_service = StreamService(
    cinemeta_service,
    torrentio_service,
    realdebrid_service,
    cache_store,
    settings.pipeline_config()
)
