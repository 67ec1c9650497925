import asyncio
import time
from asyncio import sleep
from typing import Awaitable, Callable, List, Optional, Sequence

from rdpassthrough.config.settings import settings
from rdpassthrough.core.models import (
    BatchReport, ResolutionOutcome, SeasonEpisode, StreamResult, TorrentCandidate, TorrentInfo
)
from rdpassthrough.debrid.base import BaseDebridService, DebridError, is_failed, is_ready
from rdpassthrough.utils.cache import CacheStore
from rdpassthrough.utils.episode import find_matching_file
from rdpassthrough.utils.helpers import build_magnet_link, create_stream_cache_key, extract_info_hash
from rdpassthrough.utils.logger import debrid_logger


# ===========================
# Stream Resolver Class
# ===========================
class StreamResolver:
    """Turns one torrent candidate into a playable URL.

    submit -> inspect -> select -> poll-ready -> materialize -> cache. Never raises:
    every failure comes back as a ``ResolutionOutcome`` carrying a reason.
    """

    def __init__(
        self,
        debrid_service: BaseDebridService,
        cache: CacheStore,
        max_poll_attempts: int = settings.POLL_MAX_ATTEMPTS,
        initial_poll_delay: float = settings.POLL_INITIAL_DELAY,
        poll_delay: float = settings.POLL_DELAY
    ):
        self.debrid = debrid_service
        self.cache = cache
        self.max_poll_attempts = max_poll_attempts
        self.initial_poll_delay = initial_poll_delay
        self.poll_delay = poll_delay

    async def resolve(
        self,
        candidate: TorrentCandidate,
        season_episode: Optional[SeasonEpisode] = None,
        file_index: int = 0
    ) -> ResolutionOutcome:
        info_hash = (candidate.info_hash or extract_info_hash(candidate.magnet_link) or "").lower()
        if not info_hash:
            return ResolutionOutcome(candidate=candidate, reason="missing infoHash")

        cache_key = create_stream_cache_key(info_hash, season_episode, file_index)
        cached = self.cache.get_stream(cache_key)
        if cached:
            return ResolutionOutcome(candidate=candidate, stream=cached, from_cache=True)

        magnet_link = candidate.magnet_link or build_magnet_link(info_hash)

        try:
            stream = await self._resolve_with_provider(magnet_link, season_episode, file_index)
        except Exception as e:
            return ResolutionOutcome(candidate=candidate, reason=f"{type(e).__name__}: {e}")

        self.cache.set_stream(cache_key, stream)
        return ResolutionOutcome(candidate=candidate, stream=stream)

    async def _resolve_with_provider(
        self,
        magnet_link: str,
        season_episode: Optional[SeasonEpisode],
        file_index: int
    ) -> StreamResult:
        torrent_id = await self.debrid.add_magnet(magnet_link)
        info = await self.debrid.get_torrent_info(torrent_id)

        selected_index = file_index
        if season_episode and len(info.files) > 1:
            match = find_matching_file(info.files, season_episode.season, season_episode.episode)
            selected_index = match.index
            debrid_logger.debug(f"Selected file {match.file_id} (index {match.index}) for {season_episode.tag()}")
            await self.debrid.select_files(torrent_id, [match.file_id])
        else:
            await self.debrid.select_files(torrent_id, "all")

        info = await self._wait_until_ready(torrent_id)

        if not info.links:
            raise DebridError("No links available")

        link = info.links[selected_index] if 0 <= selected_index < len(info.links) else info.links[0]
        url = await self.debrid.unrestrict_link(link)

        return StreamResult(url=url, title=f"RD: {info.filename or 'Stream'}")

    async def _wait_until_ready(self, torrent_id: str) -> TorrentInfo:
        info = await self.debrid.get_torrent_info(torrent_id)
        attempts = 0

        while not is_ready(info) and attempts < self.max_poll_attempts:
            if is_failed(info):
                raise DebridError(f"Torrent failed on provider: {info.status}")

            await sleep(self.initial_poll_delay if attempts < 2 else self.poll_delay)
            info = await self.debrid.get_torrent_info(torrent_id)
            attempts += 1

        if not is_ready(info):
            raise DebridError(f"Torrent not ready after {attempts} attempts: {info.status}")

        return info


# ===========================
# Batch Scheduler
# ===========================
DEADLINE_REASON = "deadline exceeded"


class BatchScheduler:
    """Runs resolution jobs in fixed-size concurrent batches.

    Each batch holds at most ``max_concurrency`` jobs and is fully settled before the
    next one starts, so that is the number of provider conversations in flight. No new
    batch is started once ``max_streams`` successes have been collected or the optional
    ``deadline`` (seconds, counted from ``started_at``) has elapsed. Jobs that finished
    before the deadline keep their results; the rest are cancelled.
    """

    def __init__(
        self,
        max_concurrency: int,
        max_streams: int,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_concurrency = max(1, max_concurrency)
        self.max_streams = max(1, max_streams)
        self.deadline = deadline
        self.clock = clock

    def _remaining(self, started: float) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - (self.clock() - started)

    async def run(
        self,
        candidates: Sequence[TorrentCandidate],
        job: Callable[[TorrentCandidate], Awaitable[ResolutionOutcome]],
        started_at: Optional[float] = None
    ) -> BatchReport:
        report = BatchReport()
        started = self.clock() if started_at is None else started_at

        for start in range(0, len(candidates), self.max_concurrency):
            if len(report.streams) >= self.max_streams:
                break

            remaining = self._remaining(started)
            if remaining is not None and remaining <= 0:
                report.timed_out = True
                break

            batch = list(candidates[start:start + self.max_concurrency])
            report.attempted += len(batch)
            report.batches += 1

            tasks = [asyncio.ensure_future(job(candidate)) for candidate in batch]
            _, pending = await asyncio.wait(tasks, timeout=remaining)

            if pending:
                report.timed_out = True
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

            for candidate, task in zip(batch, tasks):
                result = self._outcome(candidate, task, task in pending)

                if result.succeeded and len(report.streams) < self.max_streams:
                    report.streams.append(result)
                elif not result.succeeded:
                    report.failures.append(result)

            if report.timed_out:
                break

        return report

    @staticmethod
    def _outcome(candidate: TorrentCandidate, task: asyncio.Future, timed_out: bool) -> ResolutionOutcome:
        if timed_out or task.cancelled():
            return ResolutionOutcome(candidate=candidate, reason=DEADLINE_REASON)

        error = task.exception()
        if error is not None:
            return ResolutionOutcome(candidate=candidate, reason=f"{type(error).__name__}: {error}")

        return task.result()
