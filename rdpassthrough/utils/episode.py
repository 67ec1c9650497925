import re
from typing import List, Optional, Sequence, Tuple

from rdpassthrough.core.models import MatchingFile, ScoredCandidate, SeasonEpisode, TorrentCandidate, TorrentFile
from rdpassthrough.utils.logger import stream_logger

# ===========================
# Scoring Constants
# ===========================
SCORE_PADDED_TAG = 10  # S06E03
SCORE_PADDED_CROSS = 9  # 06x03
SCORE_VERBOSE = 8  # Season 6 Episode 3
SCORE_SHORT_TAG = 7  # S6E3
SCORE_SHORT_CROSS = 6  # 6x03
OTHER_EPISODE_PENALTY = 5
NON_MATCHING_FALLBACK = 3

EPISODE_TAG_PATTERN = re.compile(r"s(\d+)e(\d+)", re.IGNORECASE)


# ===========================
# Content Id Parsing
# ===========================
def extract_season_episode(content_id: Optional[str]) -> Optional[SeasonEpisode]:
    """`tt0434665:6:3` -> SeasonEpisode(season=6, episode=3); anything else -> None."""
    if not content_id:
        return None

    parts = content_id.split(":")
    if len(parts) < 3:
        return None

    try:
        season = int(parts[1])
        episode = int(parts[2])
    except ValueError:
        return None

    if season < 1 or episode < 1:
        return None

    return SeasonEpisode(season=season, episode=episode)


# ===========================
# Pattern Builders
# ===========================
def _weighted_patterns(season: int, episode: int) -> List[Tuple[re.Pattern, int]]:
    s, e = str(season), str(episode)
    ss, ee = s.zfill(2), e.zfill(2)

    return [
        (re.compile(rf"(?<!\d)s{ss}e{ee}(?!\d)", re.IGNORECASE), SCORE_PADDED_TAG),
        (re.compile(rf"\b{ss}x{ee}\b", re.IGNORECASE), SCORE_PADDED_CROSS),
        (re.compile(rf"season\s*{s}\s*episode\s*{e}(?!\d)", re.IGNORECASE), SCORE_VERBOSE),
        (re.compile(rf"(?<!\d)s{s}e{e}(?!\d)", re.IGNORECASE), SCORE_SHORT_TAG),
        (re.compile(rf"\b{s}x{ee}\b", re.IGNORECASE), SCORE_SHORT_CROSS),
    ]


def _fallback_pattern(episode: int) -> re.Pattern:
    return re.compile(rf"\be{str(episode).zfill(2)}\b", re.IGNORECASE)


def find_episode_tags(text: str) -> List[Tuple[int, int]]:
    return [(int(m.group(1)), int(m.group(2))) for m in EPISODE_TAG_PATTERN.finditer(text)]


def _pattern_score(text: str, season: int, episode: int) -> int:
    return sum(weight for pattern, weight in _weighted_patterns(season, episode) if pattern.search(text))


# ===========================
# Title Classification
# ===========================
def matches_episode(title: Optional[str], season: Optional[int], episode: Optional[int]) -> bool:
    if not title or not season or not episode:
        return False

    patterns = [pattern for pattern, _ in _weighted_patterns(season, episode)]
    patterns.append(_fallback_pattern(episode))

    return any(pattern.search(title) for pattern in patterns)


def get_episode_match_score(title: Optional[str], season: Optional[int], episode: Optional[int]) -> int:
    """Higher is a more specific match. Titles also tagged with another episode are penalised once."""
    if not title or not season or not episode:
        return 0

    score = _pattern_score(title, season, episode)

    if any(tag != (season, episode) for tag in find_episode_tags(title)):
        score -= OTHER_EPISODE_PENALTY

    return score


# ===========================
# File Selection
# ===========================
def _file_id(file: TorrentFile, index: int) -> int:
    return file.id if file.id is not None else index


def find_matching_file(
    files: Optional[Sequence[TorrentFile]],
    season: Optional[int],
    episode: Optional[int]
) -> MatchingFile:
    if not files:
        return MatchingFile(file_id=0, file=None, index=0)

    first_file = files[0]
    fallback = MatchingFile(file_id=_file_id(first_file, 0), file=first_file, index=0)

    if not season or not episode:
        return fallback

    best_index = 0
    best_score = None

    for index, file in enumerate(files):
        filename = (file.path or file.filename or "").lower()
        score = _pattern_score(filename, season, episode)

        for tag in find_episode_tags(filename):
            if tag != (season, episode):
                score -= OTHER_EPISODE_PENALTY

        if best_score is None or score > best_score:
            best_index, best_score = index, score

    if best_score > 0:
        best_file = files[best_index]
        name = best_file.path or best_file.filename or ""
        stream_logger.debug(f"Matching file: {name[:60]} (score: {best_score})")
        return MatchingFile(file_id=_file_id(best_file, best_index), file=best_file, index=best_index)

    stream_logger.debug("No clear episode match in filenames, using first file")
    return fallback


# ===========================
# Candidate Ranking
# ===========================
def rank_candidates_for_episode(
    candidates: Sequence[TorrentCandidate],
    season_episode: SeasonEpisode,
    fallback_count: int = NON_MATCHING_FALLBACK
) -> List[ScoredCandidate]:
    """Matching releases by descending score, then a few non-matching ones as fallback."""
    scored = [
        ScoredCandidate(
            **candidate.model_dump(include=set(TorrentCandidate.model_fields)),
            match_score=get_episode_match_score(candidate.title, season_episode.season, season_episode.episode),
            matches=matches_episode(candidate.title, season_episode.season, season_episode.episode)
        )
        for candidate in candidates
    ]

    matching = sorted((c for c in scored if c.matches), key=lambda c: c.match_score, reverse=True)
    non_matching = [c for c in scored if not c.matches]

    stream_logger.debug(
        f"Filtered to {len(matching)} matching torrents ({len(non_matching)} non-matching available as fallback)"
    )
    if not matching:
        stream_logger.warning(f"No torrents clearly match {season_episode.tag()}, using best available")

    return matching + non_matching[:fallback_count]
