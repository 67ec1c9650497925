from typing import Optional, List, Union

from pydantic import BaseModel, ConfigDict, Field


# ===========================
# Pipeline Configuration
# ===========================
class PipelineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    torrent_limit: int = 15
    availability_check_limit: int = 15
    max_streams: int = 5
    max_concurrency: int = 3
    request_deadline: Optional[float] = None


# ===========================
# Catalog Metadata
# ===========================
class Metadata(BaseModel):
    """Subset of a catalog `meta` object. Cinemeta sends `year` as "2005–2014" for series."""

    name: str
    year: Optional[Union[int, str]] = None
    type: Optional[str] = None
    id: Optional[str] = None


# ===========================
# Episode Context
# ===========================
class SeasonEpisode(BaseModel):
    model_config = ConfigDict(frozen=True)

    season: int
    episode: int

    def tag(self) -> str:
        return f"S{self.season}E{self.episode}"


# ===========================
# Torrent Candidates
# ===========================
class TorrentCandidate(BaseModel):
    title: str
    info_hash: str
    magnet_link: str
    quality: str = "unknown"
    size: str = "unknown"


class ScoredCandidate(TorrentCandidate):
    match_score: int = 0
    matches: bool = False


# ===========================
# Debrid Torrent Payloads
# ===========================
class TorrentFile(BaseModel):
    id: Optional[int] = None
    path: Optional[str] = None
    filename: Optional[str] = None
    bytes: Optional[int] = None
    selected: Optional[int] = None


class TorrentInfo(BaseModel):
    id: str
    filename: Optional[str] = None
    status: str = ""
    files: List[TorrentFile] = Field(default_factory=list)
    links: List[str] = Field(default_factory=list)


class MatchingFile(BaseModel):
    file_id: int
    file: Optional[TorrentFile] = None
    index: int


# ===========================
# Resolution Results
# ===========================
class StreamResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    title: str


class ResolutionOutcome(BaseModel):
    candidate: TorrentCandidate
    stream: Optional[StreamResult] = None
    reason: Optional[str] = None
    from_cache: bool = False

    @property
    def succeeded(self) -> bool:
        return self.stream is not None and bool(self.stream.url)


class BatchReport(BaseModel):
    streams: List[ResolutionOutcome] = Field(default_factory=list)
    failures: List[ResolutionOutcome] = Field(default_factory=list)
    attempted: int = 0
    batches: int = 0
    timed_out: bool = False


# ===========================
# Stremio Stream Output
# ===========================
class BehaviorHints(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    binge_group: str = Field("real-debrid", alias="bingeGroup")
    not_web_ready: bool = Field(False, alias="notWebReady")


class Stream(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    title: str
    url: str
    behavior_hints: BehaviorHints = Field(default_factory=BehaviorHints, alias="behaviorHints")
