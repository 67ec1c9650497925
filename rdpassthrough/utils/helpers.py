import re
from typing import Optional

from rdpassthrough.core.models import SeasonEpisode

# ===========================
# Patterns
# ===========================
INFO_HASH_PATTERN = re.compile(r"urn:btih:([a-zA-Z0-9]+)", re.IGNORECASE)
SIZE_LABEL_PATTERN = re.compile(r"💾\s*([\d.,]+\s*[KMGT]i?B)", re.IGNORECASE)


# ===========================
# Content Id Parsing
# ===========================
def get_base_id(content_id: str) -> str:
    return content_id.split(":")[0]


# ===========================
# Magnet Handling
# ===========================
def extract_info_hash(magnet_link: Optional[str]) -> Optional[str]:
    if not magnet_link:
        return None

    match = INFO_HASH_PATTERN.search(magnet_link)
    return match.group(1).lower() if match else None


def build_magnet_link(info_hash: str) -> str:
    return f"magnet:?xt=urn:btih:{info_hash}"


# ===========================
# Cache Key Creation
# ===========================
def create_stream_cache_key(info_hash: str, season_episode: Optional[SeasonEpisode] = None, file_index: int = 0) -> str:
    if season_episode:
        return f"stream_{info_hash}_S{season_episode.season}E{season_episode.episode}"
    return f"stream_{info_hash}_{file_index}"


# ===========================
# Size Label Extraction
# ===========================
def parse_size_label(title: Optional[str]) -> str:
    if not title or not isinstance(title, str):
        return "unknown"

    match = SIZE_LABEL_PATTERN.search(title)
    if not match:
        return "unknown"

    return " ".join(match.group(1).replace(",", ".").split()).upper()
