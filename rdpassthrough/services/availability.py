from typing import Any, Dict, List, Sequence, Set, TypeVar

from rdpassthrough.core.models import TorrentCandidate
from rdpassthrough.debrid.base import BaseDebridService
from rdpassthrough.utils.logger import debrid_logger

CandidateT = TypeVar("CandidateT", bound=TorrentCandidate)


# ===========================
# Availability Parsing
# ===========================
def extract_cached_hashes(availability: Any) -> Set[str]:
    """A hash counts as cached only when the provider returns a non-empty object for it."""
    cached_hashes = set()

    if not isinstance(availability, dict):
        return cached_hashes

    for info_hash, hash_data in availability.items():
        if isinstance(hash_data, dict) and hash_data:
            cached_hashes.add(str(info_hash).lower())

    return cached_hashes


# ===========================
# Cache-First Reordering
# ===========================
async def prioritize_by_availability(
    candidates: Sequence[CandidateT],
    debrid_service: BaseDebridService
) -> List[CandidateT]:
    candidates = list(candidates)
    info_hashes = [candidate.info_hash for candidate in candidates if candidate.info_hash]

    if not info_hashes:
        return candidates

    try:
        debrid_logger.debug(f"Checking {debrid_service.get_service_name()} availability for {len(info_hashes)} torrents")
        availability: Dict[str, Any] = await debrid_service.get_cached_availability(info_hashes)
    except Exception as e:
        debrid_logger.error(f"Instant availability check failed, keeping order: {type(e).__name__}")
        return candidates

    cached_hashes = extract_cached_hashes(availability)

    cached = [c for c in candidates if c.info_hash.lower() in cached_hashes]
    non_cached = [c for c in candidates if c.info_hash.lower() not in cached_hashes]

    debrid_logger.debug(f"Availability: {len(cached)} cached / {len(non_cached)} non-cached")
    return cached + non_cached
