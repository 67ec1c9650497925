from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple, Union
from asyncio import sleep

from rdpassthrough.core.models import TorrentInfo
from rdpassthrough.utils.logger import debrid_logger

# ===========================
# Constants
# ===========================
HTTP_RETRY_ERRORS = [429, 500, 502, 503, 504]
READY_STATUSES = ("downloaded", "waiting_files_selection")
FAILED_STATUSES = ("magnet_error", "error", "virus", "dead")


# ===========================
# Torrent Status Helpers
# ===========================
def is_ready(info: TorrentInfo) -> bool:
    return info.status in READY_STATUSES


def is_failed(info: TorrentInfo) -> bool:
    return info.status in FAILED_STATUSES


# ===========================
# Debrid Errors
# ===========================
class DebridError(Exception):

    def __init__(self, message: str, status_code: int = 0, error_code: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


# ===========================
# Base Debrid Service Class
# ===========================
class BaseDebridService(ABC):

    @abstractmethod
    async def add_magnet(self, magnet_link: str) -> str:
        pass

    @abstractmethod
    async def get_torrent_info(self, torrent_id: str) -> TorrentInfo:
        pass

    @abstractmethod
    async def select_files(self, torrent_id: str, file_ids: Union[str, Sequence[int]] = "all") -> None:
        pass

    @abstractmethod
    async def unrestrict_link(self, link: str) -> str:
        pass

    @abstractmethod
    async def get_cached_availability(self, info_hashes: List[str]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_service_name(self) -> str:
        pass

    async def _handle_http_retry_error(
        self,
        response,
        http_error_count: int,
        retry_delay: float,
        max_retries: int
    ) -> Tuple[bool, int]:
        if response.status_code not in HTTP_RETRY_ERRORS:
            return (False, http_error_count)

        http_error_count += 1
        if http_error_count > max_retries:
            debrid_logger.error(f"HTTP {response.status_code} - Max retries")
            return (False, http_error_count)

        debrid_logger.debug(f"HTTP {response.status_code} - Retry {http_error_count}/{max_retries}")
        await sleep(retry_delay)
        return (True, http_error_count)
