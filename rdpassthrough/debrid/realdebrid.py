from typing import Any, Dict, List, Optional, Sequence, Union

from rdpassthrough.config.settings import settings
from rdpassthrough.core.models import TorrentInfo
from rdpassthrough.debrid.base import BaseDebridService, DebridError
from rdpassthrough.utils.http_client import HTTPClient, http_client
from rdpassthrough.utils.logger import debrid_logger

# ===========================
# Real-Debrid Service Class
# ===========================
class RealDebridService(BaseDebridService):

    def __init__(
        self,
        api_token: Optional[str],
        client: HTTPClient,
        api_url: str = settings.REALDEBRID_API_URL,
        timeout: float = settings.DEBRID_HTTP_TIMEOUT,
        max_retries: int = settings.DEBRID_HTTP_ERROR_MAX_RETRIES,
        retry_delay: float = settings.DEBRID_HTTP_ERROR_RETRY_DELAY
    ):
        self.api_token = api_token or ""
        self.client = client
        self.api_url = api_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def get_service_name(self) -> str:
        return "Real-Debrid"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}"
        }

    async def _api_call(self, endpoint: str, method: str = "GET", data: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.api_url}{endpoint}"
        http_error_count = 0

        while True:
            if method == "POST":
                response = await self.client.post(url, data=data, headers=self._get_headers(), timeout=self.timeout)
            else:
                response = await self.client.get(url, params=data, headers=self._get_headers(), timeout=self.timeout)

            should_retry, http_error_count = await self._handle_http_retry_error(
                response, http_error_count, self.retry_delay, self.max_retries
            )
            if should_retry:
                continue
            break

        if response.status_code >= 400:
            error_code = ""
            message = f"HTTP {response.status_code}"
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    error_code = str(payload.get("error_code", ""))
                    message = f"HTTP {response.status_code}: {payload.get('error', 'unknown error')}"
            except ValueError:
                pass
            raise DebridError(f"{endpoint} {message}", status_code=response.status_code, error_code=error_code)

        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    # ===========================
    # Torrent Protocol
    # ===========================
    async def add_magnet(self, magnet_link: str) -> str:
        data = await self._api_call("/torrents/addMagnet", "POST", {"magnet": magnet_link})
        if not isinstance(data, dict) or not data.get("id"):
            raise DebridError("addMagnet returned no torrent id")
        return str(data["id"])

    async def get_torrent_info(self, torrent_id: str) -> TorrentInfo:
        data = await self._api_call(f"/torrents/info/{torrent_id}")
        if not isinstance(data, dict):
            raise DebridError(f"Malformed torrent info for {torrent_id}")
        return TorrentInfo.model_validate(data)

    async def select_files(self, torrent_id: str, file_ids: Union[str, Sequence[int]] = "all") -> None:
        files = file_ids if isinstance(file_ids, str) else ",".join(str(file_id) for file_id in file_ids)
        await self._api_call(f"/torrents/selectFiles/{torrent_id}", "POST", {"files": files})

    async def unrestrict_link(self, link: str) -> str:
        data = await self._api_call("/unrestrict/link", "POST", {"link": link})
        if not isinstance(data, dict) or not data.get("download"):
            raise DebridError("unrestrict returned no download link")
        return data["download"]

    # ===========================
    # Instant Availability
    # ===========================
    async def get_cached_availability(self, info_hashes: List[str]) -> Dict[str, Any]:
        if not info_hashes:
            return {}

        data = await self._api_call(f"/torrents/instantAvailability/{'/'.join(info_hashes)}")
        if isinstance(data, dict):
            return data
        if not data:
            return {}

        debrid_logger.error(f"Unexpected availability payload: {type(data).__name__}")
        raise DebridError("Malformed instant availability payload")

# ===========================
# Singleton Instance
# ===========================
realdebrid_service = RealDebridService(settings.RD_API_TOKEN, http_client)
