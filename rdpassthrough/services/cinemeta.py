from typing import Optional

from pydantic import ValidationError

from rdpassthrough.config.settings import settings
from rdpassthrough.core.models import Metadata
from rdpassthrough.utils.cache import CacheStore, cache_store
from rdpassthrough.utils.helpers import get_base_id
from rdpassthrough.utils.http_client import HTTPClient, http_client
from rdpassthrough.utils.logger import catalog_logger

# ===========================
# Cinemeta Service Class
# ===========================
class CinemetaService:

    def __init__(self, cache: CacheStore, client: HTTPClient, base_url: str = settings.CINEMETA_URL):
        self.cache = cache
        self.client = client
        self.base_url = base_url

    @staticmethod
    def cache_key(content_type: str, content_id: str) -> str:
        return f"meta_{content_type}_{get_base_id(content_id)}"

    async def get_metadata(self, content_type: str, content_id: str) -> Optional[Metadata]:
        base_id = get_base_id(content_id)
        cache_key = self.cache_key(content_type, content_id)

        cached = self.cache.get_metadata(cache_key)
        if cached:
            return cached

        url = f"{self.base_url}/meta/{content_type}/{base_id}.json"
        catalog_logger.debug(f"Fetching metadata: {url}")

        try:
            response = await self.client.get(url, timeout=settings.METADATA_TIMEOUT)

            if response.status_code != 200:
                catalog_logger.error(f"Cinemeta HTTP {response.status_code} for {base_id}")
                return None

            meta = response.json().get("meta")
            if not meta:
                catalog_logger.debug(f"No metadata: {base_id}")
                return None

            metadata = Metadata.model_validate(meta)

        except ValidationError:
            catalog_logger.error(f"Malformed metadata for {base_id}")
            return None
        except Exception as e:
            catalog_logger.error(f"Metadata fetch error: {type(e).__name__}")
            return None

        self.cache.set_metadata(cache_key, metadata)
        catalog_logger.debug(f"Cached metadata for {content_id}: {metadata.name} ({metadata.year})")
        return metadata

# ===========================
# Singleton Instance
# ===========================
cinemeta_service = CinemetaService(cache_store, http_client)
