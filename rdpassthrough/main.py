import asyncio
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from rdpassthrough.api.routes import router
from rdpassthrough.utils.cache import cache_store, log_cache_stats_periodically
from rdpassthrough.utils.http_client import http_client
from rdpassthrough.config.settings import settings
from rdpassthrough.utils.logger import setup_logger, addon_logger, api_logger


# ===========================
# Logger Setup
# ===========================
setup_logger(settings.LOG_LEVEL)


# ===========================
# Custom Middleware
# ===========================
class LoguruMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            api_logger.error(f"Exception: {type(e).__name__}")
            raise
        finally:
            process_time = time.time() - start_time
            if request.url.path != "/health":
                api_logger.debug(f"{request.method} {request.url.path} - {status_code} - {process_time:.2f}s")
        return response


# ===========================
# Application Lifecycle
# ===========================
@asynccontextmanager
async def lifespan(app: FastAPI):
    stats_task = asyncio.create_task(log_cache_stats_periodically(cache_store))

    yield

    stats_task.cancel()
    try:
        await stats_task
    except asyncio.CancelledError:
        pass

    await http_client.close()


# ===========================
# FastAPI Application Setup
# ===========================
app = FastAPI(
    title=settings.ADDON_NAME,
    version=settings.ADDON_VERSION,
    lifespan=lifespan
)

app.add_middleware(LoguruMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


# ===========================
# Application Entry Point
# ===========================
if __name__ == "__main__":

    if not settings.has_debrid_token():
        addon_logger.error("RD_API_TOKEN is not set!")
        addon_logger.error("The addon will not be able to resolve any stream")
        addon_logger.error("Please configure your Real-Debrid token in your .env file")

    addon_logger.info(f"Starting {settings.ADDON_NAME} v{settings.ADDON_VERSION} ({settings.ADDON_ID})")
    addon_logger.info(f"Server: http://localhost:{settings.PORT}/")
    addon_logger.info(f"Manifest: http://localhost:{settings.PORT}/manifest.json")
    addon_logger.info(f"Cinemeta: {settings.CINEMETA_URL}")
    addon_logger.info(f"Torrentio: {settings.TORRENTIO_URL}")
    addon_logger.info(
        f"Limits: {settings.TORRENT_LIMIT} torrents, {settings.MAX_STREAMS} streams, "
        f"{settings.MAX_CONCURRENCY} concurrent"
    )
    addon_logger.info(f"Proxy: {'enabled' if settings.PROXY_URL else 'disabled'}")
    addon_logger.info(f"Log level: {settings.LOG_LEVEL}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.PORT,
        log_config=None
    )
