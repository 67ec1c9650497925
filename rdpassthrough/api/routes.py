import time
from enum import Enum

from fastapi import APIRouter, Path
from fastapi.responses import JSONResponse

from rdpassthrough.config.settings import settings
from rdpassthrough.services.stream import stream_service
from rdpassthrough.utils.cache import cache_store
from rdpassthrough.utils.http_client import http_client
from rdpassthrough.utils.logger import api_logger


# ===========================
# Router Instance
# ===========================
router = APIRouter()
STARTED_AT = time.time()


# ===========================
# Content Type Enum
# ===========================
class ContentType(str, Enum):
    movie = "movie"
    series = "series"


# ===========================
# Landing Endpoint
# ===========================
@router.get("/", summary="Home", description="Addon status")
async def root():
    return JSONResponse(content={
        "name": settings.ADDON_NAME,
        "version": settings.ADDON_VERSION,
        "status": "online",
        "manifest": "/manifest.json",
        "stats": "/stats"
    })


# ===========================
# Stremio Addon Endpoints
# ===========================
@router.get("/manifest.json", summary="Stremio Manifest", description="Returns addon metadata for installation")
async def get_manifest():
    return JSONResponse(content=settings.ADDON_MANIFEST)


@router.get("/stream/{content_type}/{content_id}",
            summary="Get streams",
            description="Returns Real-Debrid streams for the requested content")
async def get_streams(
    content_type: ContentType = Path(..., description="Content type"),
    content_id: str = Path(..., description="Content identifier")
):
    content_id_formatted = content_id.removesuffix(".json")
    api_logger.debug(f"Stream: {content_type.value}/{content_id_formatted}")

    try:
        result = await stream_service.get_streams(content_type.value, content_id_formatted)
        return JSONResponse(content=result)

    except Exception as e:
        api_logger.error(f"Stream failed: {type(e).__name__}")
        return JSONResponse(content={"streams": []})


# ===========================
# Statistics Endpoint
# ===========================
@router.get("/stats", summary="Statistics", description="Cache statistics and addon status")
async def get_stats():
    return JSONResponse(content={
        "addonStatus": "online",
        "rdConnected": settings.has_debrid_token(),
        "cacheStats": cache_store.stats(),
        "cacheHitRates": cache_store.hit_rates(),
        "cacheSizes": cache_store.sizes(),
        "version": settings.ADDON_VERSION,
        "uptime": round(time.time() - STARTED_AT, 1),
        "torrentLimit": settings.TORRENT_LIMIT
    })


# ===========================
# Health Check Endpoint
# ===========================
async def _check_upstream(name: str, url: str) -> dict:
    check_start = time.time()
    try:
        response = await http_client.get(url, timeout=settings.HEALTH_CHECK_TIMEOUT)
        elapsed = round((time.time() - check_start) * 1000)
        if response.status_code == 200:
            return {"status": "ok", "message": f"{name} accessible", "response_time_ms": elapsed}
        return {"status": "error", "message": f"{name} HTTP {response.status_code}", "response_time_ms": elapsed}
    except Exception as e:
        elapsed = round((time.time() - check_start) * 1000)
        return {"status": "error", "message": f"{name} unreachable: {type(e).__name__}", "response_time_ms": elapsed}


@router.get("/health",
            summary="Health check",
            description="Returns the current health status of the service")
async def health_check():
    start_time = time.time()
    health_status = {
        "status": "healthy",
        "version": settings.ADDON_VERSION,
        "timestamp": int(time.time()),
        "checks": {
            "server": {"status": "ok", "message": "Addon server running"}
        }
    }

    if settings.has_debrid_token():
        health_status["checks"]["realdebrid"] = {"status": "ok", "message": "Token configured"}
    else:
        health_status["checks"]["realdebrid"] = {"status": "error", "message": "Token missing"}
        health_status["status"] = "degraded"

    health_status["checks"]["cinemeta"] = await _check_upstream(
        "Cinemeta", f"{settings.CINEMETA_URL}/manifest.json"
    )
    health_status["checks"]["torrentio"] = await _check_upstream(
        "Torrentio", f"{settings.TORRENTIO_URL}/manifest.json"
    )

    if any(check["status"] == "error" for check in health_status["checks"].values()):
        health_status["status"] = "degraded"

    health_status["total_response_time_ms"] = round((time.time() - start_time) * 1000)
    return health_status
