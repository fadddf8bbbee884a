"""
FastAPI VibeLoader Service
Resolves YouTube URLs to ranked download options through interchangeable upstream APIs
"""

import time
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.middleware.cors import CORSMiddleware
import yt_dlp

from .config import Settings
from .models import (
    DownloadRequest,
    DownloadResponse,
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    HealthStats,
    InfoRequest,
    InfoResponse,
)
from .service import FormatService

settings = Settings.from_env()

# Logging configuration
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# App metadata
VERSION = "1.0.0"
start_time = time.time()

ERROR_STATUS = {
    ErrorCode.INVALID_URL: 400,
    ErrorCode.FORMAT_NOT_AVAILABLE: 404,
    ErrorCode.NO_DOWNLOADABLE_FORMATS: 422,
    ErrorCode.ALL_ENDPOINTS_EXHAUSTED: 502,
    ErrorCode.SERVER_ERROR: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup/shutdown tasks"""
    # Startup
    logger.info("🚀 Starting VibeLoader service...")
    logger.info(f"Version: {VERSION}")
    logger.info(f"yt-dlp version: {yt_dlp.version.__version__}")
    logger.info(f"🔗 External fallback: {settings.external_fallback_url or 'disabled'}")

    client = httpx.AsyncClient(follow_redirects=True)
    app.state.service = FormatService(settings, client=client)

    yield

    # Shutdown
    logger.info("Shutting down VibeLoader service...")
    await client.aclose()


# Create FastAPI app
app = FastAPI(
    title="VibeLoader",
    description="Paste a YouTube URL, pick a quality, get a direct download link",
    version=VERSION,
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service(request: Request) -> FormatService:
    return request.app.state.service


def error_response(error: ErrorDetail) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(error.code, 500),
        content=ErrorResponse(error=error).model_dump(mode='json'),
    )


# ============================================================================
# API ENDPOINTS
# ============================================================================


async def _info(video_url: str, service: FormatService) -> Response:
    logger.info(f"ℹ️ Info request: {video_url}")

    result, error = await service.get_formats(video_url)
    if error or not result:
        return error_response(error)

    return JSONResponse(
        content=InfoResponse(
            success=True,
            video_id=result.video_id,
            provider=result.provider,
            info=result.info,
            formats=result.formats,
        ).model_dump(mode='json')
    )


@app.get("/api/v1/info", response_model=InfoResponse)
async def get_video_info(
    url: Optional[str] = None,
    v: Optional[str] = None,
    service: FormatService = Depends(get_service),
) -> Response:
    """
    Get video metadata and the ranked list of download options

    Pass either the full YouTube `url` or a bare video id as `v`.
    """
    video_url = url or (f"https://www.youtube.com/watch?v={v}" if v else None)
    if not video_url:
        return error_response(ErrorDetail(
            code=ErrorCode.INVALID_URL,
            message="Video URL or ID is required",
            is_transient=False,
        ))
    return await _info(video_url, service)


@app.post("/api/v1/info", response_model=InfoResponse)
async def post_video_info(request: InfoRequest, service: FormatService = Depends(get_service)) -> Response:
    """Same as GET /api/v1/info with the URL in the request body"""
    return await _info(request.video_url, service)


@app.post("/api/v1/download", response_model=DownloadResponse)
async def download_link(request: DownloadRequest, service: FormatService = Depends(get_service)) -> Response:
    """
    Return the direct media URL for the selected quality

    **Flow:**
    1. Resolve the video id and fetch the format catalog
    2. Pick `resolution` (best available when omitted)
    3. Return the URL; the client opens it in a new tab to download
    """
    logger.info(f"📥 Download request: {request.video_url} (resolution={request.resolution or 'best'})")

    link, error = await service.get_download_link(request.video_url, request.resolution)
    if error or not link:
        return error_response(error)

    return JSONResponse(
        content=DownloadResponse(
            success=True,
            url=link.url,
            video_id=link.video_id,
            resolution=link.resolution,
            container=link.container,
            has_audio=link.has_audio,
        ).model_dump(mode='json')
    )


@app.get("/api/v1/download/{video_id}")
async def download_redirect(
    video_id: str,
    resolution: Optional[int] = None,
    service: FormatService = Depends(get_service),
) -> Response:
    """Redirect straight to the media URL, so a plain link triggers the download"""
    link, error = await service.get_download_link(f"https://www.youtube.com/watch?v={video_id}", resolution)
    if error or not link:
        return error_response(error)
    return RedirectResponse(url=link.url, status_code=307)


@app.get("/api/v1/providers")
async def list_providers(service: FormatService = Depends(get_service)):
    """List the upstream providers in the order they are tried."""
    return {
        "total": len(service.providers),
        "providers": [
            {"num": i + 1, "name": p.name, "kind": p.kind, "timeout_seconds": p.timeout}
            for i, p in enumerate(service.providers)
        ]
    }


@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check(service: FormatService = Depends(get_service)):
    """
    Health check endpoint for monitoring

    **Metrics:**
    - Service status and uptime
    - Request statistics
    - Configured provider count
    - yt-dlp version
    """
    return HealthResponse(
        status="healthy",
        version=VERSION,
        uptime_seconds=time.time() - start_time,
        providers=len(service.providers),
        stats=HealthStats(**service.stats),
        yt_dlp_version=yt_dlp.version.__version__,
    )


@app.get("/")
async def root():
    """Root endpoint with service info"""
    return {
        "service": "VibeLoader",
        "version": VERSION,
        "status": "running",
        "endpoints": {
            "info": "/api/v1/info",
            "download": "/api/v1/download",
            "providers": "/api/v1/providers",
            "health": "/api/v1/health",
        },
        "docs": "/docs",
    }


# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Custom 404 handler"""
    return JSONResponse(
        status_code=404,
        content={"detail": "Endpoint not found. See /docs for API documentation."}
    )


@app.exception_handler(500)
async def server_error_handler(request, exc):
    """Custom 500 handler"""
    logger.exception("Internal server error")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error. Please try again later.",
            "is_transient": True,
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
