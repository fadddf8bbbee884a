"""
Format service: URL -> video id -> first successful provider -> ranked catalog.

Public methods return ``(result, error)`` tuples; exactly one side is set.
"""

import logging
from typing import Dict, List, Optional, Tuple

import httpx

from .aggregator import build_catalog
from .config import Settings
from .errors import AllEndpointsExhausted, FormatNotAvailable, VibeLoaderError
from .fetcher import fetch_first_success
from .models import (
    DownloadLink,
    ErrorCode,
    ErrorDetail,
    FormatCatalog,
    FormatDescriptor,
    FormatsResult,
    UpstreamResult,
    VideoReference,
)
from .providers import UpstreamProvider, build_providers
from .resolver import resolve

logger = logging.getLogger(__name__)


def select_format(catalog: FormatCatalog, resolution: Optional[int] = None) -> FormatDescriptor:
    """Pick the requested resolution, or the best one when none is requested."""
    if resolution is None:
        best = catalog.best()
        if best is not None:
            return best
    else:
        descriptor = catalog.get(resolution)
        if descriptor is not None:
            return descriptor
    raise FormatNotAvailable(resolution or 0, catalog.resolutions)


class FormatService:
    """Resolves URLs and builds format catalogs through the configured providers."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        providers: Optional[List[UpstreamProvider]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or Settings()
        self.providers = providers if providers is not None else build_providers(self.settings, client=client)
        self.stats: Dict[str, int] = {
            "total_requests": 0,
            "failed_requests": 0,
            "exhausted_fetches": 0,
        }

    async def _fetch_catalog(self, ref: VideoReference) -> Tuple[UpstreamResult, FormatCatalog]:
        result = await fetch_first_success(self.providers, ref.video_id)
        return result, build_catalog(result.formats, provider=result.provider)

    def _to_error(self, error: Exception, ref: Optional[VideoReference]) -> ErrorDetail:
        self.stats["failed_requests"] += 1

        if isinstance(error, VibeLoaderError):
            fallback_url = None
            if isinstance(error, AllEndpointsExhausted):
                self.stats["exhausted_fetches"] += 1
                if ref is not None:
                    fallback_url = self.settings.fallback_url_for(ref.video_id)
            logger.error(f"❌ {error.code.value}: {error.message}")
            return error.to_detail(fallback_url=fallback_url)

        logger.exception(f"💥 Unexpected error: {error}")
        return ErrorDetail(
            code=ErrorCode.SERVER_ERROR,
            message=f"Unexpected error: {str(error)}",
            is_transient=True,
        )

    async def get_formats(self, video_url: str) -> Tuple[Optional[FormatsResult], Optional[ErrorDetail]]:
        """Fetch video info and the ranked format catalog for a YouTube URL."""
        self.stats["total_requests"] += 1
        ref: Optional[VideoReference] = None
        try:
            ref = resolve(video_url)
            result, catalog = await self._fetch_catalog(ref)
        except Exception as e:
            return None, self._to_error(e, ref)

        logger.info(f"✅ {ref.video_id}: {len(catalog)} formats via {result.provider} (best {catalog.best().quality})")
        return FormatsResult(
            video_id=ref.video_id,
            provider=result.provider,
            info=result.info,
            formats=list(catalog.formats),
        ), None

    async def get_download_link(
        self,
        video_url: str,
        resolution: Optional[int] = None,
    ) -> Tuple[Optional[DownloadLink], Optional[ErrorDetail]]:
        """
        Resolve the one media URL the browser should open.

        Nothing is downloaded here; the caller hands the URL to the browser.
        """
        self.stats["total_requests"] += 1
        ref: Optional[VideoReference] = None
        try:
            ref = resolve(video_url)
            _, catalog = await self._fetch_catalog(ref)
            selected = select_format(catalog, resolution)
        except Exception as e:
            return None, self._to_error(e, ref)

        logger.info(f"📥 {ref.video_id}: download link for {selected.quality} ({selected.container})")
        return DownloadLink(
            video_id=ref.video_id,
            url=selected.url,
            resolution=selected.resolution,
            container=selected.container,
            has_audio=selected.has_audio,
        ), None
