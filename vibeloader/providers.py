"""
Upstream providers for video metadata and format lists.

Every provider implements ``fetch_formats(video_id) -> UpstreamResult`` and
raises UpstreamError when its service answers badly. The fallback fetcher
treats providers interchangeably and tries them in configured order.

Providers:
  piped      : Piped API (/streams/{id}); videoStreams with a videoOnly flag
  invidious  : Invidious API (/api/v1/videos/{id}); formatStreams (video+audio)
               and adaptiveFormats (video-only or audio-only)
  cobalt     : cobalt.tools API; one stream URL for the requested quality,
               possibly behind a "picker" step
  ytdlp      : yt-dlp run locally in a small dedicated thread pool
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
import yt_dlp

from .aggregator import height_from_dimensions
from .config import Settings
from .errors import UpstreamError
from .models import RawFormat, UpstreamResult, VideoInfo

logger = logging.getLogger(__name__)

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) '
    'AppleWebKit/537.36 (KHTML, like Gecko) '
    'Chrome/120.0.0.0 Safari/537.36'
)


def _host(url: str) -> str:
    return urlparse(url).netloc or url


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class UpstreamProvider(ABC):
    """One upstream service instance that can list formats for a video id."""

    kind: str = ""
    default_timeout: float = 10.0

    def __init__(self, timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout or self.default_timeout
        self._client = client

    @property
    def name(self) -> str:
        return self.kind

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    @abstractmethod
    async def fetch_formats(self, video_id: str) -> UpstreamResult:
        """Fetch metadata and raw formats for ``video_id``."""

    async def _request_json(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Issue one HTTP request and return the decoded JSON object."""
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        headers.update(kwargs.pop("headers", None) or {})

        try:
            if self._client is not None:
                resp = await self._client.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamError(self.name, f"request failed: {e}") from e

        if not resp.is_success:
            raise UpstreamError(self.name, f"HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(self.name, f"invalid JSON: {resp.text[:200]}") from e

        if not isinstance(data, dict):
            raise UpstreamError(self.name, f"unexpected response: {str(data)[:200]}")
        return data


class PipedProvider(UpstreamProvider):
    """Piped API instance"""

    kind = "piped"
    default_timeout = 10.0

    def __init__(self, instance: str, timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        super().__init__(timeout=timeout, client=client)
        self.instance = instance.rstrip("/")

    @property
    def name(self) -> str:
        return f"piped ({_host(self.instance)})"

    async def fetch_formats(self, video_id: str) -> UpstreamResult:
        data = await self._request_json("GET", f"{self.instance}/streams/{video_id}")

        if data.get("error"):
            raise UpstreamError(self.name, f"error: {data.get('message') or data['error']}")

        formats: List[RawFormat] = []
        for stream in data.get("videoStreams") or []:
            mime = stream.get("mimeType") or ""
            if mime and not mime.startswith("video"):
                continue
            formats.append(RawFormat(
                url=stream.get("url"),
                resolution=stream.get("quality") or stream.get("height"),
                mime_type=mime or None,
                codec=stream.get("codec"),
                has_audio=not stream.get("videoOnly", False),
                size=_to_int(stream.get("contentLength")),
                fps=_to_float(stream.get("fps")),
            ))

        info = VideoInfo(
            title=data.get("title"),
            uploader=data.get("uploader"),
            uploader_url=data.get("uploaderUrl"),
            duration_seconds=_to_float(data.get("duration")),
            view_count=_to_int(data.get("views")),
            thumbnail_url=data.get("thumbnailUrl"),
        )
        return UpstreamResult(provider=self.name, info=info, formats=formats)


class InvidiousProvider(UpstreamProvider):
    """Invidious API instance; local=true proxies stream URLs through the instance"""

    kind = "invidious"
    default_timeout = 10.0

    def __init__(self, instance: str, timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        super().__init__(timeout=timeout, client=client)
        self.instance = instance.rstrip("/")

    @property
    def name(self) -> str:
        return f"invidious ({_host(self.instance)})"

    @staticmethod
    def _codec(stream: Dict[str, Any]) -> Optional[str]:
        if stream.get("encoding"):
            return stream["encoding"]
        mime = stream.get("type") or ""
        if 'codecs="' in mime:
            return mime.split('codecs="', 1)[1].rstrip('"')
        return None

    async def fetch_formats(self, video_id: str) -> UpstreamResult:
        data = await self._request_json(
            "GET", f"{self.instance}/api/v1/videos/{video_id}", params={"local": "true"}
        )

        if "error" in data:
            raise UpstreamError(self.name, f"error: {data['error']}")

        formats: List[RawFormat] = []
        # formatStreams are progressive (video+audio); adaptive video/* entries are video-only
        for stream, has_audio in (
            [(s, True) for s in data.get("formatStreams") or []]
            + [(s, False) for s in data.get("adaptiveFormats") or []]
        ):
            mime = stream.get("type") or ""
            if mime and not mime.startswith("video"):
                continue
            formats.append(RawFormat(
                url=stream.get("url"),
                resolution=stream.get("resolution") or stream.get("qualityLabel") or stream.get("size"),
                mime_type=mime or None,
                container=stream.get("container"),
                codec=self._codec(stream),
                has_audio=has_audio,
                size=_to_int(stream.get("clen")),
                fps=_to_float(stream.get("fps")),
            ))

        thumbnails = data.get("videoThumbnails") or []
        thumbnail = next(
            (t.get("url") for t in thumbnails if t.get("quality") in ("maxres", "high")),
            thumbnails[0].get("url") if thumbnails else None,
        )
        author_url = data.get("authorUrl")
        info = VideoInfo(
            title=data.get("title"),
            uploader=data.get("author"),
            uploader_url=f"{self.instance}{author_url}" if author_url and author_url.startswith("/") else author_url,
            duration_seconds=_to_float(data.get("lengthSeconds")),
            view_count=_to_int(data.get("viewCount")),
            thumbnail_url=thumbnail,
        )
        return UpstreamResult(provider=self.name, info=info, formats=formats)


class CobaltProvider(UpstreamProvider):
    """cobalt.tools API instance; yields a single stream at the requested quality"""

    kind = "cobalt"
    default_timeout = 20.0

    def __init__(
        self,
        api_url: str,
        quality: str = "1080",
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.api_url = api_url
        self.quality = quality
        self.api_token = api_token

    @property
    def name(self) -> str:
        return f"cobalt ({_host(self.api_url)})"

    async def fetch_formats(self, video_id: str) -> UpstreamResult:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Api-Key {self.api_token}"

        data = await self._request_json(
            "POST",
            self.api_url,
            headers=headers,
            json={
                "url": f"https://www.youtube.com/watch?v={video_id}",
                "videoQuality": self.quality,
                "downloadMode": "auto",
            },
        )

        status = data.get("status", "")
        if status == "error":
            err = data.get("error", {})
            code = err.get("code", str(err)) if isinstance(err, dict) else str(err)
            raise UpstreamError(self.name, f"error: {code}")

        # "picker" means several files; the first item is the video
        if status == "picker":
            items = data.get("picker") or []
            if not items:
                raise UpstreamError(self.name, "picker returned no items")
            stream_url = items[0].get("url")
        elif status in ("stream", "redirect", "tunnel") or data.get("url"):
            stream_url = data.get("url")
        else:
            raise UpstreamError(self.name, f"unexpected status '{status}': {data.get('text') or str(data)[:200]}")

        if not stream_url:
            raise UpstreamError(self.name, "returned no stream URL")

        filename = data.get("filename") or ""
        container = filename.rsplit(".", 1)[1] if "." in filename else "mp4"
        # cobalt serves the best stream at or below the requested quality; the filename names it
        resolution = height_from_dimensions(filename) or self.quality
        formats = [RawFormat(url=stream_url, resolution=resolution, container=container, has_audio=True)]
        return UpstreamResult(provider=self.name, formats=formats)


class YtDlpProvider(UpstreamProvider):
    """
    yt-dlp extraction; no media is downloaded.

    Extraction runs on a dedicated pool of ``max_workers`` threads so stalled
    extractions never occupy the event loop's default executor. A timed-out
    attempt cannot be interrupted: its thread keeps running until yt-dlp's
    ``socket_timeout`` (the provider timeout) ends it, and while every worker
    is busy, further attempts queue and may time out before starting.

    Only direct http(s) formats are kept; HLS/DASH manifests are not files a
    browser can download.
    """

    kind = "ytdlp"
    default_timeout = 20.0
    max_workers = 4

    def __init__(self, player_clients: Optional[List[str]] = None, timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        self.player_clients = player_clients or ['ios', 'tv_embedded', 'mweb']
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="yt-dlp")

    @staticmethod
    def _is_direct(fmt: Dict[str, Any]) -> bool:
        protocol = (fmt.get("protocol") or "").lower()
        if "m3u8" in protocol or "dash" in protocol or "mpd" in protocol:
            return False
        return not protocol or protocol.startswith("http")

    @property
    def name(self) -> str:
        return "yt-dlp"

    def _build_ytdlp_opts(self) -> Dict[str, Any]:
        return {
            'user_agent': USER_AGENT,
            'extractor_args': {'youtube': {'player_client': self.player_clients}},
            'http_headers': {'Accept-Language': 'en-US,en;q=0.9'},
            'skip_download': True,
            'quiet': True,
            'no_warnings': True,
            'socket_timeout': self.timeout,
        }

    async def fetch_formats(self, video_id: str) -> UpstreamResult:
        opts = self._build_ytdlp_opts()
        video_url = f"https://www.youtube.com/watch?v={video_id}"

        def _extract():
            with yt_dlp.YoutubeDL(opts) as ydl:
                return ydl.extract_info(video_url, download=False)

        loop = asyncio.get_event_loop()
        try:
            info = await loop.run_in_executor(self._executor, _extract)
        except yt_dlp.utils.DownloadError as e:
            raise UpstreamError(self.name, f"extraction failed: {e}") from e

        if not info:
            raise UpstreamError(self.name, "could not extract video info")

        formats: List[RawFormat] = []
        for f in info.get("formats") or []:
            if f.get("vcodec") == "none" or not self._is_direct(f):
                continue
            formats.append(RawFormat(
                url=f.get("url"),
                resolution=f.get("height"),
                container=f.get("ext"),
                codec=f.get("vcodec"),
                has_audio=f.get("acodec") != "none",
                size=f.get("filesize") or f.get("filesize_approx"),
                fps=f.get("fps"),
            ))

        meta = VideoInfo(
            title=info.get("title"),
            uploader=info.get("channel") or info.get("uploader"),
            uploader_url=info.get("channel_url") or info.get("uploader_url"),
            duration_seconds=_to_float(info.get("duration")),
            view_count=info.get("view_count"),
            thumbnail_url=info.get("thumbnail"),
        )
        return UpstreamResult(provider=self.name, info=meta, formats=formats)


def build_providers(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> List[UpstreamProvider]:
    """Build the ordered provider list described by ``settings``."""
    timeout = settings.fetch_timeout_seconds
    providers: List[UpstreamProvider] = []

    for kind in settings.providers:
        if kind == "piped":
            providers.extend(
                PipedProvider(instance, timeout=timeout, client=client)
                for instance in settings.piped_instances
            )
        elif kind == "invidious":
            providers.extend(
                InvidiousProvider(instance, timeout=timeout, client=client)
                for instance in settings.invidious_instances
            )
        elif kind == "cobalt":
            providers.extend(
                CobaltProvider(
                    api_url,
                    quality=settings.cobalt_quality,
                    api_token=settings.cobalt_api_token,
                    timeout=timeout,
                    client=client,
                )
                for api_url in settings.cobalt_instances
            )
        elif kind == "ytdlp":
            providers.append(YtDlpProvider(timeout=timeout))
        else:
            raise ValueError(f"Unknown provider kind: {kind}")

    logger.info(f"Configured {len(providers)} upstream providers: {', '.join(p.name for p in providers)}")
    return providers
