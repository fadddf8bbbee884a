"""
Shared fixtures and helpers for the VibeLoader test suite.

Nothing here touches the network: upstream APIs are served by
httpx.MockTransport and providers can be replaced with scripted fakes.
"""

import asyncio
import pathlib
import sys
from typing import Callable, List, Optional

import httpx
import pytest

# ─── Path setup (must happen before any app import) ──────────────────────────

_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

from vibeloader.errors import UpstreamError  # noqa: E402
from vibeloader.models import RawFormat, UpstreamResult, VideoInfo  # noqa: E402
from vibeloader.providers import UpstreamProvider  # noqa: E402

# ─── Constants ───────────────────────────────────────────────────────────────

TEST_VIDEO_ID = "dQw4w9WgXcQ"
TEST_VIDEO_URL = f"https://www.youtube.com/watch?v={TEST_VIDEO_ID}"


# ─── Scripted provider ───────────────────────────────────────────────────────

class ScriptedProvider(UpstreamProvider):
    """
    Provider whose outcome is fixed up front.

    behavior: "ok" returns ``formats``, "fail" raises UpstreamError,
    "hang" sleeps well past its timeout, "crash" raises a plain exception.
    """

    kind = "scripted"

    def __init__(self, label: str, behavior: str = "ok", formats: Optional[List[RawFormat]] = None,
                 timeout: float = 0.05):
        super().__init__(timeout=timeout)
        self.label = label
        self.behavior = behavior
        self.formats = formats if formats is not None else [
            RawFormat(url=f"https://media.example/{label}/720", resolution="720p", has_audio=True),
        ]
        self.calls: List[str] = []
        self.cancelled = False

    @property
    def name(self) -> str:
        return self.label

    async def fetch_formats(self, video_id: str) -> UpstreamResult:
        self.calls.append(video_id)
        if self.behavior == "fail":
            raise UpstreamError(self.name, "HTTP 503", status_code=503)
        if self.behavior == "crash":
            raise RuntimeError("boom")
        if self.behavior == "hang":
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return UpstreamResult(
            provider=self.name,
            info=VideoInfo(title=f"title from {self.label}"),
            formats=self.formats,
        )


@pytest.fixture
def scripted() -> Callable[..., ScriptedProvider]:
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory building an AsyncClient whose requests are answered by ``handler``."""
    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make


# ─── Upstream payloads ───────────────────────────────────────────────────────

@pytest.fixture
def piped_payload():
    """Trimmed /streams/{id} response from a Piped instance."""
    return {
        "title": "Rick Astley - Never Gonna Give You Up",
        "uploader": "Rick Astley",
        "uploaderUrl": "/channel/UCuAXFkgsw1L7xaCfnd5JJOw",
        "duration": 212,
        "views": 1500000000,
        "thumbnailUrl": "https://pipedproxy.example/vi/dQw4w9WgXcQ/maxresdefault.jpg",
        "videoStreams": [
            {"url": "https://piped.example/1080-vo", "quality": "1080p", "mimeType": "video/mp4",
             "codec": "avc1.640028", "videoOnly": True, "contentLength": 80000000, "fps": 25},
            {"url": "https://piped.example/1080-webm", "quality": "1080p", "mimeType": "video/webm",
             "codec": "vp9", "videoOnly": True, "contentLength": 70000000, "fps": 25},
            {"url": "https://piped.example/720-av", "quality": "720p", "mimeType": "video/mp4",
             "codec": "avc1.64001F", "videoOnly": False, "contentLength": 30000000, "fps": 25},
            {"url": "https://piped.example/720-vo", "quality": "720p", "mimeType": "video/mp4",
             "codec": "avc1.64001F", "videoOnly": True, "contentLength": 25000000, "fps": 25},
            {"url": "https://piped.example/360-av", "quality": "360p", "mimeType": "video/mp4",
             "codec": "avc1.42001E", "videoOnly": False, "contentLength": -1, "fps": 25},
            {"url": "https://piped.example/lbry", "quality": "LBRY", "mimeType": "video/mp4",
             "videoOnly": False},
        ],
        "audioStreams": [
            {"url": "https://piped.example/audio", "quality": "128 kbps", "mimeType": "audio/mp4"},
        ],
    }


@pytest.fixture
def invidious_payload():
    """Trimmed /api/v1/videos/{id} response from an Invidious instance."""
    return {
        "title": "Rick Astley - Never Gonna Give You Up",
        "author": "Rick Astley",
        "authorUrl": "/channel/UCuAXFkgsw1L7xaCfnd5JJOw",
        "lengthSeconds": 212,
        "viewCount": 1500000000,
        "videoThumbnails": [
            {"quality": "maxres", "url": "https://inv.example/vi/dQw4w9WgXcQ/maxres.jpg"},
            {"quality": "default", "url": "https://inv.example/vi/dQw4w9WgXcQ/default.jpg"},
        ],
        "formatStreams": [
            {"url": "https://inv.example/720", "type": 'video/mp4; codecs="avc1.64001F, mp4a.40.2"',
             "container": "mp4", "encoding": "h264", "resolution": "720p", "qualityLabel": "720p",
             "size": "1280x720", "fps": 25},
            {"url": "https://inv.example/360", "type": 'video/mp4; codecs="avc1.42001E, mp4a.40.2"',
             "container": "mp4", "encoding": "h264", "resolution": "360p", "qualityLabel": "360p",
             "size": "640x360", "fps": 25},
        ],
        "adaptiveFormats": [
            {"url": "https://inv.example/1080", "type": 'video/webm; codecs="vp9"', "container": "webm",
             "encoding": "vp9", "resolution": "1080p", "qualityLabel": "1080p60", "clen": "52000000",
             "fps": 60},
            {"url": "https://inv.example/720-vo", "type": 'video/mp4; codecs="avc1.4d401f"', "container": "mp4",
             "encoding": "h264", "resolution": "720p", "qualityLabel": "720p", "clen": "21000000", "fps": 25},
            {"url": "https://inv.example/audio", "type": 'audio/webm; codecs="opus"', "container": "webm",
             "clen": "3400000"},
        ],
    }
