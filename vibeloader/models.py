"""
Pydantic models for request/response schemas and format data
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Optional, Dict, Any, List, Tuple, Union
from enum import Enum


class ErrorCode(str, Enum):
    """Error code classifications"""
    INVALID_URL = "INVALID_URL"
    ALL_ENDPOINTS_EXHAUSTED = "ALL_ENDPOINTS_EXHAUSTED"
    NO_DOWNLOADABLE_FORMATS = "NO_DOWNLOADABLE_FORMATS"
    FORMAT_NOT_AVAILABLE = "FORMAT_NOT_AVAILABLE"
    SERVER_ERROR = "SERVER_ERROR"


def format_size(num_bytes: Optional[int]) -> str:
    """Human-readable size: MB below a gigabyte, GB above."""
    if not num_bytes:
        return ""
    mb = num_bytes / (1024 * 1024)
    if mb >= 1024:
        return f"{mb / 1024:.1f} GB"
    return f"{mb:.1f} MB"


def format_duration(seconds: Optional[float]) -> str:
    if not seconds:
        return ""
    seconds = int(seconds)
    hrs, rem = divmod(seconds, 3600)
    mins, secs = divmod(rem, 60)
    if hrs > 0:
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


# ============================================================================
# CORE DATA
# ============================================================================


class VideoReference(BaseModel):
    """A normalized video identifier plus the URL it was extracted from"""
    model_config = ConfigDict(frozen=True)

    video_id: str = Field(..., min_length=11, max_length=11)
    source_url: str

    @property
    def watch_url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"


class RawFormat(BaseModel):
    """
    One upstream format entry with provider field names already mapped.

    ``resolution`` is left as the upstream reported it ("1080p", "1920x1080",
    1080, ...); the aggregator coerces it to pixel height.
    """
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    resolution: Union[str, int, float, None] = None
    mime_type: Optional[str] = None
    container: Optional[str] = None
    codec: Optional[str] = None
    has_audio: bool = False
    size: Optional[int] = None
    fps: Optional[float] = None


class FormatDescriptor(BaseModel):
    """One downloadable rendition"""
    model_config = ConfigDict(frozen=True)

    resolution: int = Field(..., gt=0, description="Vertical resolution in pixels")
    container: str = Field("mp4", description="Container hint: mp4, webm, ...")
    codec: Optional[str] = None
    has_audio: bool
    size: Optional[int] = Field(None, description="File size in bytes (display only)")
    fps: Optional[float] = Field(None, description="Frame rate (display only)")
    url: str

    @computed_field
    @property
    def quality(self) -> str:
        return f"{self.resolution}p"

    @computed_field
    @property
    def size_label(self) -> str:
        return format_size(self.size)


class FormatCatalog(BaseModel):
    """Formats unique by resolution, sorted descending, audio-bearing preferred"""
    model_config = ConfigDict(frozen=True)

    formats: Tuple[FormatDescriptor, ...] = ()

    def __len__(self) -> int:
        return len(self.formats)

    def best(self) -> Optional[FormatDescriptor]:
        return self.formats[0] if self.formats else None

    def get(self, resolution: int) -> Optional[FormatDescriptor]:
        for fmt in self.formats:
            if fmt.resolution == resolution:
                return fmt
        return None

    @property
    def resolutions(self) -> List[int]:
        return [fmt.resolution for fmt in self.formats]


class VideoInfo(BaseModel):
    """Video metadata reported by the upstream provider"""
    title: Optional[str] = None
    uploader: Optional[str] = None
    uploader_url: Optional[str] = None
    duration_seconds: Optional[float] = None
    view_count: Optional[int] = None
    thumbnail_url: Optional[str] = None

    @computed_field
    @property
    def duration_label(self) -> str:
        return format_duration(self.duration_seconds)


class UpstreamResult(BaseModel):
    """Raw response of a single provider, before aggregation"""
    provider: str
    info: VideoInfo = Field(default_factory=VideoInfo)
    formats: List[RawFormat] = Field(default_factory=list)


# ============================================================================
# API SCHEMAS
# ============================================================================


class ErrorDetail(BaseModel):
    """Error details"""
    code: ErrorCode
    message: str
    is_transient: bool = Field(..., description="True if retry might succeed, False if permanent")
    fallback_url: Optional[str] = Field(None, description="External download page, when configured")
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Error response for failed requests"""
    success: bool = False
    error: ErrorDetail


class InfoRequest(BaseModel):
    """Request schema for POST /api/v1/info"""
    video_url: str = Field(..., description="YouTube video URL")

    class Config:
        json_schema_extra = {
            "example": {
                "video_url": "https://youtube.com/watch?v=dQw4w9WgXcQ",
            }
        }


class FormatsResult(BaseModel):
    """Video info plus its ranked format catalog"""
    video_id: str
    provider: str
    info: VideoInfo
    formats: List[FormatDescriptor]


class InfoResponse(BaseModel):
    """Response schema for /api/v1/info"""
    success: bool = True
    video_id: str
    provider: str
    info: VideoInfo
    formats: List[FormatDescriptor]


class DownloadRequest(BaseModel):
    """Request schema for POST /api/v1/download"""
    video_url: str = Field(..., description="YouTube video URL")
    resolution: Optional[int] = Field(None, description="Pixel height to download; best available when omitted")

    class Config:
        json_schema_extra = {
            "example": {
                "video_url": "https://youtube.com/watch?v=dQw4w9WgXcQ",
                "resolution": 720,
            }
        }


class DownloadLink(BaseModel):
    """The single URL the browser should open"""
    video_id: str
    url: str
    resolution: int
    container: str
    has_audio: bool


class DownloadResponse(BaseModel):
    """Success response for /api/v1/download"""
    success: bool = True
    url: str
    video_id: str
    resolution: int
    container: str
    has_audio: bool


class HealthStats(BaseModel):
    """Statistics for health check"""
    total_requests: int
    failed_requests: int
    exhausted_fetches: int


class HealthResponse(BaseModel):
    """Response schema for /api/v1/health"""
    status: str
    version: str
    uptime_seconds: float
    providers: int
    stats: HealthStats
    yt_dlp_version: str
