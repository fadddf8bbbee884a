"""
Normalization of upstream format lists into a ranked FormatCatalog.

Upstreams report resolution in different shapes ("1080p", "1080p60",
"1920x1080", 1080). Everything is coerced to pixel height before any
comparison. Size and frame rate are carried for display only and never
affect ranking.
"""

import re
from typing import Iterable, List, Optional, Union

from .errors import NoDownloadableFormats
from .models import FormatCatalog, FormatDescriptor, RawFormat

_DIMENSIONS = re.compile(r"^\s*\d+\s*[xX×]\s*(\d+)")
_EMBEDDED_DIMENSIONS = re.compile(r"(?<![0-9])\d+[xX](\d+)(?![0-9])")
_LEADING_INT = re.compile(r"^\s*(\d+)")


def height_from_dimensions(text: Optional[str]) -> int:
    """Height of the first ``WxH`` found anywhere in ``text`` (a filename, say); 0 if none."""
    match = _EMBEDDED_DIMENSIONS.search(text or "")
    return int(match.group(1)) if match else 0


def parse_resolution(value: Union[str, int, float, None]) -> int:
    """Coerce an upstream resolution value to pixel height; 0 when unparseable."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else 0

    match = _DIMENSIONS.match(value)
    if match:
        return int(match.group(1))
    match = _LEADING_INT.match(value)
    if match:
        return int(match.group(1))
    return 0


def container_from(raw: RawFormat) -> str:
    if raw.container:
        return raw.container.lower()
    mime = (raw.mime_type or "").lower()
    if "mp4" in mime:
        return "mp4"
    if "webm" in mime:
        return "webm"
    if "/" in mime:
        return mime.split("/", 1)[1].split(";", 1)[0].strip() or "mp4"
    return "mp4"


def to_descriptor(raw: RawFormat) -> Optional[FormatDescriptor]:
    """Map a raw entry, or None if it has no usable resolution or URL."""
    resolution = parse_resolution(raw.resolution)
    if resolution <= 0 or not raw.url:
        return None
    return FormatDescriptor(
        resolution=resolution,
        container=container_from(raw),
        codec=raw.codec,
        has_audio=raw.has_audio,
        size=raw.size if raw.size and raw.size > 0 else None,
        fps=raw.fps if raw.fps and raw.fps > 0 else None,
        url=raw.url,
    )


def build_catalog(raw_formats: Iterable[RawFormat], provider: Optional[str] = None) -> FormatCatalog:
    """
    Build a deduplicated, resolution-ranked catalog.

    1. Map every entry, dropping non-positive or unparseable resolutions.
    2. Sort descending by resolution, audio-bearing first within a resolution.
       The sort is stable, so upstream order settles any remaining tie.
    3. Keep the first entry per resolution, which is audio-bearing whenever
       any entry at that resolution was.

    Raises NoDownloadableFormats when nothing survives.
    """
    descriptors: List[FormatDescriptor] = []
    for raw in raw_formats:
        descriptor = to_descriptor(raw)
        if descriptor is not None:
            descriptors.append(descriptor)

    descriptors.sort(key=lambda d: (-d.resolution, not d.has_audio))

    unique: List[FormatDescriptor] = []
    seen = set()
    for descriptor in descriptors:
        if descriptor.resolution in seen:
            continue
        seen.add(descriptor.resolution)
        unique.append(descriptor)

    if not unique:
        raise NoDownloadableFormats(provider)

    return FormatCatalog(formats=tuple(unique))
