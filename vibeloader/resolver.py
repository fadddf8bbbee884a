"""
Video id extraction from user-supplied YouTube URLs
"""

import re
from typing import Optional

from .errors import InvalidUrl
from .models import VideoReference

# 11 characters, case-sensitive, and not the prefix of a longer token
_TOKEN = r"([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"
_HOST = r"(?:(?:www|m|music)\.)?youtube(?:-nocookie)?\.com"

# Tried in order; the first match wins
VIDEO_ID_PATTERNS = [
    # watch links, with v= first or further down the query string
    re.compile(_HOST + r"/watch\?(?:[^#\s]*&)?v=" + _TOKEN),
    # short links
    re.compile(r"youtu\.be/" + _TOKEN),
    # embed links
    re.compile(_HOST + r"/(?:embed|v)/" + _TOKEN),
    # shorts
    re.compile(_HOST + r"/shorts/" + _TOKEN),
    # live links
    re.compile(_HOST + r"/live/" + _TOKEN),
]


def extract_video_id(text: str) -> Optional[str]:
    """Return the video id captured by the first matching pattern, or None."""
    if not text:
        return None
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def resolve(text: str) -> VideoReference:
    """Build a VideoReference, raising InvalidUrl when nothing matches."""
    video_id = extract_video_id(text)
    if video_id is None:
        raise InvalidUrl(text)
    return VideoReference(video_id=video_id, source_url=text.strip())
