"""
Unit tests for format normalization and catalog ranking.

Run:
    pytest tests/test_aggregator.py -v
"""

import random

import pytest

from vibeloader.aggregator import (
    build_catalog,
    container_from,
    height_from_dimensions,
    parse_resolution,
    to_descriptor,
)
from vibeloader.errors import NoDownloadableFormats
from vibeloader.models import ErrorCode, RawFormat


def raw(res, audio, url=None, **kwargs):
    return RawFormat(url=url or f"https://media.example/{res}-{'av' if audio else 'vo'}",
                     resolution=res, has_audio=audio, **kwargs)


# ─── parse_resolution ────────────────────────────────────────────────────────

@pytest.mark.parametrize("value,expected", [
    ("1080p", 1080),
    ("720p60", 720),
    ("1080p HDR", 1080),
    ("1920x1080", 1080),
    ("640 x 360", 360),
    ("480", 480),
    (480, 480),
    (480.0, 480),
    ("2160p60 HDR", 2160),
    ("LBRY", 0),
    ("", 0),
    (None, 0),
    (0, 0),
    (-720, 0),
    ("-720p", 0),
    (True, 0),
])
def test_parse_resolution(value, expected):
    assert parse_resolution(value) == expected


def test_label_and_integer_resolutions_compare_equal():
    catalog = build_catalog([
        raw("1080p", False, url="https://a"),
        raw(1080, True, url="https://b"),
        raw("1920x1080", False, url="https://c"),
    ])
    assert catalog.resolutions == [1080]
    assert catalog.formats[0].url == "https://b"


# ─── to_descriptor / container_from ──────────────────────────────────────────

def test_to_descriptor_drops_missing_url():
    assert to_descriptor(RawFormat(url=None, resolution="720p", has_audio=True)) is None


def test_to_descriptor_drops_non_positive_sizes():
    descriptor = to_descriptor(raw("360p", True, size=-1, fps=0))
    assert descriptor.size is None
    assert descriptor.fps is None
    assert descriptor.size_label == ""


@pytest.mark.parametrize("fmt,expected", [
    (RawFormat(container="WEBM"), "webm"),
    (RawFormat(mime_type="video/mp4"), "mp4"),
    (RawFormat(mime_type='video/webm; codecs="vp9"'), "webm"),
    (RawFormat(mime_type="video/3gpp"), "3gpp"),
    (RawFormat(), "mp4"),
])
def test_container_from(fmt, expected):
    assert container_from(fmt) == expected


# ─── build_catalog scenarios ─────────────────────────────────────────────────

def test_audio_entry_replaces_video_only_at_same_resolution():
    catalog = build_catalog([raw(1080, True), raw(1080, False), raw(720, True)])
    assert [(f.resolution, f.has_audio) for f in catalog.formats] == [(1080, True), (720, True)]


def test_audio_wins_even_when_listed_after_video_only():
    catalog = build_catalog([raw("720p", False), raw("720p", True)])
    assert len(catalog) == 1
    assert catalog.formats[0].has_audio is True
    assert catalog.formats[0].url.endswith("720p-av")


def test_video_only_kept_where_no_audio_entry_exists():
    catalog = build_catalog([raw("1080p", False), raw("720p", True), raw("360p", True)])
    assert [(f.resolution, f.has_audio) for f in catalog.formats] == [
        (1080, False), (720, True), (360, True),
    ]


def test_upstream_order_breaks_remaining_ties():
    catalog = build_catalog([
        raw("720p", True, url="https://first", mime_type="video/webm"),
        raw("720p", True, url="https://second", mime_type="video/mp4"),
    ])
    assert catalog.formats[0].url == "https://first"


def test_all_non_positive_resolutions_raise():
    with pytest.raises(NoDownloadableFormats) as exc_info:
        build_catalog([raw(0, True), raw(-1, False), raw("audio only", True)], provider="piped (x)")
    detail = exc_info.value.to_detail()
    assert detail.code == ErrorCode.NO_DOWNLOADABLE_FORMATS
    assert detail.details == {"provider": "piped (x)"}


def test_empty_input_raises():
    with pytest.raises(NoDownloadableFormats):
        build_catalog([])


def test_size_and_fps_do_not_affect_ranking():
    catalog = build_catalog([
        raw("720p", True, url="https://small", size=1, fps=24),
        raw("720p", True, url="https://big", size=10 ** 9, fps=60),
    ])
    assert catalog.formats[0].url == "https://small"


def test_catalog_accessors():
    catalog = build_catalog([raw(1080, False), raw(720, True)])
    assert catalog.best().resolution == 1080
    assert catalog.get(720).has_audio is True
    assert catalog.get(480) is None
    assert catalog.formats[0].quality == "1080p"


def test_descriptor_size_label():
    catalog = build_catalog([
        raw(1080, True, size=2 * 1024 ** 3),
        raw(720, True, size=30 * 1024 ** 2),
    ])
    assert catalog.formats[0].size_label == "2.0 GB"
    assert catalog.formats[1].size_label == "30.0 MB"


# ─── Properties over randomized inputs ───────────────────────────────────────

RESOLUTIONS = [144, 240, 360, 480, 720, 1080, 1440, 2160]


def random_formats(rng):
    entries = []
    for i in range(rng.randint(1, 25)):
        res = rng.choice(RESOLUTIONS + [0, -1])
        label = rng.choice([res, f"{res}p", f"{res}p60", f"{res * 16 // 9}x{res}"]) if res > 0 else res
        entries.append(raw(label, rng.random() < 0.5, url=f"https://media.example/{i}"))
    return entries


@pytest.mark.parametrize("seed", range(50))
def test_catalog_properties(seed):
    rng = random.Random(seed)
    entries = random_formats(rng)
    valid = [e for e in entries if parse_resolution(e.resolution) > 0]

    if not valid:
        with pytest.raises(NoDownloadableFormats):
            build_catalog(entries)
        return

    catalog = build_catalog(entries)
    resolutions = catalog.resolutions

    # strictly descending, hence one descriptor per resolution
    assert all(a > b for a, b in zip(resolutions, resolutions[1:]))
    assert set(resolutions) == {parse_resolution(e.resolution) for e in valid}

    # audio is kept wherever some source entry at that resolution had it
    for descriptor in catalog.formats:
        source_has_audio = any(
            e.has_audio for e in valid if parse_resolution(e.resolution) == descriptor.resolution
        )
        assert descriptor.has_audio == source_has_audio

    # idempotent
    assert build_catalog(entries) == catalog


@pytest.mark.parametrize("text,expected", [
    ("youtube_dQw4w9WgXcQ_1280x720_h264.mp4", 720),
    ("youtube_dQw4w9WgXcQ_3840x2160_vp9.webm", 2160),
    ("youtube_dQw4w9WgXcQ.mp4", 0),
    ("", 0),
    (None, 0),
])
def test_height_from_dimensions(text, expected):
    assert height_from_dimensions(text) == expected
