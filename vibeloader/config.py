"""
Service configuration loaded from environment variables.

Settings are built once at startup and passed explicitly to the service;
nothing reads the environment after that.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field

PROVIDER_KINDS = ("piped", "invidious", "cobalt", "ytdlp")

DEFAULT_PIPED_INSTANCES = [
    "https://pipedapi.kavin.rocks",
    "https://pipedapi.adminforge.de",
    "https://pipedapi.in.projectsegfau.lt",
    "https://api.piped.yt",
    "https://pipedapi.moomoo.me",
    "https://pipedapi.syncpundit.io",
]

DEFAULT_INVIDIOUS_INSTANCES = [
    "https://inv.nadeko.net",
    "https://yewtu.be",
    "https://invidious.nerdvpn.de",
]

DEFAULT_COBALT_INSTANCES = [
    "https://api.cobalt.tools/",
    "https://cobalt-api.hyper.lol/",
]


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """Runtime configuration for the format service and HTTP API"""

    providers: List[str] = Field(default_factory=lambda: list(PROVIDER_KINDS))
    piped_instances: List[str] = Field(default_factory=lambda: list(DEFAULT_PIPED_INSTANCES))
    invidious_instances: List[str] = Field(default_factory=lambda: list(DEFAULT_INVIDIOUS_INSTANCES))
    cobalt_instances: List[str] = Field(default_factory=lambda: list(DEFAULT_COBALT_INSTANCES))
    cobalt_api_token: Optional[str] = None
    cobalt_quality: str = "1080"
    fetch_timeout_seconds: Optional[float] = Field(None, gt=0, description="Overrides every per-attempt timeout")
    external_fallback_url: Optional[str] = Field(
        None, description="Template with {video_id}, offered when every provider fails"
    )
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, keeping defaults for unset ones."""
        values = {}

        providers = _split(os.getenv("VIBELOADER_PROVIDERS"))
        if providers:
            unknown = [p for p in providers if p not in PROVIDER_KINDS]
            if unknown:
                raise ValueError(f"Unknown provider kind(s) in VIBELOADER_PROVIDERS: {', '.join(unknown)}")
            values["providers"] = providers

        for env_name, field in (
            ("PIPED_INSTANCES", "piped_instances"),
            ("INVIDIOUS_INSTANCES", "invidious_instances"),
            ("COBALT_INSTANCES", "cobalt_instances"),
            ("ALLOWED_ORIGINS", "allowed_origins"),
        ):
            items = _split(os.getenv(env_name))
            if items:
                values[field] = items

        if os.getenv("COBALT_API_TOKEN"):
            values["cobalt_api_token"] = os.getenv("COBALT_API_TOKEN")
        if os.getenv("COBALT_QUALITY"):
            values["cobalt_quality"] = os.getenv("COBALT_QUALITY")
        if os.getenv("FETCH_TIMEOUT_SECONDS"):
            values["fetch_timeout_seconds"] = float(os.getenv("FETCH_TIMEOUT_SECONDS"))
        if os.getenv("EXTERNAL_FALLBACK_URL"):
            values["external_fallback_url"] = os.getenv("EXTERNAL_FALLBACK_URL")
        if os.getenv("LOG_LEVEL"):
            values["log_level"] = os.getenv("LOG_LEVEL").upper()

        return cls(**values)

    def fallback_url_for(self, video_id: str) -> Optional[str]:
        if not self.external_fallback_url:
            return None
        return self.external_fallback_url.format(video_id=video_id)
