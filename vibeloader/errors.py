"""
Exception hierarchy for URL resolution, upstream fetching and format aggregation.

Each exception maps onto a structured ErrorDetail so the API layer can
report it without inspecting message strings.
"""

from typing import Any, Dict, List, Optional

from .models import ErrorCode, ErrorDetail


class VibeLoaderError(Exception):
    """Base class for every error the service reports to callers."""

    code: ErrorCode = ErrorCode.SERVER_ERROR
    is_transient: bool = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def _details(self) -> Optional[Dict[str, Any]]:
        return None

    def to_detail(self, fallback_url: Optional[str] = None) -> ErrorDetail:
        return ErrorDetail(
            code=self.code,
            message=self.message,
            is_transient=self.is_transient,
            fallback_url=fallback_url,
            details=self._details(),
        )


class InvalidUrl(VibeLoaderError):
    """No known YouTube URL shape matched the input."""

    code = ErrorCode.INVALID_URL
    is_transient = False

    def __init__(self, url: str):
        super().__init__("Please enter a valid YouTube URL")
        self.url = url

    def _details(self) -> Dict[str, Any]:
        return {"url": self.url}


class UpstreamError(VibeLoaderError):
    """A single provider attempt failed (bad status, bad JSON, error payload)."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class AllEndpointsExhausted(VibeLoaderError):
    """Every provider failed or timed out."""

    code = ErrorCode.ALL_ENDPOINTS_EXHAUSTED
    is_transient = True

    def __init__(self, last_error: Optional[BaseException], errors: Optional[List[str]] = None):
        super().__init__("All API instances failed. Please try again later.")
        self.last_error = last_error
        self.errors = errors or []

    def _details(self) -> Dict[str, Any]:
        return {
            "last_error": str(self.last_error) if self.last_error else None,
            "all_provider_errors": self.errors,
        }


class NoDownloadableFormats(VibeLoaderError):
    """The provider answered, but nothing in the answer is downloadable."""

    code = ErrorCode.NO_DOWNLOADABLE_FORMATS
    is_transient = False

    def __init__(self, provider: Optional[str] = None):
        super().__init__("No downloadable formats found for this video")
        self.provider = provider

    def _details(self) -> Optional[Dict[str, Any]]:
        if self.provider:
            return {"provider": self.provider}
        return None


class FormatNotAvailable(VibeLoaderError):
    """The requested resolution is not in the catalog."""

    code = ErrorCode.FORMAT_NOT_AVAILABLE
    is_transient = False

    def __init__(self, resolution: int, available: List[int]):
        super().__init__(f"No {resolution}p format available for this video")
        self.resolution = resolution
        self.available = available

    def _details(self) -> Dict[str, Any]:
        return {"requested": self.resolution, "available": self.available}
