"""
Sequential fallback over upstream providers.

Providers are tried strictly in order, one attempt each, every attempt
bounded by the provider's timeout. The first success wins; later providers
are only contacted after the previous one has failed or timed out.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from .errors import AllEndpointsExhausted, UpstreamError
from .models import UpstreamResult
from .providers import UpstreamProvider

logger = logging.getLogger(__name__)


async def fetch_first_success(providers: Sequence[UpstreamProvider], video_id: str) -> UpstreamResult:
    """
    Return the first successful provider response for ``video_id``.

    Raises AllEndpointsExhausted, carrying the last error and every
    per-provider error message, when no provider succeeds.
    """
    total = len(providers)
    last_error: Optional[BaseException] = None
    all_errors: List[str] = []

    for idx, provider in enumerate(providers, 1):
        logger.info(f"🎯 Provider {idx}/{total}: {provider.name}")

        try:
            result = await asyncio.wait_for(provider.fetch_formats(video_id), timeout=provider.timeout)
        except asyncio.TimeoutError as e:
            last_error = UpstreamError(provider.name, f"timed out after {provider.timeout:g}s")
            last_error.__cause__ = e
        except UpstreamError as e:
            last_error = e
        except Exception as e:
            last_error = UpstreamError(provider.name, f"unexpected exception: {e}")
            last_error.__cause__ = e
        else:
            logger.info(f"✅ Provider {idx}/{total} ({provider.name}) succeeded with {len(result.formats)} formats")
            return result

        logger.warning(f"⚠️ Provider {idx}/{total} ({provider.name}) failed: {str(last_error)[:120]}")
        all_errors.append(str(last_error)[:200])

    logger.error(f"❌ All {total} providers failed for {video_id}")
    raise AllEndpointsExhausted(last_error, all_errors)
