"""YouTube Data API trend source.

Searches recent Shorts for each of a channel's keywords, ordered by view
count, then fetches statistics and tags for the hits. The fixed mock dataset
used when live acquisition is unavailable also lives here.

API Reference: https://developers.google.com/youtube/v3/docs/search/list
"""

from datetime import datetime
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from trendreel.capabilities.base import TrendSource
from trendreel.core.circuit_breaker import get_circuit_breaker
from trendreel.core.exceptions import (
    CapabilityAuthError,
    CapabilityRateLimitError,
    CapabilityTimeoutError,
    CapabilityUnavailableError,
    CircuitBreakerOpenError,
    ExternalCapabilityError,
)
from trendreel.models.schemas import ChannelConfig, SourceItem

logger = structlog.get_logger(__name__)

_youtube_trends_breaker = get_circuit_breaker("youtube_trends", failure_threshold=5, recovery_timeout=60)


# =============================================================================
# Constants
# =============================================================================

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"

# The Data API exposes no growth metric; live items carry a flat estimate
DEFAULT_GROWTH_RATE = 1.5

MOCK_SOURCE_ITEMS: tuple[SourceItem, ...] = (
    SourceItem(
        id="m1",
        title="2025 AI trend analysis",
        hashtags=("#ai", "#shorts"),
        view_count=500_000,
        region="TW",
        view_growth_rate=1.2,
    ),
    SourceItem(
        id="m2",
        title="liquid metal experiment",
        hashtags=("#science", "#shorts"),
        view_count=1_200_000,
        region="TW",
        view_growth_rate=1.8,
    ),
)


def mock_source_items() -> list[SourceItem]:
    return list(MOCK_SOURCE_ITEMS)


def _parse_published_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class YouTubeTrendSource(TrendSource):
    """Trend source backed by YouTube Data API v3 search."""

    name = "youtube_trends"

    def __init__(
        self,
        api_key: str,
        max_results: int = 8,
        default_region: str = "TW",
        timeout: float = 30.0,
    ):
        self._api_key = api_key
        self.max_results = max_results
        self.default_region = default_region
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "YouTubeTrendSource":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=YOUTUBE_API_BASE,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    @retry(
        retry=retry_if_exception_type(CapabilityRateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _request(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET an API endpoint with circuit breaker and rate-limit retries.

        Raises:
            CircuitBreakerOpenError: When the circuit is open.
            CapabilityRateLimitError: When quota is exhausted after retries.
            CapabilityAuthError: On a rejected API key.
            ExternalCapabilityError: On other API errors.
        """
        if not _youtube_trends_breaker.can_execute():
            raise CircuitBreakerOpenError(self.name, _youtube_trends_breaker.time_until_recovery())

        client = await self._ensure_client()
        try:
            response = await client.get(endpoint, params={**params, "key": self._api_key})
        except httpx.TimeoutException as e:
            await _youtube_trends_breaker.record_failure()
            raise CapabilityTimeoutError(self.name, f"Request timeout: {e}", {"endpoint": endpoint})
        except httpx.RequestError as e:
            await _youtube_trends_breaker.record_failure()
            raise CapabilityUnavailableError(self.name, f"Request failed: {e}", {"endpoint": endpoint})

        if response.status_code == 429:
            await _youtube_trends_breaker.record_failure()
            logger.warning("youtube_trends_rate_limited", endpoint=endpoint)
            raise CapabilityRateLimitError(self.name, "Rate limited by YouTube Data API", {"endpoint": endpoint})
        if response.status_code in (401, 403):
            await _youtube_trends_breaker.record_failure()
            raise CapabilityAuthError(
                self.name,
                "API key rejected or quota exceeded",
                {"endpoint": endpoint, "status_code": response.status_code},
            )
        if response.status_code >= 400:
            await _youtube_trends_breaker.record_failure()
            error_data = response.json() if response.content else {}
            error_msg = error_data.get("error", {}).get("message", "Unknown error")
            logger.error(
                "youtube_trends_api_error",
                status_code=response.status_code,
                error=error_msg,
                endpoint=endpoint,
            )
            raise ExternalCapabilityError(
                self.name,
                f"API error {response.status_code}: {error_msg}",
                {"endpoint": endpoint, "status_code": response.status_code},
            )

        await _youtube_trends_breaker.record_success()
        return response.json() if response.content else {}

    async def search_video_ids(self, keyword: str, region_code: str) -> list[str]:
        data = await self._request(
            "/search",
            {
                "part": "snippet",
                "q": f"#shorts {keyword}".strip(),
                "type": "video",
                "videoDuration": "short",
                "regionCode": region_code,
                "maxResults": self.max_results,
                "order": "viewCount",
            },
        )
        return [
            item["id"]["videoId"]
            for item in data.get("items", [])
            if item.get("id", {}).get("videoId")
        ]

    async def fetch_videos(self, video_ids: list[str], region_code: str) -> list[SourceItem]:
        if not video_ids:
            return []
        data = await self._request(
            "/videos",
            {"part": "snippet,statistics", "id": ",".join(video_ids)},
        )
        items = []
        for video in data.get("items", []):
            snippet = video.get("snippet", {})
            stats = video.get("statistics", {})
            tags = tuple(f"#{tag.lstrip('#')}" for tag in snippet.get("tags", []) if tag)
            items.append(
                SourceItem(
                    id=video["id"],
                    title=snippet.get("title", ""),
                    hashtags=tags,
                    view_count=int(stats.get("viewCount", 0)),
                    region=region_code,
                    view_growth_rate=DEFAULT_GROWTH_RATE,
                    published_at=_parse_published_at(snippet.get("publishedAt")),
                )
            )
        return items

    async def fetch_recent(self, channel: ChannelConfig) -> list[SourceItem]:
        region_code = channel.region_code or self.default_region
        keywords = list(channel.search_keywords) or [channel.niche]

        seen: set[str] = set()
        video_ids: list[str] = []
        for keyword in keywords:
            for video_id in await self.search_video_ids(keyword, region_code):
                if video_id not in seen:
                    seen.add(video_id)
                    video_ids.append(video_id)

        items = await self.fetch_videos(video_ids[:50], region_code)
        logger.info(
            "youtube_trends_fetched",
            channel_id=channel.id,
            keywords=keywords,
            region=region_code,
            count=len(items),
        )
        return items
