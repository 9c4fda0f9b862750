"""Educational video lookup through the YouTube Data API v3 search endpoint."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import httpx

from tutor.app.core.config import settings
from tutor.app.core.http_client import get_http_client_or_none
from tutor.app.core.logging import get_log_context, get_logger
from tutor.app.exceptions import (
    VideoNotConfiguredError,
    VideoNotFoundError,
    VideoSearchError,
)
from tutor.app.services.response_cache import ResponseCache, get_response_cache, video_key

logger = get_logger(__name__)

# Failures the conversation turns into a fallback reply
VIDEO_ERRORS = (VideoNotConfiguredError, VideoNotFoundError, VideoSearchError)


@dataclass
class VideoData:
    provider: str
    video_id: str
    title: str
    description: str
    thumbnail_url: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def build_search_params(topic: str, api_key: str) -> Dict[str, Any]:
    return {
        "part": "snippet",
        "maxResults": 1,
        "q": f"{topic} educativo explicación tutorial",
        "type": "video",
        "relevanceLanguage": "es",
        "key": api_key,
    }


def _to_video(item: Dict[str, Any]) -> VideoData:
    snippet = item.get("snippet") or {}
    thumbnails = snippet.get("thumbnails") or {}
    thumbnail = thumbnails.get("high") or thumbnails.get("default") or {}
    return VideoData(
        provider="youtube",
        video_id=(item.get("id") or {}).get("videoId", ""),
        title=snippet.get("title", ""),
        description=snippet.get("description", ""),
        thumbnail_url=thumbnail.get("url", ""),
    )


class VideoLookup:
    """Finds one educational video for a topic, cached for a day.

    Usage:
        lookup = VideoLookup()
        video = await lookup.find("Cinemática")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        ttl: Optional[int] = None,
    ):
        self.api_key = settings.youtube_api_key if api_key is None else api_key
        self.api_url = api_url or settings.youtube_api_url
        self._http_client = http_client
        self._cache = cache
        self.ttl = ttl if ttl is not None else settings.cache_content_ttl

    @property
    def cache(self) -> ResponseCache:
        if self._cache is None:
            self._cache = get_response_cache()
        return self._cache

    async def _search(self, topic: str) -> Dict[str, Any]:
        params = build_search_params(topic, self.api_key)
        client = self._http_client or get_http_client_or_none()
        try:
            if client is not None:
                resp = await client.get(self.api_url, params=params)
            else:
                async with httpx.AsyncClient(timeout=settings.httpx_read_timeout) as own:
                    resp = await own.get(self.api_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise VideoSearchError(f"Error al buscar videos: {type(e).__name__}") from e
        except ValueError as e:
            raise VideoSearchError("Error al buscar videos: respuesta no válida") from e
        if not isinstance(data, dict):
            raise VideoSearchError("Error al buscar videos: respuesta no válida")
        return data

    async def find(self, topic: str) -> VideoData:
        """Return the top search result for the topic.

        Raises:
            VideoNotConfiguredError: If no API key is configured
            VideoNotFoundError: If the search returns no items
            VideoSearchError: If the request fails
        """
        key = video_key(topic)
        cached = await self.cache.get(key)
        if isinstance(cached, dict):
            return VideoData(**cached)

        if not self.api_key:
            raise VideoNotConfiguredError()

        data = await self._search(topic)
        items = data.get("items") or []
        if not items:
            raise VideoNotFoundError(topic)

        video = _to_video(items[0])
        logger.debug(
            f"Video found for {topic!r}: {video.video_id}",
            extra=get_log_context(flow="video"),
        )
        await self.cache.set(key, video.to_dict(), ttl=self.ttl)
        return video
