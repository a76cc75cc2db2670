"""
Async client for the MangaDex API.
Fetches manga titles and latest chapters with throttling and bounded timeouts.
"""

from typing import Any, List, Optional, Tuple

import httpx
from asyncio_throttle import Throttler
from pydantic import ValidationError
import structlog

from .errors import UpstreamRejected, UpstreamUnavailable
from .models import ChapterEntity, ChapterListEnvelope, ErrorResponse, MangaEnvelope
from utilities.config import config

logger = structlog.get_logger(__name__)


class MangaDexClient:
    """
    Stateless request/response client for the MangaDex API.

    Failures never retry here: a scan that hits an error simply tries again
    on its next cycle.
    """

    def __init__(
        self,
        api_root: Optional[str] = None,
        timeout: Optional[float] = None,
        rate_limit_per_second: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            api_root: Base URL of the MangaDex API
            timeout: Per-request timeout in seconds
            rate_limit_per_second: Maximum requests started per second
            transport: Optional httpx transport (used by tests)
        """
        self.api_root = (api_root or config.api_root).rstrip('/')
        self.throttler = Throttler(rate_limit=rate_limit_per_second or config.rate_limit_per_second)
        self.logger = logger.bind(component="mangadex_client")

        self.client_config = {
            "timeout": timeout or config.request_timeout,
            "headers": config.get_headers(),
            "follow_redirects": True,
        }
        if transport is not None:
            self.client_config["transport"] = transport

    async def fetch_latest_chapter(self, manga_id: str) -> Optional[ChapterEntity]:
        """
        Fetch the latest English chapter of a manga.

        Returns:
            The chapter, or None when the manga has no published chapters
        """
        params: List[Tuple[str, Any]] = [
            ("manga", manga_id),
            ("limit", "1"),
            ("translatedLanguage[]", "en"),
            ("contentRating[]", "safe"),
            ("contentRating[]", "suggestive"),
            ("order[chapter]", "desc"),
        ]
        payload = await self._fetch_json(f"{self.api_root}/chapter", params)

        response = self._parse(ChapterListEnvelope, payload, manga_id)
        if not response.data:
            return None
        return response.data[-1]

    async def fetch_title(self, manga_id: str) -> Optional[str]:
        """
        Fetch the English (or romanized) title of a manga.

        Returns:
            The title, or None when no suitable title is available
        """
        payload = await self._fetch_json(f"{self.api_root}/manga/{manga_id}")

        response = self._parse(MangaEnvelope, payload, manga_id)
        return response.data.attributes.english_title()

    def _parse(self, envelope, payload: Any, manga_id: str):
        """Decode a tagged envelope, raising on the error variant."""
        try:
            response = envelope.validate_python(payload)
        except ValidationError as e:
            self.logger.error("Unexpected MangaDex response", manga_id=manga_id, error=str(e))
            raise UpstreamUnavailable(f"Unexpected response from MangaDex: {e}") from e

        if isinstance(response, ErrorResponse):
            self.logger.warning(
                "MangaDex returned errors",
                manga_id=manga_id,
                errors=[error.model_dump() for error in response.errors]
            )
            raise UpstreamRejected(response.errors)

        return response

    async def _fetch_json(self, url: str, params: Optional[List[Tuple[str, Any]]] = None) -> Any:
        """
        Send a GET request and decode the JSON body.

        Error statuses are not raised here because MangaDex reports them
        inside the JSON envelope.
        """
        async with self.throttler:
            try:
                async with httpx.AsyncClient(**self.client_config) as client:
                    response = await client.get(url, params=params)
                    return response.json()

            except httpx.HTTPError as e:
                self.logger.error("MangaDex request failed", url=url, error=str(e))
                raise UpstreamUnavailable() from e

            except ValueError as e:
                self.logger.error("MangaDex returned invalid JSON", url=url, error=str(e))
                raise UpstreamUnavailable() from e
