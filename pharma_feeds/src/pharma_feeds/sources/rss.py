"""
HTTP retrieval of RSS/Atom feed markup.

One bounded-time GET per call. Failures are reported immediately as
FetchError; there is no retry at this layer.
"""

from typing import Optional

import httpx

from .base import FeedSource
from ..config import get_settings
from ..errors import FetchError
from ..logging_conf import get_logger

logger = get_logger(__name__)

ACCEPT_HEADER = (
    "application/rss+xml, application/atom+xml, application/xml;q=0.9, "
    "text/xml;q=0.9, */*;q=0.8"
)


class FeedFetcher:
    """
    Fetches raw feed markup with a browser-like client identity.

    Usable as an async context manager so one connection pool is shared by
    every source in a refresh cycle:

        async with FeedFetcher() as fetcher:
            markup = await fetcher.fetch(source)
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_redirects: Optional[int] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize fetcher.

        Args:
            timeout: Request timeout in seconds (default from settings, 15s)
            max_redirects: Redirects to follow before failing (default 5)
            user_agent: User-Agent header value
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.fetch_timeout
        self.max_redirects = max_redirects if max_redirects is not None else settings.max_redirects
        self.user_agent = user_agent or settings.user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            headers={
                "User-Agent": self.user_agent,
                "Accept": ACCEPT_HEADER,
            },
            transport=self._transport,
        )

    async def open(self) -> None:
        """Open the shared client used by subsequent fetches."""
        if self._client is None:
            self._client = self._build_client()

    async def __aenter__(self) -> "FeedFetcher":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, source: FeedSource) -> str:
        """
        Retrieve the feed body for a source.

        Raises:
            FetchError: on timeout, connection failure, redirect overflow or
                a non-2xx status.
        """
        logger.debug("fetching_feed", source=source.name, url=source.url)

        if self._client is not None:
            return await self._get(self._client, source)

        async with self._build_client() as client:
            return await self._get(client, source)

    async def _get(self, client: httpx.AsyncClient, source: FeedSource) -> str:
        try:
            response = await client.get(source.url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise FetchError(
                source.name, f"timeout after {self.timeout:g}s"
            ) from e
        except httpx.TooManyRedirects as e:
            raise FetchError(
                source.name, f"more than {self.max_redirects} redirects"
            ) from e
        except httpx.HTTPStatusError as e:
            raise FetchError(
                source.name,
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(source.name, str(e) or type(e).__name__) from e

        logger.debug(
            "feed_fetched",
            source=source.name,
            status=response.status_code,
            bytes=len(response.content),
        )
        return response.text
