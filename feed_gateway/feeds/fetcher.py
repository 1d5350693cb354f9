import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from feed_gateway.errors import UpstreamStatus, UpstreamUnreachable

logger = logging.getLogger("uvicorn.error")

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

FEED_REQUEST_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "application/rss+xml, application/xml, text/xml, application/atom+xml, */*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Cache-Control": "no-cache",
}


@dataclass
class FetchedFeed:
    body: str
    content_type: str
    status: int


def decode_feed_body(raw: bytes) -> str:
    # Rewrite rules only touch ASCII markup, so any ASCII-compatible charset
    # survives a surrogateescape round trip byte for byte
    return raw.decode("utf-8", errors="surrogateescape")


def encode_feed_body(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


class FeedFetcher:
    """Retrieves feed documents with browser-like headers, buffering the whole body."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, url: str) -> FetchedFeed:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=FEED_REQUEST_HEADERS)
        except httpx.InvalidURL as e:
            raise UpstreamUnreachable("Failed to create request", target_url=url) from e
        except httpx.TimeoutException as e:
            raise UpstreamUnreachable("Timed out fetching RSS feed", target_url=url) from e
        except httpx.HTTPError as e:
            raise UpstreamUnreachable("Failed to fetch RSS feed", target_url=url) from e

        if not response.is_success:
            logger.warning(f"[RSS] Unexpected status {response.status_code} for {url}")
            raise UpstreamStatus(response.status_code, target_url=url)

        return FetchedFeed(
            body=decode_feed_body(response.content),
            content_type=response.headers.get("content-type", ""),
            status=response.status_code,
        )
