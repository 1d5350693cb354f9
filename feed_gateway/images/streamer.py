import logging
from typing import AsyncIterator, Dict, Optional
from urllib.parse import urljoin

import httpx

from feed_gateway.errors import InvalidInput, RedirectLoop, UpstreamUnreachable
from feed_gateway.rewrite.referers import resolve_referer
from feed_gateway.utils import shorten

logger = logging.getLogger("uvicorn.error")

IMAGE_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
IMAGE_ACCEPT = "image/*,*/*"
IMAGE_CACHE_CONTROL = "public, max-age=86400"


def image_request_headers(url: str) -> Dict[str, str]:
    headers = {
        "User-Agent": IMAGE_USER_AGENT,
        "Accept": IMAGE_ACCEPT,
        "Accept-Encoding": "identity",
    }
    referer = resolve_referer(url)
    if referer:
        headers["Referer"] = referer
    return headers


def is_http_url(url: str) -> bool:
    return url.startswith(("http://", "https://"))


class ImageStream:
    """An open upstream image response; closing it releases the connection and client."""

    def __init__(
        self,
        response: httpx.Response,
        client: httpx.AsyncClient,
        url: str,
        redirects: int,
    ):
        self.response = response
        self.client = client
        self.url = url
        self.redirects = redirects
        self.bytes_sent = 0
        self._closed = False

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def response_headers(self) -> Dict[str, str]:
        upstream = self.response.headers
        headers = {
            "Content-Type": upstream.get("content-type", "application/octet-stream"),
            "Cache-Control": IMAGE_CACHE_CONTROL,
        }
        # A compressed body is decoded while streaming, so its length no longer applies
        if "content-length" in upstream and "content-encoding" not in upstream:
            headers["Content-Length"] = upstream["content-length"]
        return headers

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                self.bytes_sent += len(chunk)
                yield chunk
            logger.info(f"[Image] Success: {self.bytes_sent} bytes from {shorten(self.url)}")
        except httpx.HTTPError as e:
            logger.warning(f"[Image] Error streaming {shorten(self.url)}: {e!r}")
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.response.aclose()
        await self.client.aclose()


class ImageStreamer:
    """
    Opens image URLs for streaming, following redirects itself so that every hop
    gets its own Referer and the number of hops stays bounded.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_redirects: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=False,
            transport=self._transport,
        )

    async def open(self, url: str) -> ImageStream:
        if not is_http_url(url):
            raise InvalidInput("Invalid URL format", target_url=url)

        client = self._client()
        current = url
        hop = 0
        try:
            while True:
                if hop > self.max_redirects:
                    raise RedirectLoop(target_url=current)

                try:
                    request = client.build_request(
                        "GET", current, headers=image_request_headers(current)
                    )
                    response = await client.send(request, stream=True)
                except (httpx.HTTPError, httpx.InvalidURL) as e:
                    raise UpstreamUnreachable(
                        "Failed to fetch image", target_url=current
                    ) from e

                location = response.headers.get("location")
                if 300 <= response.status_code < 400 and location:
                    await response.aclose()
                    current = urljoin(current, location)
                    hop += 1
                    logger.info(f"[Image] Redirect {hop} to: {shorten(current)}")
                    continue

                return ImageStream(response, client, current, hop)
        except BaseException:
            await client.aclose()
            raise
