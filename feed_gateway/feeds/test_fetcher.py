import httpx
import pytest

from feed_gateway.errors import UpstreamStatus, UpstreamUnreachable
from feed_gateway.feeds import FeedFetcher, decode_feed_body, encode_feed_body
from feed_gateway.utils_tests.upstream_mock import (
    RecordingTransport,
    static_upstream,
    unreachable_upstream,
)

FEED_URL = "https://x.com/feed.xml"
RSS = b'<?xml version="1.0"?><rss><channel><title>t</title></channel></rss>'


@pytest.mark.asyncio
async def test_fetch_returns_body_and_content_type():
    transport = static_upstream(
        RSS, headers={"Content-Type": "application/rss+xml; charset=utf-8"}
    )
    feed = await FeedFetcher(transport=transport).fetch(FEED_URL)

    assert feed.status == 200
    assert feed.content_type == "application/rss+xml; charset=utf-8"
    assert feed.body == RSS.decode()


@pytest.mark.asyncio
async def test_fetch_sends_browser_headers():
    transport = static_upstream(RSS)
    await FeedFetcher(transport=transport).fetch(FEED_URL)

    request = transport.requests[0]
    assert request.method == "GET"
    assert request.headers["user-agent"].startswith("Mozilla/5.0")
    assert "application/rss+xml" in request.headers["accept"]
    assert "application/atom+xml" in request.headers["accept"]
    assert request.headers["cache-control"] == "no-cache"
    assert "accept-language" in request.headers


@pytest.mark.asyncio
async def test_fetch_follows_redirects():
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": FEED_URL})
        return httpx.Response(200, content=RSS, headers={"Content-Type": "text/xml"})

    transport = RecordingTransport(handler)
    feed = await FeedFetcher(transport=transport).fetch("https://x.com/old")
    assert feed.status == 200
    assert len(transport.requests) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [403, 404, 500, 503])
async def test_non_success_status_raises_with_status(status):
    transport = static_upstream(b"nope", status_code=status)
    with pytest.raises(UpstreamStatus) as exc_info:
        await FeedFetcher(transport=transport).fetch(FEED_URL)

    assert exc_info.value.status_code == status
    assert exc_info.value.target_url == FEED_URL
    assert exc_info.value.to_payload() == {"error": f"Server returned status {status}"}


@pytest.mark.asyncio
async def test_network_error_raises_unreachable():
    with pytest.raises(UpstreamUnreachable) as exc_info:
        await FeedFetcher(transport=unreachable_upstream()).fetch(FEED_URL)

    assert exc_info.value.status_code == 502
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_timeout_raises_unreachable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamUnreachable) as exc_info:
        await FeedFetcher(transport=RecordingTransport(handler)).fetch(FEED_URL)
    assert "Timed out" in exc_info.value.message


def test_non_utf8_body_survives_round_trip():
    raw = '<title>中文</title>'.encode("gbk")
    assert encode_feed_body(decode_feed_body(raw)) == raw
