import html
import logging
from datetime import datetime, timezone
from urllib.parse import unquote_plus

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask

from feed_gateway.auth import require_auth
from feed_gateway.errors import GatewayError, InvalidInput
from feed_gateway.feeds import FeedFetcher, encode_feed_body
from feed_gateway.images import ImageStreamer
from feed_gateway.images.streamer import is_http_url
from feed_gateway.mirrors import MirrorResolver, describe_address
from feed_gateway.models import (
    AddressDescriptionResponse,
    ErrorResponse,
    HealthResponse,
    InstancesResponse,
    SubscribeResponse,
)
from feed_gateway.rewrite import ContentRewriter
from feed_gateway.utils import shorten
from feed_gateway.utils.traced_requests import traced_request
from feed_gateway.vars import (
    FEED_TIMEOUT,
    IMAGE_TIMEOUT,
    MAX_REDIRECTS,
    PROBE_TIMEOUT,
    RSSHUB_DEFAULT,
    RSSHUB_INSTANCES,
    SERVER_URL,
    SERVICE_NAME,
)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}

logger = logging.getLogger("uvicorn.error")

tracer = trace.get_tracer(__name__)

mirror_resolver = MirrorResolver(RSSHUB_INSTANCES, RSSHUB_DEFAULT, PROBE_TIMEOUT)
feed_fetcher = FeedFetcher(timeout=FEED_TIMEOUT)
image_streamer = ImageStreamer(timeout=IMAGE_TIMEOUT, max_redirects=MAX_REDIRECTS)
content_rewriter = ContentRewriter(SERVER_URL)


def extract_url_param(request: Request) -> str:
    """
    Read the ``url`` query value without splitting it on ``&``.

    Target URLs are often passed unencoded, so everything after ``url=`` in the
    raw query string belongs to the target; it is percent-decoded once.
    """
    raw_query = request.url.query
    value = ""
    idx = raw_query.find("url=")
    if idx != -1:
        value = unquote_plus(raw_query[idx + len("url="):])
    if not value:
        value = request.query_params.get("url", "")
    return html.unescape(value)


@router.get(
    "/api/rss", dependencies=[Depends(require_auth)], responses=ERROR_RESPONSES
)
async def proxy_feed(request: Request):
    address = extract_url_param(request)
    if not address:
        raise InvalidInput("Missing url parameter")

    described = describe_address(address)
    feed_url = mirror_resolver.resolve_address(address)

    with traced_request(
        tracer,
        operation="proxy_feed",
        target_url=feed_url,
        start_message=f"[RSS] Fetching: {feed_url}",
        extra_attrs={
            "feed.address": address,
            "feed.platform": described.platform if described else None,
        },
    ) as span:
        try:
            feed = await feed_fetcher.fetch(feed_url)
        except GatewayError as e:
            span.set_attribute("proxy.error", e.message)
            raise

        content = content_rewriter.rewrite(feed.body, feed_url)
        span.set_attribute("proxy.status_code", feed.status)
        logger.info(f"[RSS] Success: {len(content)} chars from {feed_url}")

        headers = {"Content-Type": feed.content_type} if feed.content_type else None
        return Response(
            content=encode_feed_body(content),
            status_code=feed.status,
            headers=headers,
        )


@router.get("/api/image", responses=ERROR_RESPONSES)
async def proxy_image(request: Request):
    url = extract_url_param(request)
    if not url:
        raise InvalidInput("Missing url parameter")
    if not is_http_url(url):
        logger.warning(f"[Image] Invalid URL format: {shorten(url, 50)}")
        raise InvalidInput("Invalid URL format", target_url=url)

    with traced_request(
        tracer,
        operation="proxy_image",
        target_url=url,
        start_message=f"[Image] Streaming: {shorten(url)}",
    ) as span:
        try:
            stream = await image_streamer.open(url)
        except GatewayError as e:
            span.set_attribute("proxy.error", e.message)
            raise
        span.set_attribute("proxy.status_code", stream.status_code)
        span.set_attribute("proxy.redirects", stream.redirects)

    return StreamingResponse(
        stream.iter_bytes(),
        status_code=stream.status_code,
        headers=stream.response_headers(),
        background=BackgroundTask(stream.aclose),
    )


@router.get("/api/rsshub/instances", response_model=InstancesResponse)
async def list_instances():
    state = mirror_resolver.state
    return InstancesResponse(
        instances=list(state.instances), active=state.active, default=state.default
    )


@router.get("/api/rsshub/describe", response_model=AddressDescriptionResponse)
async def describe_feed_address(request: Request):
    address = extract_url_param(request)
    described = describe_address(address) if address else None
    if described is None:
        raise InvalidInput("Missing or non-RSSHub url parameter", target_url=address or None)
    return AddressDescriptionResponse(
        platform=described.platform,
        route=described.route,
        description=described.description,
    )


@router.post(
    "/api/subscribe",
    response_model=SubscribeResponse,
    dependencies=[Depends(require_auth)],
)
async def subscribe():
    # Subscriptions live on the client; the gateway only acknowledges them
    logger.info("[Subscribe] New subscription request")
    return SubscribeResponse(success=True, message="Subscribed")


@router.get("/health", response_model=HealthResponse)
@router.get("/", response_model=HealthResponse, include_in_schema=False)
async def health():
    return HealthResponse(
        status="ok",
        service=SERVICE_NAME,
        time=datetime.now(timezone.utc).isoformat(timespec="seconds"),
    )
