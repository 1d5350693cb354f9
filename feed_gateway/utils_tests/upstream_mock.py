from typing import Callable, Dict, List, Optional

import httpx


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served, in order."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def static_upstream(
    content: bytes = b"",
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> RecordingTransport:
    return RecordingTransport(
        lambda request: httpx.Response(status_code, content=content, headers=headers)
    )


def redirect_chain(
    hops: int,
    base: str = "https://img.example",
    final_content: bytes = b"\x89PNG-bytes",
) -> RecordingTransport:
    """Upstream where /hop/0 redirects to /hop/1 ... until /hop/<hops> serves an image."""

    def handler(request: httpx.Request) -> httpx.Response:
        index = int(request.url.path.rsplit("/", 1)[-1])
        if index < hops:
            return httpx.Response(302, headers={"Location": f"{base}/hop/{index + 1}"})
        return httpx.Response(
            200, content=final_content, headers={"Content-Type": "image/png"}
        )

    return RecordingTransport(handler)


def unreachable_upstream() -> RecordingTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return RecordingTransport(handler)
