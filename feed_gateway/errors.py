from typing import Optional


class GatewayError(Exception):
    """Base class for errors that are rendered as ``{"error": message}``."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        target_url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.target_url = target_url
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_payload(self) -> dict:
        return {"error": self.message}


class InvalidInput(GatewayError):
    status_code = 400


class Unauthorized(GatewayError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(message, **kwargs)


class UpstreamUnreachable(GatewayError):
    status_code = 502


class UpstreamStatus(GatewayError):
    """Raised when the origin answers with a non-2xx status; the status is passed through."""

    def __init__(self, upstream_status: int, *, target_url: Optional[str] = None):
        super().__init__(
            f"Server returned status {upstream_status}",
            target_url=target_url,
            status_code=upstream_status,
        )
        self.upstream_status = upstream_status


class RedirectLoop(GatewayError):
    status_code = 502

    def __init__(self, message: str = "Too many redirects", **kwargs):
        super().__init__(message, **kwargs)
