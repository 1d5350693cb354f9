import logging
from typing import Optional
from urllib.parse import urlparse

from feed_gateway.rewrite.rules import (
    RELATIVE_PATH_RULES,
    RESOURCE_PROXY_RULES,
    RewriteContext,
    apply_rules,
)

logger = logging.getLogger("uvicorn.error")


def source_origin(source_url: str) -> Optional[str]:
    """Return ``scheme://host[:port]`` of ``source_url``, or None if it has no origin."""
    try:
        parsed = urlparse(source_url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


class ContentRewriter:
    """
    Rewrites a fetched feed document so its images load through this service.

    Root-relative paths are made absolute first, so that the proxy pass sees
    full URLs it can wrap.
    """

    def __init__(self, server_url: str):
        self.server_url = server_url.rstrip("/")

    def fix_relative_urls(self, content: str, source_url: str) -> str:
        origin = source_origin(source_url)
        if origin is None:
            logger.warning(f"[Rewrite] Cannot derive origin from {source_url}, skipping relative fixup")
            return content
        logger.debug(f"[Rewrite] Origin for relative paths: {origin}")
        context = RewriteContext(server_url=self.server_url, origin=origin)
        return apply_rules(content, RELATIVE_PATH_RULES, context)

    def proxy_resource_urls(self, content: str) -> str:
        context = RewriteContext(server_url=self.server_url)
        return apply_rules(content, RESOURCE_PROXY_RULES, context)

    def rewrite(self, content: str, source_url: str) -> str:
        rewritten = self.fix_relative_urls(content, source_url)
        rewritten = self.proxy_resource_urls(rewritten)
        if rewritten != content:
            logger.debug(
                f"[Rewrite] Rewrote {source_url}: {len(content)} -> {len(rewritten)} chars"
            )
        return rewritten
