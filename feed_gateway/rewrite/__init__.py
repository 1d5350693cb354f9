from .referers import REFERER_TABLE, resolve_referer
from .rewriter import ContentRewriter, source_origin
from .rules import (
    RELATIVE_PATH_RULES,
    RESOURCE_PROXY_RULES,
    RewriteContext,
    RewriteRule,
    RuleRole,
    build_proxy_url,
    should_proxy,
)

__all__ = [
    "REFERER_TABLE",
    "RELATIVE_PATH_RULES",
    "RESOURCE_PROXY_RULES",
    "ContentRewriter",
    "RewriteContext",
    "RewriteRule",
    "RuleRole",
    "build_proxy_url",
    "resolve_referer",
    "should_proxy",
    "source_origin",
]
