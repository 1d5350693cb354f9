"""
Rewrite rules applied to fetched feed documents.

Each rule is a compiled pattern plus a pure transform of one match. Rules are
grouped into two ordered pipelines:

* ``RELATIVE_PATH_RULES`` turn root-relative resource paths into absolute URLs
  using the origin of the feed they came from.
* ``RESOURCE_PROXY_RULES`` wrap absolute image URLs in a link to this
  service's ``/api/image`` endpoint.

Every transform leaves a match it does not need to change exactly as it was,
and a proxied URL never qualifies for proxying again, so running a pipeline a
second time over its own output changes nothing.
"""

import html
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence
from urllib.parse import quote_plus

IMAGE_PROXY_PATH = "/api/image?url="

IMAGE_EXT_RE = re.compile(r"(?i)\.(jpg|jpeg|png|gif|webp|svg|bmp|ico|avif)(\?.*)?$")

# Hosts whose URLs are images even without a file extension (substring match)
IMAGE_CDN_HOSTS = (
    "cdnfile.sspai.com",
    "cdn.sspai.com",
    "s3.ifanr.com",
    "images.ifanr.cn",
    "s.yimg.com",
    "techcrunch.com",
    "engadget.com",
    "cloudfront.net",
    "amazonaws.com",
    "gstatic.com",
    "googleapis.com",
    "o.aolcdn.com",
    "wp.com",
    "staticflickr.com",
    "imgur.com",
    "imgix.net",
    "twimg.com",
    "fbcdn.net",
    "cdninstagram.com",
    "medium.com",
    "unsplash.com",
)


class RuleRole(str, Enum):
    HTML_ATTRIBUTE_SRC = "html-attribute-src"
    ENCLOSURE_URL = "enclosure-url"
    MEDIA_URL = "media-url"
    SRCSET = "srcset"
    CSS_BACKGROUND_URL = "css-background-url"
    ENTITY_ENCODED_SRC = "entity-encoded-src"
    ENTITY_ENCODED_SRCSET = "entity-encoded-srcset"
    RELATIVE_SRC = "relative-src"
    RELATIVE_DATA_ATTR = "relative-data-attr"
    RELATIVE_ENTITY_ENCODED_SRC = "relative-entity-encoded-src"
    RELATIVE_ENCLOSURE_URL = "relative-enclosure-url"


@dataclass(frozen=True)
class RewriteContext:
    """Per-document inputs the transforms need."""

    server_url: str
    origin: Optional[str] = None


Transform = Callable[[re.Match, RewriteContext], str]


@dataclass(frozen=True)
class RewriteRule:
    role: RuleRole
    pattern: re.Pattern
    transform: Transform

    def apply(self, text: str, context: RewriteContext) -> str:
        return self.pattern.sub(lambda match: self.transform(match, context), text)


def apply_rules(
    text: str, rules: Sequence[RewriteRule], context: RewriteContext
) -> str:
    """Run ``rules`` left to right, each one over the whole current text."""
    for rule in rules:
        text = rule.apply(text, context)
    return text


def should_proxy(url: str, server_url: str) -> bool:
    if not url or url.startswith("data:"):
        return False
    if (server_url and server_url in url) or IMAGE_PROXY_PATH in url:
        return False
    if IMAGE_EXT_RE.search(url):
        return True
    lowered = url.lower()
    return any(host in lowered for host in IMAGE_CDN_HOSTS)


def build_proxy_url(url: str, server_url: str) -> str:
    # surrogateescape keeps undecodable bytes from non-UTF-8 feeds as raw %XX
    return f"{server_url}{IMAGE_PROXY_PATH}{quote_plus(url, errors='surrogateescape')}"


def rewrite_srcset(value: str, server_url: str) -> Optional[str]:
    """
    Proxy every candidate URL of a srcset value, keeping width/density descriptors.

    Returns None when no candidate needed proxying.
    """
    changed = False
    rewritten = []
    for candidate in value.split(","):
        fields = candidate.strip().split()
        if fields and should_proxy(fields[0], server_url):
            fields[0] = build_proxy_url(fields[0], server_url)
            changed = True
        rewritten.append(" ".join(fields))
    if not changed:
        return None
    return ", ".join(rewritten)


# Relative-path fixup transforms


def _prefix_origin(match: re.Match, context: RewriteContext) -> str:
    attr, quote, path, closing = match.groups()
    return f"{attr}{quote}{context.origin}{path}{closing}"


def _prefix_origin_entity(match: re.Match, context: RewriteContext) -> str:
    attr, path, closing = match.groups()
    return f"{attr}{context.origin}{path}{closing}"


# Absolute-URL proxying transforms


def _proxy_url(match: re.Match, context: RewriteContext) -> str:
    prefix, raw_url, suffix = match.groups()
    url = html.unescape(raw_url)
    if not should_proxy(url, context.server_url):
        return match.group(0)
    return f"{prefix}{build_proxy_url(url, context.server_url)}{suffix}"


def _proxy_srcset(match: re.Match, context: RewriteContext) -> str:
    prefix, raw_value, suffix = match.groups()
    rewritten = rewrite_srcset(html.unescape(raw_value), context.server_url)
    if rewritten is None:
        return match.group(0)
    return f"{prefix}{rewritten}{suffix}"


_IMG_ATTRIBUTE_RE = re.compile(
    r"""(\s(?:src|data-src|data-original|data-lazy-src)=["'])([^"']+)(["'])"""
)


def _proxy_img_tag(match: re.Match, context: RewriteContext) -> str:
    # A tag can carry several lazy-loading attributes; proxy all of them
    return _IMG_ATTRIBUTE_RE.sub(
        lambda attribute: _proxy_url(attribute, context), match.group(0)
    )


_NOT_PROTOCOL_RELATIVE = r"/(?!/)"

RELATIVE_PATH_RULES: tuple[RewriteRule, ...] = (
    RewriteRule(
        RuleRole.RELATIVE_SRC,
        re.compile(r"""(src=)(["'])(""" + _NOT_PROTOCOL_RELATIVE + r"""[^"']+)(["'])"""),
        _prefix_origin,
    ),
    RewriteRule(
        RuleRole.RELATIVE_DATA_ATTR,
        re.compile(
            r"""(data-[\w-]+=)(["'])(""" + _NOT_PROTOCOL_RELATIVE + r"""[^"']+)(["'])"""
        ),
        _prefix_origin,
    ),
    RewriteRule(
        RuleRole.RELATIVE_ENTITY_ENCODED_SRC,
        re.compile(r"(src=&quot;)(" + _NOT_PROTOCOL_RELATIVE + r"[^&]+)(&quot;)"),
        _prefix_origin_entity,
    ),
    RewriteRule(
        RuleRole.RELATIVE_ENCLOSURE_URL,
        re.compile(r"""(url=)(["'])(""" + _NOT_PROTOCOL_RELATIVE + r"""[^"']+)(["'])"""),
        _prefix_origin,
    ),
)

RESOURCE_PROXY_RULES: tuple[RewriteRule, ...] = (
    RewriteRule(
        RuleRole.HTML_ATTRIBUTE_SRC,
        re.compile(r"<img\b[^>]*>"),
        _proxy_img_tag,
    ),
    RewriteRule(
        RuleRole.ENCLOSURE_URL,
        re.compile(r"""(<enclosure\b[^>]*?\surl=["'])([^"']+)(["'])"""),
        _proxy_url,
    ),
    RewriteRule(
        RuleRole.MEDIA_URL,
        re.compile(r"""(<media:(?:content|thumbnail)\b[^>]*?\surl=["'])([^"']+)(["'])"""),
        _proxy_url,
    ),
    RewriteRule(
        RuleRole.SRCSET,
        re.compile(r"""(srcset=["'])([^"']+)(["'])"""),
        _proxy_srcset,
    ),
    RewriteRule(
        RuleRole.CSS_BACKGROUND_URL,
        re.compile(r"""(background(?:-image)?:\s*url\(['"]?)([^'"\)\s]+)(['"]?\))"""),
        _proxy_url,
    ),
    RewriteRule(
        RuleRole.ENTITY_ENCODED_SRC,
        re.compile(r"(&lt;img[^>]*?src=&quot;)([^&]+(?:&amp;[^&]+)*)(&quot;)"),
        _proxy_url,
    ),
    RewriteRule(
        RuleRole.ENTITY_ENCODED_SRCSET,
        re.compile(r"(srcset=&quot;)([^&]+(?:&amp;[^&]+)*)(&quot;)"),
        _proxy_srcset,
    ),
)
