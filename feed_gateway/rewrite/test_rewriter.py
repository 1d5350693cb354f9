"""
Tests for the two-pass feed rewriter.

Tests cover:
- Relative-path fixup running before proxy wrapping
- Every resource role (img, enclosure, media, srcset, CSS, entity-encoded HTML)
- Round-trip of proxied URLs through percent-decoding
- Idempotence of the full pipeline
- data: URIs and non-image links staying untouched
"""

import html
import re
from urllib.parse import unquote_plus

import pytest

from feed_gateway.rewrite import ContentRewriter, build_proxy_url, source_origin

SERVER = "https://proxy.example"
FEED_URL = "https://x.com/feed.xml"

PROXY_LINK_RE = re.compile(re.escape(SERVER) + r"/api/image\?url=([^\"'\s&,)]+)")

SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
<channel>
  <title>Example</title>
  <item>
    <title>Post</title>
    <enclosure url="/media/cover.jpg" type="image/jpeg" length="1234"/>
    <media:content url="https://cdn.sspai.com/article/abc?imageMogr2" medium="image"/>
    <media:thumbnail url="https://x.com/thumb.png"/>
    <description><![CDATA[
      <p>Hello</p>
      <img src="/a.png" alt="relative">
      <img data-src="https://pbs.twimg.com/media/XYZ?format=jpg&amp;name=large" src="data:image/gif;base64,R0lGOD">
      <img srcset="https://x.com/s.jpg 1x, https://x.com/l.jpg 2x">
      <div style="background-image: url('https://x.com/bg.webp')"></div>
      <a href="https://x.com/post.html">read more</a>
    ]]></description>
    <content:encoded>&lt;p&gt;&lt;img class=&quot;wide&quot; src=&quot;https://x.com/e.jpg?w=1&amp;amp;h=2&quot; srcset=&quot;https://x.com/e1.jpg 1x&quot;&gt;&lt;/p&gt;&lt;img src=&quot;/rel.gif&quot;&gt;</content:encoded>
  </item>
</channel>
</rss>
"""


@pytest.fixture
def rewriter():
    return ContentRewriter(SERVER)


def proxied_targets(text):
    return [unquote_plus(encoded) for encoded in PROXY_LINK_RE.findall(text)]


class TestSourceOrigin:
    def test_origin_keeps_port(self):
        assert source_origin("http://x.com:8080/feed?a=1") == "http://x.com:8080"

    @pytest.mark.parametrize("url", ["", "/feed.xml", "not a url"])
    def test_no_origin(self, url):
        assert source_origin(url) is None


class TestRelativeBeforeAbsolute:
    def test_relative_img_becomes_proxied_absolute(self, rewriter):
        result = rewriter.rewrite('<img src="/a.png">', FEED_URL)
        assert result == (
            '<img src="https://proxy.example/api/image?url=https%3A%2F%2Fx.com%2Fa.png">'
        )

    def test_relative_enclosure(self, rewriter):
        result = rewriter.rewrite('<enclosure url="/m/c.jpg" type="image/jpeg"/>', FEED_URL)
        assert build_proxy_url("https://x.com/m/c.jpg", SERVER) in result

    def test_relative_entity_encoded_src(self, rewriter):
        result = rewriter.rewrite("&lt;img src=&quot;/rel.gif&quot;&gt;", FEED_URL)
        assert build_proxy_url("https://x.com/rel.gif", SERVER) in result

    def test_unparsable_source_skips_fixup(self, rewriter):
        text = '<a data-id="/not-an-image">x</a>'
        assert rewriter.fix_relative_urls(text, "feed.xml") == text


class TestResourceProxying:
    def test_sample_feed_targets(self, rewriter):
        result = rewriter.rewrite(SAMPLE_FEED, FEED_URL)
        targets = proxied_targets(result)

        assert "https://x.com/media/cover.jpg" in targets
        assert "https://cdn.sspai.com/article/abc?imageMogr2" in targets
        assert "https://x.com/thumb.png" in targets
        assert "https://x.com/a.png" in targets
        # Entities in attribute values are decoded before wrapping
        assert "https://pbs.twimg.com/media/XYZ?format=jpg&name=large" in targets
        assert "https://x.com/s.jpg" in targets
        assert "https://x.com/l.jpg" in targets
        assert "https://x.com/bg.webp" in targets
        assert "https://x.com/e.jpg?w=1&amp;h=2" in targets
        assert "https://x.com/e1.jpg" in targets
        assert "https://x.com/rel.gif" in targets

    def test_links_and_data_uris_untouched(self, rewriter):
        result = rewriter.rewrite(SAMPLE_FEED, FEED_URL)
        assert 'href="https://x.com/post.html"' in result
        assert 'src="data:image/gif;base64,R0lGOD"' in result
        assert not any(t.startswith("data:") for t in proxied_targets(result))

    def test_srcset_keeps_descriptors(self, rewriter):
        result = rewriter.rewrite(
            '<img srcset="https://x.com/s.jpg 1x, https://x.com/l.jpg 2x">', FEED_URL
        )
        assert result == (
            f'<img srcset="{build_proxy_url("https://x.com/s.jpg", SERVER)} 1x, '
            f'{build_proxy_url("https://x.com/l.jpg", SERVER)} 2x">'
        )

    def test_css_background(self, rewriter):
        result = rewriter.rewrite(
            '<div style="background: url(https://x.com/bg.png)"></div>', FEED_URL
        )
        assert (
            f'background: url({build_proxy_url("https://x.com/bg.png", SERVER)})' in result
        )

    def test_trailing_slash_on_server_url(self):
        rewriter = ContentRewriter(SERVER + "/")
        result = rewriter.rewrite('<img src="https://x.com/a.png">', FEED_URL)
        assert f"{SERVER}/api/image?url=" in result
        assert f"{SERVER}//api" not in result


class TestProperties:
    def test_round_trip(self, rewriter):
        originals = [
            "https://x.com/a.png?x=1&y=2",
            "https://x.com/path with space/b.jpg",
            "https://images.unsplash.com/photo-1?ixlib=rb-4.0.3&w=1080",
        ]
        doc = "".join(f'<img src="{html.escape(url)}">' for url in originals)
        result = rewriter.rewrite(doc, FEED_URL)
        assert proxied_targets(result) == originals

    def test_idempotent(self, rewriter):
        once = rewriter.rewrite(SAMPLE_FEED, FEED_URL)
        twice = rewriter.rewrite(once, FEED_URL)
        assert twice == once

    def test_document_without_resources_is_unchanged(self, rewriter):
        doc = "<rss><channel><title>plain</title></channel></rss>"
        assert rewriter.rewrite(doc, FEED_URL) == doc
