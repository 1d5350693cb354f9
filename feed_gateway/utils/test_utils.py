from unittest.mock import MagicMock, Mock

from feed_gateway.utils import mask_token, shorten
from feed_gateway.utils.traced_requests import traced_request


def test_mask_token_keeps_prefix():
    assert mask_token("Auth: enabled (token: s3cret)", "s3cret") == "Auth: enabled (token: s3c***)"


def test_mask_token_without_token():
    assert mask_token("Auth: disabled", "") == "Auth: disabled"


def test_shorten():
    assert shorten("abc", 5) == "abc"
    assert shorten("abcdefgh", 5) == "abcde..."
    assert shorten(None) == ""


def test_traced_request_sets_attributes():
    span = Mock()
    tracer = Mock()
    span_context = MagicMock()
    span_context.__enter__.return_value = span
    span_context.__exit__.return_value = False
    tracer.start_as_current_span.return_value = span_context

    with traced_request(
        tracer,
        operation="proxy_feed",
        target_url="https://x.com/feed.xml",
        start_message="[RSS] Fetching: https://x.com/feed.xml",
        extra_attrs={"feed.platform": None, "feed.address": "https://x.com/feed.xml"},
    ) as current:
        assert current is span

    tracer.start_as_current_span.assert_called_once_with("proxy_feed")
    span.set_attribute.assert_any_call("proxy.target_url", "https://x.com/feed.xml")
    span.set_attribute.assert_any_call("feed.address", "https://x.com/feed.xml")
    assert span.set_attribute.call_count == 2
