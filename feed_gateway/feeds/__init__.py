from .fetcher import FeedFetcher, FetchedFeed, decode_feed_body, encode_feed_body

__all__ = ["FeedFetcher", "FetchedFeed", "decode_feed_body", "encode_feed_body"]
