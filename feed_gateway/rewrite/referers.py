from types import MappingProxyType
from urllib.parse import urlparse

# Image host -> Referer the host's hotlink protection accepts.
# Order matters for partial matches: the first matching entry wins.
REFERER_TABLE = MappingProxyType(
    {
        # sspai
        "cdnfile.sspai.com": "https://sspai.com/",
        "cdn.sspai.com": "https://sspai.com/",
        "sspai.com": "https://sspai.com/",
        # ifanr
        "s3.ifanr.com": "https://www.ifanr.com/",
        "images.ifanr.cn": "https://www.ifanr.com/",
        "ifanr.com": "https://www.ifanr.com/",
        # cnBeta
        "cnbetacdn.com": "https://www.cnbeta.com.tw/",
        "static.cnbetacdn.com": "https://www.cnbeta.com.tw/",
        # Engadget / Yahoo
        "yimg.com": "https://www.engadget.com/",
        "s.yimg.com": "https://www.engadget.com/",
        "aolcdn.com": "https://www.engadget.com/",
        "o.aolcdn.com": "https://www.engadget.com/",
        "cloudfront.net": "https://www.engadget.com/",
        # Twitter
        "twimg.com": "https://twitter.com/",
        "pbs.twimg.com": "https://twitter.com/",
        # Facebook / Instagram
        "fbcdn.net": "https://www.facebook.com/",
        "cdninstagram.com": "https://www.instagram.com/",
        # Medium
        "medium.com": "https://medium.com/",
        "miro.medium.com": "https://medium.com/",
        # Imgur
        "imgur.com": "https://imgur.com/",
        "i.imgur.com": "https://imgur.com/",
        # WordPress
        "wp.com": "https://wordpress.com/",
        "i0.wp.com": "https://wordpress.com/",
        "i1.wp.com": "https://wordpress.com/",
        "i2.wp.com": "https://wordpress.com/",
        # GitHub
        "githubusercontent.com": "https://github.com/",
        "raw.githubusercontent.com": "https://github.com/",
        # Unsplash
        "unsplash.com": "https://unsplash.com/",
        "images.unsplash.com": "https://unsplash.com/",
        # Flickr
        "staticflickr.com": "https://www.flickr.com/",
        # Giphy
        "giphy.com": "https://giphy.com/",
        "media.giphy.com": "https://giphy.com/",
        # Reddit
        "redd.it": "https://www.reddit.com/",
        "i.redd.it": "https://www.reddit.com/",
        "preview.redd.it": "https://www.reddit.com/",
    }
)


def resolve_referer(target_url: str) -> str:
    """
    Pick the Referer to send when fetching ``target_url``.

    Exact host match first, then the first table entry the host ends with or
    contains, otherwise the target's own origin.
    """
    try:
        parsed = urlparse(target_url)
    except ValueError:
        return ""
    host = parsed.netloc.lower()
    if not host:
        return ""

    referer = REFERER_TABLE.get(host)
    if referer:
        return referer

    for domain, referer in REFERER_TABLE.items():
        if host.endswith(domain) or domain in host:
            return referer

    return f"{parsed.scheme}://{parsed.netloc}/"
