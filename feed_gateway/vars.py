import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "rss-proxy")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = os.environ.get("PORT", "3000")
SERVER_URL = os.environ.get("SERVER_URL", f"http://localhost:{PORT}").rstrip("/")
AUTH_TOKEN = os.environ.get("AUTH_TOKEN", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

FEED_TIMEOUT = float(os.getenv("FEED_TIMEOUT", "30"))
IMAGE_TIMEOUT = float(os.getenv("IMAGE_TIMEOUT", "30"))
PROBE_TIMEOUT = float(os.getenv("PROBE_TIMEOUT", "5"))
MAX_REDIRECTS = int(os.getenv("MAX_REDIRECTS", "5"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

DEFAULT_RSSHUB_INSTANCES = [
    "https://rsshub.app",
    "https://rsshub.rssforever.com",
    "https://rss.198909.xyz:37891",
    "https://rsshub.speedcloud.one",
    "https://rsshub.pseudoyu.com",
]


def _parse_instance_list(raw: str) -> list[str]:
    instances: list[str] = []
    if not raw:
        return instances
    for entry in raw.split(","):
        entry = entry.strip().rstrip("/")
        if entry and entry not in instances:
            instances.append(entry)
    return instances


RSSHUB_INSTANCES = (
    _parse_instance_list(os.getenv("RSSHUB_INSTANCES", ""))
    or list(DEFAULT_RSSHUB_INSTANCES)
)
RSSHUB_DEFAULT = os.getenv("RSSHUB_DEFAULT", "https://rsshub.app").rstrip("/")
