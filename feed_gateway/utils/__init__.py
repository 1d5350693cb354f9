from typing import Optional


def mask_token(text: str, token: Optional[str]) -> str:
    return text.replace(token, f"{token[:3]}***") if token else text


def shorten(value: str, limit: int = 100) -> str:
    """Trim long URLs for log lines."""
    if value is None:
        return ""
    return value if len(value) <= limit else value[:limit] + "..."
