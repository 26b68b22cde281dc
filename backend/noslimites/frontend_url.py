"""Frontend base URL and CORS origin resolution."""
from typing import List, Optional

from fastapi import Request

from . import config


def normalize_url(url: str) -> str:
    return url.strip().rstrip("/")


def _split_urls(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [normalize_url(u) for u in value.split(",") if normalize_url(u)]


def get_allowed_origins(frontend_url: Optional[str] = None) -> List[str]:
    """Configured FRONTEND_URL entries followed by the defaults, de-duplicated."""
    configured = _split_urls(config.FRONTEND_URL if frontend_url is None else frontend_url)
    merged = configured + [normalize_url(u) for u in config.DEFAULT_FRONTEND_ORIGINS]
    return list(dict.fromkeys(merged))


def resolve_frontend_base_url(request: Optional[Request] = None, preferred_base_url: Optional[str] = None) -> str:
    """
    Base URL used in links sent to users: explicit override, then the
    request Origin header if it is an allowed origin, then the first
    configured FRONTEND_URL.
    """
    preferred = (preferred_base_url or "").strip()
    if preferred:
        return normalize_url(preferred)

    if request is not None:
        origin = normalize_url(request.headers.get("origin") or "")
        if origin and origin in get_allowed_origins():
            return origin

    configured = _split_urls(config.FRONTEND_URL)
    if configured:
        return configured[0]
    return normalize_url(config.DEFAULT_FRONTEND_ORIGINS[0])
