"""URL helpers for the ad-serving endpoints."""

from __future__ import annotations

import httpx

DEFAULT_ADS_URL = "https://pubads.g.doubleclick.net"


def ads_url(path: str, base: str = DEFAULT_ADS_URL) -> str:
    """Join an ad-serving path onto the ads base URL."""
    return base.rstrip("/") + path


def add_query_param(url: str, name: str, value: str) -> str:
    """Append `name=value` to the query string of `url`, keeping existing params."""
    return str(httpx.URL(url).copy_add_param(name, value))
