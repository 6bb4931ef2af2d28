"""Environment-driven settings.

Only values the hosting page would otherwise provide live here: the
publication id, the ads endpoint and whether propensity starts enabled.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

from .core.urls import DEFAULT_ADS_URL

DEFAULT_TIMEOUT_SECONDS = 30.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime settings for the propensity client."""

    publication_id: str = ""
    ads_url: str = DEFAULT_ADS_URL
    enable_propensity: bool = False
    timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)


def load_settings() -> Settings:
    """Build Settings from SWG_* environment variables."""
    return Settings(
        publication_id=os.environ.get("SWG_PUBLICATION_ID", ""),
        ads_url=os.environ.get("SWG_ADS_URL", DEFAULT_ADS_URL),
        enable_propensity=os.environ.get("SWG_ENABLE_PROPENSITY", "").strip().lower() in _TRUE_VALUES,
        timeout_seconds=float(os.environ.get("SWG_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
    )
