"""Propensity server client.

Forwards client events to the ad-serving propensity endpoint and queries
propensity scores for the current publication.

Endpoints: /subopt/data (telemetry, response ignored) and /subopt/pts (scores).
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from ..event_manager import ClientEventManager
from ..event_mapping import analytics_event_to_publisher_event
from ..models import (
    AnalyticsEvent,
    ClientConfig,
    ClientEvent,
    EventOriginator,
    EventParams,
    PropensityScore,
)
from ..scoring import parse_propensity_response
from ..urls import DEFAULT_ADS_URL, add_query_param, ads_url

logger = logging.getLogger(__name__)

DATA_PATH = "/subopt/data"
SCORE_PATH = "/subopt/pts"

PROTOCOL_VERSION = 1
TIMEZONE_OFFSET = "240"

# Cookie dropped by the ads tag.
_GADS_COOKIE = re.compile(r"(^|;)\s*__gads\s*=\s*([^;]+)")

# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


class PropensityServer:
    """Client of the propensity service, registered as an event listener."""

    def __init__(
        self,
        *,
        event_manager: ClientEventManager,
        config: ClientConfig,
        publication_id: str,
        http_client: httpx.AsyncClient,
        get_cookie: Callable[[], str],
        get_hostname: Callable[[], str],
        base_url: str = DEFAULT_ADS_URL,
    ) -> None:
        self._config = config
        self._publication_id = publication_id
        self._http = http_client
        self._get_cookie = get_cookie
        self._get_hostname = get_hostname
        self._base_url = base_url
        self._client_id: Optional[str] = None
        self._version = PROTOCOL_VERSION
        self._pending: set[asyncio.Task] = set()

        event_manager.register_event_listener(self.handle_client_event)

    def _get_client_id(self) -> Optional[str]:
        """Client id from the __gads cookie, re-encoded as a URI component."""
        if not self._client_id:
            match = _GADS_COOKIE.search(self._get_cookie() or "")
            if match:
                self._client_id = quote(match.group(2), safe=_URI_COMPONENT_SAFE)
        return self._client_id

    def _propensity_url(self, url: str) -> str:
        url = add_query_param(url, "u_tz", TIMEZONE_OFFSET)
        url = add_query_param(url, "v", str(self._version))
        client_id = self._get_client_id()
        if client_id:
            url = add_query_param(url, "cookie", client_id)
        return add_query_param(url, "cdm", self._get_hostname())

    async def _get(self, url: str) -> httpx.Response:
        # Credentials for the ads origin come from the client's own cookie jar.
        return await self._http.get(self._propensity_url(url))

    async def send_subscription_state(self, state: str, products_or_skus: Optional[str] = None) -> httpx.Response:
        """Report the user's subscription state for this publication."""
        url = add_query_param(ads_url(DATA_PATH, self._base_url), "states", f"{self._publication_id}:{state}")
        if products_or_skus:
            url = add_query_param(url, "extrainfo", products_or_skus)
        return await self._get(url)

    async def send_event(self, event: str, context: Optional[str] = None) -> httpx.Response:
        """Report a publisher event with optional JSON context."""
        url = add_query_param(ads_url(DATA_PATH, self._base_url), "events", f"{self._publication_id}:{event}")
        if context:
            url = add_query_param(url, "extrainfo", context)
        return await self._get(url)

    def handle_client_event(self, event: ClientEvent, event_params: Optional[EventParams] = None) -> None:
        """Event manager listener: forward eligible events to the service."""
        if event.event_originator == EventOriginator.SHOWCASE_CLIENT:
            return

        # Checked live: the publisher may enable propensity after consent.
        if not self._config.enable_propensity and event.event_originator != EventOriginator.PROPENSITY_CLIENT:
            logger.debug("Propensity disabled, dropping %s", event.event_type.name)
            return

        if event.event_type == AnalyticsEvent.EVENT_SUBSCRIPTION_STATE:
            params = event.additional_parameters
            if not isinstance(params, dict):
                logger.warning("Subscription state event without parameters, dropping")
                return
            self._spawn(self.send_subscription_state(params.get("state"), params.get("productsOrSkus")))
            return

        prop_event = analytics_event_to_publisher_event(event.event_type)
        if prop_event is None:
            logger.debug("No publisher event for %s, dropping", event.event_type.name)
            return

        additional_parameters: Any = event.additional_parameters
        if isinstance(additional_parameters, EventParams):
            additional_parameters = None
        if isinstance(event.is_from_user_action, bool):
            additional_parameters = dict(additional_parameters or {})
            additional_parameters["is_active"] = event.is_from_user_action

        context = json.dumps(additional_parameters) if additional_parameters is not None else None
        self._spawn(self.send_event(prop_event.value, context))

    def _spawn(self, request) -> None:
        task = asyncio.get_running_loop().create_task(request)
        self._pending.add(task)
        task.add_done_callback(self._request_done)

    def _request_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Propensity telemetry request failed: %s", exc)

    async def flush(self) -> None:
        """Wait for outstanding telemetry requests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def get_propensity(self, referrer: str, propensity_type: str) -> PropensityScore:
        """Fetch and parse the propensity score for this publication."""
        url = ads_url(SCORE_PATH, self._base_url)
        url = add_query_param(url, "products", self._publication_id)
        url = add_query_param(url, "type", propensity_type)
        url = add_query_param(url, "ref", referrer)

        response = await self._get(url)
        try:
            body = response.json()
        except ValueError as exc:
            logger.warning("Propensity response is not JSON: %s", exc)
            body = None
        return parse_propensity_response(body)
