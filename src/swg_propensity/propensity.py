"""Publisher-facing propensity API.

Publishers report subscription state and their own events here; both are
logged through the client event manager, so the propensity server receives
them like any other listener would.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, Union

import httpx

from .config import Settings
from .core.clients.propensity_server import PropensityServer
from .core.event_manager import ClientEventManager
from .core.event_mapping import publisher_event_to_analytics_event
from .core.models import (
    AnalyticsEvent,
    ClientConfig,
    EventOriginator,
    PropensityScore,
    PropensityType,
    PublisherUserEvent,
    SubscriptionState,
)

logger = logging.getLogger(__name__)


class Propensity:
    """Propensity API exposed to the publisher page."""

    def __init__(
        self,
        event_manager: ClientEventManager,
        server: PropensityServer,
        get_referrer: Callable[[], str] = lambda: "",
    ) -> None:
        self._event_manager = event_manager
        self._server = server
        self._get_referrer = get_referrer

    def send_subscription_state(
        self,
        state: Union[SubscriptionState, str],
        entitlements: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Report the user's subscription state.

        Subscribers and past subscribers must come with their entitlements.
        """
        try:
            state = SubscriptionState(state)
        except ValueError:
            raise ValueError("Invalid subscription state provided") from None

        if state in (SubscriptionState.SUBSCRIBER, SubscriptionState.PAST_SUBSCRIBER) and not entitlements:
            raise ValueError("Entitlements must be provided for users with active or expired subscriptions")
        if entitlements and not isinstance(entitlements, Mapping):
            raise ValueError("Entitlements must be a mapping")

        products_or_skus = json.dumps(dict(entitlements)) if entitlements else None
        self._event_manager.log_event({
            "event_type": AnalyticsEvent.EVENT_SUBSCRIPTION_STATE,
            "event_originator": EventOriginator.PUBLISHER_CLIENT,
            "is_from_user_action": None,
            "additional_parameters": {"state": state.value, "productsOrSkus": products_or_skus},
        })

    def send_event(self, user_event: Union[PublisherUserEvent, Mapping[str, Any]]) -> None:
        """Report a publisher event such as a paywall impression."""
        if not isinstance(user_event, PublisherUserEvent):
            user_event = PublisherUserEvent.model_validate(user_event)

        event_type = publisher_event_to_analytics_event(user_event.name)
        if event_type is None:
            raise ValueError(f"Invalid user event provided({user_event.name})")

        data = None
        if user_event.data:
            if not isinstance(user_event.data, Mapping):
                raise ValueError("Event data must be a mapping")
            data = dict(user_event.data)

        self._event_manager.log_event({
            "event_type": event_type,
            "event_originator": EventOriginator.PROPENSITY_CLIENT,
            "is_from_user_action": user_event.active,
            "additional_parameters": data,
        })

    async def get_propensity(self, propensity_type: Optional[Union[PropensityType, str]] = None) -> PropensityScore:
        """Fetch the propensity score once the client is configured."""
        if propensity_type:
            try:
                propensity_type = PropensityType(propensity_type)
            except ValueError:
                raise ValueError("Invalid propensity type requested") from None
        else:
            propensity_type = PropensityType.GENERAL

        await asyncio.shield(self._event_manager.get_ready_promise())
        return await self._server.get_propensity(self._get_referrer(), propensity_type.value)

    async def flush(self) -> None:
        """Wait for reports already handed to the propensity server."""
        await self._server.flush()


def create_propensity(
    settings: Settings,
    *,
    event_manager: ClientEventManager,
    http_client: httpx.AsyncClient,
    get_cookie: Callable[[], str] = lambda: "",
    get_hostname: Callable[[], str] = lambda: "",
    get_referrer: Callable[[], str] = lambda: "",
) -> tuple[Propensity, ClientConfig]:
    """Wire a PropensityServer and the publisher API from settings.

    Returns the facade together with the live config object, whose
    `enable_propensity` flag may be flipped later.
    """
    config = ClientConfig(enable_propensity=settings.enable_propensity)
    server = PropensityServer(
        event_manager=event_manager,
        config=config,
        publication_id=settings.publication_id,
        http_client=http_client,
        get_cookie=get_cookie,
        get_hostname=get_hostname,
        base_url=settings.ads_url,
    )
    logger.info("Propensity client ready for publication %s", settings.publication_id)
    return Propensity(event_manager, server, get_referrer), config
