"""Pydantic data models for the event taxonomy and scoring results.

The event manager, the propensity server and the publisher facade all
exchange these objects. Enums carry the wire values used by the hosting
client so events can be built from plain mappings at the boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictBool


class AnalyticsEvent(int, Enum):
    """Internal analytics event kinds."""

    UNKNOWN = 0
    IMPRESSION_PAYWALL = 1
    IMPRESSION_AD = 2
    IMPRESSION_OFFERS = 3
    IMPRESSION_SUBSCRIPTION_COMPLETE = 4
    IMPRESSION_ACCOUNT_CHANGED = 5
    IMPRESSION_PAGE_LOAD = 6
    IMPRESSION_LINK = 7
    IMPRESSION_SAVE_SUBSCR_TO_GOOGLE = 8
    IMPRESSION_GOOGLE_UPDATED = 9
    IMPRESSION_SHOW_OFFERS_SWG_BUTTON = 10
    IMPRESSION_SELECT_OFFER_SMARTBOX = 11
    IMPRESSION_CONTRIBUTION_OFFERS = 12
    ACTION_SUBSCRIBE = 1000
    ACTION_PAYMENT_COMPLETE = 1001
    ACTION_ACCOUNT_CREATED = 1002
    ACTION_ACCOUNT_ACKNOWLEDGED = 1003
    ACTION_SUBSCRIPTIONS_LANDING_PAGE = 1004
    ACTION_PAYMENT_FLOW_STARTED = 1005
    ACTION_OFFER_SELECTED = 1006
    ACTION_SWG_BUTTON_CLICK = 1007
    ACTION_VIEW_OFFERS = 1008
    ACTION_ALREADY_SUBSCRIBED = 1009
    ACTION_NEW_DEFERRED_ACCOUNT = 1010
    ACTION_LINK_CONTINUE = 1011
    ACTION_LINK_CANCEL = 1012
    ACTION_CONTRIBUTION_OFFER_SELECTED = 1013
    EVENT_PAYMENT_FAILED = 2000
    EVENT_CUSTOM = 2001
    EVENT_CONFIRM_TX_ID = 2002
    EVENT_CHANGED_TX_ID = 2003
    EVENT_GPAY_NO_TX_ID = 2004
    EVENT_GPAY_CANNOT_CONFIRM_TX_ID = 2005
    EVENT_GOOGLE_UPDATED = 2006
    EVENT_NEW_TX_ID = 2007
    EVENT_UNLOCKED_BY_SUBSCRIPTION = 2008
    EVENT_UNLOCKED_BY_METER = 2009
    EVENT_NO_ENTITLEMENTS = 2010
    EVENT_HAS_METERING_ENTITLEMENTS = 2011
    EVENT_OFFERED_METER = 2012
    EVENT_UNLOCKED_FREE_PAGE = 2013
    EVENT_SUBSCRIPTION_STATE = 3000


class EventOriginator(int, Enum):
    """Which subsystem produced an event."""

    UNKNOWN_CLIENT = 0
    SWG_CLIENT = 1
    AMP_CLIENT = 2
    PROPENSITY_CLIENT = 3
    SWG_SERVER = 4
    PUBLISHER_CLIENT = 5
    SHOWCASE_CLIENT = 6


class FilterResult(str, Enum):
    """Verdict returned by an event filterer."""

    PROCEED_WITH_EVENT = "proceed_with_event"
    CANCEL_EVENT = "cancel_event"


class PublisherEvent(str, Enum):
    """Event names understood by the propensity service."""

    IMPRESSION_PAYWALL = "paywall"
    IMPRESSION_AD = "ad_shown"
    IMPRESSION_OFFERS = "offers_shown"
    ACTION_SUBSCRIPTIONS_LANDING_PAGE = "subscriptions_landing_page"
    ACTION_OFFER_SELECTED = "offer_selected"
    ACTION_PAYMENT_FLOW_STARTED = "payment_flow_start"
    ACTION_PAYMENT_COMPLETED = "payment_complete"
    EVENT_CUSTOM = "custom"


class SubscriptionState(str, Enum):
    """Subscription state a publisher reports for the current user."""

    UNKNOWN = "unknown"
    NON_SUBSCRIBER = "non_subscriber"
    SUBSCRIBER = "subscriber"
    PAST_SUBSCRIBER = "past_subscriber"


class PropensityType(str, Enum):
    """Kind of propensity score to request."""

    GENERAL = "general"
    PAYWALL = "paywall"


class EventParams(BaseModel):
    """Analytics-only parameters attached to client events.

    This container is private to the analytics pipeline and is never sent
    to the propensity service.
    """

    smartbox_message: Optional[str] = None
    gpay_transaction_id: Optional[str] = None
    had_logged: Optional[bool] = None
    sku: Optional[str] = None
    old_transaction_id: Optional[str] = None
    is_user_registered: Optional[bool] = None


def _int_code(value: Any) -> Any:
    """Only enum members and plain ints name an event code; no bools or strings."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"not an event code: {value!r}")
    return value


EventCode = BeforeValidator(_int_code)


class ClientEvent(BaseModel):
    """A single event flowing through the client event manager."""

    event_type: Annotated[AnalyticsEvent, EventCode]
    event_originator: Annotated[EventOriginator, EventCode]
    additional_parameters: Optional[Union[dict[str, Any], EventParams]] = None
    is_from_user_action: Optional[StrictBool] = None


class PublisherUserEvent(BaseModel):
    """An event reported by the publisher through the propensity facade."""

    name: str
    active: Optional[bool] = None
    data: Optional[Any] = None


class Score(BaseModel):
    """A propensity score value for one product."""

    value: float
    bucketed: bool = False


class ProductScore(BaseModel):
    """Score detail for a product the service was able to score."""

    product: Optional[Any] = None
    score: Score


class ProductError(BaseModel):
    """Score detail for a product the service could not score."""

    product: Optional[Any] = None
    error: Optional[Any] = None


ScoreDetail = Union[ProductScore, ProductError]


class PropensityHeader(BaseModel):
    ok: bool


class PropensityBody(BaseModel):
    scores: Optional[list[ScoreDetail]] = None
    error: Optional[str] = None


class PropensityScore(BaseModel):
    """Parsed response of the propensity scoring endpoint."""

    header: PropensityHeader
    body: PropensityBody = Field(default_factory=PropensityBody)


class ClientConfig(BaseModel):
    """Live client configuration, read on every event."""

    model_config = ConfigDict(validate_assignment=True)

    enable_propensity: bool = False
