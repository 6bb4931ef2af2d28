"""Translation between internal analytics events and publisher event names."""

from __future__ import annotations

from typing import Optional

from .models import AnalyticsEvent, PublisherEvent

# Only these events have an external equivalent.
ANALYTICS_TO_PUBLISHER: dict[AnalyticsEvent, PublisherEvent] = {
    AnalyticsEvent.IMPRESSION_PAYWALL: PublisherEvent.IMPRESSION_PAYWALL,
    AnalyticsEvent.IMPRESSION_AD: PublisherEvent.IMPRESSION_AD,
    AnalyticsEvent.IMPRESSION_OFFERS: PublisherEvent.IMPRESSION_OFFERS,
    AnalyticsEvent.ACTION_SUBSCRIPTIONS_LANDING_PAGE: PublisherEvent.ACTION_SUBSCRIPTIONS_LANDING_PAGE,
    AnalyticsEvent.ACTION_OFFER_SELECTED: PublisherEvent.ACTION_OFFER_SELECTED,
    AnalyticsEvent.ACTION_PAYMENT_FLOW_STARTED: PublisherEvent.ACTION_PAYMENT_FLOW_STARTED,
    AnalyticsEvent.ACTION_PAYMENT_COMPLETE: PublisherEvent.ACTION_PAYMENT_COMPLETED,
    AnalyticsEvent.EVENT_CUSTOM: PublisherEvent.EVENT_CUSTOM,
}

PUBLISHER_TO_ANALYTICS: dict[PublisherEvent, AnalyticsEvent] = {
    publisher: analytics for analytics, publisher in ANALYTICS_TO_PUBLISHER.items()
}


def analytics_event_to_publisher_event(event_type: AnalyticsEvent) -> Optional[PublisherEvent]:
    """Return the publisher event name for an analytics event, if it has one."""
    return ANALYTICS_TO_PUBLISHER.get(event_type)


def publisher_event_to_analytics_event(name: str) -> Optional[AnalyticsEvent]:
    """Return the analytics event for a publisher event name, if it is known."""
    try:
        publisher_event = PublisherEvent(name)
    except ValueError:
        return None
    return PUBLISHER_TO_ANALYTICS.get(publisher_event)
