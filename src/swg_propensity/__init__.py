"""Client event dispatch and propensity scoring.

Validates and fans out analytics events to registered consumers, and
forwards a subset of them to the propensity service.
"""

__version__ = "0.1.0"

from .core.event_manager import ClientEventManager, InvalidEventError
from .core.models import (
    AnalyticsEvent,
    ClientEvent,
    EventOriginator,
    FilterResult,
    PropensityScore,
)
from .propensity import Propensity, create_propensity

__all__ = [
    "AnalyticsEvent",
    "ClientEvent",
    "ClientEventManager",
    "EventOriginator",
    "FilterResult",
    "InvalidEventError",
    "Propensity",
    "PropensityScore",
    "create_propensity",
]
