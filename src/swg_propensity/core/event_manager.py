"""Client event manager: validates, filters and fans out analytics events.

Producers call `log_event` synchronously. Validation happens immediately;
delivery runs later as an asyncio task that first waits for the readiness
gate, then runs every filterer and, unless one cancels, every listener.
Faults inside filterers and listeners are logged and never reach the
producer or sibling consumers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from .models import (
    AnalyticsEvent,
    ClientEvent,
    EventOriginator,
    EventParams,
    FilterResult,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[ClientEvent, Optional[EventParams]], Any]
EventFilterer = Callable[[ClientEvent], FilterResult]

PUBLISHER_ORIGINATORS = frozenset({
    EventOriginator.PROPENSITY_CLIENT,
    EventOriginator.PUBLISHER_CLIENT,
    EventOriginator.AMP_CLIENT,
})


class InvalidEventError(ValueError):
    """Raised when an event cannot enter the dispatch pipeline."""


def _event_error_message(value_name: str, value: Any) -> str:
    return f"Event has an invalid {value_name}({value!r})"


def validate_event(event: Union[ClientEvent, Mapping[str, Any]]) -> ClientEvent:
    """Return `event` as a validated ClientEvent or raise InvalidEventError."""
    if isinstance(event, ClientEvent):
        # Fields may have been assigned after construction; check them again.
        data: Any = dict(event)
    elif isinstance(event, Mapping):
        data = event
    else:
        raise InvalidEventError("Event must be a valid object")

    try:
        validated = ClientEvent.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = first["loc"][0] if first["loc"] else "event"
        raise InvalidEventError(_event_error_message(str(field), first.get("input"))) from exc
    return validated


class ClientEventManager:
    """In-process publish/subscribe hub for client events."""

    @staticmethod
    def is_publisher_event(event: ClientEvent) -> bool:
        """True if the event was produced on behalf of the publisher."""
        return event.event_originator in PUBLISHER_ORIGINATORS

    def __init__(self, configured: asyncio.Future):
        self._listeners: list[EventListener] = []
        self._filterers: list[EventFilterer] = []
        self._is_ready = configured
        self._last_action: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def last_action(self) -> asyncio.Task | None:
        """The most recently scheduled dispatch task."""
        return self._last_action

    def register_event_listener(self, listener: EventListener) -> None:
        if not callable(listener):
            raise TypeError("Event manager listeners must be callable")
        self._listeners.append(listener)

    def register_event_filterer(self, filterer: EventFilterer) -> None:
        if not callable(filterer):
            raise TypeError("Event manager filterers must be callable")
        self._filterers.append(filterer)

    def log_event(
        self,
        event: Union[ClientEvent, Mapping[str, Any]],
        event_params: Optional[EventParams] = None,
    ) -> None:
        """Validate `event` and schedule its delivery.

        Must be called while an event loop is running. Raises
        InvalidEventError before anything is scheduled if the event is
        malformed.
        """
        client_event = validate_event(event)
        task = asyncio.get_running_loop().create_task(
            self._handle_event(client_event, event_params)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._last_action = task

    def log_swg_event(
        self,
        event_type: AnalyticsEvent,
        is_from_user_action: Optional[bool] = False,
        event_params: Optional[EventParams] = None,
    ) -> None:
        """Log an event originated by the client runtime itself."""
        self.log_event({
            "event_type": event_type,
            "event_originator": EventOriginator.SWG_CLIENT,
            "is_from_user_action": is_from_user_action,
            "additional_parameters": event_params,
        })

    def get_ready_promise(self) -> asyncio.Future:
        return self._is_ready

    async def drain(self) -> None:
        """Wait for every dispatch task scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _handle_event(
        self,
        event: ClientEvent,
        event_params: Optional[EventParams] = None,
    ) -> None:
        """Run filterers, then listeners, unless a filterer cancels the event."""
        await asyncio.shield(self._is_ready)

        # Registrations made while this event was waiting are included.
        filterers = list(self._filterers)
        listeners = list(self._listeners)

        for filterer in filterers:
            try:
                if filterer(event) == FilterResult.CANCEL_EVENT:
                    logger.debug("Event %s cancelled by filterer %r", event.event_type.name, filterer)
                    return
            except Exception as exc:
                logger.error("Event filterer failed: %s", exc, exc_info=True)

        for listener in listeners:
            try:
                listener(event, event_params)
            except Exception as exc:
                logger.error("Event listener failed: %s", exc, exc_info=True)
