from __future__ import annotations

import asyncio
import logging

import pytest

from swg_propensity.core.event_manager import ClientEventManager, InvalidEventError, validate_event
from swg_propensity.core.models import (
    AnalyticsEvent,
    ClientEvent,
    EventOriginator,
    EventParams,
    FilterResult,
)


def _event(**overrides) -> dict:
    data = {
        "event_type": AnalyticsEvent.IMPRESSION_PAYWALL,
        "event_originator": EventOriginator.SWG_CLIENT,
        "additional_parameters": None,
        "is_from_user_action": None,
    }
    data.update(overrides)
    return data


async def _ready_manager() -> ClientEventManager:
    ready = asyncio.get_running_loop().create_future()
    ready.set_result(None)
    return ClientEventManager(ready)


def test_listeners_wait_for_readiness_and_run_in_order() -> None:
    async def scenario() -> list:
        ready = asyncio.get_running_loop().create_future()
        manager = ClientEventManager(ready)
        calls = []
        manager.register_event_listener(lambda event, params: calls.append(("first", event.event_type)))
        manager.register_event_listener(lambda event, params: calls.append(("second", event.event_type)))

        manager.log_event(_event())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert calls == []

        ready.set_result(None)
        await manager.last_action
        return calls

    calls = asyncio.run(scenario())
    assert calls == [
        ("first", AnalyticsEvent.IMPRESSION_PAYWALL),
        ("second", AnalyticsEvent.IMPRESSION_PAYWALL),
    ]


def test_pending_events_all_unblock_when_ready() -> None:
    async def scenario() -> list:
        ready = asyncio.get_running_loop().create_future()
        manager = ClientEventManager(ready)
        received = []
        manager.register_event_listener(lambda event, params: received.append(event.event_type))

        manager.log_event(_event(event_type=AnalyticsEvent.IMPRESSION_AD))
        manager.log_event(_event(event_type=AnalyticsEvent.IMPRESSION_OFFERS))
        manager.log_event(_event(event_type=AnalyticsEvent.EVENT_CUSTOM))
        ready.set_result(None)
        await manager.drain()
        return received

    received = asyncio.run(scenario())
    assert sorted(received) == sorted([
        AnalyticsEvent.IMPRESSION_AD,
        AnalyticsEvent.IMPRESSION_OFFERS,
        AnalyticsEvent.EVENT_CUSTOM,
    ])


def test_listener_receives_event_params() -> None:
    params = EventParams(sku="basic")

    async def scenario() -> list:
        manager = await _ready_manager()
        received = []
        manager.register_event_listener(lambda event, event_params: received.append(event_params))
        manager.log_event(_event(), params)
        await manager.last_action
        return received

    assert asyncio.run(scenario()) == [params]


def test_cancelling_filterer_stops_dispatch() -> None:
    async def scenario() -> tuple[list, list]:
        manager = await _ready_manager()
        filtered = []
        received = []
        manager.register_event_listener(lambda event, params: received.append(event))
        manager.register_event_filterer(lambda event: filtered.append("first") or FilterResult.PROCEED_WITH_EVENT)
        manager.register_event_filterer(lambda event: filtered.append("second") or FilterResult.CANCEL_EVENT)
        manager.register_event_filterer(lambda event: filtered.append("third") or FilterResult.PROCEED_WITH_EVENT)
        manager.register_event_listener(lambda event, params: received.append(event))

        manager.log_event(_event())
        await manager.last_action
        return filtered, received

    filtered, received = asyncio.run(scenario())
    assert filtered == ["first", "second"]
    assert received == []


def test_filterer_can_cancel_selectively() -> None:
    def drop_ads(event: ClientEvent) -> FilterResult:
        if event.event_type == AnalyticsEvent.IMPRESSION_AD:
            return FilterResult.CANCEL_EVENT
        return FilterResult.PROCEED_WITH_EVENT

    async def scenario() -> list:
        manager = await _ready_manager()
        received = []
        manager.register_event_filterer(drop_ads)
        manager.register_event_listener(lambda event, params: received.append(event.event_type))
        manager.log_event(_event(event_type=AnalyticsEvent.IMPRESSION_AD))
        manager.log_event(_event(event_type=AnalyticsEvent.IMPRESSION_PAYWALL))
        await manager.drain()
        return received

    assert asyncio.run(scenario()) == [AnalyticsEvent.IMPRESSION_PAYWALL]


def test_failing_filterer_does_not_cancel(caplog) -> None:
    def broken(event: ClientEvent) -> FilterResult:
        raise RuntimeError("filterer exploded")

    async def scenario() -> list:
        manager = await _ready_manager()
        received = []
        manager.register_event_filterer(broken)
        manager.register_event_listener(lambda event, params: received.append(event))
        manager.log_event(_event())
        await manager.last_action
        return received

    caplog.set_level(logging.ERROR)
    received = asyncio.run(scenario())
    assert len(received) == 1
    assert "filterer exploded" in caplog.text


def test_failing_listener_does_not_stop_siblings(caplog) -> None:
    def broken(event: ClientEvent, params) -> None:
        raise RuntimeError("listener exploded")

    async def scenario() -> list:
        manager = await _ready_manager()
        received = []
        manager.register_event_listener(lambda event, params: received.append("before"))
        manager.register_event_listener(broken)
        manager.register_event_listener(lambda event, params: received.append("after"))
        manager.log_event(_event())
        await manager.last_action
        return received

    caplog.set_level(logging.ERROR)
    assert asyncio.run(scenario()) == ["before", "after"]
    assert "listener exploded" in caplog.text


def test_listener_registered_during_dispatch_misses_current_event() -> None:
    async def scenario() -> list:
        manager = await _ready_manager()
        received = []

        def late(event, params) -> None:
            received.append(("late", event.event_type))

        def registering(event, params) -> None:
            received.append(("registering", event.event_type))
            if len(received) == 1:
                manager.register_event_listener(late)

        manager.register_event_listener(registering)
        manager.log_event(_event())
        await manager.last_action
        manager.log_event(_event(event_type=AnalyticsEvent.IMPRESSION_AD))
        await manager.last_action
        return received

    assert asyncio.run(scenario()) == [
        ("registering", AnalyticsEvent.IMPRESSION_PAYWALL),
        ("registering", AnalyticsEvent.IMPRESSION_AD),
        ("late", AnalyticsEvent.IMPRESSION_AD),
    ]


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"event_type": 9999}, "event_type"),
        ({"event_type": "bogus"}, "event_type"),
        ({"event_type": True}, "event_type"),
        ({"event_type": "1"}, "event_type"),
        ({"event_originator": "1"}, "event_originator"),
        ({"event_originator": False}, "event_originator"),
        ({"event_originator": 42}, "event_originator"),
        ({"additional_parameters": [1, 2]}, "additional_parameters"),
        ({"additional_parameters": "text"}, "additional_parameters"),
        ({"additional_parameters": 5}, "additional_parameters"),
        ({"is_from_user_action": "yes"}, "is_from_user_action"),
        ({"is_from_user_action": 1}, "is_from_user_action"),
    ],
)
def test_invalid_event_raises_before_dispatch(overrides, field) -> None:
    async def scenario() -> ClientEventManager:
        manager = await _ready_manager()
        manager.register_event_filterer(lambda event: pytest.fail("filterer ran"))
        manager.register_event_listener(lambda event, params: pytest.fail("listener ran"))
        with pytest.raises(InvalidEventError, match=f"Event has an invalid {field}"):
            manager.log_event(_event(**overrides))
        return manager

    manager = asyncio.run(scenario())
    assert manager.last_action is None


def test_non_mapping_event_is_rejected() -> None:
    with pytest.raises(InvalidEventError, match="Event must be a valid object"):
        validate_event("paywall")


def test_event_mutated_after_construction_is_revalidated() -> None:
    event = ClientEvent(
        event_type=AnalyticsEvent.IMPRESSION_PAYWALL,
        event_originator=EventOriginator.SWG_CLIENT,
    )
    event.event_originator = 42
    with pytest.raises(InvalidEventError, match="event_originator"):
        validate_event(event)


def test_plain_int_codes_are_accepted() -> None:
    event = validate_event(_event(event_type=3000, event_originator=3))
    assert event.event_type is AnalyticsEvent.EVENT_SUBSCRIPTION_STATE
    assert event.event_originator is EventOriginator.PROPENSITY_CLIENT


def test_event_params_survive_validation() -> None:
    params = EventParams(smartbox_message="hello")
    event = validate_event(_event(additional_parameters=params))
    assert event.additional_parameters is params


def test_register_rejects_non_callables() -> None:
    manager = ClientEventManager(None)
    with pytest.raises(TypeError):
        manager.register_event_listener("not a function")
    with pytest.raises(TypeError):
        manager.register_event_filterer(None)


@pytest.mark.parametrize(
    "originator, expected",
    [
        (EventOriginator.PROPENSITY_CLIENT, True),
        (EventOriginator.PUBLISHER_CLIENT, True),
        (EventOriginator.AMP_CLIENT, True),
        (EventOriginator.SWG_CLIENT, False),
        (EventOriginator.SHOWCASE_CLIENT, False),
        (EventOriginator.SWG_SERVER, False),
        (EventOriginator.UNKNOWN_CLIENT, False),
    ],
)
def test_is_publisher_event(originator, expected) -> None:
    event = ClientEvent(event_type=AnalyticsEvent.IMPRESSION_AD, event_originator=originator)
    assert ClientEventManager.is_publisher_event(event) is expected


def test_log_swg_event_builds_swg_client_event() -> None:
    params = EventParams(gpay_transaction_id="tx-1")

    async def scenario() -> list:
        manager = await _ready_manager()
        received = []
        manager.register_event_listener(lambda event, event_params: received.append(event))
        manager.log_swg_event(AnalyticsEvent.ACTION_OFFER_SELECTED, True, params)
        manager.log_swg_event(AnalyticsEvent.IMPRESSION_OFFERS)
        await manager.drain()
        return received

    received = asyncio.run(scenario())
    by_type = {event.event_type: event for event in received}
    selected = by_type[AnalyticsEvent.ACTION_OFFER_SELECTED]
    assert selected.event_originator == EventOriginator.SWG_CLIENT
    assert selected.is_from_user_action is True
    assert selected.additional_parameters is params
    assert by_type[AnalyticsEvent.IMPRESSION_OFFERS].is_from_user_action is False


def test_get_ready_promise_returns_gate() -> None:
    async def scenario() -> bool:
        ready = asyncio.get_running_loop().create_future()
        manager = ClientEventManager(ready)
        return manager.get_ready_promise() is ready

    assert asyncio.run(scenario())
