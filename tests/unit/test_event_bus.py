"""
Unit Tests for the EventBus
===========================

Test Coverage
-------------
- Exact and wildcard subscriptions
- Priority ordering and fire-and-forget LOW listeners
- Listener failure isolation
- Duplicate and once-only listeners
- Callback signature validation and metrics
"""

import asyncio

import pytest

from src.core.event import EventBus, EventRouter, ListenerPriority


@pytest.mark.unit
@pytest.mark.events
class TestEventRouter:
    """Test wildcard matching."""

    @pytest.mark.parametrize(
        "event_name, pattern, expected",
        [
            ("ledger.credited", "ledger.credited", True),
            ("ledger.credited", "*", True),
            ("rank.tier_changed", "rank.*", True),
            ("rank.tier_changed", "ledger.*", False),
            ("season.reward_granted", "*.reward_granted", True),
            ("season.reward.granted", "season.*.granted", True),
            ("season.granted", "season.*.granted", False),
        ],
    )
    def test_matches(self, event_name, pattern, expected):
        assert EventRouter().matches(event_name, pattern) is expected


@pytest.mark.unit
@pytest.mark.events
class TestEventBusPublish:
    """Test delivery semantics."""

    async def test_publish_reaches_exact_and_wildcard_listeners(self):
        # Arrange
        bus = EventBus(enable_metrics=False)
        seen = []

        async def on_exact(payload):
            seen.append(("exact", payload["player_id"]))

        async def on_rank(payload):
            seen.append(("wildcard", payload["player_id"]))

        bus.subscribe("rank.changed", on_exact)
        bus.subscribe("rank.*", on_rank)

        # Act
        await bus.publish("rank.changed", {"player_id": "p-1"})

        # Assert
        assert sorted(seen) == [("exact", "p-1"), ("wildcard", "p-1")]

    async def test_publish_without_listeners_returns_empty(self):
        bus = EventBus(enable_metrics=False)

        assert await bus.publish("deck.changed", {"player_id": "p-1"}) == []

    async def test_critical_runs_before_normal(self):
        bus = EventBus(enable_metrics=False)
        order = []

        async def normal(payload):
            order.append("normal")

        async def critical(payload):
            order.append("critical")

        bus.subscribe("card.upgraded", normal, priority=ListenerPriority.NORMAL)
        bus.subscribe("card.upgraded", critical, priority=ListenerPriority.CRITICAL)

        await bus.publish("card.upgraded", {})

        assert order == ["critical", "normal"]

    async def test_failing_listener_does_not_reach_publisher(self):
        # Arrange
        bus = EventBus()
        delivered = []

        async def broken(payload):
            raise RuntimeError("sink offline")

        async def healthy(payload):
            delivered.append(payload)
            return "ok"

        bus.subscribe("ledger.credited", broken)
        bus.subscribe("ledger.credited", healthy)

        # Act
        results = await bus.publish("ledger.credited", {"amount": 80})

        # Assert
        assert delivered == [{"amount": 80}]
        assert sorted(results, key=str) == [None, "ok"]
        assert bus.get_metrics().listener_errors == {"ledger.credited": 1}

    async def test_low_priority_listener_runs_in_background(self):
        bus = EventBus(enable_metrics=False)
        done = asyncio.Event()

        async def audit(payload):
            done.set()

        bus.subscribe("season.reward_granted", audit, priority=ListenerPriority.LOW)

        results = await bus.publish("season.reward_granted", {"gem_reward": 98})
        await bus.drain()

        assert results == []
        assert done.is_set()

    async def test_sync_listener_is_supported(self):
        bus = EventBus(enable_metrics=False)
        seen = []

        bus.subscribe("deck.changed", lambda payload: seen.append(payload["slot"]))

        await bus.publish("deck.changed", {"slot": 2})

        assert seen == [2]

    async def test_once_listener_fires_once(self):
        bus = EventBus(enable_metrics=False)
        calls = []

        async def first_purchase(payload):
            calls.append(payload)

        bus.subscribe("purchase.granted", first_purchase, once=True)

        await bus.publish("purchase.granted", {"gems": 80})
        await bus.publish("purchase.granted", {"gems": 500})

        assert calls == [{"gems": 80}]


@pytest.mark.unit
@pytest.mark.events
class TestEventBusSubscriptions:
    """Test the subscription API."""

    def test_listener_must_take_one_parameter(self):
        bus = EventBus(enable_metrics=False)

        async def bad(payload, extra):
            return None

        with pytest.raises(ValueError):
            bus.subscribe("rank.changed", bad)

    def test_duplicate_identifier_is_ignored(self):
        bus = EventBus(enable_metrics=False)

        async def listener(payload):
            return None

        bus.subscribe("rank.changed", listener, identifier="ui")
        bus.subscribe("rank.changed", listener, identifier="ui")

        assert bus.get_listener_count("rank.changed") == 1

    def test_unsubscribe_and_clear(self):
        bus = EventBus()

        async def listener(payload):
            return None

        listener_id = bus.subscribe("ledger.*", listener)
        bus.subscribe("deck.changed", listener)

        assert bus.unsubscribe("ledger.*", listener_id)
        assert bus.get_all_events() == ["deck.changed"]

        bus.clear()

        assert bus.get_listener_count() == 0
        assert bus.get_metrics_summary()["total_listeners"] == 0

    def test_metrics_disabled_returns_nothing(self):
        bus = EventBus(enable_metrics=False)

        assert bus.get_metrics() is None
        assert bus.get_metrics_summary() == {}
