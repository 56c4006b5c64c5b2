"""
Event Bus Tests
"""

import pytest

from conftest import AUTHORITY
from zkpsbt.events import (
    AttestationIssued,
    AttestationRevoked,
    EligibilityUpdated,
    Event,
    EventBus,
    get_event_bus,
)


class TestEvents:
    """Tests for event payloads."""

    def test_event_identity(self):
        a, b = AttestationIssued(token_id=1), AttestationIssued(token_id=1)
        assert a.event_id != b.event_id
        assert a.event_type == "AttestationIssued"

    def test_to_dict(self):
        data = AttestationRevoked(token_id=3, owner_address="0xabc", revoked_by="0xdef").to_dict()
        assert data["event_type"] == "AttestationRevoked"
        assert data["token_id"] == 3
        assert data["revoked_by"] == "0xdef"
        assert "event_timestamp" in data


class TestEventBus:
    """Tests for subscription and dispatch."""

    def test_dispatch_by_type(self):
        bus = EventBus()
        issued, everything = [], []

        @bus.subscribe(AttestationIssued)
        def on_issued(event):
            issued.append(event)

        @bus.subscribe()
        def on_any(event):
            everything.append(event)

        bus.publish(AttestationIssued(token_id=1))
        bus.publish(AttestationRevoked(token_id=1))

        assert [e.token_id for e in issued] == [1]
        assert [e.event_type for e in everything] == ["AttestationIssued", "AttestationRevoked"]
        assert bus.published_count == 2

    def test_priority_order(self):
        bus = EventBus()
        order = []

        @bus.subscribe(Event, priority=1)
        def low(event):
            order.append("low")

        @bus.subscribe(Event, priority=10)
        def high(event):
            order.append("high")

        bus.publish(EligibilityUpdated(threshold=40))
        assert order == ["high", "low"]

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        handler = bus.subscribe(AttestationIssued)(seen.append)
        assert bus.unsubscribe(handler)
        assert not bus.unsubscribe(handler)
        bus.publish(AttestationIssued())
        assert seen == []

    def test_handler_errors_propagate(self):
        bus = EventBus()

        @bus.subscribe(AttestationIssued)
        def explode(event):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            bus.publish(AttestationIssued())
        assert bus.history() == []
        assert bus.published_count == 0

    def test_history_filter(self):
        bus = EventBus()
        bus.publish(AttestationIssued(token_id=1))
        bus.publish(AttestationRevoked(token_id=1))
        bus.publish(AttestationIssued(token_id=2))
        assert [e.token_id for e in bus.history(AttestationIssued)] == [1, 2]
        assert len(bus.history()) == 3

    def test_history_is_bounded(self):
        bus = EventBus(history_limit=2)
        for token_id in range(5):
            bus.publish(AttestationIssued(token_id=token_id))
        assert [e.token_id for e in bus.history()] == [3, 4]
        assert bus.published_count == 5

    def test_rolled_back_issue_leaves_no_history(self, ledger, event_bus, owner):
        @event_bus.subscribe(AttestationIssued)
        def explode(event):
            raise RuntimeError("downstream failure")

        with pytest.raises(RuntimeError):
            ledger.issue(AUTHORITY, owner.address, 7, b"\x01" * 97, b"\x01" * 97, b"\x01" * 97)
        event_bus.unsubscribe(explode)
        assert event_bus.history(AttestationIssued) == []

    def test_global_bus(self):
        assert get_event_bus() is get_event_bus()
