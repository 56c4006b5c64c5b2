"""
ZKP-SBT Event Infrastructure

Typed domain events and an in-process event bus. The ledger and verifier
publish facts about issuance, revocation and eligibility; other components
(for example the verifier's revocation policy) subscribe to them.

Usage
─────

    from zkpsbt.events import AttestationIssued, get_event_bus

    bus = get_event_bus()

    @bus.subscribe(AttestationIssued)
    def on_issue(event: AttestationIssued):
        print(f"token {event.token_id} -> {event.owner_address}")

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Set, Type

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════════════
# EVENT BASE
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class Event:
    """
    Base class for all events in the system.

    Events are immutable facts representing something that happened.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    correlation_id: Optional[str] = None

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        return data


# ════════════════════════════════════════════════════════════════════════════
# DOMAIN EVENTS
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class AttestationIssued(Event):
    """Emitted when the authority mints a soulbound credit token."""
    token_id: int = 0
    owner_address: str = ""
    commitment: str = ""
    issuer: str = ""


@dataclass
class AttestationRevoked(Event):
    """Emitted when a token is burnt by its holder or the authority."""
    token_id: int = 0
    owner_address: str = ""
    revoked_by: str = ""


@dataclass
class EligibilityUpdated(Event):
    """Emitted after a proof verifies and eligibility is recorded."""
    owner_address: str = ""
    token_id: int = 0
    threshold: int = 0
    previous_threshold: int = 0


@dataclass
class EligibilityReset(Event):
    """Emitted when an owner's eligibility is cleared after revocation."""
    owner_address: str = ""
    token_id: int = 0
    previous_threshold: int = 0


# ════════════════════════════════════════════════════════════════════════════
# EVENT BUS
# ════════════════════════════════════════════════════════════════════════════


EventHandler = Callable[[Event], None]


@dataclass
class EventHandlerRegistration:
    """Registration for an event handler."""
    handler: EventHandler
    event_types: Set[Type[Event]]
    priority: int = 0


class EventBus:
    """
    In-memory synchronous event bus.

    Handlers run in priority order on the publishing thread, so a handler
    that raises aborts the publishing operation. Only events every handler
    accepted enter the history, which keeps the latest ``history_limit``.
    """

    def __init__(self, history_limit: int = 1000):
        self._handlers: List[EventHandlerRegistration] = []
        self._lock = threading.RLock()
        self._history: Deque[Event] = deque(maxlen=history_limit)
        self._published_count = 0

    def subscribe(
        self,
        *event_types: Type[Event],
        priority: int = 0,
    ) -> Callable[[EventHandler], EventHandler]:
        """Decorator to subscribe a handler to event types."""
        def decorator(handler: EventHandler) -> EventHandler:
            registration = EventHandlerRegistration(
                handler=handler,
                event_types=set(event_types) if event_types else {Event},
                priority=priority,
            )
            with self._lock:
                self._handlers.append(registration)
                self._handlers.sort(key=lambda r: -r.priority)
            return handler
        return decorator

    def unsubscribe(self, handler: EventHandler) -> bool:
        with self._lock:
            original_len = len(self._handlers)
            self._handlers = [r for r in self._handlers if r.handler != handler]
            return len(self._handlers) < original_len

    def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        with self._lock:
            handlers_to_call = [
                r for r in self._handlers
                if any(isinstance(event, t) for t in r.event_types)
            ]

        for registration in handlers_to_call:
            logger.debug("dispatching %s to %s", event.event_type, registration.handler)
            registration.handler(event)

        with self._lock:
            self._published_count += 1
            self._history.append(event)

    def history(self, event_type: Optional[Type[Event]] = None) -> List[Event]:
        """Events published so far, optionally filtered by type."""
        with self._lock:
            if event_type is None:
                return list(self._history)
            return [e for e in self._history if isinstance(e, event_type)]

    @property
    def published_count(self) -> int:
        return self._published_count


_event_bus: Optional[EventBus] = None
_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Get the process-wide event bus."""
    global _event_bus
    with _bus_lock:
        if _event_bus is None:
            _event_bus = EventBus()
        return _event_bus
