"""Tests for event publication."""
import asyncio
import json
import logging
from decimal import Decimal

from fieldbook.services.events import EventPublisher, EventType


async def wait_for(condition, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


async def test_without_broker_events_are_only_logged(caplog, monkeypatch):
    publisher = EventPublisher(host="")
    sent = []
    monkeypatch.setattr(publisher, "_send", lambda *args: sent.append(args))

    with caplog.at_level(logging.INFO, logger="fieldbook.services.events"):
        publisher.publish(EventType.BOOKING_CREATED, {"booking_id": 1})

    assert "booking.created" in caplog.text
    assert sent == []


async def test_publish_does_not_block_the_caller(monkeypatch):
    publisher = EventPublisher(host="rabbitmq", exchange="events")
    sent = []
    monkeypatch.setattr(publisher, "_send", lambda event_type, message: sent.append(json.loads(message)))

    publisher.publish(EventType.LEDGER_REFUND, {"booking_id": 7, "amount": Decimal("150000.00")})

    assert await wait_for(lambda: sent)
    assert sent[0] == {"type": "ledger.refund", "payload": {"booking_id": 7, "amount": "150000.00"}}


async def test_broker_failure_is_logged(caplog, monkeypatch):
    publisher = EventPublisher(host="rabbitmq")

    def broken(event_type, message):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(publisher, "_send", broken)

    with caplog.at_level(logging.ERROR, logger="fieldbook.services.events"):
        publisher.publish(EventType.BOOKING_CANCELLED, {"booking_id": 1})
        assert await wait_for(lambda: "broker unreachable" in caplog.text)
