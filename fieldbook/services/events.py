"""Booking event publication.

Events go to a durable fanout exchange on RabbitMQ. Publishing is
fire-and-forget: the blocking pika call runs on the default executor and
the caller never waits for it. Without a broker host, events are only
logged.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

import pika

from fieldbook.core.config import settings

logger = logging.getLogger(__name__)


class EventType:
    BOOKING_CREATED = "booking.created"
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_CANCELLED = "booking.cancelled"
    BOOKING_COMPLETED = "booking.completed"
    COACH_ACCEPTED = "booking.coach.accepted"
    COACH_DECLINED = "booking.coach.declined"
    LEDGER_REFUND = "ledger.refund"
    LEDGER_PENALTY = "ledger.penalty"


class EventPublisher:
    """Publishes {"type", "payload"} messages to the events exchange."""

    def __init__(self, host: Optional[str] = None, exchange: Optional[str] = None):
        self.host = host if host is not None else settings.RABBITMQ_HOST
        self.exchange = exchange or settings.EVENTS_EXCHANGE

    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Schedule publication and return immediately."""
        message = json.dumps({"type": event_type, "payload": payload}, default=str)

        if not self.host:
            logger.info(f"[event] {event_type} {message}")
            return

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._send, event_type, message)
        future.add_done_callback(self._log_failure)

    def _send(self, event_type: str, message: str) -> None:
        conn = pika.BlockingConnection(pika.ConnectionParameters(host=self.host, heartbeat=60))
        try:
            ch = conn.channel()
            ch.exchange_declare(exchange=self.exchange, exchange_type="fanout", durable=True)
            ch.basic_publish(exchange=self.exchange, routing_key="", body=message)
            logger.debug(f"[event] published {event_type}")
        finally:
            conn.close()

    @staticmethod
    def _log_failure(future: "asyncio.Future") -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(f"Failed to publish event: {exc}")


# Singleton instance
event_publisher = EventPublisher()
