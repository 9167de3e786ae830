"""
Queue Consumer
==============

Consumes the durable download queue one message at a time:
- Unparseable messages are rejected without requeue (dropped)
- Jobs whose pipeline run raises are nacked with requeue (retried)
- Jobs the pipeline handles, including skips, are acknowledged

The consumer owns the broker client; use it as a context manager so the
connection is always released.
"""

import time
from typing import Optional

from services.download.errors import JobDeserializationError
from services.download.models import DownloadOutcome, parse_job
from utils.logger import get_module_logger

from .broker import BrokerClient, BrokerConnectionError, BrokerConnectionLost, Delivery

_LOGGER = get_module_logger("Service.Messaging.QueueConsumer")

DEFAULT_QUEUE_NAME = "download_queue"


class QueueConsumer:
    """Serial, manually acknowledged consumer of one durable queue."""

    def __init__(self, broker: BrokerClient, pipeline, queue_name: str = DEFAULT_QUEUE_NAME,
                 prefetch_count: int = 1, reconnect_delay: float = 5,
                 reconnect_attempts: int = 5, *, logger=None):
        self.broker = broker
        self.pipeline = pipeline
        self.queue_name = queue_name
        self.prefetch_count = prefetch_count
        self.reconnect_delay = reconnect_delay
        self.reconnect_attempts = reconnect_attempts
        self.logger = logger or _LOGGER
        self._started = False

    def __enter__(self) -> "QueueConsumer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Connect, declare the queue, limit in-flight work and register the handler.

        Raises:
            BrokerConnectionError: If the broker is unreachable; this is fatal
        """
        try:
            self.broker.connect()
        except BrokerConnectionError:
            self.logger.exception("Failed to initialize RabbitMQ")
            raise

        self.broker.declare_queue(self.queue_name, durable=True, exclusive=False, auto_delete=False)
        self.broker.set_qos(prefetch_count=self.prefetch_count)
        self.broker.consume(self.queue_name, self.handle_delivery)
        self._started = True
        self.logger.info(
            f"RabbitMQ initialization complete. Queue '{self.queue_name}' declared, prefetch={self.prefetch_count}"
        )

    def run(self) -> None:
        """Start (if needed) and consume until stopped, reconnecting after connection loss."""
        if not self._started:
            self.start()

        self.logger.info("[*] Consumer started, waiting for messages.")
        while True:
            try:
                self.broker.start_consuming()
                return
            except BrokerConnectionLost as e:
                self.logger.warning(f"Connection lost while consuming: {e}")
                self._reconnect()

    def _reconnect(self) -> None:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.reconnect_attempts + 1):
            time.sleep(self.reconnect_delay)
            self.logger.info(f"Reconnecting to RabbitMQ (attempt {attempt}/{self.reconnect_attempts})")
            try:
                self.start()
                return
            except (BrokerConnectionError, BrokerConnectionLost) as e:
                last_error = e
                self.logger.warning(f"Reconnect attempt {attempt} failed: {e}")

        self.logger.error(f"Giving up after {self.reconnect_attempts} reconnect attempts")
        raise BrokerConnectionError(f"Could not reconnect to RabbitMQ: {last_error}") from last_error

    def stop(self) -> None:
        self.broker.stop_consuming()

    def close(self) -> None:
        """Release the channel and connection; errors are logged, never raised."""
        try:
            self.broker.close()
            self.logger.info("RabbitMQ connection and channel closed.")
        except Exception:
            self.logger.exception("Error closing RabbitMQ connection/channel")
        finally:
            self._started = False

    # ------------------------------------------------------------------
    # Delivery handling
    # ------------------------------------------------------------------
    def handle_delivery(self, delivery: Delivery) -> Optional[DownloadOutcome]:
        """
        Process one delivery and settle it exactly once.

        Returns:
            The pipeline outcome when the message was acknowledged, else None
        """
        self.logger.info(
            f"Received message {delivery.delivery_tag} ({len(delivery.body)} bytes, "
            f"redelivered={delivery.redelivered})"
        )

        try:
            job = parse_job(delivery.body)
        except JobDeserializationError as e:
            self.logger.error(f"Invalid message {delivery.delivery_tag}, rejecting: {e}")
            self.broker.reject(delivery.delivery_tag, requeue=False)
            return None

        try:
            outcome = self.pipeline.process(job)
        except Exception:
            self.logger.exception(f"Processing failed for {job.label}, NACK and requeue")
            self.broker.nack(delivery.delivery_tag, requeue=True)
            return None

        self.broker.ack(delivery.delivery_tag)
        self.logger.info(
            f"Message {delivery.delivery_tag} processed and acknowledged ({job.label}: {outcome.value})"
        )
        return outcome
