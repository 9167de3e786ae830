"""
Module Name: pika_broker.py
Description:
    RabbitMQ implementation of the broker client built on pika's blocking
    adapter. Each delivery is handed to a worker thread so the connection
    thread keeps servicing heartbeats while a chapter downloads; settlements
    are marshalled back onto the connection thread.

Location:
    /services/messaging/pika_broker.py

"""

import threading
from contextlib import contextmanager
from typing import Dict, Optional

import pika
from pika.exceptions import AMQPChannelError, AMQPConnectionError

from utils.logger import get_module_logger

from .broker import BrokerClient, BrokerConnectionError, BrokerConnectionLost, Delivery, DeliveryHandler

_LOGGER = get_module_logger("Service.Messaging.PikaBroker")


@contextmanager
def _connection_guard(action: str):
    """Translate pika connection and channel failures into BrokerConnectionLost."""
    try:
        yield
    except (AMQPConnectionError, AMQPChannelError) as e:
        raise BrokerConnectionLost(f"RabbitMQ connection lost during {action}: {e!r}") from e


class PikaBrokerClient(BrokerClient):
    """Owns one BlockingConnection and one channel."""

    def __init__(self, host: str, port: int = 5672, virtual_host: str = "/",
                 username: str = "guest", password: str = "guest",
                 heartbeat: int = 600, *, logger=None):
        self.host = host
        self.port = port
        self.virtual_host = virtual_host
        self.username = username
        self.password = password
        self.heartbeat = heartbeat
        self.logger = logger or _LOGGER
        self._connection: Optional[pika.BlockingConnection] = None
        self._channel = None
        # Delivery tag -> connection it arrived on; tags restart with every channel
        self._pending: Dict[int, pika.BlockingConnection] = {}
        self._pending_lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._handler_lock = threading.Lock()

    def _parameters(self) -> pika.ConnectionParameters:
        return pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            virtual_host=self.virtual_host,
            credentials=pika.PlainCredentials(self.username, self.password),
            heartbeat=self.heartbeat,
            blocked_connection_timeout=300,
        )

    @property
    def channel(self):
        if self._channel is None or not self._channel.is_open:
            raise BrokerConnectionLost("Channel is not open")
        return self._channel

    def connect(self) -> None:
        if self._connection is not None:
            # Stale connection from before a reconnect
            try:
                self.close()
            except (AMQPConnectionError, AMQPChannelError) as e:
                self.logger.debug(f"Ignoring error while discarding stale connection: {e!r}")
        self.logger.info(f"Initializing RabbitMQ connection to {self.host}:{self.port}{self.virtual_host}")
        try:
            self._connection = pika.BlockingConnection(self._parameters())
            self._channel = self._connection.channel()
        except AMQPConnectionError as e:
            self._connection = None
            self._channel = None
            raise BrokerConnectionError(f"Failed to connect to RabbitMQ at {self.host}:{self.port}: {e}") from e

    def declare_queue(self, queue: str, durable: bool = True, exclusive: bool = False,
                      auto_delete: bool = False) -> None:
        with _connection_guard("queue declaration"):
            self.channel.queue_declare(queue=queue, durable=durable, exclusive=exclusive, auto_delete=auto_delete)

    def set_qos(self, prefetch_count: int) -> None:
        with _connection_guard("QoS setup"):
            self.channel.basic_qos(prefetch_count=prefetch_count)

    def consume(self, queue: str, handler: DeliveryHandler) -> None:
        def on_message(channel, method, properties, body):
            delivery = Delivery(delivery_tag=method.delivery_tag, body=body, redelivered=bool(method.redelivered))
            with self._pending_lock:
                self._pending[delivery.delivery_tag] = self._connection
            self._worker = threading.Thread(
                target=self._dispatch,
                args=(handler, delivery),
                name=f"delivery-{delivery.delivery_tag}",
                daemon=True,
            )
            self._worker.start()

        with _connection_guard("consumer registration"):
            self.channel.basic_consume(queue=queue, on_message_callback=on_message, auto_ack=False)

    def _dispatch(self, handler: DeliveryHandler, delivery: Delivery) -> None:
        try:
            # One delivery at a time, whatever the prefetch count
            with self._handler_lock:
                handler(delivery)
        except Exception:
            self.logger.exception(f"Delivery {delivery.delivery_tag} was not settled; the broker will redeliver it")

    def start_consuming(self) -> None:
        with _connection_guard("consumption"):
            self.channel.start_consuming()

    def stop_consuming(self) -> None:
        connection = self._connection
        if connection is not None and connection.is_open:
            connection.add_callback_threadsafe(self._stop_on_io_thread)

    def _stop_on_io_thread(self) -> None:
        if self._channel is not None and self._channel.is_open:
            self._channel.stop_consuming()

    def _settle(self, delivery_tag: int, action: str, settle) -> None:
        """Run a settlement on the connection thread of the delivery's own connection."""
        with self._pending_lock:
            connection = self._pending.pop(delivery_tag, None)
        if connection is None or connection is not self._connection:
            self.logger.warning(
                f"Dropping {action} for delivery {delivery_tag}: its connection is gone, the broker will redeliver it"
            )
            return
        with _connection_guard(action):
            connection.add_callback_threadsafe(lambda: settle(self.channel))

    def ack(self, delivery_tag: int) -> None:
        self._settle(delivery_tag, "ack", lambda channel: channel.basic_ack(delivery_tag=delivery_tag))

    def nack(self, delivery_tag: int, requeue: bool = True) -> None:
        self._settle(
            delivery_tag, "nack",
            lambda channel: channel.basic_nack(delivery_tag=delivery_tag, multiple=False, requeue=requeue),
        )

    def reject(self, delivery_tag: int, requeue: bool = False) -> None:
        self._settle(
            delivery_tag, "reject",
            lambda channel: channel.basic_reject(delivery_tag=delivery_tag, requeue=requeue),
        )

    def close(self) -> None:
        channel, connection = self._channel, self._connection
        self._channel = None
        self._connection = None
        with self._pending_lock:
            self._pending.clear()
        try:
            if channel is not None and channel.is_open:
                channel.close()
        finally:
            if connection is not None and connection.is_open:
                connection.close()
