"""
Module Name: broker.py
Description:
    Broker-neutral interface used by the queue consumer. The production
    implementation wraps pika; tests substitute an in-memory queue.

Location:
    /services/messaging/broker.py

"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable


class BrokerError(RuntimeError):
    """Base broker error."""


class BrokerConnectionError(BrokerError):
    """Raised when the broker cannot be reached while connecting."""


class BrokerConnectionLost(BrokerError):
    """Raised when an established connection drops while consuming."""


@dataclass(frozen=True)
class Delivery:
    """One message handed to the consumer, awaiting a single settlement."""
    delivery_tag: int
    body: bytes
    redelivered: bool = False


DeliveryHandler = Callable[[Delivery], None]


class BrokerClient(ABC):
    """
    Minimal AMQP surface needed by the queue consumer.

    Implementations own the connection and channel for their lifetime;
    close() must be safe to call more than once.
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the connection and channel.

        Raises:
            BrokerConnectionError: If the broker is unreachable
        """

    @abstractmethod
    def declare_queue(self, queue: str, durable: bool = True, exclusive: bool = False,
                      auto_delete: bool = False) -> None:
        pass

    @abstractmethod
    def set_qos(self, prefetch_count: int) -> None:
        pass

    @abstractmethod
    def consume(self, queue: str, handler: DeliveryHandler) -> None:
        """Register a handler for deliveries on a queue (manual acknowledgment)."""

    @abstractmethod
    def start_consuming(self) -> None:
        """Block dispatching deliveries to registered handlers.

        Raises:
            BrokerConnectionLost: If the connection drops while consuming
        """

    @abstractmethod
    def stop_consuming(self) -> None:
        pass

    @abstractmethod
    def ack(self, delivery_tag: int) -> None:
        pass

    @abstractmethod
    def nack(self, delivery_tag: int, requeue: bool = True) -> None:
        pass

    @abstractmethod
    def reject(self, delivery_tag: int, requeue: bool = False) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the channel, then the connection."""
