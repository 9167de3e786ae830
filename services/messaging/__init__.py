"""
Messaging Module
================

Durable queue consumption for download jobs. The consumer depends only on
the BrokerClient interface; PikaBrokerClient connects it to RabbitMQ.
"""

from .broker import (
    BrokerClient,
    BrokerConnectionError,
    BrokerConnectionLost,
    BrokerError,
    Delivery,
)
from .queue_consumer import QueueConsumer

__all__ = [
    'BrokerClient',
    'BrokerConnectionError',
    'BrokerConnectionLost',
    'BrokerError',
    'Delivery',
    'QueueConsumer',
]
