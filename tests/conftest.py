"""Shared fixtures: an in-memory broker, a fake metadata store and HTTP response helpers."""

import json
from collections import deque
from unittest.mock import MagicMock

import pytest
import requests

from services.messaging.broker import (
    BrokerClient,
    BrokerConnectionError,
    BrokerConnectionLost,
    Delivery,
)


class InMemoryBroker(BrokerClient):
    """Broker fake that enforces one unsettled delivery at a time."""

    def __init__(self, fail_connect=False, lose_connection_times=0, max_deliveries=20):
        self.fail_connect = fail_connect
        self.lose_connection_times = lose_connection_times
        self.max_deliveries = max_deliveries
        self.queue = deque()
        self.declared = {}
        self.prefetch_count = None
        self.handler = None
        self.connected = False
        self.connect_calls = 0
        self.close_calls = 0
        self.acked = []
        self.nacked = []
        self.rejected = []
        self.deliveries = []
        self._next_tag = 1
        self._in_flight = None
        self._stopped = False

    def publish(self, body, redelivered=False):
        if isinstance(body, dict):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.queue.append((body, redelivered))

    def connect(self):
        self.connect_calls += 1
        if self.fail_connect:
            raise BrokerConnectionError("broker unreachable")
        self.connected = True

    def declare_queue(self, queue, durable=True, exclusive=False, auto_delete=False):
        self.declared[queue] = {"durable": durable, "exclusive": exclusive, "auto_delete": auto_delete}

    def set_qos(self, prefetch_count):
        self.prefetch_count = prefetch_count

    def consume(self, queue, handler):
        self.handler = handler

    def start_consuming(self):
        if self.lose_connection_times > 0:
            self.lose_connection_times -= 1
            self.connected = False
            raise BrokerConnectionLost("connection reset")

        self._stopped = False
        while self.queue and not self._stopped and len(self.deliveries) < self.max_deliveries:
            body, redelivered = self.queue.popleft()
            delivery = Delivery(delivery_tag=self._next_tag, body=body, redelivered=redelivered)
            self._next_tag += 1
            self._in_flight = delivery
            self.deliveries.append(delivery)
            self.handler(delivery)
            assert self._in_flight is None, f"delivery {delivery.delivery_tag} was not settled"

    def stop_consuming(self):
        self._stopped = True

    def _settle(self, delivery_tag):
        assert self._in_flight is not None and self._in_flight.delivery_tag == delivery_tag
        delivery = self._in_flight
        self._in_flight = None
        return delivery

    def ack(self, delivery_tag):
        self._settle(delivery_tag)
        self.acked.append(delivery_tag)

    def nack(self, delivery_tag, requeue=True):
        delivery = self._settle(delivery_tag)
        self.nacked.append((delivery_tag, requeue))
        if requeue:
            self.queue.append((delivery.body, True))

    def reject(self, delivery_tag, requeue=False):
        delivery = self._settle(delivery_tag)
        self.rejected.append((delivery_tag, requeue))
        if requeue:
            self.queue.append((delivery.body, True))

    def close(self):
        self.close_calls += 1
        self.connected = False


class FakeMetadataStore:
    """Records store calls in memory."""

    def __init__(self, excluded=None):
        self.excluded = {title: set(chapters) for title, chapters in (excluded or {}).items()}
        self.appended = []

    def add_excluded_chapter(self, title, chapter):
        chapters = self.excluded.setdefault(title, set())
        if chapter in chapters:
            return False
        chapters.add(chapter)
        return True

    def get_excluded_chapters(self, title):
        return set(self.excluded.get(title, set()))

    def append_metadata(self, title, info, source_table):
        self.appended.append((title, info, source_table))
        return True


def make_response(status_code=200, body=b"", chunks=None):
    """Build a mock streaming requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Client Error")
    response.iter_content.return_value = chunks if chunks is not None else [body]
    return response


@pytest.fixture
def broker():
    return InMemoryBroker()


@pytest.fixture
def broker_factory():
    return InMemoryBroker


@pytest.fixture
def store():
    return FakeMetadataStore()


@pytest.fixture
def store_factory():
    return FakeMetadataStore


@pytest.fixture
def http_session():
    """Mock requests session returning a 200 response with an empty body by default."""
    session = MagicMock()
    session.get.return_value = make_response()
    return session


@pytest.fixture
def response_factory():
    return make_response
