"""Tests for the pika-backed broker client with the connection mocked out."""

import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from pika.exceptions import AMQPConnectionError, ChannelClosedByBroker, StreamLostError

from services.messaging import BrokerConnectionError, BrokerConnectionLost, QueueConsumer
from services.messaging.pika_broker import PikaBrokerClient


def _make_connection():
    """Mock BlockingConnection whose threadsafe callbacks run immediately."""
    channel = MagicMock()
    channel.is_open = True
    connection = MagicMock()
    connection.is_open = True
    connection.channel.return_value = channel
    connection.add_callback_threadsafe.side_effect = lambda callback: callback()
    return connection


@pytest.fixture
def connection():
    return _make_connection()


@pytest.fixture
def channel(connection):
    return connection.channel.return_value


@pytest.fixture
def blocking_connection(monkeypatch, connection):
    factory = MagicMock(return_value=connection)
    monkeypatch.setattr("services.messaging.pika_broker.pika.BlockingConnection", factory)
    return factory


@pytest.fixture
def client():
    return PikaBrokerClient("rabbit.test", port=5673, virtual_host="/manga",
                            username="worker", password="secret", heartbeat=30)


def _deliver(client, channel, delivery_tag=7, body=b"{}", redelivered=False):
    """Feed one message through the registered pika callback and wait for its worker."""
    on_message = channel.basic_consume.call_args.kwargs["on_message_callback"]
    on_message(channel, SimpleNamespace(delivery_tag=delivery_tag, redelivered=redelivered), None, body)
    client._worker.join(timeout=5)
    assert not client._worker.is_alive()


def test_connect_uses_configured_parameters(client, blocking_connection):
    client.connect()

    parameters = blocking_connection.call_args.args[0]
    assert parameters.host == "rabbit.test"
    assert parameters.port == 5673
    assert parameters.virtual_host == "/manga"
    assert parameters.heartbeat == 30
    assert parameters.credentials.username == "worker"


def test_connect_failure_raises_broker_connection_error(client, monkeypatch):
    monkeypatch.setattr(
        "services.messaging.pika_broker.pika.BlockingConnection",
        MagicMock(side_effect=AMQPConnectionError("refused")),
    )

    with pytest.raises(BrokerConnectionError):
        client.connect()


def test_queue_setup_maps_to_pika(client, blocking_connection, channel):
    client.connect()

    client.declare_queue("download_queue")
    client.set_qos(prefetch_count=1)

    channel.queue_declare.assert_called_once_with(
        queue="download_queue", durable=True, exclusive=False, auto_delete=False
    )
    channel.basic_qos.assert_called_once_with(prefetch_count=1)


@pytest.mark.parametrize(
    "operation, pika_method",
    [
        (lambda client: client.declare_queue("download_queue"), "queue_declare"),
        (lambda client: client.set_qos(prefetch_count=1), "basic_qos"),
        (lambda client: client.consume("download_queue", lambda delivery: None), "basic_consume"),
    ],
)
def test_queue_setup_connection_drop_raises_lost(client, blocking_connection, channel, operation, pika_method):
    getattr(channel, pika_method).side_effect = StreamLostError("reset by peer")
    client.connect()

    with pytest.raises(BrokerConnectionLost):
        operation(client)


def test_channel_closed_by_broker_raises_lost(client, blocking_connection, channel):
    channel.queue_declare.side_effect = ChannelClosedByBroker(406, "PRECONDITION_FAILED")
    client.connect()

    with pytest.raises(BrokerConnectionLost):
        client.declare_queue("download_queue")


def test_consume_wraps_messages_in_deliveries(client, blocking_connection, channel):
    received = []
    client.connect()
    client.consume("download_queue", received.append)

    kwargs = channel.basic_consume.call_args.kwargs
    assert kwargs["queue"] == "download_queue"
    assert kwargs["auto_ack"] is False

    _deliver(client, channel, delivery_tag=7, body=b"{}", redelivered=True)

    assert received[0].delivery_tag == 7
    assert received[0].body == b"{}"
    assert received[0].redelivered is True


def test_handler_runs_off_the_connection_thread(client, blocking_connection, channel):
    release = threading.Event()
    handler_threads = []

    def slow_handler(delivery):
        handler_threads.append(threading.current_thread())
        release.wait(timeout=5)
        client.ack(delivery.delivery_tag)

    client.connect()
    client.consume("download_queue", slow_handler)
    on_message = channel.basic_consume.call_args.kwargs["on_message_callback"]

    on_message(channel, SimpleNamespace(delivery_tag=1, redelivered=False), None, b"{}")

    assert client._worker.is_alive()
    channel.basic_ack.assert_not_called()

    release.set()
    client._worker.join(timeout=5)

    assert handler_threads == [client._worker]
    assert handler_threads[0] is not threading.current_thread()
    channel.basic_ack.assert_called_once_with(delivery_tag=1)


@pytest.mark.parametrize(
    "settle, pika_method, expected",
    [
        (lambda client, tag: client.ack(tag), "basic_ack", {"delivery_tag": 3}),
        (lambda client, tag: client.nack(tag, requeue=True), "basic_nack",
         {"delivery_tag": 3, "multiple": False, "requeue": True}),
        (lambda client, tag: client.reject(tag, requeue=False), "basic_reject",
         {"delivery_tag": 3, "requeue": False}),
    ],
)
def test_settlements_run_through_threadsafe_callbacks(client, blocking_connection, connection, channel,
                                                      settle, pika_method, expected):
    client.connect()
    client.consume("download_queue", lambda delivery: settle(client, delivery.delivery_tag))

    _deliver(client, channel, delivery_tag=3)

    connection.add_callback_threadsafe.assert_called_once()
    getattr(channel, pika_method).assert_called_once_with(**expected)


def test_settlement_for_replaced_connection_is_dropped(client, monkeypatch):
    first, second = _make_connection(), _make_connection()
    monkeypatch.setattr(
        "services.messaging.pika_broker.pika.BlockingConnection", MagicMock(side_effect=[first, second])
    )
    deliveries = []
    client.connect()
    client.consume("download_queue", deliveries.append)
    _deliver(client, first.channel.return_value, delivery_tag=1)

    client.connect()
    client.ack(deliveries[0].delivery_tag)

    first.channel.return_value.basic_ack.assert_not_called()
    second.channel.return_value.basic_ack.assert_not_called()
    second.add_callback_threadsafe.assert_not_called()


def test_settlement_for_unknown_delivery_is_dropped(client, blocking_connection, connection, channel):
    client.connect()

    client.ack(99)

    connection.add_callback_threadsafe.assert_not_called()
    channel.basic_ack.assert_not_called()


def test_start_consuming_connection_drop_raises_lost(client, blocking_connection, channel):
    channel.start_consuming.side_effect = StreamLostError("reset by peer")
    client.connect()

    with pytest.raises(BrokerConnectionLost):
        client.start_consuming()


def test_operations_without_open_channel_raise_lost(client):
    with pytest.raises(BrokerConnectionLost):
        client.declare_queue("download_queue")


def test_stop_consuming_runs_on_connection_thread(client, blocking_connection, connection, channel):
    client.connect()

    client.stop_consuming()

    connection.add_callback_threadsafe.assert_called_once()
    channel.stop_consuming.assert_called_once()


def test_close_is_idempotent(client, blocking_connection, connection, channel):
    client.connect()

    client.close()
    client.close()

    channel.close.assert_called_once()
    connection.close.assert_called_once()


def test_close_releases_connection_when_channel_close_fails(client, blocking_connection, connection, channel):
    channel.close.side_effect = StreamLostError("already gone")
    client.connect()

    with pytest.raises(StreamLostError):
        client.close()

    connection.close.assert_called_once()


def test_reconnect_discards_stale_connection(client, blocking_connection, channel):
    client.connect()
    client.connect()

    assert blocking_connection.call_count == 2
    channel.close.assert_called_once()


def test_consumer_reconnects_when_redeclare_fails(client, monkeypatch):
    monkeypatch.setattr("services.messaging.queue_consumer.time.sleep", lambda _: None)
    dropped_while_consuming, dropped_while_declaring, healthy = (
        _make_connection(), _make_connection(), _make_connection()
    )
    dropped_while_consuming.channel.return_value.start_consuming.side_effect = StreamLostError("reset")
    dropped_while_declaring.channel.return_value.queue_declare.side_effect = StreamLostError("reset again")
    factory = MagicMock(side_effect=[dropped_while_consuming, dropped_while_declaring, healthy])
    monkeypatch.setattr("services.messaging.pika_broker.pika.BlockingConnection", factory)

    QueueConsumer(client, MagicMock(), reconnect_attempts=3).run()

    assert factory.call_count == 3
    healthy.channel.return_value.basic_consume.assert_called_once()
    healthy.channel.return_value.start_consuming.assert_called_once()
