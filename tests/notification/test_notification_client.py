"""Tests for the update notification client."""

from unittest.mock import MagicMock

import pytest
import requests

from services.download.errors import NotificationError
from services.download.models import NotificationPayload
from services.notification import NotificationClient

ENDPOINT = "http://updates.test/api/manga/update"


@pytest.fixture
def session():
    session = MagicMock()
    session.post.return_value = MagicMock(ok=True, status_code=200)
    return session


@pytest.fixture
def payload():
    return NotificationPayload(chapter_label="12", title="Solo", path="1.jpg,2.jpg")


def test_send_posts_json_payload(session, payload):
    client = NotificationClient(ENDPOINT, timeout=30, session_factory=lambda: session)

    response = client.send(payload)

    session.post.assert_called_once_with(
        ENDPOINT,
        json={"MangaChapter": "12", "Name": "Solo", "Path": "1.jpg,2.jpg"},
        timeout=30,
    )
    session.close.assert_called_once()
    assert response.status_code == 200


def test_send_returns_unsuccessful_response(session, payload):
    session.post.return_value = MagicMock(ok=False, status_code=503)
    client = NotificationClient(ENDPOINT, session_factory=lambda: session)

    assert client.send(payload).status_code == 503


def test_send_uses_fresh_session_per_call(payload):
    sessions = []

    def factory():
        session = MagicMock()
        session.post.return_value = MagicMock(ok=True, status_code=200)
        sessions.append(session)
        return session

    client = NotificationClient(ENDPOINT, session_factory=factory)
    client.send(payload)
    client.send(payload)

    assert len(sessions) == 2
    assert all(session.close.call_count == 1 for session in sessions)


def test_send_network_error_propagates_and_closes_session(session, payload):
    session.post.side_effect = requests.Timeout("timed out")
    client = NotificationClient(ENDPOINT, session_factory=lambda: session)

    with pytest.raises(requests.Timeout):
        client.send(payload)
    session.close.assert_called_once()


@pytest.mark.parametrize("address", ["", None])
def test_send_without_endpoint_raises(session, payload, address):
    client = NotificationClient(address, session_factory=lambda: session)

    with pytest.raises(NotificationError):
        client.send(payload)
    session.post.assert_not_called()
