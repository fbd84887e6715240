"""
Test configuration and fixtures for notification tests.

This module provides:
- User fixtures with quiet hours disabled (deterministic scheduling)
- Fake channel senders that record sends and can be told to fail
- QueueProcessor wired to the fakes, running inline
- API client helpers for authenticated requests

Usage:
    def test_example(user, processor, fake_senders):
        record = QueuedNotificationFactory(recipient=user, channel="push", address="t")
        processor.dispatch(record.id)
        assert fake_senders["push"].sent
"""

import threading

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from notifications.channels.base import SendResult
from notifications.exceptions import DeliveryError, MissingAddressError, MissingTokenError
from notifications.tests.factories import UserFactory, UserNotificationPreferenceFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a user to receive notifications (quiet hours off)."""
    user = UserFactory(first_name="Asha", last_name="Rao")
    UserNotificationPreferenceFactory(user=user)
    return user


@pytest.fixture
def other_user(db):
    """Create another user for multi-user tests."""
    user = UserFactory()
    UserNotificationPreferenceFactory(user=user)
    return user


# =============================================================================
# Sender Fixtures
# =============================================================================


class FakeSender:
    """
    In-memory channel sender.

    Records every (address, content) pair. Set `error` to make every send
    raise it, or `failures` to fail only the first N sends. Safe to share
    between drain worker threads.
    """

    missing_address_error = MissingAddressError

    def __init__(self, channel: str):
        self.channel = channel
        self.sent = []
        self.calls = 0
        self.error = None
        self.failures = 0
        self._lock = threading.Lock()

    def send(self, address, content):
        with self._lock:
            self.calls += 1
            if not address:
                raise self.missing_address_error(f"No address for {self.channel}")
            if self.error is not None:
                raise self.error
            if self.failures:
                self.failures -= 1
                raise DeliveryError(f"{self.channel} provider unavailable")
            self.sent.append((address, content))
            message_id = f"{self.channel}-{len(self.sent)}"
        return SendResult(provider="fake", message_id=message_id)


class FakePushSender(FakeSender):
    missing_address_error = MissingTokenError


@pytest.fixture
def fake_senders():
    """One FakeSender per external channel."""
    return {
        "push": FakePushSender("push"),
        "email": FakeSender("email"),
        "sms": FakeSender("sms"),
    }


@pytest.fixture
def processor(fake_senders):
    """QueueProcessor using the fake senders, dispatching inline."""
    from notifications.processor import QueueProcessor

    return QueueProcessor(senders=fake_senders, concurrency=1)


@pytest.fixture
def mock_dispatch_task(mocker):
    """
    Mock the dispatch task so enqueue never talks to a broker.

    Use with django_capture_on_commit_callbacks(execute=True) to assert
    the task is submitted after commit.
    """
    return mocker.patch("notifications.tasks.dispatch_notification.delay")


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with JWT token for the default user fixture."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, some_user):
            client = authenticated_client_factory(some_user)
            response = client.get('/api/v1/notifications/')
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client
