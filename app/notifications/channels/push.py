"""
Push notifications through Firebase Cloud Messaging.

FCMTransport wraps firebase-admin; PushSender validates the device token and
builds the platform-agnostic payload (title, body, data, high-priority hint
for Android and APNs). Unlike email and SMS there is no local fallback: a
push without a configured transport is a delivery failure.

Note: firebase-admin is imported lazily so the module can be loaded in
environments where push is not configured.
"""

from __future__ import annotations

import json
import logging

from notifications.channels.base import MessageContent, SendResult
from notifications.exceptions import DeliveryError, MissingTokenError

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "notifications"


class FCMTransport:
    """
    Thin wrapper around firebase_admin.messaging.

    The Firebase app is initialized on first send from the service account
    file and reused afterwards.
    """

    provider = "fcm"

    def __init__(self, credentials_file: str) -> None:
        self.credentials_file = credentials_file
        self._app = None

    @property
    def app(self):
        """Get or create the Firebase app."""
        if self._app is None:
            import firebase_admin
            from firebase_admin import credentials

            try:
                self._app = firebase_admin.get_app(FIREBASE_APP_NAME)
            except ValueError:
                self._app = firebase_admin.initialize_app(
                    credentials.Certificate(self.credentials_file),
                    name=FIREBASE_APP_NAME,
                )
        return self._app

    def send(self, token: str, title: str, body: str, data: dict[str, str]) -> str:
        """
        Send one message and return the FCM message ID.

        Raises:
            DeliveryError: FCM rejected the message. Unregistered tokens use
                error_code TOKEN_UNREGISTERED so the caller can deactivate them.
        """
        from firebase_admin import exceptions as firebase_exceptions
        from firebase_admin import messaging

        message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data=data,
            android=messaging.AndroidConfig(priority="high"),
            apns=messaging.APNSConfig(headers={"apns-priority": "10"}),
        )

        try:
            return messaging.send(message, app=self.app)
        except messaging.UnregisteredError as e:
            raise DeliveryError(
                f"Push token is no longer registered: {e}",
                error_code="TOKEN_UNREGISTERED",
                details={"provider": self.provider},
            ) from e
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            raise DeliveryError(
                f"FCM send failed: {e}",
                details={"provider": self.provider},
            ) from e


def stringify_data(data: dict) -> dict[str, str]:
    """FCM data payloads only accept string values."""
    result = {}
    for key, value in (data or {}).items():
        if isinstance(value, str):
            result[str(key)] = value
        else:
            result[str(key)] = json.dumps(value, default=str)
    return result


class PushSender:
    """Sends push notifications to a single device token."""

    channel = "push"

    def __init__(self, transport: FCMTransport | None = None) -> None:
        self.transport = transport

    def send(self, address: str, content: MessageContent) -> SendResult:
        if not address:
            raise MissingTokenError("Push token not available")

        if self.transport is None:
            raise DeliveryError(
                "Push transport is not configured",
                error_code="TRANSPORT_NOT_CONFIGURED",
            )

        message_id = self.transport.send(
            token=address,
            title=content.title,
            body=content.body,
            data=stringify_data(content.data),
        )
        logger.info(f"Push sent, message_id={message_id}")
        return SendResult(provider=self.transport.provider, message_id=message_id)
