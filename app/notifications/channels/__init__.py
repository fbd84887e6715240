"""
Channel senders for external delivery (push, email, SMS).

Transports are constructed once from settings and injected into the
senders; the queue processor receives the resulting mapping. Tests pass
their own mapping to QueueProcessor instead of patching module globals.

Usage:
    from notifications.channels import get_senders

    senders = get_senders()
    result = senders["email"].send("ann@example.com", content)
"""

from __future__ import annotations

from functools import lru_cache

from django.conf import settings

from notifications.channels.base import (
    LOCAL_PROVIDER,
    ChannelSender,
    MessageContent,
    SendResult,
)
from notifications.channels.email import EmailSender, SESTransport
from notifications.channels.push import FCMTransport, PushSender
from notifications.channels.sms import SmsSender, SNSTransport


def build_senders() -> dict[str, ChannelSender]:
    """
    Build one sender per external channel from settings.

    An empty AWS_SES_REGION / AWS_SNS_REGION selects the local fallback for
    email / SMS; an empty FIREBASE_CREDENTIALS_FILE leaves push without a
    transport.
    """
    timeout = settings.NOTIFICATION_TRANSPORT_TIMEOUT_SECONDS

    ses = None
    if settings.AWS_SES_REGION:
        ses = SESTransport(
            region=settings.AWS_SES_REGION,
            from_email=settings.NOTIFICATION_FROM_EMAIL,
            timeout=timeout,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )

    sns = None
    if settings.AWS_SNS_REGION:
        sns = SNSTransport(
            region=settings.AWS_SNS_REGION,
            timeout=timeout,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )

    fcm = None
    if settings.FIREBASE_CREDENTIALS_FILE:
        fcm = FCMTransport(settings.FIREBASE_CREDENTIALS_FILE)

    return {
        "push": PushSender(fcm),
        "email": EmailSender(ses),
        "sms": SmsSender(sns),
    }


@lru_cache(maxsize=1)
def get_senders() -> dict[str, ChannelSender]:
    """Process-wide senders, built on first use."""
    return build_senders()


__all__ = [
    "LOCAL_PROVIDER",
    "ChannelSender",
    "MessageContent",
    "SendResult",
    "EmailSender",
    "PushSender",
    "SmsSender",
    "SESTransport",
    "SNSTransport",
    "FCMTransport",
    "build_senders",
    "get_senders",
]
