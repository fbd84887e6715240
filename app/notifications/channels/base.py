"""
Channel sender protocol and shared value types.

Every sender implements one capability:

    send(address, content) -> SendResult

and raises notifications.exceptions.DeliveryError (or a subclass) when the
notification could not be handed to its provider. Senders never touch the
database; address resolution and retry bookkeeping belong to the processor.

Usage:
    from notifications.channels.base import ChannelSender, MessageContent

    def deliver(sender: ChannelSender, address: str) -> SendResult:
        return sender.send(address, MessageContent(title="Hi", body="..."))
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Provider tag recorded when no cloud transport is configured
LOCAL_PROVIDER = "local"


@dataclass(frozen=True)
class MessageContent:
    """
    Rendered content handed to a sender.

    Attributes:
        title: Push title / email subject / SMS prefix
        body: Push body / email HTML / SMS text
        data: Arbitrary structured data passed through unmodified
    """

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SendResult:
    """Provider acknowledgement of a send."""

    provider: str
    message_id: str

    @property
    def is_local(self) -> bool:
        return self.provider == LOCAL_PROVIDER

    def to_dict(self) -> dict[str, str]:
        return {"provider": self.provider, "message_id": self.message_id}


@runtime_checkable
class ChannelSender(Protocol):
    """
    Protocol for channel sender implementations.

    Attributes:
        channel: Channel name this sender delivers ("push", "email", "sms")
    """

    channel: str

    def send(self, address: str, content: MessageContent) -> SendResult:
        """
        Deliver `content` to `address`.

        Raises:
            MissingAddressError: `address` is empty
            DeliveryError: The provider rejected or failed the send
        """
        ...


def record_locally(channel: str, address: str, content: MessageContent) -> SendResult:
    """
    Log a message instead of sending it (development fallback).

    The result carries the "local" provider tag so a recorded message is
    never mistaken for a real delivery.
    """
    message_id = f"local-{uuid.uuid4()}"
    logger.info(
        f"[{channel}] no transport configured, recorded locally: "
        f"to={address} title={content.title!r}",
        extra={"channel": channel, "message_id": message_id},
    )
    return SendResult(provider=LOCAL_PROVIDER, message_id=message_id)
