"""
Email notifications through Amazon SES.

Without an SES region the sender records the message locally and reports
provider "local" (development and test environments).
"""

from __future__ import annotations

import logging

from django.utils.html import strip_tags

from notifications.channels.base import MessageContent, SendResult, record_locally
from notifications.exceptions import DeliveryError, MissingAddressError

logger = logging.getLogger(__name__)


class SESTransport:
    """
    Sends HTML+text email via boto3's SES client.

    Note: boto3 is imported lazily when the client is first used.
    """

    provider = "ses"

    def __init__(
        self,
        region: str,
        from_email: str,
        timeout: int = 10,
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.region = region
        self.from_email = from_email
        self.timeout = timeout
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._client = None

    @property
    def client(self):
        """Get or create SES client."""
        if self._client is None:
            import boto3
            from botocore.config import Config

            kwargs = {}
            if self.access_key_id:
                kwargs = {
                    "aws_access_key_id": self.access_key_id,
                    "aws_secret_access_key": self.secret_access_key,
                }
            self._client = boto3.client(
                "ses",
                region_name=self.region,
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": 1},
                ),
                **kwargs,
            )
        return self._client

    def send(self, to: str, subject: str, html: str, text: str) -> str:
        """Send one email and return the SES message ID."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self.client.send_email(
                Source=self.from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject},
                    "Body": {
                        "Html": {"Data": html},
                        "Text": {"Data": text},
                    },
                },
            )
        except (BotoCoreError, ClientError) as e:
            raise DeliveryError(
                f"SES send failed: {e}",
                details={"provider": self.provider},
            ) from e
        return response["MessageId"]


class EmailSender:
    """Sends the notification body as HTML with a tag-stripped text part."""

    channel = "email"

    def __init__(self, transport: SESTransport | None = None) -> None:
        self.transport = transport

    def send(self, address: str, content: MessageContent) -> SendResult:
        if not address:
            raise MissingAddressError("No email address for recipient")

        if self.transport is None:
            return record_locally(self.channel, address, content)

        message_id = self.transport.send(
            to=address,
            subject=content.title,
            html=content.body,
            text=strip_tags(content.body),
        )
        logger.info(f"Email sent to {address}, message_id={message_id}")
        return SendResult(provider=self.transport.provider, message_id=message_id)
