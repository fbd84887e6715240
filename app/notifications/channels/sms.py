"""
SMS notifications through Amazon SNS.

Messages are published as Transactional SMS. Without an SNS region the
sender records the message locally and reports provider "local".
"""

from __future__ import annotations

import logging

from notifications.channels.base import MessageContent, SendResult, record_locally
from notifications.exceptions import DeliveryError, MissingAddressError

logger = logging.getLogger(__name__)


class SNSTransport:
    """
    Publishes SMS via boto3's SNS client.

    Note: boto3 is imported lazily when the client is first used.
    """

    provider = "sns"

    def __init__(
        self,
        region: str,
        timeout: int = 10,
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.region = region
        self.timeout = timeout
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._client = None

    @property
    def client(self):
        """Get or create SNS client."""
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
                "sns",
                region_name=self.region,
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": 1},
                ),
                **kwargs,
            )
        return self._client

    def send(self, phone_number: str, message: str) -> str:
        """Publish one SMS and return the SNS message ID."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self.client.publish(
                PhoneNumber=phone_number,
                Message=message,
                MessageAttributes={
                    "AWS.SNS.SMS.SMSType": {
                        "DataType": "String",
                        "StringValue": "Transactional",
                    }
                },
            )
        except (BotoCoreError, ClientError) as e:
            raise DeliveryError(
                f"SNS publish failed: {e}",
                details={"provider": self.provider},
            ) from e
        return response["MessageId"]


def format_sms(content: MessageContent) -> str:
    """SMS text is "title: body", or just the body when there is no title."""
    if content.title:
        return f"{content.title}: {content.body}"
    return content.body


class SmsSender:
    channel = "sms"

    def __init__(self, transport: SNSTransport | None = None) -> None:
        self.transport = transport

    def send(self, address: str, content: MessageContent) -> SendResult:
        if not address:
            raise MissingAddressError("No phone number for recipient")

        if self.transport is None:
            return record_locally(self.channel, address, content)

        message_id = self.transport.send(phone_number=address, message=format_sms(content))
        logger.info(f"SMS sent, message_id={message_id}")
        return SendResult(provider=self.transport.provider, message_id=message_id)
