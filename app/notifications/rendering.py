"""
Template rendering for multi-channel notifications.

Templates hold `{{name}}` placeholders. Rendering picks the fields for one
channel and substitutes variables:

    push    -> push_title / push_body (falling back to the in-app fields)
    email   -> email_subject / email_html (falling back to email_text)
    sms     -> "" / sms_text
    in_app  -> in_app_title / in_app_message

A placeholder whose name is not in the variables is left exactly as written,
so a missing variable is visible in the output rather than silently dropped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from notifications.models import NotificationTemplate

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


@dataclass(frozen=True)
class RenderedContent:
    """Title/body pair for one channel."""

    title: str
    body: str


def substitute(text: str | None, variables: Mapping[str, Any] | None) -> str:
    """
    Replace `{{name}}` tokens with values from `variables`.

    Examples:
        substitute("Hello {{name}}", {"name": "Ann"})  -> "Hello Ann"
        substitute("Hello {{name}}", {})               -> "Hello {{name}}"
        substitute(None, {"name": "Ann"})              -> ""
    """
    if not text:
        return ""
    if not variables:
        return text

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        value = variables[name]
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def channel_fields(
    template: NotificationTemplate, channel: str
) -> tuple[str | None, str | None]:
    """Raw (title, body) template strings used for `channel`."""
    if channel == "push":
        return (
            template.push_title or template.in_app_title,
            template.push_body or template.in_app_message,
        )
    if channel == "email":
        return template.email_subject, template.email_html or template.email_text
    if channel == "sms":
        return "", template.sms_text
    if channel == "in_app":
        return template.in_app_title, template.in_app_message
    raise ValueError(f"Unknown channel: {channel}")


def render_template(
    template: NotificationTemplate,
    channel: str,
    variables: Mapping[str, Any] | None = None,
) -> RenderedContent:
    """Render `template` for `channel` with `variables`."""
    title, body = channel_fields(template, channel)
    return RenderedContent(
        title=substitute(title, variables),
        body=substitute(body, variables),
    )
