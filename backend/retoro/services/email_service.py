# Overview: Outbound email (magic links, support requests) over the Mailgun HTTP API.

from __future__ import annotations

import logging
from html import escape

import httpx
from flask import current_app

logger = logging.getLogger(__name__)


MAILGUN_MESSAGES_URL = "https://api.mailgun.net/v3/{domain}/messages"


class EmailDeliveryError(Exception):
    """Mailgun is not configured, unreachable, or rejected the message."""


def send_email(
    to: str,
    subject: str,
    text: str,
    html: str | None = None,
    reply_to: str | None = None,
) -> None:
    """
    Send one message through Mailgun.

    Raises:
        EmailDeliveryError: On missing configuration or any delivery failure
    """
    config = current_app.config
    api_key = config.get("MAILGUN_API_KEY")
    domain = config.get("MAILGUN_DOMAIN")
    if not api_key or not domain:
        logger.error("Mailgun is not configured; dropping email to %s", to)
        raise EmailDeliveryError("Email delivery is not configured")

    data = {
        "from": config.get("EMAIL_FROM"),
        "to": to,
        "subject": subject,
        "text": text,
    }
    if html:
        data["html"] = html
    if reply_to:
        data["h:Reply-To"] = reply_to

    try:
        response = httpx.post(
            MAILGUN_MESSAGES_URL.format(domain=domain),
            auth=("api", api_key),
            data=data,
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 15.0),
        )
    except httpx.HTTPError as exc:
        logger.error("Mailgun request failed: %s", exc)
        raise EmailDeliveryError("Failed to send email")

    if response.is_error:
        logger.error("Mailgun rejected message (%s): %s", response.status_code, response.text)
        raise EmailDeliveryError("Failed to send email")


def build_magic_link(token: str) -> str:
    base_url = current_app.config.get("PUBLIC_API_URL", "").rstrip("/")
    return f"{base_url}/auth/verify?token={token}"


def send_magic_link_email(email: str, token: str, name: str | None = None) -> None:
    link = build_magic_link(token)
    greeting = f"Hi {name}," if name else "Hi,"

    text = (
        f"{greeting}\n\n"
        "Click the link below to sign in to your Retoro account:\n\n"
        f"{link}\n\n"
        "This link will expire in 15 minutes.\n\n"
        "If you didn't request this email, you can safely ignore it."
    )
    html = (
        '<html><body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
        '<div style="max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h2 style="color: #4F46E5;">Sign in to Retoro</h2>'
        f"<p>{escape(greeting)}</p>"
        "<p>Click the button below to sign in to your Retoro account:</p>"
        f'<p><a href="{escape(link)}" style="background-color: #4F46E5; color: white; '
        'padding: 12px 24px; text-decoration: none; border-radius: 6px;">Sign In</a></p>'
        '<p style="color: #666; font-size: 14px;">This link will expire in 15 minutes.</p>'
        "</div></body></html>"
    )
    send_email(to=email, subject="Sign in to Retoro", text=text, html=html)


def send_support_email(
    sender_email: str,
    subject: str,
    message: str,
    user_id: str | None = None,
    is_anonymous: bool = False,
) -> None:
    """Forward a support request to the support inbox, replying to the sender."""
    text = (
        f"From: {sender_email}\n"
        f"User ID: {user_id}\n"
        f"Is Anonymous: {is_anonymous}\n\n"
        f"Subject: {subject}\n\n"
        f"Message:\n{message}"
    )
    html = (
        '<div style="font-family: Arial, sans-serif;">'
        "<h2>Support Request</h2>"
        f"<p><strong>From:</strong> {escape(sender_email)}</p>"
        f"<p><strong>User ID:</strong> {escape(str(user_id))}</p>"
        f"<p><strong>Anonymous:</strong> {'Yes' if is_anonymous else 'No'}</p>"
        "<hr>"
        f"<h3>{escape(subject)}</h3>"
        f"<p>{escape(message).replace(chr(10), '<br>')}</p>"
        "</div>"
    )
    send_email(
        to=current_app.config.get("SUPPORT_EMAIL"),
        subject=f"Support Request: {subject}",
        text=text,
        html=html,
        reply_to=sender_email,
    )
