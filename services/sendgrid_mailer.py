"""SendGrid delivery for client quotes."""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

import requests

SENDGRID_SEND_ENDPOINT = "https://api.sendgrid.com/v3/mail/send"


class SendGridConfigurationError(RuntimeError):
    """Raised when attempting to send mail without the required configuration."""


@dataclass(frozen=True)
class SendGridMailResult:
    """Simple status container for SendGrid operations."""

    delivered: bool
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Return True when SendGrid accepted the message."""

        return self.delivered


@dataclass(frozen=True)
class QuoteAttachment:
    """A rendered quote document to attach to an email."""

    content: bytes
    filename: str
    mime_type: str = "application/pdf"

    def to_payload(self) -> Mapping[str, str]:
        """Return the attachment in SendGrid's JSON shape."""

        return {
            "content": base64.b64encode(self.content).decode("ascii"),
            "type": self.mime_type,
            "filename": self.filename,
            "disposition": "attachment",
        }


class SendGridMailer:
    """Sends quote emails through SendGrid's v3 API with shared error handling."""

    def __init__(
        self,
        *,
        api_key: Optional[str],
        default_sender: str,
        logger: Optional[logging.Logger] = None,
        request_timeout: int = 15,
    ) -> None:
        self._api_key = api_key
        self._default_sender = default_sender
        self._logger = logger or logging.getLogger(__name__)
        self._timeout = request_timeout

    @property
    def is_configured(self) -> bool:
        """Return True when a SendGrid API key is available."""

        return bool(self._api_key)

    def send_quote(
        self,
        *,
        recipient: str,
        client_name: str,
        html_body: str,
        attachment: QuoteAttachment,
        copy_to: Iterable[str] = (),
        reply_to: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> SendGridMailResult:
        """Email a quote document to the client, copying any internal recipients."""

        personalization: dict[str, object] = {"to": _format_recipients([recipient])}
        cc = [
            entry
            for entry in _format_recipients(copy_to, required=False)
            if entry["email"].lower() != recipient.strip().lower()
        ]
        if cc:
            personalization["cc"] = cc

        sender: dict[str, str] = {"email": self._default_sender}
        if sender_name:
            sender["name"] = sender_name

        payload: dict[str, object] = {
            "personalizations": [personalization],
            "from": sender,
            "subject": f"Project quote for {client_name}",
            "content": [{"type": "text/html", "value": html_body}],
            "attachments": [attachment.to_payload()],
        }

        if reply_to:
            payload["reply_to"] = {"email": reply_to}

        return self._dispatch(payload, context="quote email")

    def _dispatch(self, payload: Mapping[str, object], *, context: str) -> SendGridMailResult:
        """Post the payload to SendGrid and capture failure details."""

        if not self.is_configured:
            error = "SENDGRID_API_KEY is not configured"
            self._logger.error("%s aborted: %s", context.capitalize(), error)
            raise SendGridConfigurationError(error)

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                SENDGRID_SEND_ENDPOINT,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            status_code: Optional[int] = getattr(exc.response, "status_code", None)
            error_text: Optional[str] = getattr(exc.response, "text", None)
            self._logger.error(
                "Error sending %s via SendGrid: %s", context, exc, extra={"status_code": status_code}
            )
            if error_text:
                self._logger.error("SendGrid response: %s", error_text)
            return SendGridMailResult(delivered=False, status_code=status_code, error=str(exc))

        self._logger.info("Sent %s via SendGrid (status %s)", context, response.status_code)
        return SendGridMailResult(delivered=True, status_code=response.status_code)


def _format_recipients(recipients: Iterable[str], *, required: bool = True) -> Sequence[Mapping[str, str]]:
    """Return SendGrid-ready recipient dictionaries, filtering empty values."""

    formatted = [{"email": address.strip()} for address in recipients if address and address.strip()]
    if required and not formatted:
        raise ValueError("At least one recipient email address is required")
    return formatted
