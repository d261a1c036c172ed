"""Twilio WhatsApp gateway implementing the chat protocol."""

from __future__ import annotations

import logging

import httpx

from inbox_relay.core.config import ChatSettings
from inbox_relay.core.interfaces import ChatGateway, ChatGatewayError

LOGGER = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def to_whatsapp_address(number: str) -> str:
    """Return ``number`` with the ``whatsapp:`` channel prefix."""
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


class TwilioGateway(ChatGateway):
    """Send WhatsApp messages through the Twilio Messages API.

    Without an account SID and auth token the gateway only logs what it
    would have sent, which keeps local development free of credentials.
    """

    def __init__(
        self, settings: ChatSettings, *, client: httpx.Client | None = None
    ) -> None:
        self._settings = settings
        self._client = client or httpx.Client(timeout=settings.timeout_seconds)
        if self.configured:
            LOGGER.info("Twilio client initialized")
        else:
            LOGGER.warning(
                "Twilio credentials not configured - messages will be logged only"
            )

    @property
    def configured(self) -> bool:
        return bool(self._settings.account_sid and self._settings.auth_token)

    def send_message(self, to: str, text: str) -> None:
        """Deliver ``text`` to the WhatsApp address ``to``."""
        recipient = to_whatsapp_address(to)
        if not self.configured:
            LOGGER.info("[MOCK] Would send to %s: %s...", recipient, text[:100])
            return

        url = (
            f"{self._settings.api_base.rstrip('/')}/Accounts/"
            f"{self._settings.account_sid}/Messages.json"
        )
        try:
            response = self._client.post(
                url,
                data={
                    "From": to_whatsapp_address(self._settings.from_number),
                    "To": recipient,
                    "Body": text,
                },
                auth=self._auth(),
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to send WhatsApp message to %s: %s", recipient, exc)
            raise ChatGatewayError(f"Failed to send message to {recipient}") from exc

        try:
            sid = response.json().get("sid")
        except ValueError:
            sid = None
        LOGGER.info("Message sent successfully: %s", sid)

    def download_media(self, url: str) -> bytes:
        """Return the bytes of media attached to an inbound message."""
        try:
            response = self._client.get(
                url, auth=self._auth() if self.configured else None, follow_redirects=True
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to download media from %s: %s", url, exc)
            raise ChatGatewayError(f"Failed to download media from {url}") from exc
        return response.content

    def close(self) -> None:
        self._client.close()

    def _auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(
            self._settings.account_sid or "", self._settings.auth_token or ""
        )


__all__ = ["TwilioGateway", "to_whatsapp_address"]
