"""Gmail REST client implementing the mail provider protocol."""

from __future__ import annotations

import base64
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from email.message import EmailMessage
from typing import Any

import httpx

from inbox_relay.core.config import GmailSettings
from inbox_relay.core.datetime_utils import utc_now
from inbox_relay.core.interfaces import MailAuthError, MailProvider, MailProviderError
from inbox_relay.core.models import EmailAccount, InboundEmail, SentEmail

LOGGER = logging.getLogger(__name__)

TokenCallback = Callable[[int, str, datetime | None], None]

# Refresh slightly before the provider's deadline.
_EXPIRY_MARGIN = timedelta(seconds=60)


class GmailClient(MailProvider):
    """Access a user's Gmail mailbox with stored OAuth credentials."""

    def __init__(
        self,
        settings: GmailSettings,
        *,
        on_token_refresh: TokenCallback | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings
        self._on_token_refresh = on_token_refresh
        self._client = client or httpx.Client(timeout=settings.timeout_seconds)

    # MailProvider ------------------------------------------------------------
    def fetch_new_emails(self, account: EmailAccount, limit: int) -> list[InboundEmail]:
        """Return up to ``limit`` newest inbox messages."""
        emails: list[InboundEmail] = []
        for ref in self._list_messages(account, "label:INBOX", limit):
            message = self._get_message(account, ref["id"])
            headers = _headers(message)
            emails.append(
                InboundEmail(
                    id=ref["id"],
                    thread_id=ref.get("threadId") or message.get("threadId"),
                    sender=headers.get("from", ""),
                    subject=headers.get("subject", ""),
                    snippet=message.get("snippet", ""),
                    received_at=_internal_date(message.get("internalDate")),
                )
            )
        LOGGER.debug("Fetched %s inbox message(s) for %s", len(emails), account.email_address)
        return emails

    def scan_sent_emails(self, account: EmailAccount, limit: int) -> list[SentEmail]:
        """Return up to ``limit`` sent messages that carry a text body."""
        sent: list[SentEmail] = []
        for ref in self._list_messages(account, "label:SENT", limit):
            message = self._get_message(account, ref["id"])
            body = extract_text_body(message.get("payload"))
            if not body:
                continue
            headers = _headers(message)
            sent.append(
                SentEmail(
                    sender=headers.get("from", ""),
                    to=headers.get("to", ""),
                    subject=headers.get("subject", ""),
                    body=body,
                )
            )
        return sent

    def send_message(
        self, account: EmailAccount, to: str, subject: str, body: str
    ) -> str:
        """Send a plain-text email and return the Gmail message id."""
        message = EmailMessage()
        message["To"] = to
        message["From"] = account.email_address
        message["Subject"] = subject
        message.set_content(body)
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")

        response = self._request(
            account, "POST", "/users/me/messages/send", json={"raw": raw}
        )
        message_id = response.get("id")
        if not isinstance(message_id, str):
            raise MailProviderError("Gmail send response missing 'id'")
        LOGGER.info("Sent email %s to %s", message_id, to)
        return message_id

    # Internals ---------------------------------------------------------------
    def _list_messages(
        self, account: EmailAccount, query: str, limit: int
    ) -> list[dict[str, Any]]:
        payload = self._request(
            account,
            "GET",
            "/users/me/messages",
            params={"q": query, "maxResults": limit},
        )
        return list(payload.get("messages") or [])[:limit]

    def _get_message(self, account: EmailAccount, message_id: str) -> dict[str, Any]:
        return self._request(
            account,
            "GET",
            f"/users/me/messages/{message_id}",
            params={"format": "full"},
        )

    def _request(
        self, account: EmailAccount, method: str, path: str, **kwargs: Any
    ) -> dict[str, Any]:
        if not account.access_token or _is_expired(account.token_expiry):
            self._refresh(account)

        url = self._settings.api_base.rstrip("/") + path
        response = self._send(account, method, url, **kwargs)
        if response.status_code == 401:
            LOGGER.warning(
                "Gmail rejected the access token for %s; refreshing",
                account.email_address,
            )
            self._refresh(account)
            response = self._send(account, method, url, **kwargs)

        if response.is_error:
            LOGGER.error(
                "Gmail request %s %s failed: %s", method, path, response.status_code
            )
            raise MailProviderError(
                f"Gmail request failed with status {response.status_code}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise MailProviderError("Gmail returned invalid JSON") from exc
        return data if isinstance(data, dict) else {}

    def _send(
        self, account: EmailAccount, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            return self._client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {account.access_token}"},
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise MailProviderError(f"Gmail request failed: {exc}") from exc

    def _refresh(self, account: EmailAccount) -> None:
        if not account.refresh_token:
            raise MailAuthError(
                f"No refresh token stored for {account.email_address}"
            )
        LOGGER.info("Refreshing access token for %s", account.email_address)
        try:
            response = self._client.post(
                self._settings.token_url,
                data={
                    "client_id": self._settings.client_id or "",
                    "client_secret": self._settings.client_secret or "",
                    "refresh_token": account.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as exc:
            raise MailProviderError(f"Token refresh failed: {exc}") from exc

        try:
            tokens = response.json()
        except ValueError:
            tokens = {}
        if response.is_error:
            if tokens.get("error") == "invalid_grant":
                LOGGER.error(
                    "Auth revoked for user %s. Needs re-authentication.",
                    account.user_id,
                )
                raise MailAuthError(
                    f"Refresh token for {account.email_address} was revoked"
                )
            raise MailProviderError(
                f"Token refresh failed with status {response.status_code}"
            )

        access_token = tokens.get("access_token")
        if not isinstance(access_token, str):
            raise MailProviderError("Token refresh response missing 'access_token'")
        expires_in = tokens.get("expires_in")
        expiry = (
            utc_now() + timedelta(seconds=int(expires_in))
            if isinstance(expires_in, (int, float))
            else None
        )
        account.access_token = access_token
        if expiry is not None:
            account.token_expiry = expiry

        if self._on_token_refresh is not None and account.id is not None:
            try:
                self._on_token_refresh(account.id, access_token, expiry)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error(
                    "Failed to update tokens for user %s: %s", account.user_id, exc
                )

    def close(self) -> None:
        self._client.close()


def extract_text_body(payload: dict[str, Any] | None) -> str:
    """Return the decoded ``text/plain`` body of a Gmail message payload.

    A single-part payload of another type falls back to its own body.
    """
    if not payload:
        return ""
    if not payload.get("parts"):
        data = (payload.get("body") or {}).get("data")
        return _decode_base64url(data) if data else ""
    return _find_plain_text(payload)


def _find_plain_text(payload: dict[str, Any]) -> str:
    data = (payload.get("body") or {}).get("data")
    if data and payload.get("mimeType", "").startswith("text/plain"):
        return _decode_base64url(data)
    for part in payload.get("parts") or []:
        body = _find_plain_text(part)
        if body:
            return body
    return ""


def _headers(message: dict[str, Any]) -> dict[str, str]:
    headers = (message.get("payload") or {}).get("headers") or []
    return {
        str(item.get("name", "")).lower(): str(item.get("value", ""))
        for item in headers
    }


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _internal_date(raw: Any) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(raw) / 1000, tz=UTC)
    except (TypeError, ValueError):
        return None


def _is_expired(expiry: datetime | None) -> bool:
    if expiry is None:
        return False
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=UTC)
    return expiry - _EXPIRY_MARGIN <= utc_now()


__all__ = ["GmailClient", "TokenCallback", "extract_text_body"]
