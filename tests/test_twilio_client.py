"""Tests for the Twilio WhatsApp gateway."""

from __future__ import annotations

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from inbox_relay.core.config import ChatSettings
from inbox_relay.core.interfaces import ChatGatewayError
from inbox_relay.transport import TwilioGateway, to_whatsapp_address


def _settings(**overrides) -> ChatSettings:
    values = {
        "account_sid": "AC123",
        "auth_token": "tok",
        "from_number": "+15550000000",
        "api_base": "https://twilio.test/2010-04-01",
    }
    values.update(overrides)
    return ChatSettings(**values)


def _gateway(handler, **overrides) -> TwilioGateway:
    return TwilioGateway(
        _settings(**overrides),
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_whatsapp_prefix_added_once() -> None:
    assert to_whatsapp_address("+1555") == "whatsapp:+1555"
    assert to_whatsapp_address("whatsapp:+1555") == "whatsapp:+1555"


def test_send_message_posts_form_with_basic_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"sid": "SM1"})

    _gateway(handler).send_message("+15551112222", "Hello there")

    request = seen[0]
    assert str(request.url) == "https://twilio.test/2010-04-01/Accounts/AC123/Messages.json"
    form = parse_qs(request.content.decode())
    assert form == {
        "From": ["whatsapp:+15550000000"],
        "To": ["whatsapp:+15551112222"],
        "Body": ["Hello there"],
    }
    expected = base64.b64encode(b"AC123:tok").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"


def test_send_failure_raises_gateway_error() -> None:
    gateway = _gateway(lambda request: httpx.Response(400, json={"message": "bad"}))

    with pytest.raises(ChatGatewayError):
        gateway.send_message("whatsapp:+1555", "hi")


def test_unconfigured_gateway_only_logs(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    gateway = _gateway(handler, account_sid=None, auth_token=None)

    with caplog.at_level("INFO"):
        gateway.send_message("+1555", "hello")

    assert gateway.configured is False
    assert "[MOCK] Would send to whatsapp:+1555: hello" in caplog.text


def test_download_media_follows_redirects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/media/1":
            return httpx.Response(307, headers={"Location": "https://cdn.test/blob"})
        return httpx.Response(200, content=b"OggS")

    data = _gateway(handler).download_media("https://twilio.test/media/1")

    assert data == b"OggS"


def test_download_media_failure() -> None:
    gateway = _gateway(lambda request: httpx.Response(404))

    with pytest.raises(ChatGatewayError):
        gateway.download_media("https://twilio.test/media/2")
