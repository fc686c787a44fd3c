"""Tests for outbound messaging channels (HTTP mocked with httpx.MockTransport)."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from finance_tracker.config import LineSettings, TwilioSettings
from finance_tracker.models.ledger import Channel
from finance_tracker.services.messaging import (
    ChannelNotConfiguredError,
    ChannelRegistry,
    LineChannel,
    MessageDeliveryError,
    TwilioWhatsAppChannel,
    UnsupportedChannelError,
)


def twilio_settings(**overrides) -> TwilioSettings:
    values = {
        "account_sid": "AC123",
        "auth_token": "secret",
        "wa_from": "+14155238886",
    }
    values.update(overrides)
    return TwilioSettings(**values)


class TestTwilioWhatsAppChannel:
    """Tests for the Twilio Messages REST call."""

    async def test_send(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM1"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            channel = TwilioWhatsAppChannel(twilio_settings(), client=client)
            result = await channel.send("+66812345678", "hello")

        assert result == {"id": "SM1"}
        assert captured["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
        assert captured["auth"].startswith("Basic ")
        assert captured["form"]["To"] == ["whatsapp:+66812345678"]
        assert captured["form"]["From"] == ["whatsapp:+14155238886"]
        assert captured["form"]["Body"] == ["hello"]

    async def test_prefix_not_doubled(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["form"] = parse_qs(request.content.decode())
            return httpx.Response(201, json={"sid": "SM2"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            channel = TwilioWhatsAppChannel(twilio_settings(wa_from="whatsapp:+1415"), client=client)
            await channel.send("whatsapp:+66812345678", "hi")

        assert captured["form"]["To"] == ["whatsapp:+66812345678"]
        assert captured["form"]["From"] == ["whatsapp:+1415"]

    async def test_non_2xx_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="invalid number")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            channel = TwilioWhatsAppChannel(twilio_settings(), client=client)
            with pytest.raises(MessageDeliveryError) as exc_info:
                await channel.send("+66", "hello")

        assert exc_info.value.status_code == 400
        assert exc_info.value.body == "invalid number"

    async def test_not_configured(self):
        channel = TwilioWhatsAppChannel(TwilioSettings(account_sid=None, auth_token=None, wa_from=None))
        with pytest.raises(ChannelNotConfiguredError):
            await channel.send("+66", "hello")


class TestLineChannel:
    """Tests for the LINE push call."""

    async def test_send(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        settings = LineSettings(channel_access_token="tok")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await LineChannel(settings, client=client).send("U123", "hello")

        assert result == {"ok": True}
        assert captured["url"] == "https://api.line.me/v2/bot/message/push"
        assert captured["auth"] == "Bearer tok"
        assert captured["body"] == {"to": "U123", "messages": [{"type": "text", "text": "hello"}]}

    async def test_non_2xx_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="unauthorized")

        settings = LineSettings(channel_access_token="tok")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(MessageDeliveryError):
                await LineChannel(settings, client=client).send("U123", "hello")

    async def test_not_configured(self):
        with pytest.raises(ChannelNotConfiguredError):
            await LineChannel(LineSettings(channel_access_token=None)).send("U123", "hello")


class TestChannelRegistry:
    def test_get_by_tag(self):
        line = LineChannel(LineSettings(channel_access_token="tok"))
        registry = ChannelRegistry([line])
        assert registry.get("line") is line
        assert registry.get(Channel.LINE) is line

    def test_unknown_tag(self):
        registry = ChannelRegistry()
        with pytest.raises(UnsupportedChannelError):
            registry.get("sms")
        with pytest.raises(UnsupportedChannelError):
            registry.get("line")

    def test_configured(self):
        registry = ChannelRegistry([
            LineChannel(LineSettings(channel_access_token="tok")),
            TwilioWhatsAppChannel(TwilioSettings(account_sid=None, auth_token=None, wa_from=None)),
        ])
        assert registry.configured() == {"line": True, "whatsapp": False}
