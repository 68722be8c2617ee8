"""Tests for WhatsApp message helpers and providers."""

import json
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

from app.services.whatsapp_service import (
    MetaProvider,
    StubProvider,
    first_name,
    get_provider,
    normalize_number,
    parse_reply,
    reminder_message,
)


def test_normalize_number():
    assert normalize_number("+27 82 123-4567") == "27821234567"
    assert normalize_number(None) == ""
    assert normalize_number("") == ""


def test_first_name():
    assert first_name("Thandi Nkosi") == "Thandi"
    assert first_name("  ") == "there"
    assert first_name(None) == "there"


def test_reminder_message():
    starts = datetime(2030, 1, 7, 9, 30, tzinfo=ZoneInfo("Africa/Johannesburg"))
    assert reminder_message("Thandi Nkosi", "Sunrise Dental", starts) == (
        "Hi Thandi, this is Sunrise Dental.\n"
        "Reminder: Your appointment is on 2030/01/07 at 09:30.\n"
        "Reply YES to confirm or NO to cancel."
    )
    assert "this is the clinic." in reminder_message(None, None, starts)


@pytest.mark.parametrize(
    "body,expected",
    [
        ("YES", "confirmed"),
        ("yes please", "confirmed"),
        (" y", "confirmed"),
        ("Confirm!", "confirmed"),
        ("NO", "cancelled"),
        ("cancel it", "cancelled"),
        ("n", "cancelled"),
        ("maybe", None),
        ("", None),
        (None, None),
        ("123", None),
    ],
)
def test_parse_reply(body, expected):
    assert parse_reply(body) == expected


def test_get_provider_by_name():
    assert isinstance(get_provider("stub"), StubProvider)
    assert isinstance(get_provider("META"), MetaProvider)


@pytest.mark.asyncio
async def test_stub_provider_always_succeeds():
    result = await StubProvider().send("27821234567", "hello")
    assert result.ok is True
    assert result.provider_message_id.startswith("stub_")


@pytest.mark.asyncio
async def test_meta_provider_posts_text_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.ABC"}]})

    provider = MetaProvider(
        token="tok",
        phone_number_id="12345",
        graph_version="v19.0",
        transport=httpx.MockTransport(handler),
    )
    result = await provider.send("27821234567", "hello")

    assert result.ok is True
    assert result.provider_message_id == "wamid.ABC"
    assert seen["url"] == "https://graph.facebook.com/v19.0/12345/messages"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {
        "messaging_product": "whatsapp",
        "to": "27821234567",
        "type": "text",
        "text": {"body": "hello"},
    }


@pytest.mark.asyncio
async def test_meta_provider_reports_api_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Invalid parameter"}})

    provider = MetaProvider(token="tok", phone_number_id="12345", transport=httpx.MockTransport(handler))
    result = await provider.send("27821234567", "hello")

    assert result.ok is False
    assert result.error == "Invalid parameter"


@pytest.mark.asyncio
async def test_meta_provider_reports_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = MetaProvider(token="tok", phone_number_id="12345", transport=httpx.MockTransport(handler))
    result = await provider.send("27821234567", "hello")

    assert result.ok is False
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_meta_provider_requires_credentials(monkeypatch):
    from app.config import settings

    monkeypatch.setattr(settings, "whatsapp_meta_token", None)
    monkeypatch.setattr(settings, "whatsapp_meta_phone_number_id", None)

    result = await MetaProvider().send("27821234567", "hello")

    assert result.ok is False
    assert "WHATSAPP_META_TOKEN" in result.error
