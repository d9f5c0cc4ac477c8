import httpx
import pytest

from cobrafacil.services import whatsapp_service as ws
from cobrafacil.services.whatsapp_service import WhatsAppService


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(11) 98765-4321", "5511987654321"),
        ("011987654321", "5511987654321"),
        ("+55 21 99999-0000", "5521999990000"),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert WhatsAppService.normalize_phone_number(raw) == expected


def test_normalize_rejects_empty():
    with pytest.raises(ValueError):
        WhatsAppService.normalize_phone_number("--")


def _patch_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(ws.httpx, "AsyncClient", factory)


@pytest.mark.asyncio
async def test_send_text_posts_to_gateway(monkeypatch):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["token"] = request.headers["token"]
        seen["body"] = request.read()
        return httpx.Response(200, json={"ok": True})

    _patch_transport(monkeypatch, handler)
    service = WhatsAppService(api_url="https://gateway.test/", system_token="system")

    assert await service.send_text("(11) 98765-4321", "Olá", instance_token="owner-token")
    assert seen["url"] == "https://gateway.test/send/text"
    assert seen["token"] == "owner-token"
    assert b"5511987654321" in seen["body"]


@pytest.mark.asyncio
async def test_send_text_reports_gateway_errors(monkeypatch):
    _patch_transport(monkeypatch, lambda request: httpx.Response(500, text="boom"))
    service = WhatsAppService(api_url="https://gateway.test", system_token="system")
    assert await service.send_text("11987654321", "Olá") is False


@pytest.mark.asyncio
async def test_send_text_without_configuration():
    service = WhatsAppService(api_url="", system_token="")
    service.api_url = ""
    assert await service.send_text("11987654321", "Olá") is False
