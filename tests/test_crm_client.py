import json

import httpx
import pytest

from app.services.crm_client import CRMClient, CRMError


def crm_with(handler, token="token-abc"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CRMClient(api_token=token, base_url="https://crm.example.com/", client=client)


@pytest.mark.asyncio
async def test_add_contact_note_posts_note_with_auth_headers():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"note": {"id": "n-1"}})

    result = await crm_with(handler).add_contact_note("contact-9", "Payment received")

    assert result == {"note": {"id": "n-1"}}
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://crm.example.com/contacts/contact-9/notes"
    assert request.headers["Authorization"] == "Bearer token-abc"
    assert request.headers["Version"] == "2021-07-28"
    assert json.loads(request.content) == {"body": "Payment received"}


@pytest.mark.asyncio
async def test_error_status_raises_crm_error():
    crm = crm_with(lambda request: httpx.Response(401, text="invalid token"))

    with pytest.raises(CRMError, match="401"):
        await crm.add_contact_note("contact-9", "note")


@pytest.mark.asyncio
async def test_unreachable_crm_raises_crm_error():
    def handler(request):
        raise httpx.ConnectError("no route to host")

    with pytest.raises(CRMError, match="request failed"):
        await crm_with(handler).add_contact_note("contact-9", "note")


@pytest.mark.asyncio
async def test_missing_token_fails_without_request(monkeypatch):
    monkeypatch.setattr("app.core.config.CRM_API_TOKEN", None)
    seen = []

    crm = crm_with(lambda request: seen.append(request), token=None)

    with pytest.raises(CRMError, match="CRM_API_TOKEN"):
        await crm.add_contact_note("contact-9", "note")
    assert seen == []
