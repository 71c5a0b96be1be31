import json

import httpx
import pytest

from deal_assistant.domain.exceptions import StoreError
from deal_assistant.domain.models import AuditEvent
from deal_assistant.infrastructure.storage.rest_store import RestRecordStore


class SettingsStub:
    supabase_anon_key = "anon-key-1234567890"
    access_token = "session-token"
    http_timeout = 1.0
    rest_url = "https://proj.example.co/rest/v1"


@pytest.mark.asyncio
async def test_create_task_returns_new_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["prefer"] = request.headers["prefer"]
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": 42, "titulo": "Llamar"}])

    store = RestRecordStore(SettingsStub(), transport=httpx.MockTransport(handler))
    new_id = await store.create_task({"titulo": "Llamar"})

    assert new_id == "42"
    assert seen["url"] == "https://proj.example.co/rest/v1/tareas"
    assert seen["prefer"] == "return=representation"
    assert seen["auth"] == "Bearer session-token"
    assert seen["body"] == {"titulo": "Llamar"}


@pytest.mark.asyncio
async def test_write_audit_event_posts_row():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["prefer"] = request.headers["prefer"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201)

    store = RestRecordStore(SettingsStub(), transport=httpx.MockTransport(handler))
    event = AuditEvent(entity_id="42", payload={"confidence": 0.85}, created_by="u1")
    await store.write_audit_event(event)

    assert seen["url"].endswith("/task_events")
    assert seen["prefer"] == "return=minimal"
    assert seen["body"] == {
        "task_id": "42",
        "task_type": "tarea",
        "event_type": "AI_CREATED",
        "payload": {"confidence": 0.85},
        "created_by": "u1",
    }


@pytest.mark.asyncio
async def test_postgrest_error_message_is_kept():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "null value in column \"titulo\"", "code": "23502"})

    store = RestRecordStore(SettingsStub(), transport=httpx.MockTransport(handler))
    with pytest.raises(StoreError) as ei:
        await store.create_task({})
    assert ei.value.code == "STORE_WRITE_ERROR"
    assert ei.value.http_status == 400
    assert "titulo" in ei.value.message


@pytest.mark.asyncio
async def test_empty_representation_is_an_error():
    store = RestRecordStore(SettingsStub(), transport=httpx.MockTransport(lambda r: httpx.Response(201, json=[])))
    with pytest.raises(StoreError):
        await store.create_task({"titulo": "x"})


@pytest.mark.asyncio
async def test_network_failure_becomes_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    store = RestRecordStore(SettingsStub(), transport=httpx.MockTransport(handler))
    with pytest.raises(StoreError) as ei:
        await store.create_task({"titulo": "x"})
    assert ei.value.code == "STORE_NETWORK_ERROR"


@pytest.mark.asyncio
async def test_missing_credentials():
    stub = SettingsStub()
    stub.supabase_anon_key = None
    stub.access_token = None
    store = RestRecordStore(stub, transport=httpx.MockTransport(lambda r: httpx.Response(201)))
    with pytest.raises(StoreError) as ei:
        await store.create_task({"titulo": "x"})
    assert ei.value.code == "MISSING_API_KEY"
