import httpx
import pytest

from deal_assistant.domain.exceptions import NetworkError
from deal_assistant.domain.notices import (
    CONNECTION_MESSAGE,
    EMPTY_INPUT_MESSAGE,
    QUOTA_EXHAUSTED_MESSAGE,
    RATE_LIMITED_MESSAGE,
    SERVICE_MESSAGE,
)
from deal_assistant.extraction.pipeline import StructuredExtractionPipeline
from deal_assistant.providers.gateway_client import GatewayClient


class FakeExtraction:
    name = "fake"

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def extract_tasks(self, raw_text, user_context):
        self.calls.append((raw_text, user_context))
        if self.error is not None:
            raise self.error
        return self.response


class SettingsStub:
    supabase_anon_key = "anon-key-1234567890"
    access_token = None
    http_timeout = 1.0
    functions_url = "https://proj.example.co/functions/v1"
    task_function = "task-ai"


OK_RESPONSE = {
    "success": True,
    "tasks": [
        {
            "title": "  Llamar a Juan  ",
            "description": "Revisar el NDA",
            "priority": "ALTA",
            "due_date": "2026-11-03",
            "context_type": "mandato",
            "context_hint": "Proyecto Atlas",
            "estimated_minutes": 30,
            "unknown_field": "ignored",
        },
        {"title": "Enviar teaser", "priority": None, "due_date": ""},
    ],
    "reasoning": "Dos acciones detectadas",
}


@pytest.mark.asyncio
async def test_parse_returns_validated_candidates():
    transport = FakeExtraction(OK_RESPONSE)
    pipeline = StructuredExtractionPipeline(transport, user_role="analista")

    result = await pipeline.parse("Llamar a Juan mañana y enviar el teaser")

    assert result.success
    assert result.notice is None
    assert [c.title for c in result.candidates] == ["Llamar a Juan", "Enviar teaser"]
    first, second = result.candidates
    assert first.priority == "alta"
    assert first.due_date.isoformat() == "2026-11-03"
    assert first.context_type == "mandato"
    assert second.priority == "media"
    assert second.due_date is None
    assert result.reasoning == "Dos acciones detectadas"
    assert pipeline.candidates == result.candidates
    assert pipeline.error is None
    assert not pipeline.is_parsing
    assert transport.calls == [("Llamar a Juan mañana y enviar el teaser", {"role": "analista"})]


@pytest.mark.asyncio
async def test_empty_input_fails_locally():
    transport = FakeExtraction(OK_RESPONSE)
    pipeline = StructuredExtractionPipeline(transport)

    result = await pipeline.parse("   ")

    assert not result.success
    assert result.notice.kind == "validation"
    assert result.notice.message == EMPTY_INPUT_MESSAGE
    assert transport.calls == []


@pytest.mark.asyncio
async def test_service_reported_failure_surfaces_error_text():
    transport = FakeExtraction({"success": False, "error": "Texto demasiado ambiguo", "tasks": []})
    pipeline = StructuredExtractionPipeline(transport)

    result = await pipeline.parse("hmm")

    assert not result.success
    assert result.candidates == []
    assert result.notice.kind == "service"
    assert result.notice.message == "Texto demasiado ambiguo"
    assert pipeline.error == result.notice


@pytest.mark.asyncio
async def test_failure_without_error_text_uses_default_message():
    pipeline = StructuredExtractionPipeline(FakeExtraction({"success": False}))
    result = await pipeline.parse("hmm")
    assert result.notice.message == SERVICE_MESSAGE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"success": True, "tasks": [{"title": ""}]},
        {"success": True, "tasks": [{"title": "  "}, {"description": "sin titulo"}, "texto suelto"]},
        {"success": True, "tasks": "not-a-list"},
    ],
)
async def test_invalid_shape_is_rejected_as_service_failure(payload):
    pipeline = StructuredExtractionPipeline(FakeExtraction(payload))
    result = await pipeline.parse("algo")
    assert not result.success
    assert result.notice.kind == "service"
    assert result.candidates == []


@pytest.mark.asyncio
async def test_failure_clears_previous_candidates():
    transport = FakeExtraction(OK_RESPONSE)
    pipeline = StructuredExtractionPipeline(transport)
    await pipeline.parse("primero")
    assert len(pipeline.candidates) == 2

    transport.error = NetworkError(code="NETWORK_ERROR", message="down")
    result = await pipeline.parse("segundo")

    assert pipeline.candidates == []
    assert result.notice.kind == "connection"
    assert result.notice.message == CONNECTION_MESSAGE


@pytest.mark.asyncio
async def test_reset_clears_state():
    pipeline = StructuredExtractionPipeline(FakeExtraction(OK_RESPONSE))
    await pipeline.parse("algo")
    pipeline.reset()
    assert pipeline.candidates == []
    assert pipeline.reasoning == ""
    assert pipeline.error is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, kind, message",
    [
        (429, "rate_limited", RATE_LIMITED_MESSAGE),
        (402, "quota_exhausted", QUOTA_EXHAUSTED_MESSAGE),
        (500, "connection", CONNECTION_MESSAGE),
    ],
)
async def test_http_errors_map_to_distinct_notices(status, kind, message):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": "upstream"})

    client = GatewayClient(SettingsStub(), transport=httpx.MockTransport(handler))
    pipeline = StructuredExtractionPipeline(client, user_role="socio")

    result = await pipeline.parse("Preparar la carta de intenciones")

    assert not result.success
    assert result.notice.kind == kind
    assert result.notice.message == message
    assert result.notice.retryable is (status != 402)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "loose, field, expected",
    [
        ({"title": "Preparar teaser", "priority": "high"}, "priority", "media"),
        ({"title": "Preparar teaser", "estimated_minutes": 22.5}, "estimated_minutes", 22),
        ({"title": "Preparar teaser", "estimated_minutes": "media hora"}, "estimated_minutes", None),
        ({"title": "Preparar teaser", "due_date": "viernes"}, "due_date", None),
        ({"title": "Preparar teaser", "context_type": "deal"}, "context_type", "general"),
        ({"title": "Preparar teaser", "confidence": 1.5}, "confidence", None),
    ],
)
async def test_recoverable_fields_are_degraded_not_rejected(loose, field, expected):
    response = {"success": True, "tasks": [{"title": "Llamar a Juan", "priority": "alta"}, loose]}
    pipeline = StructuredExtractionPipeline(FakeExtraction(response))

    result = await pipeline.parse("Llamar a Juan y preparar el teaser")

    assert result.success
    assert result.dropped == 0
    assert [c.title for c in result.candidates] == ["Llamar a Juan", "Preparar teaser"]
    assert getattr(result.candidates[1], field) == expected


@pytest.mark.asyncio
async def test_invalid_item_is_dropped_and_others_kept():
    response = {
        "success": True,
        "tasks": [{"title": "Llamar a Juan", "priority": "alta"}, {"title": "   ", "priority": "baja"}],
        "reasoning": "dos acciones",
    }
    pipeline = StructuredExtractionPipeline(FakeExtraction(response))

    result = await pipeline.parse("Llamar a Juan")

    assert result.success
    assert result.notice is None
    assert [c.title for c in result.candidates] == ["Llamar a Juan"]
    assert result.dropped == 1
    assert pipeline.candidates == result.candidates


@pytest.mark.asyncio
async def test_empty_task_list_is_a_success():
    result = await StructuredExtractionPipeline(FakeExtraction({"success": True, "tasks": []})).parse("nada")
    assert result.success
    assert result.candidates == []
    assert result.dropped == 0
