import pytest

from deal_assistant.extraction.commit import CommitCoordinator
from deal_assistant.extraction.pipeline import StructuredExtractionPipeline
from deal_assistant.flows import run_task_flow
from deal_assistant.flows.graph import parse_router


class FakeExtraction:
    name = "fake"

    def __init__(self, response):
        self.response = response

    async def extract_tasks(self, raw_text, user_context):
        return self.response


class InMemoryStore:
    def __init__(self):
        self.records = []
        self.events = []

    async def create_task(self, record):
        self.records.append(record)
        return str(len(self.records))

    async def write_audit_event(self, event):
        self.events.append(event)


@pytest.mark.asyncio
async def test_flow_parses_then_commits():
    store = InMemoryStore()
    pipeline = StructuredExtractionPipeline(
        FakeExtraction({"success": True, "tasks": [{"title": "Llamar"}, {"title": "Enviar NDA"}], "reasoning": "ok"})
    )

    state = await run_task_flow("Llamar y enviar NDA", "user-1", pipeline=pipeline, coordinator=CommitCoordinator(store))

    assert state.get("notice") is None
    assert len(state["candidates"]) == 2
    assert state["commit_result"].created_count == 2
    assert [r["titulo"] for r in store.records] == ["Llamar", "Enviar NDA"]
    assert all(e.payload["original_input"] == "Llamar y enviar NDA" for e in store.events)


@pytest.mark.asyncio
async def test_flow_skips_commit_on_parse_failure():
    store = InMemoryStore()
    pipeline = StructuredExtractionPipeline(FakeExtraction({"success": False, "error": "nada que hacer"}))

    state = await run_task_flow("???", "user-1", pipeline=pipeline, coordinator=CommitCoordinator(store))

    assert state["notice"].kind == "service"
    assert state.get("commit_result") is None
    assert store.records == []


def test_parse_router():
    assert parse_router({"notice": None, "candidates": [object()]}) == "commit"
    assert parse_router({"notice": None, "candidates": []}) == "end"
