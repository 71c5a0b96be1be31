"""LangGraph construction and node implementations.

parse → commit → END；解析失败或没有候选任务时直接结束，不触发提交。
"""

from __future__ import annotations

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from deal_assistant.extraction.commit import CommitCoordinator
from deal_assistant.extraction.pipeline import StructuredExtractionPipeline
from deal_assistant.flows.state import TaskFlowState
from deal_assistant.infrastructure.logging.logger import logger


async def parse_node(state: TaskFlowState, pipeline: StructuredExtractionPipeline) -> TaskFlowState:
    logger.info("parse_node.start", extra={"extra": {"chars": len(state.get("text") or "")}})
    result = await pipeline.parse(state.get("text") or "")
    state["candidates"] = result.candidates
    state["reasoning"] = result.reasoning
    state["notice"] = result.notice
    logger.info("parse_node.end", extra={"extra": {"success": result.success, "candidates": len(result.candidates)}})
    return state


async def commit_node(state: TaskFlowState, coordinator: CommitCoordinator) -> TaskFlowState:
    result = await coordinator.commit(state.get("candidates") or [], state.get("text") or "", state.get("user_id"))
    state["commit_result"] = result
    logger.info("commit_node.end", extra={"extra": {"created": result.created_count, "errors": len(result.errors)}})
    return state


def parse_router(state: TaskFlowState) -> str:
    if state.get("notice") is None and state.get("candidates"):
        return "commit"
    return "end"


def build_graph(pipeline: StructuredExtractionPipeline, coordinator: CommitCoordinator) -> CompiledStateGraph:
    async def parse(state: TaskFlowState) -> TaskFlowState:
        return await parse_node(state, pipeline)

    async def commit(state: TaskFlowState) -> TaskFlowState:
        return await commit_node(state, coordinator)

    graph = StateGraph(TaskFlowState)
    graph.add_node("parse", parse)
    graph.add_node("commit", commit)
    graph.set_entry_point("parse")
    graph.add_conditional_edges("parse", parse_router, {"commit": "commit", "end": END})
    graph.add_edge("commit", END)
    return graph.compile()
