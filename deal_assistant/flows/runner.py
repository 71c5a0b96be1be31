"""High-level entry point for the unattended task-creation graph."""

from __future__ import annotations

from typing import Optional

from deal_assistant.api import service
from deal_assistant.extraction.commit import CommitCoordinator
from deal_assistant.extraction.pipeline import StructuredExtractionPipeline
from deal_assistant.flows.graph import build_graph
from deal_assistant.flows.state import TaskFlowState


async def run_task_flow(
    text: str,
    user_id: Optional[str],
    *,
    pipeline: Optional[StructuredExtractionPipeline] = None,
    coordinator: Optional[CommitCoordinator] = None,
) -> TaskFlowState:
    """Parse free text and commit every candidate without a review step.

    Args:
        text: 原始输入文本，同时作为审计事件的 original_input
        user_id: 提交人；为空时提交阶段每个候选都会记为未认证错误
        pipeline: 指定抽取管线（默认使用 service 中的单例）
        coordinator: 指定提交协调器（默认使用 service 中的单例）
    """

    graph = build_graph(
        pipeline or service.get_default_pipeline(),
        coordinator or service.get_default_coordinator(),
    )
    state: TaskFlowState = {
        "text": text,
        "user_id": user_id,
        "candidates": [],
        "reasoning": "",
        "notice": None,
        "commit_result": None,
    }
    return await graph.ainvoke(state)
