"""State definition for the task-creation graph."""

from __future__ import annotations

from typing import List, Optional, TypedDict

from deal_assistant.domain.models import CandidateItem, CommitResult
from deal_assistant.domain.notices import Notice


class TaskFlowState(TypedDict, total=False):
    """State shared across LangGraph nodes."""

    text: str
    user_id: Optional[str]
    candidates: List[CandidateItem]
    reasoning: str
    notice: Optional[Notice]
    commit_result: Optional[CommitResult]
