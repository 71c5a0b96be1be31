"""LangGraph flow for unattended task creation (parse → commit)."""

from .runner import run_task_flow

__all__ = ["run_task_flow"]
