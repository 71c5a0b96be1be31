"""Minimal demonstration of the assistant chat and the task-creation graph."""

import asyncio

from deal_assistant.api.service import ask_assistant
from deal_assistant.flows import run_task_flow


async def main() -> None:
    question = "¿Qué mandatos tienen tareas vencidas esta semana?"
    out = await ask_assistant(question)
    print("User:", question)
    print("Assistant:", out["reply"] or out["notice"])

    text = "Llamar a Juan mañana para revisar el NDA y preparar el teaser del Proyecto Atlas"
    state = await run_task_flow(text, user_id="demo-user")
    result = state.get("commit_result")
    if result is None:
        print("Parse failed:", state.get("notice"))
    else:
        print("Created:", result.created_count, "Errors:", result.errors)


if __name__ == "__main__":
    asyncio.run(main())
