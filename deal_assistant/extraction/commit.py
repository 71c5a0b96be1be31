"""候选任务提交。

逐条（顺序执行，不并发）把候选任务写入外部存储，并为每条成功创建的记录
写一条 AI_CREATED 审计事件。单条失败只记录错误字符串，不中断整个批次。

注意：commit() 不是幂等的，同一批候选提交两次会创建两批记录。
"""

from typing import Any, Callable, Dict, Iterable, Optional

from deal_assistant.config.settings import settings
from deal_assistant.domain.exceptions import StoreError
from deal_assistant.domain.models import AuditEvent, CandidateItem, CommitResult
from deal_assistant.domain.store import RecordStore
from deal_assistant.infrastructure.logging.logger import logger


TASKS_TABLE = "tareas"
NOT_AUTHENTICATED = "Usuario no autenticado"

InvalidateCallback = Callable[[str], None]


def to_task_record(
    item: CandidateItem,
    source_text: str,
    user_id: Optional[str] = None,
    confidence: Optional[float] = None,
) -> Dict[str, Any]:
    """把候选任务映射为 tareas 表的一行。

    空描述与空截止日期直接省略；未指定负责人时回退为提交人。
    """

    record: Dict[str, Any] = {
        "titulo": item.title,
        "descripcion": item.description or None,
        "estado": "pendiente",
        "prioridad": item.priority,
        "fecha_vencimiento": item.due_date.isoformat() if item.due_date else None,
        "asignado_a": item.assigned_to_id or user_id,
        "creado_por": user_id,
        "ai_generated": True,
        "ai_confidence": confidence if confidence is not None else _confidence(item),
        "source_text": source_text,
        "tipo": "individual",
    }
    return {k: v for k, v in record.items() if v is not None}


def _confidence(item: CandidateItem) -> float:
    return item.confidence if item.confidence is not None else settings.default_ai_confidence


class CommitCoordinator:
    def __init__(self, store: RecordStore, on_invalidate: Optional[InvalidateCallback] = None):
        self._store = store
        self._on_invalidate = on_invalidate

    async def commit(
        self,
        items: Iterable[CandidateItem],
        source_text: str,
        user_id: Optional[str] = None,
    ) -> CommitResult:
        """提交一批候选任务。

        每个候选恰好对应一次成功或一条错误，因此
        created_count + len(errors) == len(items)。
        """

        items = list(items)
        result = CommitResult()
        if not user_id:
            result.errors.extend(f'{NOT_AUTHENTICATED}: no se creó "{item.title}"' for item in items)
            logger.warning("Commit rejected without user", extra={"extra": {"items": len(items)}})
            return result

        for index, item in enumerate(items):
            confidence = _confidence(item)
            try:
                entity_id = await self._store.create_task(
                    to_task_record(item, source_text, user_id, confidence)
                )
            except StoreError as exc:
                result.errors.append(f'Error creando "{item.title}": {exc.message}')
                logger.warning(
                    "Task create failed",
                    extra={"extra": {"index": index, "code": exc.code, "error": exc.message}},
                )
                continue
            except Exception as exc:  # noqa: BLE001
                result.errors.append(f'Error inesperado creando "{item.title}"')
                logger.error(
                    "Unexpected error creating task",
                    extra={"extra": {"index": index, "error": repr(exc)}},
                )
                continue

            result.created_count += 1
            result.created_ids.append(entity_id)
            event = AuditEvent(
                entity_id=entity_id,
                payload={
                    "original_input": source_text,
                    "parsed_item": item.to_payload(),
                    "confidence": confidence,
                },
                created_by=user_id,
            )
            try:
                await self._store.write_audit_event(event)
            except StoreError as exc:
                # 记录已创建，审计写入失败只记日志
                logger.warning(
                    "Audit event write failed",
                    extra={"extra": {"entity_id": entity_id, "code": exc.code, "error": exc.message}},
                )
            else:
                result.audit_events.append(event)

        logger.info(
            "Commit batch finished",
            extra={"extra": {
                "items": len(items),
                "created": result.created_count,
                "errors": len(result.errors),
            }},
        )
        if result.created_count and self._on_invalidate:
            self._on_invalidate(TASKS_TABLE)
        return result
