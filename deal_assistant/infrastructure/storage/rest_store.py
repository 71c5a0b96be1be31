import json
from typing import Any, Dict, Optional

import httpx

from deal_assistant.config.settings import settings
from deal_assistant.domain.exceptions import StoreError
from deal_assistant.domain.models import AuditEvent
from deal_assistant.domain.store import RecordStore


TASKS_PATH = "tareas"
EVENTS_PATH = "task_events"


class RestRecordStore(RecordStore):
    """托管关系型后端（PostgREST 风格接口）的 RecordStore 实现。

    每次调用对应一条 insert 请求，失败统一包装为 StoreError。
    """

    def __init__(self, cfg=settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = cfg
        self._transport = transport

    async def create_task(self, record: Dict[str, Any]) -> str:
        rows = await self._insert(TASKS_PATH, record, return_rows=True)
        try:
            return str(rows[0]["id"])
        except (IndexError, KeyError, TypeError):
            raise StoreError(code="STORE_WRITE_ERROR", message="Respuesta sin id", table=TASKS_PATH)

    async def write_audit_event(self, event: AuditEvent) -> None:
        await self._insert(EVENTS_PATH, event.to_row(), return_rows=False)

    async def _insert(self, table: str, row: Dict[str, Any], return_rows: bool) -> Any:
        headers = self._headers()
        headers["Prefer"] = "return=representation" if return_rows else "return=minimal"
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout,
                trust_env=False,
                transport=self._transport,
            ) as client:
                resp = await client.post(f"{self._settings.rest_url}/{table}", json=row, headers=headers)
        except httpx.RequestError as e:
            raise StoreError(code="STORE_NETWORK_ERROR", message=str(e), table=table)
        if resp.status_code >= 400:
            raise StoreError(
                code="STORE_WRITE_ERROR",
                message=_error_message(resp),
                http_status=resp.status_code,
                table=table,
            )
        if not return_rows:
            return None
        try:
            return resp.json()
        except json.JSONDecodeError as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e), table=table)

    def _headers(self) -> Dict[str, str]:
        anon_key = getattr(self._settings, "supabase_anon_key", None)
        token = getattr(self._settings, "access_token", None) or anon_key
        if not token:
            raise StoreError(code="MISSING_API_KEY", message="SUPABASE_ANON_KEY not set")
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if anon_key:
            headers["apikey"] = anon_key
        return headers


def _error_message(resp: httpx.Response) -> str:
    """PostgREST 错误体形如 {"message": ..., "details": ...}。"""

    try:
        data = resp.json()
    except json.JSONDecodeError:
        return resp.text[:500] or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)
