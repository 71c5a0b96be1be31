from typing import Any, Dict, Protocol

from .models import AuditEvent


class RecordStore(Protocol):
    """外部托管关系型存储的最小接口：逐条创建记录 + 写审计事件。

    没有批量/事务接口，失败以单条为粒度，实现方抛出 StoreError。
    """

    async def create_task(self, record: Dict[str, Any]) -> str:
        """创建一条任务记录，返回新记录的 id。"""
        ...

    async def write_audit_event(self, event: AuditEvent) -> None:
        ...
