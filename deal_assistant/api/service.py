"""对外 API 服务模块。

提供简化的函数接口供上层应用（UI、脚本）调用，返回可直接序列化的字典。
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from deal_assistant.config.settings import settings
from deal_assistant.domain.models import CandidateItem
from deal_assistant.extraction.commit import CommitCoordinator
from deal_assistant.extraction.pipeline import StructuredExtractionPipeline
from deal_assistant.infrastructure.logging.logger import logger
from deal_assistant.infrastructure.storage.rest_store import RestRecordStore
from deal_assistant.providers.gateway_client import GatewayClient
from deal_assistant.streaming.session import StreamingChatSession


_transport: Optional[GatewayClient] = None
_session: Optional[StreamingChatSession] = None
_pipeline: Optional[StructuredExtractionPipeline] = None
_coordinator: Optional[CommitCoordinator] = None


def _get_transport() -> GatewayClient:
    global _transport
    if _transport is None:
        _transport = GatewayClient(settings)
    return _transport


def get_default_session() -> StreamingChatSession:
    """获取默认的对话会话（单例，同一时间最多一个进行中的回合）。"""
    global _session
    if _session is None:
        _session = StreamingChatSession(_get_transport())
    return _session


def get_default_pipeline() -> StructuredExtractionPipeline:
    """获取默认的任务抽取管线（单例）。"""
    global _pipeline
    if _pipeline is None:
        _pipeline = StructuredExtractionPipeline(_get_transport(), user_role=settings.default_user_role)
    return _pipeline


def get_default_coordinator() -> CommitCoordinator:
    """获取默认的提交协调器（单例）。"""
    global _coordinator
    if _coordinator is None:
        _coordinator = CommitCoordinator(RestRecordStore(settings))
    return _coordinator


async def ask_assistant(text: str) -> Dict[str, Any]:
    """向 CRM 助手发送一条消息并等待本回合结束。

    Args:
        text: 用户输入内容

    Returns:
        包含最新助手回复、提示信息（若有）和完整消息列表的字典
    """
    session = get_default_session()
    notice = await session.send(text)
    messages = session.messages
    reply = messages[-1] if messages and messages[-1].role == "assistant" else None
    return {
        "reply": reply.content if reply else None,
        "final": bool(reply and reply.final),
        "notice": _notice_dict(notice),
        "messages": [
            {"role": m.role, "content": m.content, "final": m.final}
            for m in messages
        ],
    }


async def extract_tasks(text: str) -> Dict[str, Any]:
    """把自由文本解析为候选任务。

    Returns:
        包含 success、candidates（字典形式）、reasoning 与 notice 的字典
    """
    result = await get_default_pipeline().parse(text)
    return {
        "success": result.success,
        "candidates": [c.to_payload() for c in result.candidates],
        "reasoning": result.reasoning,
        "dropped": result.dropped,
        "notice": _notice_dict(result.notice),
    }


async def create_tasks(
    items: List[Dict[str, Any]],
    source_text: str,
    user_id: Optional[str],
) -> Dict[str, Any]:
    """提交（可能经用户编辑过的）候选任务。

    Raises:
        pydantic.ValidationError: items 中存在结构不合法的候选
    """
    try:
        candidates = [CandidateItem.model_validate(item) for item in items]
    except PydanticValidationError as e:
        logger.error(f"Invalid candidate items: {e}", extra={"extra": {"items": len(items)}})
        raise
    result = await get_default_coordinator().commit(candidates, source_text, user_id)
    return {
        "success": result.success,
        "created": result.created_count,
        "errors": list(result.errors),
        "created_ids": list(result.created_ids),
    }


def _notice_dict(notice) -> Optional[Dict[str, Any]]:
    if notice is None:
        return None
    return {
        "kind": notice.kind,
        "message": notice.message,
        "retryable": notice.retryable,
    }
