"""Deal Assistant 顶层包。

该包提供 M&A 交易管理 CRM 的 AI 交互层核心实现，
包括配置加载、领域模型、AI 函数适配、SSE 流式解码、
对话会话、结构化任务抽取与带审计记录的任务提交等能力。
"""

from deal_assistant.extraction import CommitCoordinator, StructuredExtractionPipeline
from deal_assistant.streaming import StreamDecoder, StreamingChatSession

__all__ = [
    "CommitCoordinator",
    "StreamDecoder",
    "StreamingChatSession",
    "StructuredExtractionPipeline",
]
