"""AI 函数集成层。

该包下的模块负责：
- 定义传输抽象接口 (base)。
- 维护逻辑函数名与部署函数名的映射 (registry)。
- 提供托管后端的具体实现 (gateway_client)。
"""

from deal_assistant.config.settings import settings
from deal_assistant.providers.base import ChatTransport, ExtractionTransport
from deal_assistant.providers.gateway_client import GatewayClient


def create_transport() -> GatewayClient:
    """按当前配置创建默认传输实例，同时满足 ChatTransport 与 ExtractionTransport。"""

    return GatewayClient(settings)


__all__ = ["ChatTransport", "ExtractionTransport", "GatewayClient", "create_transport"]
