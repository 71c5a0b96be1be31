"""Provider 抽象接口。

会话与抽取组件不直接依赖 httpx，而是依赖以下协议：

- ChatTransport: 打开一次流式对话请求，逐块产出原始字节。
- ExtractionTransport: 一次性发送待抽取文本，返回原始 JSON。

实现者负责把 HTTP 状态码转换为 domain.exceptions 中的业务异常
（429 → RateLimitError，402 → QuotaExhaustedError，网络故障 → NetworkError）。
测试中可以用内存假实现替换。
"""

from typing import Any, AsyncIterator, Dict, List, Protocol


class ChatTransport(Protocol):
    name: str

    def stream_chat(self, messages: List[Dict[str, str]]) -> AsyncIterator[bytes]:
        """发送完整对话历史，返回响应体字节块的异步迭代器。"""

        ...


class ExtractionTransport(Protocol):
    name: str

    async def extract_tasks(self, raw_text: str, user_context: Dict[str, Any]) -> Dict[str, Any]:
        ...
