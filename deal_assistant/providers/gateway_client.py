"""托管后端 AI 函数适配器。

本模块负责：

1. 把对话历史 / 待抽取文本转换为 Edge Function 的 HTTP 请求。
2. 调用 HTTP 接口并处理网络/API 异常（429、402 单独映射）。
3. 流式接口逐块产出原始字节，解码交给 StreamDecoder；
   抽取接口返回原始 JSON，校验交给 StructuredExtractionPipeline。

两个函数的认证方式相同：有用户 token 时使用 token，否则退回 anon key。
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from deal_assistant.config.settings import settings
from deal_assistant.domain.exceptions import (
    ApiError,
    NetworkError,
    QuotaExhaustedError,
    RateLimitError,
    ServiceError,
    ValidationError,
)
from deal_assistant.providers.registry import function_url


class GatewayClient:
    """AI 函数客户端实现（流式对话 + 任务抽取）。"""

    name = "supabase-functions"

    def __init__(self, cfg=settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = cfg
        # 测试时可注入 httpx.MockTransport
        self._transport = transport

    # ---- 流式 ----

    async def stream_chat(self, messages: List[Dict[str, str]]) -> AsyncIterator[bytes]:
        """发送对话历史，逐块 yield 响应体字节。"""

        headers = self._headers()
        url = function_url(self._settings, "assistant")
        try:
            async with self._client() as client:
                async with client.stream("POST", url, json={"messages": messages}, headers=headers) as resp:
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        _raise_for_status(resp.status_code, body, function="assistant")
                    async for chunk in resp.aiter_bytes():
                        yield chunk
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), function="assistant")

    # ---- 非流式 ----

    async def extract_tasks(self, raw_text: str, user_context: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._headers()
        url = function_url(self._settings, "tasks")
        try:
            async with self._client() as client:
                resp = await client.post(
                    url,
                    json={"raw_text": raw_text, "user_context": user_context},
                    headers=headers,
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), function="tasks")
        if resp.status_code >= 400:
            _raise_for_status(resp.status_code, resp.content, function="tasks")
        try:
            data = resp.json()
        except ValueError:
            raise ServiceError(code="INVALID_RESPONSE", message="Respuesta de la IA no válida", function="tasks")
        if not isinstance(data, dict):
            raise ServiceError(code="INVALID_RESPONSE", message="Respuesta de la IA no válida", function="tasks")
        return data

    # ---- 辅助方法 ----

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout,
            trust_env=False,
            transport=self._transport,
        )

    def _headers(self) -> Dict[str, str]:
        anon_key = getattr(self._settings, "supabase_anon_key", None)
        token = getattr(self._settings, "access_token", None) or anon_key
        if not token:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="SUPABASE_ANON_KEY not set")
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if anon_key:
            headers["apikey"] = anon_key
        return headers


def _raise_for_status(status: int, body: bytes, function: str) -> None:
    """把非 2xx 状态码转换为对应的业务异常。"""

    message = _error_message(body)
    if status == 429:
        raise RateLimitError(code="RATE_LIMIT", message=message or "Rate limit exceeded", http_status=429, function=function)
    if status == 402:
        raise QuotaExhaustedError(code="QUOTA_EXHAUSTED", message=message or "Payment required", http_status=402, function=function)
    raise ApiError(code="API_ERROR", message=message or f"HTTP {status}", http_status=status, function=function)


def _error_message(body: bytes) -> str:
    """函数错误体通常为 {"error": "..."}；否则返回截断后的原文。"""

    text = body.decode("utf-8", errors="replace") if body else ""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text[:500]
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return text[:500]
