"""用户可见提示（Notice）。

提示作为显式返回值交给调用方（UI 或 CLI）决定如何展示，
核心逻辑因此无需 UI 即可测试。
"""

from dataclasses import dataclass
from typing import Literal, Optional

from deal_assistant.domain.exceptions import (
    BusinessError,
    QuotaExhaustedError,
    RateLimitError,
    ServiceError,
    ValidationError,
)


NoticeKind = Literal["rate_limited", "quota_exhausted", "connection", "service", "validation"]

RATE_LIMITED_MESSAGE = "Límite de solicitudes excedido. Espera unos segundos y vuelve a intentarlo."
QUOTA_EXHAUSTED_MESSAGE = "Créditos de IA agotados. Contacta con un administrador para añadir créditos."
CONNECTION_MESSAGE = "No se pudo conectar con el asistente de IA. Inténtalo de nuevo."
SERVICE_MESSAGE = "La IA no pudo interpretar el texto. Reformúlalo con más detalle."
EMPTY_INPUT_MESSAGE = "Escribe una descripción de lo que necesitas hacer."


@dataclass(frozen=True)
class Notice:
    """一条用户可见提示。

    - kind: 提示类别，UI 可据此选择样式。
    - message: 面向用户的文案（西班牙语，与产品语言一致）。
    - retryable: 用户是否可以直接重试。
    - detail: 原始错误信息，仅用于日志或调试面板。
    """

    kind: NoticeKind
    message: str
    retryable: bool
    detail: Optional[str] = None


def notice_for_error(exc: BaseException) -> Notice:
    """把业务异常映射为用户提示。

    限流与额度耗尽使用各自的文案；其余传输/接口错误统一为通用连接提示。
    """

    detail = exc.message if isinstance(exc, BusinessError) else str(exc)
    if isinstance(exc, RateLimitError):
        return Notice(kind="rate_limited", message=RATE_LIMITED_MESSAGE, retryable=True, detail=detail)
    if isinstance(exc, QuotaExhaustedError):
        return Notice(kind="quota_exhausted", message=QUOTA_EXHAUSTED_MESSAGE, retryable=False, detail=detail)
    if isinstance(exc, ServiceError):
        return Notice(kind="service", message=exc.message or SERVICE_MESSAGE, retryable=True, detail=detail)
    if isinstance(exc, ValidationError):
        return Notice(kind="validation", message=exc.message, retryable=False, detail=detail)
    return Notice(kind="connection", message=CONNECTION_MESSAGE, retryable=True, detail=detail)
