"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话/抽取层统一转换为用户可见的 Notice。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 错误信息（原始信息，不一定适合直接展示给用户）。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 function、entity 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。用户重新发送即可重试。"""


class ApiError(BusinessError):
    """函数返回非 2xx（且不是 429/402）时抛出。"""


class RateLimitError(BusinessError):
    """HTTP 429：请求过于频繁，稍后可重试。"""


class QuotaExhaustedError(BusinessError):
    """HTTP 402：AI 额度耗尽，需要管理员处理，不可直接重试。"""


class ServiceError(BusinessError):
    """服务返回 2xx 但报告失败（success=false、低置信度、结构不合法等）。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class StoreError(BusinessError):
    """外部存储写入失败（单条记录级别）。"""
