"""结构化任务抽取。

把一段自由文本发送给任务抽取函数，得到候选任务列表与解释说明（reasoning）。
解析成功/失败的状态与后续提交（CommitCoordinator）的成功/失败相互独立。
"""

import time
from typing import List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from deal_assistant.config.settings import settings
from deal_assistant.domain.exceptions import BusinessError, ServiceError, ValidationError
from deal_assistant.domain.models import CandidateItem, ExtractionResponse, ExtractionResult
from deal_assistant.domain.notices import EMPTY_INPUT_MESSAGE, SERVICE_MESSAGE, Notice, notice_for_error
from deal_assistant.infrastructure.logging.logger import logger
from deal_assistant.providers.base import ExtractionTransport


class StructuredExtractionPipeline:
    """一次性（非流式）的文本 → 候选任务抽取。

    状态：
        candidates: 最近一次成功解析出的候选任务。
        reasoning: 服务给出的自然语言解释。
        error: 最近一次失败的 Notice，成功时为 None。
        is_parsing: 请求进行中标记。
    """

    def __init__(self, transport: ExtractionTransport, user_role: Optional[str] = None):
        self._transport = transport
        self._user_role = user_role or settings.default_user_role
        self.candidates: List[CandidateItem] = []
        self.reasoning: str = ""
        self.error: Optional[Notice] = None
        self.is_parsing = False

    async def parse(self, text: str) -> ExtractionResult:
        """解析文本。空输入在本地直接拒绝，不发起网络请求。"""

        if not text or not text.strip():
            return self._fail(ValidationError(code="EMPTY_INPUT", message=EMPTY_INPUT_MESSAGE))

        start_time = time.time()
        self.is_parsing = True
        self.candidates = []
        self.reasoning = ""
        self.error = None
        try:
            raw = await self._transport.extract_tasks(text, {"role": self._user_role})
            response, candidates, dropped = self._validate(raw)
        except BusinessError as exc:
            logger.warning(
                "Task extraction failed",
                extra={"extra": {"code": exc.code, "http_status": exc.http_status, "transport": self._transport.name}},
            )
            return self._fail(exc)
        finally:
            self.is_parsing = False

        self.candidates = candidates
        self.reasoning = response.reasoning
        if dropped:
            logger.warning(
                "Dropped invalid task candidates",
                extra={"extra": {"dropped": dropped, "kept": len(candidates)}},
            )
        logger.info(
            "Task extraction completed",
            extra={"extra": {
                "candidates": len(self.candidates),
                "dropped": dropped,
                "elapsed_seconds": round(time.time() - start_time, 2),
            }},
        )
        return ExtractionResult(
            success=True,
            candidates=list(self.candidates),
            reasoning=self.reasoning,
            dropped=dropped,
        )

    def reset(self) -> None:
        """清空候选与错误状态，不影响已经提交的记录。"""

        self.candidates = []
        self.reasoning = ""
        self.error = None

    @staticmethod
    def _validate(raw: dict) -> Tuple[ExtractionResponse, List[CandidateItem], int]:
        """校验响应结构并逐条校验候选。

        服务报告失败，或返回了条目但全部不合法时，抛出可恢复的 ServiceError。
        """

        try:
            response = ExtractionResponse.model_validate(raw)
        except PydanticValidationError as exc:
            raise ServiceError(code="INVALID_RESPONSE", message=SERVICE_MESSAGE, errors=exc.error_count())
        if not response.success:
            raise ServiceError(code="SERVICE_FAILURE", message=response.error or SERVICE_MESSAGE)
        candidates, dropped = response.candidates()
        if response.tasks and not candidates:
            raise ServiceError(code="INVALID_RESPONSE", message=SERVICE_MESSAGE, dropped=dropped)
        return response, candidates, dropped

    def _fail(self, exc: BusinessError) -> ExtractionResult:
        notice = notice_for_error(exc)
        self.candidates = []
        self.reasoning = ""
        self.error = notice
        return ExtractionResult(success=False, notice=notice)
