"""统一的对话、抽取与提交数据模型。

本模块定义了 AI 交互层在各组件之间共享的标准数据结构：

- ConversationMessage: 对话中的一条消息（user/assistant）。
- StreamEvent: StreamDecoder 解码出的协议事件（token/done/malformed）。
- CandidateItem: 抽取服务返回的候选任务，属于不可信输入，在边界处用 pydantic 校验。
- ExtractionResult / CommitResult: 抽取与提交的结果。
- AuditEvent: 每条成功创建的任务对应一条审计事件。

组件内部只依赖这些模型，不直接读取未经校验的 JSON。
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Tuple, get_args

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from deal_assistant.domain.notices import Notice


# 对话角色（assistant 流式接口只接受这两种）
Role = Literal["user", "assistant"]

# StreamEvent 类型
StreamEventKind = Literal["token", "done", "malformed"]

Priority = Literal["urgente", "alta", "media", "baja"]
ContextType = Literal["mandato", "cliente", "general"]

AI_CREATED = "AI_CREATED"


@dataclass
class ConversationMessage:
    """一条对话消息。

    - role: user 或 assistant。
    - content: 纯文本内容；流式过程中 assistant 消息会被原地追加。
    - final: 为 True 表示内容已冻结。user 消息创建即 final；assistant 消息
      在收到结束标记或流关闭后才变为 final，被中止的回合保持 False。
    """

    role: Role
    content: str
    final: bool = False

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class StreamEvent:
    """一个解码后的协议单元。

    kind:
        - "token": 一段助手文本增量，text 为内容。
        - "done": 流的正常结束标记。
        - "malformed": 无法解析的行，raw 保存原文，仅用于诊断，不会展示给用户。
    """

    kind: StreamEventKind
    text: str = ""
    raw: str = ""

    @classmethod
    def token(cls, text: str) -> "StreamEvent":
        return cls(kind="token", text=text)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(kind="done")

    @classmethod
    def malformed(cls, raw: str) -> "StreamEvent":
        return cls(kind="malformed", raw=raw)


class CandidateItem(BaseModel):
    """抽取服务给出的一条候选任务（仅存在于内存中，直到被提交）。

    可恢复的字段会被降级而不是拒绝整条候选：未知的 priority / context_type
    回退为默认值，无法解析的 due_date、estimated_minutes、confidence 置为 None。
    只有标题为空的候选才是真正不合法的。
    """

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: Priority = "media"
    due_date: Optional[date] = None
    assigned_to_id: Optional[str] = None
    assigned_to_name: Optional[str] = None
    context_type: ContextType = "general"
    context_hint: Optional[str] = None
    estimated_minutes: Optional[int] = None
    suggested_fase: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v

    @field_validator("priority", "context_type", mode="before")
    @classmethod
    def normalize_enum(cls, v: Any, info: ValidationInfo) -> Any:
        default = cls.model_fields[info.field_name].default
        if not isinstance(v, str):
            return default
        v = v.strip().lower()
        allowed = get_args(cls.model_fields[info.field_name].annotation)
        return v if v in allowed else default

    @field_validator("description", "assigned_to_id", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Any) -> Optional[date]:
        if isinstance(v, date):
            return v
        if not isinstance(v, str):
            return None
        try:
            return date.fromisoformat(v.strip()[:10])
        except ValueError:
            return None

    @field_validator("estimated_minutes", mode="before")
    @classmethod
    def coerce_minutes(cls, v: Any) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        try:
            minutes = round(float(v))
        except (TypeError, ValueError, OverflowError):
            return None
        return minutes if minutes > 0 else None

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> Optional[float]:
        if v is None or isinstance(v, bool):
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            return None
        return value if 0.0 <= value <= 1.0 else None

    def to_payload(self) -> Dict[str, Any]:
        """序列化为审计事件 payload 中的 parsed_item。"""

        return self.model_dump(mode="json", exclude_none=True)


class ExtractionResponse(BaseModel):
    """task-ai 函数的响应结构，在边界处校验。

    tasks 保留原始条目，由 candidates() 逐条校验，单条不合法不会影响其他候选。
    """

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    tasks: List[Any] = Field(default_factory=list)
    reasoning: str = ""
    error: Optional[str] = None

    @field_validator("reasoning", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def candidates(self) -> Tuple[List[CandidateItem], int]:
        """逐条校验 tasks，返回 (合法候选, 被丢弃的条目数)。"""

        items: List[CandidateItem] = []
        dropped = 0
        for raw in self.tasks:
            try:
                items.append(CandidateItem.model_validate(raw))
            except PydanticValidationError:
                dropped += 1
        return items, dropped


@dataclass
class ExtractionResult:
    """一次 parse() 的结果；失败时 candidates 为空且 notice 非空。

    dropped 为服务返回但校验不通过（例如标题为空）而被丢弃的条目数。
    """

    success: bool
    candidates: List[CandidateItem] = field(default_factory=list)
    reasoning: str = ""
    notice: Optional[Notice] = None
    dropped: int = 0


@dataclass(frozen=True)
class AuditEvent:
    """审计事件，每条成功创建的记录对应一条，写入后不可变。"""

    entity_id: str
    payload: Dict[str, Any]
    event_type: str = AI_CREATED
    task_type: str = "tarea"
    created_by: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "task_id": self.entity_id,
            "task_type": self.task_type,
            "event_type": self.event_type,
            "payload": self.payload,
            "created_by": self.created_by,
        }


@dataclass
class CommitResult:
    """一次提交批次的结果。

    created_count + len(errors) 始终等于提交的候选数量。
    """

    created_count: int = 0
    errors: List[str] = field(default_factory=list)
    created_ids: List[str] = field(default_factory=list)
    audit_events: List[AuditEvent] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
