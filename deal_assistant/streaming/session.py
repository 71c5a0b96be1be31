"""流式对话会话。

StreamingChatSession 负责一个助手回合从发送到结束的全过程：

- send(): 追加用户消息，携带完整历史打开可取消的流式请求，
  通过 StreamDecoder 逐块解码，把 token 追加到同一条助手消息上。
- stop(): 中止当前回合；可重复调用，回合已自然结束时为空操作。
- clear(): 中止当前回合并清空历史。

同一时间最多只有一个进行中的请求，再次 send() 会先中止上一个。
当前助手消息只会被活动回合自己的处理协程修改。
"""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from deal_assistant.domain.exceptions import BusinessError, ValidationError
from deal_assistant.domain.models import ConversationMessage, StreamEvent
from deal_assistant.domain.notices import EMPTY_INPUT_MESSAGE, Notice, notice_for_error
from deal_assistant.infrastructure.logging.logger import logger
from deal_assistant.providers.base import ChatTransport
from deal_assistant.streaming.decoder import StreamDecoder


MessagesCallback = Callable[[List[ConversationMessage]], None]
NoticeCallback = Callable[[Notice], None]


class AbortHandle:
    """单个流式请求的取消句柄。

    abort() 会标记句柄并取消消费协程；重复调用或在请求结束后调用都是安全的。
    """

    def __init__(self) -> None:
        self.turn_id = f"turn-{uuid4().hex}"
        self._aborted = False
        self._task: Optional[asyncio.Task] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    def abort(self) -> None:
        if self._aborted:
            return
        self._aborted = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


class StreamingChatSession:
    def __init__(
        self,
        transport: ChatTransport,
        on_change: Optional[MessagesCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
    ):
        self._transport = transport
        self._on_change = on_change
        self._on_notice = on_notice
        self._messages: List[ConversationMessage] = []
        self._handle: Optional[AbortHandle] = None
        self._streaming = False

    @property
    def messages(self) -> List[ConversationMessage]:
        """当前消息列表的快照（副本，修改不会影响会话）。"""

        return [replace(m) for m in self._messages]

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    async def send(self, text: str) -> Optional[Notice]:
        """发送一条用户消息并消费本回合的流式回复。

        Returns:
            出错时返回对应的 Notice；正常结束或被中止时返回 None。
        """

        if not text or not text.strip():
            notice = notice_for_error(ValidationError(code="EMPTY_INPUT", message=EMPTY_INPUT_MESSAGE))
            self._emit_notice(notice)
            return notice

        self.stop()
        self._messages.append(ConversationMessage(role="user", content=text, final=True))
        self._notify_change()
        history = [m.to_payload() for m in self._messages if m.content]

        handle = AbortHandle()
        self._handle = handle
        self._streaming = True
        task = asyncio.ensure_future(self._consume(handle, history))
        handle.attach(task)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if handle.aborted and not (current is not None and current.cancelling()):
                # 被 stop() 或新的 send() 中止，不视为错误
                return None
            handle.abort()
            raise

    def stop(self) -> None:
        """中止进行中的回合（若有）。"""

        handle, self._handle = self._handle, None
        if handle is None:
            return
        was_streaming = self._streaming
        self._streaming = False
        handle.abort()
        if was_streaming:
            self._log(logging.INFO, "Assistant turn aborted", handle)

    def clear(self) -> None:
        """中止当前回合并清空对话历史。"""

        self.stop()
        self._messages = []
        self._notify_change()

    async def _consume(self, handle: AbortHandle, history: List[Dict[str, str]]) -> Optional[Notice]:
        start_time = time.time()
        decoder = StreamDecoder()
        assistant: Optional[ConversationMessage] = None
        self._log(logging.INFO, "Assistant turn started", handle, messages=len(history))
        try:
            async with aclosing(self._transport.stream_chat(history)) as stream:
                async for chunk in stream:
                    for event in decoder.feed(chunk):
                        assistant = self._apply(handle, assistant, event)
                    if decoder.done or handle.aborted:
                        break
                else:
                    # 流自然关闭：处理残留内容后定稿
                    for event in decoder.flush():
                        assistant = self._apply(handle, assistant, event)
            if self._handle is handle and not decoder.done:
                self._finalize(handle, assistant)
            self._log(
                logging.INFO,
                "Assistant turn completed",
                handle,
                elapsed_seconds=round(time.time() - start_time, 2),
                chars=len(assistant.content) if assistant else 0,
            )
            return None
        except BusinessError as exc:
            notice = notice_for_error(exc)
            self._log(logging.WARNING, "Assistant turn failed", handle, code=exc.code, http_status=exc.http_status)
            if self._handle is handle:
                self._emit_notice(notice)
            return notice
        finally:
            if self._handle is handle:
                self._handle = None
                self._streaming = False

    def _apply(
        self,
        handle: AbortHandle,
        assistant: Optional[ConversationMessage],
        event: StreamEvent,
    ) -> Optional[ConversationMessage]:
        if handle.aborted or self._handle is not handle:
            return assistant
        if event.kind == "token":
            if assistant is None:
                assistant = ConversationMessage(role="assistant", content="")
                self._messages.append(assistant)
            assistant.content += event.text
            self._notify_change()
        elif event.kind == "done":
            self._finalize(handle, assistant)
        return assistant

    def _finalize(self, handle: AbortHandle, assistant: Optional[ConversationMessage]) -> None:
        if handle.aborted or assistant is None or assistant.final:
            return
        assistant.final = True
        self._notify_change()

    def _notify_change(self) -> None:
        if self._on_change:
            self._on_change(self.messages)

    def _emit_notice(self, notice: Notice) -> None:
        if self._on_notice:
            self._on_notice(notice)

    def _log(self, level: int, msg: str, handle: AbortHandle, **fields: Any) -> None:
        payload: Dict[str, Any] = {"turn_id": handle.turn_id, "transport": self._transport.name}
        payload.update(fields)
        logger.log(level, msg, extra={"extra": payload})
