"""SSE 流增量解码器。

把网络层按任意边界切分的字节块还原为一行一行的 `data:` 事件：

1. 字节先经过增量 UTF-8 解码，多字节字符被拆在两个块之间也不会损坏。
2. 文本追加到待处理缓冲区，每找到一个换行就处理一整行；不完整的行留在缓冲区。
3. 行内容为 `[DONE]` 时产出 done，之后的输入全部忽略。
4. 某行 JSON 解析失败时，将该行放回缓冲区，等下一个块到达后重试一次；
   重试仍失败则丢弃，避免一行坏数据卡住整个流。
5. flush() 在流关闭时处理剩余内容，此时不再回填，无法解析的片段直接丢弃。
"""

import codecs
import json
from typing import Any, Iterable, List, Optional

from deal_assistant.domain.models import StreamEvent
from deal_assistant.infrastructure.logging.logger import logger


DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    """单个流的解码状态（每个请求一个实例）。"""

    def __init__(self) -> None:
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._retry_line: Optional[str] = None
        self._done = False

    @property
    def done(self) -> bool:
        """是否已经收到结束标记。"""

        return self._done

    @property
    def pending(self) -> str:
        """缓冲区中尚未处理的文本（调试用）。"""

        return self._buffer

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        """输入一个网络块，返回本次可确定的事件（可能为空）。"""

        if self._done:
            return []
        if chunk:
            self._buffer += self._text_decoder.decode(chunk)
        return self._drain(final=False)

    def flush(self) -> List[StreamEvent]:
        """流已关闭：处理剩余缓冲内容，不再回填。"""

        if self._done:
            return []
        self._buffer += self._text_decoder.decode(b"", final=True)
        return self._drain(final=True)

    def _drain(self, final: bool) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        while not self._done:
            idx = self._buffer.find("\n")
            if idx == -1:
                if not final or not self._buffer:
                    break
                line, self._buffer = self._buffer, ""
            else:
                line = self._buffer[:idx]
                self._buffer = self._buffer[idx + 1:]

            if line.endswith("\r"):
                line = line[:-1]
            if not line.strip() or line.startswith(":"):
                continue
            if not line.startswith(DATA_PREFIX):
                continue

            data = line[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                self._done = True
                events.append(StreamEvent.done())
                break

            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                retried = self._retry_line == line
                if not retried:
                    events.append(StreamEvent.malformed(line))
                if final or retried:
                    self._retry_line = None
                    logger.warning(
                        "Dropped malformed stream line",
                        extra={"extra": {"raw": line[:200], "final": final}},
                    )
                    continue
                # 可能是被截断的行，放回缓冲区等下一个块
                self._retry_line = line
                self._buffer = line + "\n" + self._buffer
                break

            self._retry_line = None
            text = _token_text(payload)
            if text:
                events.append(StreamEvent.token(text))
        return events


def _token_text(payload: Any) -> str:
    """读取 choices[0].delta.content；其他形态的 payload 返回空串。"""

    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


def decode_stream(chunks: Iterable[bytes]) -> List[StreamEvent]:
    """一次性解码完整的块序列（含最终 flush）。"""

    decoder = StreamDecoder()
    events: List[StreamEvent] = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.flush())
    return events
