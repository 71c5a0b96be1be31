"""流式对话：SSE 解码器与单回合会话。"""

from .decoder import StreamDecoder, decode_stream
from .session import AbortHandle, StreamingChatSession

__all__ = ["AbortHandle", "StreamDecoder", "StreamingChatSession", "decode_stream"]
