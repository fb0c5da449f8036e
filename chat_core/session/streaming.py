"""流式会话管理。

StreamingSession 驱动一个完整回合：把历史和新消息发给流式端点，
边收边产出文本增量；模型发起工具调用时在本地执行、打包回执
并自动发起续写请求，直到某次交换不再包含工具调用为止。

回合内部是一个显式状态机：

    STREAMING ──有工具调用──▶ DISPATCHING ──▶ CONTINUING ──▶ STREAMING
        │                         │
        └──无工具调用──▶ DONE     └──超过 max_tool_cycles──▶ FAILED

任何传输错误都会结束生成器；已经产出的文本不会被撤回。
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationHistory
from chat_core.domain.exceptions import ProtocolLoopExceeded, ValidationError
from chat_core.domain.models import Content, Part, StreamRequest
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.base import StreamingTransport
from chat_core.tools.definitions import ToolAck
from chat_core.tools.registry import ToolRegistry


class TurnState(str, Enum):
    STREAMING = "streaming"
    DISPATCHING = "dispatching"
    CONTINUING = "continuing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SessionConfig:
    model: str = "chat"
    max_tool_cycles: int = 5
    system_instruction: Optional[str] = None

    @classmethod
    def from_settings(cls, cfg=settings, system_instruction: Optional[str] = None) -> "SessionConfig":
        return cls(
            model=cfg.default_model,
            max_tool_cycles=cfg.max_tool_cycles,
            system_instruction=system_instruction,
        )


class StreamingSession:
    def __init__(self, transport: StreamingTransport, config: Optional[SessionConfig] = None):
        self._transport = transport
        self._config = config or SessionConfig.from_settings()

    @property
    def config(self) -> SessionConfig:
        return self._config

    def send_turn(
        self,
        history: ConversationHistory,
        new_text: str,
        tool_registry: ToolRegistry,
    ) -> Iterator[str]:
        """开始一个回合，返回文本增量的惰性迭代器。

        history 只读；调用方负责在回合结束后把结果追加到自己的历史中。
        迭代器只能消费一次，中途停止迭代（或调用 close()）会立即释放
        当前连接，且不会再发出任何续写请求。
        """

        if not new_text or not new_text.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="Message text is empty")
        contents = history.to_contents()
        contents.append(Content(role="user", parts=[Part(text=new_text)]))
        turn = _Turn(self._transport, self._config, contents, tool_registry)
        return turn.run()


class _Turn:
    """单个回合的状态机，每个回合新建一个实例。"""

    def __init__(
        self,
        transport: StreamingTransport,
        config: SessionConfig,
        contents: List[Content],
        registry: ToolRegistry,
    ):
        self._transport = transport
        self._config = config
        self._contents = contents
        self._registry = registry
        self._model_parts: List[Part] = []
        self._acks: List[ToolAck] = []
        self.state = TurnState.STREAMING
        self.cycles = 0
        self.exchanges = 0
        self._log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "model": config.model}

    def run(self) -> Iterator[str]:
        self._log(logging.INFO, "Turn started", history_size=len(self._contents) - 1)
        try:
            while self.state is not TurnState.DONE:
                if self.state is TurnState.STREAMING:
                    yield from self._stream_exchange()
                elif self.state is TurnState.DISPATCHING:
                    self._dispatch()
                elif self.state is TurnState.CONTINUING:
                    self._continue()
        except GeneratorExit:
            self._log(logging.INFO, "Turn abandoned", state=self.state.value, exchanges=self.exchanges)
            raise
        except Exception as exc:
            failed_in = self.state
            self.state = TurnState.FAILED
            self._log(
                logging.ERROR,
                "Turn failed",
                state=failed_in.value,
                exchanges=self.exchanges,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise
        self._log(logging.INFO, "Turn completed", exchanges=self.exchanges, tool_cycles=self.cycles)

    def _stream_exchange(self) -> Iterator[str]:
        req = StreamRequest(
            model=self._config.model,
            contents=list(self._contents),
            tools=self._registry.declarations() or None,
            system_instruction=self._config.system_instruction,
        )
        self.exchanges += 1
        self._log(logging.INFO, "Opening exchange", exchange=self.exchanges, content_count=len(req.contents))

        model_parts: List[Part] = []
        has_call = False
        chunks = self._transport.stream(req)
        try:
            for chunk in chunks:
                for part in chunk.parts:
                    if part.function_call is not None:
                        has_call = True
                        model_parts.append(part)
                    elif part.text:
                        model_parts.append(part)
                        yield part.text
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()

        if has_call:
            self._model_parts = model_parts
            self.state = TurnState.DISPATCHING
        else:
            self.state = TurnState.DONE

    def _dispatch(self) -> None:
        if self.cycles >= self._config.max_tool_cycles:
            raise ProtocolLoopExceeded(self._config.max_tool_cycles, trace_id=self._log_ctx["trace_id"])
        calls = [p.function_call for p in self._model_parts if p.function_call is not None]
        self._log(
            logging.INFO,
            "Dispatching tool calls",
            call_count=len(calls),
            tool_names=[c.name for c in calls],
            tool_call_ids=[c.id for c in calls],
        )
        self._acks = [self._registry.dispatch(call) for call in calls]
        self.state = TurnState.CONTINUING

    def _continue(self) -> None:
        # 模型的函数调用轮次需要原样回放，端点才能把回执和调用对上
        self.cycles += 1
        self._contents.append(Content(role="model", parts=self._model_parts))
        self._contents.append(
            Content(role="user", parts=[Part(function_response=ack) for ack in self._acks])
        )
        self._model_parts = []
        self._acks = []
        self.state = TurnState.STREAMING

    def _log(self, level: int, message: str, **fields: Any) -> None:
        log_event(level, message, self._log_ctx, **fields)
