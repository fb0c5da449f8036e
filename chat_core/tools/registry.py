from typing import Any, Callable, Dict, List, Optional

import pydantic

from chat_core.domain.exceptions import ToolDispatchError, ValidationError
from chat_core.infrastructure.logging.logger import logger
from .definitions import ToolAck, ToolCall, ToolDeclaration


ToolHandler = Callable[[Dict[str, Any]], Any]
DiagnosticSink = Callable[[ToolDispatchError], None]


class ToolRegistry:
    """工具名到处理函数与参数约定的映射。

    每个调用都会得到一个 success 回执：未注册的工具、非法参数、
    处理函数抛错都只会在本地记录并上报诊断，不会中断回合。
    """

    def __init__(self, on_failure: Optional[DiagnosticSink] = None):
        self._declarations: Dict[str, ToolDeclaration] = {}
        self._handlers: Dict[str, ToolHandler] = {}
        self._on_failure = on_failure

    def register(self, declaration: ToolDeclaration, handler: ToolHandler) -> None:
        if declaration.name in self._handlers:
            raise ValidationError(
                code="TOOL_ALREADY_REGISTERED",
                message=f"Tool {declaration.name!r} already registered",
            )
        self._declarations[declaration.name] = declaration
        self._handlers[declaration.name] = handler

    def declarations(self) -> List[ToolDeclaration]:
        return list(self._declarations.values())

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def dispatch(self, call: ToolCall) -> ToolAck:
        ack = ToolAck(call_id=call.id, name=call.name)
        handler = self._handlers.get(call.name)
        if handler is None:
            logger.warning(
                "Tool not registered",
                extra={"extra": {"tool_name": call.name, "tool_call_id": call.id}},
            )
            return ack

        declaration = self._declarations[call.name]
        try:
            args = declaration.validate_args(call.args or {})
        except pydantic.ValidationError as exc:
            self._report(ToolDispatchError(call.name, call.id or "", f"Invalid arguments: {exc}"))
            return ack

        try:
            handler(args)
        except Exception as exc:  # 处理函数是尽力而为的副作用
            self._report(ToolDispatchError(call.name, call.id or "", str(exc), error_type=type(exc).__name__))
        return ack

    def _report(self, error: ToolDispatchError) -> None:
        logger.warning(
            "Tool dispatch failed",
            extra={"extra": {"tool_name": error.tool_name, "tool_call_id": error.call_id, "error": error.message}},
        )
        if self._on_failure is not None:
            self._on_failure(error)
