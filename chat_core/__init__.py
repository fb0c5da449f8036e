"""Chat Core 顶层包。

该包提供流式对话编排的核心实现，包括配置加载、领域模型、
Gemini 流式传输适配、工具注册与派发、错误分类与凭证恢复，
以及一个不含渲染逻辑的 Turn Controller。
"""

from chat_core.api.service import ChatService, TurnResult, get_default_service
from chat_core.errors.classifier import ErrorClassifier, ErrorKind, ErrorOutcome
from chat_core.session.streaming import SessionConfig, StreamingSession

__all__ = [
    "ChatService",
    "ErrorClassifier",
    "ErrorKind",
    "ErrorOutcome",
    "SessionConfig",
    "StreamingSession",
    "TurnResult",
    "get_default_service",
]
