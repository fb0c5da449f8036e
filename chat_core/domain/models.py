"""与传输协议无关的统一数据模型。

本模块定义了 StreamingSession 与 Provider 之间共享的标准数据结构：

- Part: 一段内容片段，可以是文本、模型发起的函数调用，或函数调用的回执。
- Content: 某个角色（user/model）的一组 Part，即一轮消息。
- StreamRequest: 发给流式端点的完整请求。
- StreamChunk: 流式响应里的一个增量块。

Provider 适配器（如 GeminiClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from chat_core.tools.definitions import ToolAck, ToolCall, ToolDeclaration


# 端点只认这两个角色，工具回执也以 user 角色发送
Role = Literal["user", "model"]


@dataclass
class Part:
    """Content 中的单个片段，三个字段至多一个非空。

    thought_signature 是端点附在函数调用片段上的不透明签名，
    续写时必须原样回传。
    """

    text: Optional[str] = None
    function_call: Optional["ToolCall"] = None
    function_response: Optional["ToolAck"] = None
    thought_signature: Optional[str] = None


@dataclass
class Content:
    role: Role
    parts: List[Part] = field(default_factory=list)


@dataclass
class StreamRequest:
    """一次流式请求。

    contents 为完整的上下文（历史 + 本次新消息/回执），
    Provider 负责序列化为端点的 JSON 请求体。
    """

    model: str  # 逻辑模型名，如 "chat"（再由 registry 映射为真实模型名）
    contents: List[Content]
    tools: Optional[List["ToolDeclaration"]] = None
    system_instruction: Optional[str] = None


@dataclass
class StreamChunk:
    """流式响应中的一个增量块。"""

    parts: List[Part]
    finish_reason: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None
