"""会话消息与历史模型。

Message 归 Turn Controller 所有：提交时创建，流式期间只被增量追加，
完成或失败后冻结。ConversationHistory 是交给 StreamingSession 的
只读快照，永远不被会话修改。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from .exceptions import ValidationError
from .models import Content, Part, Role

# 界面上的欢迎语占位，从不发送给模型
WELCOME_MESSAGE_ID = "welcome"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    id: str
    role: Role
    content: str = ""
    is_streaming: bool = False
    timestamp: datetime = field(default_factory=_now)
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    @classmethod
    def create(cls, role: Role, content: str = "", streaming: bool = False) -> "Message":
        return cls(id=f"m-{uuid4().hex}", role=role, content=content, is_streaming=streaming)

    @property
    def finalized(self) -> bool:
        return self._frozen

    def append(self, delta: str) -> None:
        if self._frozen:
            raise ValidationError(code="MESSAGE_FINALIZED", message=f"Message {self.id} is finalized")
        self.content += delta

    def finalize(self, content: Optional[str] = None) -> None:
        """结束流式状态并冻结内容；传入 content 时覆盖现有文本。"""

        if self._frozen:
            raise ValidationError(code="MESSAGE_FINALIZED", message=f"Message {self.id} is finalized")
        if content is not None:
            self.content = content
        self.is_streaming = False
        self._frozen = True


@dataclass(frozen=True)
class ConversationHistory:
    """按时间排序的已完成消息。"""

    messages: Tuple[Message, ...] = ()

    @classmethod
    def from_messages(cls, messages: Iterable[Message]) -> "ConversationHistory":
        """从 UI 消息列表构造快照，跳过欢迎语和仍在流式中的消息。"""

        kept = tuple(
            m for m in messages
            if m.id != WELCOME_MESSAGE_ID and not m.is_streaming
        )
        return cls(messages=kept)

    def append(self, message: Message) -> "ConversationHistory":
        if message.id == WELCOME_MESSAGE_ID:
            return self
        return ConversationHistory(messages=self.messages + (message,))

    def to_contents(self) -> List[Content]:
        return [
            Content(role=m.role, parts=[Part(text=m.content)])
            for m in self.messages
            if m.id != WELCOME_MESSAGE_ID
        ]

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)
