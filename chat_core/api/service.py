"""对外服务模块。

ChatService 是一个不含任何渲染逻辑的 Turn Controller：持有界面要展示的
消息列表和当前主题，把每次提交交给 StreamingSession，失败时分类错误、
必要时触发凭证重新选择，并把结果写回对应的模型消息。
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import WELCOME_MESSAGE_ID, ConversationHistory, Message
from chat_core.domain.exceptions import ValidationError
from chat_core.errors.classifier import CredentialRecovery, ErrorClassifier, ErrorOutcome
from chat_core.errors.credentials import CredentialProvider, EnvCredentialProvider
from chat_core.infrastructure.logging.logger import log_event
from chat_core.prompts import load_system_instruction
from chat_core.providers import create_provider
from chat_core.session.streaming import SessionConfig, StreamingSession
from chat_core.tools.mood import Mood, MoodState, default_registry


@dataclass
class TurnResult:
    message: Message
    outcome: Optional[ErrorOutcome] = None

    @property
    def ok(self) -> bool:
        return self.outcome is None


class ChatService:
    def __init__(
        self,
        session: StreamingSession,
        credentials: CredentialProvider,
        classifier: Optional[ErrorClassifier] = None,
        welcome_message: Optional[str] = None,
        initial_mood: Optional[Mood] = None,
        on_mood_change: Optional[Callable[[Mood], None]] = None,
    ):
        self._session = session
        self._classifier = classifier or ErrorClassifier()
        self._recovery = CredentialRecovery(credentials)
        self._welcome = Message(
            id=WELCOME_MESSAGE_ID,
            role="model",
            content=welcome_message or settings.welcome_message,
        )
        self._welcome.finalize()
        self._messages: List[Message] = [self._welcome]
        self._mood_state = MoodState(mood=initial_mood or settings.default_mood)
        self._on_mood_change = on_mood_change
        self._registry = default_registry(
            self._mood_state,
            on_change=self._mood_changed,
            on_failure=self._classifier.report_diagnostic,
        )
        self._busy = False
        self.last_outcome: Optional[ErrorOutcome] = None

    # ---- 状态 ----

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def mood(self) -> Mood:
        return self._mood_state.mood

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def credential_selected(self) -> Optional[bool]:
        return self._recovery.selected

    @property
    def classifier(self) -> ErrorClassifier:
        return self._classifier

    # ---- 凭证 ----

    def check_credential(self) -> bool:
        return self._recovery.check()

    def select_credential(self) -> bool:
        if self._busy:
            raise ValidationError(code="TURN_IN_PROGRESS", message="A turn is already running")
        return self._recovery.select()

    # ---- 回合 ----

    def send(self, text: str) -> Iterator[str]:
        """提交一条用户消息并逐段产出模型回复。

        失败不会抛给调用方：错误提示写进模型消息，结构化结果放在
        last_outcome 中。
        """

        if self._busy:
            raise ValidationError(code="TURN_IN_PROGRESS", message="A turn is already running")
        if self._recovery.selected is False:
            raise ValidationError(code="CREDENTIAL_REQUIRED", message="Select an API key first")

        history = ConversationHistory.from_messages(self._messages)
        stream = self._session.send_turn(history, text, self._registry)
        user_msg = Message.create("user", text)
        bot_msg = Message.create("model", streaming=True)
        self._messages.extend([user_msg, bot_msg])
        self._busy = True
        self.last_outcome = None
        log_ctx = {"turn_id": f"t-{uuid4().hex}", "message_id": bot_msg.id}

        try:
            for delta in stream:
                bot_msg.append(delta)
                yield delta
            bot_msg.finalize()
            log_event(logging.INFO, "Turn finalized", log_ctx, length=len(bot_msg.content))
        except GeneratorExit:
            stream.close()
            bot_msg.finalize()
            log_event(logging.INFO, "Turn cancelled by consumer", log_ctx, length=len(bot_msg.content))
            raise
        except Exception as exc:
            outcome = self._classifier.classify(exc)
            log_event(
                logging.ERROR,
                "Chat turn failed",
                log_ctx,
                kind=outcome.kind.value,
                error=str(exc),
            )
            if outcome.needs_recovery:
                outcome = self._recovery.recover(outcome)
            self.last_outcome = outcome
            partial = bot_msg.content
            bot_msg.finalize(f"{partial}\n\n{outcome.message}" if partial else outcome.message)
        finally:
            self._busy = False

    def ask(self, text: str) -> TurnResult:
        """同步跑完一个回合。"""

        for _ in self.send(text):
            pass
        return TurnResult(message=self._messages[-1], outcome=self.last_outcome)

    def clear(self) -> None:
        if self._busy:
            raise ValidationError(code="TURN_IN_PROGRESS", message="A turn is already running")
        self._messages = [self._welcome]
        self.last_outcome = None

    def _mood_changed(self, mood: Mood) -> None:
        log_event(logging.INFO, "Agent setting mood", {}, mood=mood)
        if self._on_mood_change is not None:
            self._on_mood_change(mood)


_service: Optional[ChatService] = None


def get_default_service() -> ChatService:
    """获取默认的 ChatService 实例（单例）。"""
    global _service
    if _service is None:
        credentials = EnvCredentialProvider(initial=settings.gemini_api_key)
        transport = create_provider(key_source=credentials.api_key)
        session = StreamingSession(
            transport,
            SessionConfig.from_settings(settings, system_instruction=load_system_instruction()),
        )
        _service = ChatService(session=session, credentials=credentials)
    return _service
