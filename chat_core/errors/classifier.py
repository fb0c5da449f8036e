"""错误分类与凭证恢复。

classify 把任意捕获到的错误转换成带固定用户提示的 ErrorOutcome；
规则按优先级：

0. ProtocolLoopExceeded → PROTOCOL_LOOP_EXCEEDED（不是传输错误）
1. 消息含 "Requested entity was not found" → AUTH_EXPIRED
2. 状态码 429 / RESOURCE_EXHAUSTED / 消息含 quota 或 429 → QUOTA
3. 其他 → UNKNOWN

AUTH_EXPIRED 与 QUOTA 需要调用方触发凭证重新选择（见 CredentialRecovery）。
"""

import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Deque, List, Optional

from chat_core.domain.exceptions import ProtocolLoopExceeded, ToolDispatchError
from chat_core.infrastructure.logging.logger import log_event
from .credentials import CredentialProvider
from .records import ErrorRecord

ENTITY_NOT_FOUND_MARKER = "Requested entity was not found"
RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"

GENERIC_APOLOGY = "Sorry, I encountered an error. Please try again."
QUOTA_MESSAGE = (
    "⚠️ **Quota Exceeded**\n\n"
    "The API key has exceeded its rate limit or quota. This often happens with shared keys.\n\n"
    "Please click **Update API Key** in the top right (or use the popup) to use your own "
    "Google Cloud Project key with billing enabled."
)
AUTH_EXPIRED_MESSAGE = "API Key error. Please re-select your key."


class ErrorKind(str, Enum):
    QUOTA = "quota"
    AUTH_EXPIRED = "auth_expired"
    UNKNOWN = "unknown"
    PROTOCOL_LOOP_EXCEEDED = "protocol_loop_exceeded"


class RecoveryResult(str, Enum):
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"


_MESSAGES = {
    ErrorKind.QUOTA: QUOTA_MESSAGE,
    ErrorKind.AUTH_EXPIRED: AUTH_EXPIRED_MESSAGE,
    ErrorKind.UNKNOWN: GENERIC_APOLOGY,
    ErrorKind.PROTOCOL_LOOP_EXCEEDED: GENERIC_APOLOGY,
}


@dataclass(frozen=True)
class ErrorOutcome:
    kind: ErrorKind
    message: str
    recovery_attempted: bool = False
    recovery_result: Optional[RecoveryResult] = None
    record: Optional[ErrorRecord] = None

    @property
    def needs_recovery(self) -> bool:
        return self.kind in (ErrorKind.AUTH_EXPIRED, ErrorKind.QUOTA)


class ErrorClassifier:
    def __init__(self, max_diagnostics: int = 50):
        self._diagnostics: Deque[ToolDispatchError] = deque(maxlen=max_diagnostics)

    def classify(self, raw: Any) -> ErrorOutcome:
        record = ErrorRecord.from_raw(raw)
        kind = self._kind_of(raw, record)
        return ErrorOutcome(kind=kind, message=_MESSAGES[kind], record=record)

    @staticmethod
    def _kind_of(raw: Any, record: ErrorRecord) -> ErrorKind:
        if isinstance(raw, ProtocolLoopExceeded):
            return ErrorKind.PROTOCOL_LOOP_EXCEEDED
        message = record.message or ""
        if ENTITY_NOT_FOUND_MARKER in message:
            return ErrorKind.AUTH_EXPIRED
        if (
            record.code == 429
            or record.status == RESOURCE_EXHAUSTED
            or "quota" in message.lower()
            or "429" in message
        ):
            return ErrorKind.QUOTA
        return ErrorKind.UNKNOWN

    def report_diagnostic(self, error: ToolDispatchError) -> None:
        """工具执行失败只记为诊断事件，不影响回合。日志已由 ToolRegistry 写出。"""

        self._diagnostics.append(error)

    @property
    def diagnostics(self) -> List[ToolDispatchError]:
        return list(self._diagnostics)


class CredentialRecovery:
    """跟踪凭证是否已选定，并在需要时触发重新选择。

    selected 为 None 表示尚未探测。恢复失败时保持 False，
    宿主界面据此展示“需要密钥”的落地页。
    """

    def __init__(self, credentials: CredentialProvider):
        self._credentials = credentials
        self.selected: Optional[bool] = None

    def check(self) -> bool:
        try:
            self.selected = bool(self._credentials.has_selected_credential())
        except Exception as exc:
            # 探测失败时按已选定处理，让用户先进入对话
            log_event(logging.ERROR, "Error checking credential status", {}, error=str(exc))
            self.selected = True
        return self.selected

    def select(self) -> bool:
        try:
            ok = bool(self._credentials.open_select_credential())
        except Exception as exc:
            log_event(logging.ERROR, "Error opening credential selection", {}, error=str(exc))
            ok = False
        if ok:
            self.selected = True
        return ok

    def recover(self, outcome: ErrorOutcome) -> ErrorOutcome:
        """对需要恢复的结果执行一次重新选择，返回带恢复结果的新 outcome。

        失败的回合不会被重试，下一轮用户提交时才使用新凭证。
        """

        if not outcome.needs_recovery:
            return outcome
        self.selected = False
        ok = self.select()
        log_event(
            logging.INFO,
            "Credential recovery finished",
            {},
            kind=outcome.kind.value,
            succeeded=ok,
        )
        return replace(
            outcome,
            recovery_attempted=True,
            recovery_result=RecoveryResult.SUCCEEDED if ok else RecoveryResult.CANCELLED,
        )
