"""传输错误的规范化记录。

端点的错误可能以多种形态出现：带 JSON 错误体的 HTTP 响应、
SDK 风格的 {"error": {...}} 字典、普通异常或字符串。
ErrorRecord.from_raw 是唯一的解析入口，分类器只读它的结果。
"""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class ErrorRecord:
    message: str = ""
    code: Optional[int] = None
    status: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any, http_status: Optional[int] = None) -> "ErrorRecord":
        """解析端点错误体；payload 可以是 dict、list（流式错误）或原始文本。"""

        if isinstance(payload, (bytes, str)):
            text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
            try:
                payload = json.loads(text)
            except json.JSONDecodeError:
                return cls(message=text, code=http_status)
        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, Mapping):
            body = payload.get("error") if isinstance(payload.get("error"), Mapping) else payload
            code = body.get("code")
            return cls(
                message=str(body.get("message") or ""),
                code=_as_int(code) if code is not None else http_status,
                status=body.get("status"),
            )
        return cls(message=json.dumps(payload, default=str), code=http_status)

    @classmethod
    def from_raw(cls, raw: Any) -> "ErrorRecord":
        """把任意捕获到的错误转成 ErrorRecord。"""

        if isinstance(raw, cls):
            return raw
        record = getattr(raw, "record", None)
        if isinstance(record, cls):
            return record
        if isinstance(raw, Mapping):
            if isinstance(raw.get("error"), Mapping) or "message" in raw or "code" in raw:
                return cls.from_payload(raw)
            return cls(message=json.dumps(raw, default=str))
        if isinstance(raw, BaseException):
            message = getattr(raw, "message", None) or str(raw)
            return cls(message=str(message))
        return cls(message=str(raw))


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
