"""Gemini 流式端点适配器。

- URL: {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证: x-goog-api-key: <api_key>
- 响应: SSE，每个 data: 行是一个 GenerateContentResponse JSON。

本实现只依赖公共字段：contents / tools / systemInstruction，
以及响应中 candidates[0].content.parts 里的 text 与 functionCall。
"""

import json
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import Content, Part, StreamChunk, StreamRequest
from chat_core.errors.records import ErrorRecord
from chat_core.providers.registry import GEMINI_CONFIG, ProviderConfig
from chat_core.tools.definitions import ToolAck, ToolCall, ToolDeclaration


class GeminiClient:
    """Gemini Provider 客户端实现。

    api_key 默认取配置中的 gemini_api_key；传入 key_source 时每次请求前
    都会重新读取，凭证被重新选择后下一次请求即生效。
    """

    name = "gemini"

    def __init__(
        self,
        cfg=settings,
        key_source: Optional[Callable[[], Optional[str]]] = None,
        provider_config: ProviderConfig = GEMINI_CONFIG,
    ):
        self._settings = cfg
        self._provider_config = provider_config
        self._key_source = key_source

    def _api_key(self) -> Optional[str]:
        if self._key_source is not None:
            return self._key_source()
        return getattr(self._settings, "gemini_api_key", None)

    def stream(self, req: StreamRequest) -> Iterator[StreamChunk]:
        api_key = self._api_key()
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        model = self._provider_config.resolve_model(req.model)
        base = getattr(self._settings, "gemini_base_url", None) or self._provider_config.base_url
        payload = self._build_payload(req)
        try:
            with httpx.Client(timeout=getattr(self._settings, "http_timeout", None), trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{base}/models/{model}:streamGenerateContent",
                    params={"alt": "sse"},
                    json=payload,
                    headers={
                        "x-goog-api-key": api_key,
                        "Content-Type": "application/json",
                    },
                ) as resp:
                    if resp.status_code >= 400:
                        raise self._error_from_response(resp)
                    for line in resp.iter_lines():
                        if not line:
                            continue
                        data_str = line
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        else:
                            data_str = data_str.strip()
                        if not data_str or data_str == "[DONE]":
                            continue
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        if isinstance(payload_chunk, dict) and "error" in payload_chunk:
                            record = ErrorRecord.from_payload(payload_chunk)
                            raise ApiError(
                                code="API_ERROR",
                                message=record.message or "Gemini stream error",
                                http_status=record.code or 500,
                                record=record,
                            )
                        yield self._parse_stream_chunk(payload_chunk)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    # ---- 辅助方法 ----

    @staticmethod
    def _error_from_response(resp) -> ApiError:
        record = ErrorRecord.from_payload(resp.read(), resp.status_code)
        message = record.message or f"Gemini API error {resp.status_code}"
        if resp.status_code == 429:
            return RateLimitError(code="RATE_LIMIT", message=message, http_status=429, record=record)
        return ApiError(code="API_ERROR", message=message, http_status=resp.status_code, record=record)

    def _build_payload(self, req: StreamRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": [self._content_to_payload(c) for c in req.contents],
        }
        if req.tools:
            payload["tools"] = [
                {"functionDeclarations": [self._serialize_tool(tool) for tool in req.tools]}
            ]
        if req.system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": req.system_instruction}]}
        return payload

    def _content_to_payload(self, content: Content) -> Dict[str, Any]:
        return {
            "role": content.role,
            "parts": [self._part_to_payload(p) for p in content.parts],
        }

    @staticmethod
    def _part_to_payload(part: Part) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if part.function_call is not None:
            call: Dict[str, Any] = {"name": part.function_call.name, "args": part.function_call.args}
            if part.function_call.id:
                call["id"] = part.function_call.id
            payload["functionCall"] = call
        elif part.function_response is not None:
            ack: ToolAck = part.function_response
            response: Dict[str, Any] = {"name": ack.name, "response": ack.response}
            if ack.call_id:
                response["id"] = ack.call_id
            payload["functionResponse"] = response
        else:
            payload["text"] = part.text or ""
        if part.thought_signature:
            payload["thoughtSignature"] = part.thought_signature
        return payload

    def _parse_stream_chunk(self, data: Dict[str, Any]) -> StreamChunk:
        candidates = data.get("candidates") or []
        if not candidates:
            return StreamChunk(parts=[], raw=data)
        candidate = candidates[0] or {}
        raw_parts = (candidate.get("content") or {}).get("parts") or []
        parts: List[Part] = []
        for raw in raw_parts:
            fc = raw.get("functionCall")
            if fc:
                parts.append(
                    Part(
                        function_call=ToolCall(
                            id=fc.get("id"),
                            name=fc.get("name") or "",
                            args=self._parse_arguments(fc.get("args")),
                        ),
                        thought_signature=raw.get("thoughtSignature"),
                    )
                )
            elif raw.get("text") and not raw.get("thought"):
                parts.append(Part(text=raw["text"], thought_signature=raw.get("thoughtSignature")))
        return StreamChunk(parts=parts, finish_reason=candidate.get("finishReason"), raw=data)

    @staticmethod
    def _serialize_tool(tool: ToolDeclaration) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in tool.params.items():
            schema = param.schema or {"type": "string"}
            if param.description:
                schema = {**schema, "description": param.description}
            properties[name] = schema
            if param.required:
                required.append(name)
        return {
            "name": tool.name,
            "description": tool.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        }

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            try:
                return json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
        return {}
