import httpx
import pytest

from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import Content, Part, StreamRequest
from chat_core.providers.gemini_client import GeminiClient
from chat_core.tools.definitions import ToolAck, ToolCall
from chat_core.tools.mood import SET_MOOD_TOOL


class SettingsStub:
    gemini_api_key = "gemini-test-key"
    http_timeout = None
    gemini_base_url = "https://example.test/v1beta"


class FakeResponse:
    def __init__(self, lines, status_code=200, body=b""):
        self._lines = list(lines)
        self.status_code = status_code
        self._body = body

    def iter_lines(self):
        for line in self._lines:
            yield line

    def read(self):
        return self._body


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


def install_client(monkeypatch, response, captured=None):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, method, url, params=None, json=None, headers=None):
            if captured is not None:
                captured.update(method=method, url=url, params=params, json=json, headers=headers)
            return StreamContext(response)

    monkeypatch.setattr("httpx.Client", Client)


def make_request(**kw):
    return StreamRequest(model="chat", contents=[Content(role="user", parts=[Part(text="hi")])], **kw)


def test_stream_parses_text_chunks(monkeypatch):
    lines = [
        'data: {"candidates": [{"content": {"role": "model", "parts": [{"text": "Hel"}]}}]}',
        "",
        'data: {"candidates": [{"content": {"role": "model", "parts": [{"text": "lo"}]}, "finishReason": "STOP"}]}',
    ]
    captured = {}
    install_client(monkeypatch, FakeResponse(lines), captured)
    chunks = list(GeminiClient(SettingsStub()).stream(make_request()))
    assert [c.parts[0].text for c in chunks] == ["Hel", "lo"]
    assert chunks[1].finish_reason == "STOP"
    assert captured["url"] == "https://example.test/v1beta/models/gemini-3-pro-preview:streamGenerateContent"
    assert captured["params"] == {"alt": "sse"}
    assert captured["headers"]["x-goog-api-key"] == "gemini-test-key"


def test_stream_parses_function_call(monkeypatch):
    lines = [
        'data: {"candidates": [{"content": {"parts": [{"functionCall": {"name": "set_mood", "args": {"mood": "light"}, "id": "fc-1"}, "thoughtSignature": "sig"}]}}]}',
    ]
    install_client(monkeypatch, FakeResponse(lines))
    (chunk,) = list(GeminiClient(SettingsStub()).stream(make_request()))
    part = chunk.parts[0]
    assert part.function_call.name == "set_mood"
    assert part.function_call.args == {"mood": "light"}
    assert part.function_call.id == "fc-1"
    assert part.thought_signature == "sig"


def test_payload_carries_tools_instruction_and_acks(monkeypatch):
    captured = {}
    install_client(monkeypatch, FakeResponse([]), captured)
    req = StreamRequest(
        model="chat",
        contents=[
            Content(role="user", parts=[Part(text="make it bright")]),
            Content(
                role="model",
                parts=[Part(function_call=ToolCall(id="fc-1", name="set_mood", args={"mood": "light"}), thought_signature="sig")],
            ),
            Content(role="user", parts=[Part(function_response=ToolAck(call_id="fc-1", name="set_mood"))]),
        ],
        tools=[SET_MOOD_TOOL],
        system_instruction="be bold",
    )
    list(GeminiClient(SettingsStub()).stream(req))
    payload = captured["json"]
    decl = payload["tools"][0]["functionDeclarations"][0]
    assert decl["name"] == "set_mood"
    assert decl["parameters"]["properties"]["mood"]["enum"] == ["light", "dark"]
    assert decl["parameters"]["required"] == ["mood"]
    assert payload["systemInstruction"] == {"parts": [{"text": "be bold"}]}
    assert payload["contents"][1]["parts"][0] == {
        "functionCall": {"name": "set_mood", "args": {"mood": "light"}, "id": "fc-1"},
        "thoughtSignature": "sig",
    }
    assert payload["contents"][2] == {
        "role": "user",
        "parts": [{"functionResponse": {"name": "set_mood", "response": {"result": "success"}, "id": "fc-1"}}],
    }


def test_http_429_raises_rate_limit_with_record(monkeypatch):
    body = b'{"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}}'
    install_client(monkeypatch, FakeResponse([], status_code=429, body=body))
    with pytest.raises(RateLimitError) as info:
        list(GeminiClient(SettingsStub()).stream(make_request()))
    assert info.value.record.code == 429
    assert info.value.record.status == "RESOURCE_EXHAUSTED"


def test_http_error_with_plain_body(monkeypatch):
    install_client(monkeypatch, FakeResponse([], status_code=500, body=b"upstream broke"))
    with pytest.raises(ApiError) as info:
        list(GeminiClient(SettingsStub()).stream(make_request()))
    assert info.value.record.message == "upstream broke"
    assert info.value.http_status == 500


def test_error_event_inside_stream(monkeypatch):
    lines = [
        'data: {"candidates": [{"content": {"parts": [{"text": "par"}]}}]}',
        'data: {"error": {"code": 404, "message": "Requested entity was not found.", "status": "NOT_FOUND"}}',
    ]
    install_client(monkeypatch, FakeResponse(lines))
    stream = GeminiClient(SettingsStub()).stream(make_request())
    assert next(stream).parts[0].text == "par"
    with pytest.raises(ApiError) as info:
        next(stream)
    assert info.value.record.status == "NOT_FOUND"


def test_network_error_is_wrapped(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, *a, **kw):
            raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(NetworkError):
        list(GeminiClient(SettingsStub()).stream(make_request()))


def test_missing_key_rejected():
    class NoKey(SettingsStub):
        gemini_api_key = None

    with pytest.raises(ValidationError):
        list(GeminiClient(NoKey()).stream(make_request()))


def test_key_source_is_read_per_request(monkeypatch):
    captured = {}
    install_client(monkeypatch, FakeResponse([]), captured)
    keys = iter(["first-key-0000", "second-key-000"])
    client = GeminiClient(SettingsStub(), key_source=lambda: next(keys))
    list(client.stream(make_request()))
    assert captured["headers"]["x-goog-api-key"] == "first-key-0000"
    list(client.stream(make_request()))
    assert captured["headers"]["x-goog-api-key"] == "second-key-000"


def test_thought_parts_are_not_surfaced(monkeypatch):
    lines = [
        'data: {"candidates": [{"content": {"role": "model", "parts": '
        '[{"text": "thinking", "thought": true}, {"text": "answer"}]}}]}',
    ]
    install_client(monkeypatch, FakeResponse(lines))
    chunks = list(GeminiClient(SettingsStub()).stream(make_request()))
    assert [p.text for p in chunks[0].parts] == ["answer"]
