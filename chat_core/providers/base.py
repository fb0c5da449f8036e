"""传输层抽象接口。

StreamingSession 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 StreamingTransport（如 GeminiClient）。
- 负责：将 StreamRequest 转成具体 API 请求，并把流式响应逐块解析为 StreamChunk。
- 失败时抛出 TransportError 子类，并在异常上附带规范化的 ErrorRecord。

stream() 返回的迭代器在被 close() 时必须立即释放底层连接。
"""

from typing import Iterator, Protocol

from chat_core.domain.models import StreamChunk, StreamRequest


class StreamingTransport(Protocol):
    """流式模型端点协议。"""

    name: str

    def stream(self, req: StreamRequest) -> Iterator[StreamChunk]:
        ...
