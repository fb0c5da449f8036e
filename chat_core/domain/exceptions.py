"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 Turn Controller 或 UI 层做统一捕获与用户提示。

传输层错误（TransportError 及其子类）在抛出时就携带一条
规范化的 ErrorRecord，错误分类器只消费这条记录，不再到处
猜测异常对象上的字段。
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from chat_core.errors.records import ErrorRecord


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "TURN_IN_PROGRESS"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、tool_name 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """传输层错误基类，总是终止当前回合。

    record 为传输边界上解析出的规范化错误记录。
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 502,
        record: Optional["ErrorRecord"] = None,
        **extra,
    ):
        super().__init__(code=code, message=message, http_status=http_status, **extra)
        if record is None:
            from chat_core.errors.records import ErrorRecord

            record = ErrorRecord(message=message, code=http_status)
        self.record = record


class NetworkError(TransportError):
    """网络层错误，例如连接失败、流中断等。"""


class ApiError(TransportError):
    """模型端点返回非 2xx 时抛出。"""


class RateLimitError(ApiError):
    """HTTP 429，配额或限流。"""


class ValidationError(BusinessError):
    """参数、配置或调用顺序校验失败。"""


class ProtocolLoopExceeded(BusinessError):
    """工具调用/续写循环超过上限。

    协议本身没有收敛保证，超过 max_cycles 时强制结束回合。
    """

    def __init__(self, max_cycles: int, **extra):
        super().__init__(
            code="PROTOCOL_LOOP_EXCEEDED",
            message=f"Tool-call loop exceeded {max_cycles} cycles",
            http_status=500,
            max_cycles=max_cycles,
            **extra,
        )
        self.max_cycles = max_cycles


class ToolDispatchError(BusinessError):
    """工具处理函数执行失败或参数不合法。

    只作为诊断事件上报，永远不会中断回合。
    """

    def __init__(self, tool_name: str, call_id: str, message: str, **extra):
        super().__init__(
            code="TOOL_DISPATCH_ERROR",
            message=message,
            http_status=500,
            tool_name=tool_name,
            call_id=call_id,
            **extra,
        )
        self.tool_name = tool_name
        self.call_id = call_id
