"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具列表暴露给模型（ToolDeclaration / ToolParam）。
- 在 StreamingSession 中保存和回执模型触发的工具调用（ToolCall / ToolAck）。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, create_model

_JSON_TYPES: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}


@dataclass
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]

    @property
    def enum(self) -> Optional[List[Any]]:
        return self.schema.get("enum")


@dataclass
class ToolDeclaration:
    """一个可供模型调用的工具声明。"""

    name: str
    description: str
    params: Dict[str, ToolParam]
    _args_model: Optional[Type[BaseModel]] = field(default=None, init=False, repr=False, compare=False)

    def args_model(self) -> Type[BaseModel]:
        """按参数 schema 生成 pydantic 模型，enum 映射为 Literal。"""

        if self._args_model is None:
            fields: Dict[str, Any] = {}
            for name, param in self.params.items():
                if param.enum:
                    annotation: Any = Literal[tuple(param.enum)]
                else:
                    annotation = _JSON_TYPES.get(param.schema.get("type", "string"), Any)
                if param.required:
                    fields[name] = (annotation, ...)
                else:
                    fields[name] = (Optional[annotation], None)
            self._args_model = create_model(
                f"{self.name}_args",
                __config__=ConfigDict(extra="ignore"),
                **fields,
            )
        return self._args_model

    def validate_args(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """校验参数，不合法时抛出 pydantic.ValidationError。"""

        return self.args_model().model_validate(args).model_dump(exclude_none=True)


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求，id 需原样回执。"""

    id: Optional[str]
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolAck:
    """工具调用回执。协议只要求确认，不携带执行结果。"""

    call_id: Optional[str]
    name: str
    response: Dict[str, Any] = field(default_factory=lambda: {"result": "success"})
