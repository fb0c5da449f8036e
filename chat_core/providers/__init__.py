"""模型端点集成层。

该包下的模块负责：
- 定义流式传输抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供厂商的具体实现 (gemini_client)。
"""

from typing import Callable, Optional

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ValidationError
from chat_core.providers.base import StreamingTransport
from chat_core.providers.gemini_client import GeminiClient
from chat_core.providers.registry import get_provider_config


def create_provider(
    name: Optional[str] = None,
    key_source: Optional[Callable[[], Optional[str]]] = None,
) -> StreamingTransport:
    """根据名称创建传输实例，默认使用 gemini。"""

    try:
        provider_config = get_provider_config(name or "gemini")
    except KeyError:
        raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {name!r}")
    return GeminiClient(settings, key_source=key_source, provider_config=provider_config)
