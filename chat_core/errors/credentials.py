"""凭证能力。

交互式选择凭证的界面不属于本库，这里只定义它需要暴露的协议，
并提供一个读取环境变量 / .env 的参考实现。
"""

import os
from pathlib import Path
from typing import Optional, Protocol, Sequence

from dotenv import find_dotenv, load_dotenv


class CredentialProvider(Protocol):
    """凭证能力协议。

    - has_selected_credential(): 当前是否已选定凭证。
    - open_select_credential(): 请求重新选择，成功返回 True，取消返回 False。
    - api_key(): 传输层发请求时使用的密钥。
    """

    def has_selected_credential(self) -> bool:
        ...

    def open_select_credential(self) -> bool:
        ...

    def api_key(self) -> Optional[str]:
        ...


class EnvCredentialProvider:
    """从环境变量读取 API 密钥。

    重新选择时会用 override 方式重新加载 .env，
    用户改完文件后即可在下一轮使用新密钥。未指定 env_file 时
    从当前工作目录向上查找 .env，与 Settings 的读取位置一致。
    """

    def __init__(
        self,
        env_vars: Sequence[str] = ("GEMINI_API_KEY", "API_KEY"),
        env_file: Optional[Path] = None,
        initial: Optional[str] = None,
    ):
        self._env_vars = tuple(env_vars)
        self._env_file = env_file
        self._key = initial or self._read_env()

    def _read_env(self) -> Optional[str]:
        for name in self._env_vars:
            value = os.getenv(name)
            if value:
                return value
        return None

    def has_selected_credential(self) -> bool:
        return bool(self._key)

    def open_select_credential(self) -> bool:
        env_file = self._env_file if self._env_file is not None else find_dotenv(usecwd=True)
        load_dotenv(dotenv_path=env_file, override=True)
        key = self._read_env()
        if not key:
            return False
        self._key = key
        return True

    def api_key(self) -> Optional[str]:
        return self._key
