"""系统指令加载工具。

按名称从本目录读取 markdown 格式的 system instruction，
用于 StreamRequest.system_instruction。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_instruction(name: str = "default") -> str:
    """根据名称加载系统指令文本，文件为 prompts/<name>_system.md。"""

    fname = PROMPTS_DIR / f"{name}_system.md"
    return fname.read_text(encoding="utf-8")
