"""set_mood 工具：让模型切换界面的明暗主题。

当前主题保存在显式传入的 MoodState 中，由 Turn Controller 持有，
处理函数只是把模型给出的值写进去并通知回调。
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Optional

from .definitions import ToolDeclaration, ToolParam
from .registry import DiagnosticSink, ToolRegistry

Mood = Literal["light", "dark"]
MOODS = ("light", "dark")

SET_MOOD_TOOL = ToolDeclaration(
    name="set_mood",
    description=(
        "Changes the visual theme/mood of the application interface based on "
        "the emotional context of the conversation."
    ),
    params={
        "mood": ToolParam(
            name="mood",
            description=(
                'The mood to set. Use "light" for cheerful, optimistic, or clarity-focused '
                'contexts. Use "dark" for serious, deep, introspective, or nighttime contexts.'
            ),
            required=True,
            schema={"type": "string", "enum": list(MOODS)},
        )
    },
)


@dataclass
class MoodState:
    mood: Mood = "dark"


def make_set_mood_handler(
    state: MoodState,
    on_change: Optional[Callable[[Mood], None]] = None,
) -> Callable[[Dict[str, Any]], None]:
    # 重复设置同一个值是无害的
    def _run(args: Dict[str, Any]) -> None:
        mood = args["mood"]
        state.mood = mood
        if on_change is not None:
            on_change(mood)

    return _run


def default_registry(
    state: MoodState,
    on_change: Optional[Callable[[Mood], None]] = None,
    on_failure: Optional[DiagnosticSink] = None,
) -> ToolRegistry:
    registry = ToolRegistry(on_failure=on_failure)
    registry.register(SET_MOOD_TOOL, make_set_mood_handler(state, on_change))
    return registry
