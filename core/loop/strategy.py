"""Strategy descriptors: the only thing that differs between loop flavours."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

from core.tools.schema import MULTI_TURN_TOOLS, SINGLE_SHOT_TOOLS, TOOL_COMPLETE, tool_names

StrategyName = Literal["single_shot", "multi_turn"]


@dataclass(frozen=True)
class StrategyDescriptor:
    """Parameters of one turn-loop flavour.

    completion_tool: when set, the loop completes once that tool is called;
    otherwise it completes on the first reply without tool invocations.
    """

    name: StrategyName
    tools: tuple[dict, ...]
    force_tool_choice: bool
    max_turns: int
    completion_tool: str | None = None
    temperature: float | None = None

    @property
    def tool_names(self) -> list[str]:
        return tool_names(list(self.tools))

    def with_overrides(self, *, max_turns: int | None = None, temperature: float | None = None) -> StrategyDescriptor:
        changes = {}
        if max_turns is not None:
            changes["max_turns"] = max_turns
        if temperature is not None:
            changes["temperature"] = temperature
        return replace(self, **changes) if changes else self


SINGLE_SHOT = StrategyDescriptor(
    name="single_shot",
    tools=tuple(SINGLE_SHOT_TOOLS),
    force_tool_choice=True,
    max_turns=15,
    completion_tool=TOOL_COMPLETE,
    temperature=0.7,
)

MULTI_TURN = StrategyDescriptor(
    name="multi_turn",
    tools=tuple(MULTI_TURN_TOOLS),
    force_tool_choice=False,
    max_turns=10,
)

STRATEGIES: dict[str, StrategyDescriptor] = {SINGLE_SHOT.name: SINGLE_SHOT, MULTI_TURN.name: MULTI_TURN}


def resolve_strategy(name: str, settings=None) -> StrategyDescriptor:
    """Look up a strategy by name, applying configured caps when settings are given."""
    if name not in STRATEGIES:
        raise ValueError(f"Unknown strategy: {name}. Available: {', '.join(STRATEGIES)}")
    strategy = STRATEGIES[name]
    if settings is None:
        return strategy
    temperature = settings.loop.single_shot_temperature if name == "single_shot" else settings.api.temperature
    return strategy.with_overrides(max_turns=settings.max_turns_for(name), temperature=temperature)
