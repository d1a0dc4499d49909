"""Tool-calling agent loop for the shopping assistant."""

from .tools import (
    Tool,
    ToolResult,
    SearchProductsTool,
    GetPriceRangeTool,
    ShowProductsTool,
    build_default_tools,
)
from .loop import AgentLoop, AgentState, AgentTurnResult, Termination, next_state

__all__ = [
    "Tool",
    "ToolResult",
    "SearchProductsTool",
    "GetPriceRangeTool",
    "ShowProductsTool",
    "build_default_tools",
    "AgentLoop",
    "AgentState",
    "AgentTurnResult",
    "Termination",
    "next_state",
]
