"""Tool-calling agent loop for the shopping assistant."""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
from pydantic import BaseModel, Field

from llm.base_client import LLMResponse, Message
from llm.gateway import ModelGateway
from schemas.chat import ConversationTurn, ToolUsage
from schemas.products import ProductSummary
from .prompts import SYSTEM_PROMPT, ITERATION_CAP_REPLY, EMPTY_REPLY, detect_language
from .tools import Tool, ToolResult

logger = logging.getLogger(__name__)

MAX_HISTORY_TURNS = 24


class AgentState(str, Enum):
    """States of one assistant turn."""
    BUILDING_CONTEXT = "building_context"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    DONE = "done"


class Termination(str, Enum):
    """Why the loop reached DONE."""
    ANSWERED = "answered"
    ITERATION_CAP_EXCEEDED = "iteration_cap_exceeded"


def next_state(
    state: AgentState,
    response: Optional[LLMResponse] = None,
    round_trips: int = 0,
    max_round_trips: int = 5
) -> AgentState:
    """
    Pure transition function of the agent loop.

    Args:
        state: Current state
        response: Latest model response (needed when leaving AWAITING_MODEL)
        round_trips: Model calls made so far
        max_round_trips: Cap on model calls

    Returns:
        The following state
    """
    if state == AgentState.BUILDING_CONTEXT:
        return AgentState.AWAITING_MODEL

    if state == AgentState.AWAITING_MODEL:
        if response is None:
            raise ValueError("Leaving AWAITING_MODEL requires a model response")
        return AgentState.DISPATCHING_TOOLS if response.tool_calls else AgentState.DONE

    if state == AgentState.DISPATCHING_TOOLS:
        return AgentState.DONE if round_trips >= max_round_trips else AgentState.AWAITING_MODEL

    raise ValueError(f"No transition out of {state.value}")


class AgentTurnResult(BaseModel):
    """Outcome of one agent turn."""
    reply: str
    products: List[ProductSummary] = Field(default_factory=list)
    shown_products: Optional[List[ProductSummary]] = None  # Set only if show_products ran
    tools_used: List[ToolUsage] = Field(default_factory=list)
    round_trips: int
    termination: Termination


class AgentLoop:
    """
    Drives the model through tool calls until it answers in plain text.

    Search results are kept as fallback candidates; show_products results are
    the definitive product list for the turn.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        tools: Sequence[Tool],
        max_iterations: int = 5,
        max_history_turns: int = MAX_HISTORY_TURNS,
        system_prompt: str = SYSTEM_PROMPT
    ):
        """
        Initialize agent loop.

        Args:
            gateway: Model gateway
            tools: Tool palette
            max_iterations: Maximum model round-trips per turn (default: 5)
            max_history_turns: Most recent history turns sent to the model
            system_prompt: Assistant instructions
        """
        self.gateway = gateway
        self.tools = {tool.name: tool for tool in tools}
        self.tool_definitions = [tool.get_definition() for tool in tools]
        self.max_iterations = max_iterations
        self.max_history_turns = max_history_turns
        self.system_prompt = system_prompt

    def build_context(self, message: str, history: Sequence[ConversationTurn]) -> List[Message]:
        """System prompt, the most recent history turns, then the new user turn."""
        messages = [Message(role="system", content=self.system_prompt)]

        recent = list(history)[-self.max_history_turns:] if self.max_history_turns > 0 else []
        for turn in recent:
            messages.append(Message(role=turn.role, content=turn.content))

        messages.append(Message(role="user", content=message))
        return messages

    def run(self, message: str, history: Sequence[ConversationTurn] = ()) -> AgentTurnResult:
        """
        Run one assistant turn.

        Args:
            message: The shopper's message
            history: Earlier turns supplied by the caller

        Returns:
            AgentTurnResult (iteration cap is a normal outcome, not an error)

        Raises:
            ModelGatewayError: If the model provider fails
        """
        language = detect_language(message)
        state = AgentState.BUILDING_CONTEXT
        messages: List[Message] = []
        response: Optional[LLMResponse] = None
        round_trips = 0

        candidates: List[ProductSummary] = []
        shown: Optional[List[ProductSummary]] = None
        tools_used: List[ToolUsage] = []

        while state != AgentState.DONE:
            if state == AgentState.BUILDING_CONTEXT:
                messages = self.build_context(message, history)

            elif state == AgentState.AWAITING_MODEL:
                logger.info(f"Agent round-trip {round_trips + 1}/{self.max_iterations}")
                response = self.gateway.complete(messages, self.tool_definitions)
                round_trips += 1

            elif state == AgentState.DISPATCHING_TOOLS:
                messages.append(Message(
                    role="assistant",
                    content=response.content or "",
                    tool_calls=response.tool_calls
                ))

                for tool_call in response.tool_calls:
                    result, arguments = self._execute(tool_call.name, tool_call.arguments)
                    tools_used.append(ToolUsage(
                        tool_name=tool_call.name,
                        arguments=arguments,
                        result=result.result
                    ))

                    if result.tool_name == "show_products":
                        shown = result.products or []
                    elif result.tool_name == "search_products" and result.products:
                        candidates = result.products

                    messages.append(Message(
                        role="tool",
                        content=json.dumps(result.result, ensure_ascii=False),
                        tool_call_id=tool_call.id,
                        name=tool_call.name
                    ))

            state = next_state(state, response, round_trips, self.max_iterations)

        products = shown if shown is not None else candidates

        if response is not None and response.tool_calls:
            logger.warning(f"Agent iteration cap reached after {round_trips} round-trips")
            return AgentTurnResult(
                reply=ITERATION_CAP_REPLY[language],
                products=products,
                shown_products=shown,
                tools_used=tools_used,
                round_trips=round_trips,
                termination=Termination.ITERATION_CAP_EXCEEDED
            )

        logger.info(f"Agent answered in {round_trips} round-trips")
        reply = (response.content or "").strip() if response else ""
        return AgentTurnResult(
            reply=reply or EMPTY_REPLY[language],
            products=products,
            shown_products=shown,
            tools_used=tools_used,
            round_trips=round_trips,
            termination=Termination.ANSWERED
        )

    def _execute(
        self,
        tool_name: str,
        raw_arguments: Dict[str, Any]
    ) -> Tuple[ToolResult, Dict[str, Any]]:
        """Validate arguments and run one tool; unknown tools get an error payload."""
        tool = self.tools.get(tool_name)
        if tool is None:
            logger.warning(f"Model requested unknown tool '{tool_name}'")
            error = f"Unknown tool '{tool_name}'"
            return ToolResult(
                tool_name=tool_name,
                success=False,
                result={"error": error},
                error=error
            ), dict(raw_arguments or {})

        args = tool.parse_arguments(raw_arguments)
        return tool.execute(args), args.model_dump(mode="json", exclude_none=True)
