"""Tests for the tool-calling agent loop."""

import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest
from llm.base_client import LLMResponse, ToolCall
from llm.gateway import ModelGatewayError
from react.loop import AgentLoop, AgentState, Termination, next_state
from react.prompts import ITERATION_CAP_REPLY, EMPTY_REPLY
from react.tools import build_default_tools
from retrieval.query_normalizer import QueryNormalizer
from retrieval.sqlite_catalog import SQLiteCatalog
from schemas.chat import ConversationTurn


PRODUCTS = [
    {"id": "p1", "name": "Anker Nano 65W", "description": "GaN wall charger", "price": 450,
     "category": "accessory", "brand": "Anker"},
    {"id": "p2", "name": "Samsung 25W Adapter", "description": "Super fast charger", "price": 350,
     "category": "accessory", "brand": "Samsung"},
    {"id": "p3", "name": "Apple 20W Adapter", "description": "Original charger", "price": 900,
     "category": "accessory", "brand": "Apple"},
    {"id": "p4", "name": "iPhone 15", "description": "128GB smartphone", "price": 45000,
     "category": "phone", "brand": "Apple"},
]


def _tool_response(*calls) -> LLMResponse:
    return LLMResponse(
        content="",
        tool_calls=[ToolCall(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)],
    )


def _text_response(text: str) -> LLMResponse:
    return LLMResponse(content=text)


class TestNextState:
    """Test the pure transition function."""

    def test_build_to_await(self):
        """Test context building always leads to a model call."""
        assert next_state(AgentState.BUILDING_CONTEXT) == AgentState.AWAITING_MODEL

    def test_text_reply_is_done(self):
        """Test a reply without tool calls ends the turn."""
        assert next_state(AgentState.AWAITING_MODEL, _text_response("hi"), 1) == AgentState.DONE

    def test_tool_calls_dispatch(self):
        """Test tool calls lead to dispatch."""
        response = _tool_response(("get_price_range", {}))
        assert next_state(AgentState.AWAITING_MODEL, response, 1) == AgentState.DISPATCHING_TOOLS

    def test_dispatch_respects_cap(self):
        """Test dispatch returns to the model until the cap is reached."""
        assert next_state(AgentState.DISPATCHING_TOOLS, None, 4, 5) == AgentState.AWAITING_MODEL
        assert next_state(AgentState.DISPATCHING_TOOLS, None, 5, 5) == AgentState.DONE

    def test_done_is_terminal(self):
        """Test DONE has no successor."""
        with pytest.raises(ValueError):
            next_state(AgentState.DONE)


class TestAgentLoop:
    """Test full turns against a SQLite catalog with a scripted model."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tmp_dir = tempfile.mkdtemp()
        catalog = SQLiteCatalog(db_path=str(Path(self.tmp_dir) / "catalog.db"))
        catalog.add_products(PRODUCTS)
        self.tools = build_default_tools(catalog, QueryNormalizer())
        self.gateway = Mock()

    def teardown_method(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _loop(self, *responses, **kwargs) -> AgentLoop:
        self.gateway.complete.side_effect = list(responses)
        return AgentLoop(self.gateway, self.tools, **kwargs)

    def test_search_then_show(self):
        """Test the shown products, not all search results, are returned."""
        loop = self._loop(
            _tool_response(("search_products", {"query": "شاحن", "max_price": 500})),
            _tool_response(("show_products", {"ids": ["p2"]})),
            _text_response("ده أنسب شاحن في ميزانيتك."),
        )

        result = loop.run("عايز شاحن تحت 500")

        assert result.termination == Termination.ANSWERED
        assert result.round_trips == 3
        assert result.reply == "ده أنسب شاحن في ميزانيتك."
        assert [p.id for p in result.products] == ["p2"]
        assert [p.id for p in result.shown_products] == ["p2"]
        assert [u.tool_name for u in result.tools_used] == ["search_products", "show_products"]
        assert result.tools_used[0].arguments == {"query": "شاحن", "max_price": 500.0}
        assert {p["id"] for p in result.tools_used[0].result["products"]} == {"p1", "p2"}

    def test_charger_under_500(self):
        """Test the reply carries the curated show_products set rather than the raw search set."""
        loop = self._loop(
            _tool_response(("search_products", {"query": "charger", "max_price": "500"})),
            _tool_response(("show_products", {"ids": ["p1"]})),
            _text_response("Here are some chargers"),
        )

        result = loop.run("charger under 500")

        assert result.reply == "Here are some chargers"
        assert {p["id"] for p in result.tools_used[0].result["products"]} == {"p1", "p2"}
        assert [p.id for p in result.products] == ["p1"]

    def test_search_results_are_fallback(self):
        """Test the last non-empty search is returned when show_products never ran."""
        loop = self._loop(
            _tool_response(("search_products", {"query": "charger", "sort": "price_asc"})),
            _tool_response(("search_products", {"query": "toaster"})),
            _text_response("Here are some chargers."),
        )

        result = loop.run("charger")

        assert [p.id for p in result.products] == ["p2", "p1", "p3"]
        assert result.shown_products is None

    def test_direct_answer(self):
        """Test a plain reply needs one round-trip and no tools."""
        loop = self._loop(_text_response("Hi! What are you looking for?"))

        result = loop.run("hello")

        assert result.round_trips == 1
        assert result.products == []
        assert result.tools_used == []

    def test_iteration_cap(self):
        """Test the loop stops after exactly five model calls with a localized fallback."""
        loop = self._loop(*[_tool_response(("get_price_range", {})) for _ in range(10)])

        result = loop.run("أرخص حاجة عندكم ايه؟")

        assert self.gateway.complete.call_count == 5
        assert result.round_trips == 5
        assert result.termination == Termination.ITERATION_CAP_EXCEEDED
        assert result.reply == ITERATION_CAP_REPLY["ar"]
        assert len(result.tools_used) == 5

    def test_tool_messages_follow_assistant_turn(self):
        """Test each tool result is sent back with its call id, in call order."""
        loop = self._loop(
            _tool_response(("get_price_range", {"category": "phone"}), ("search_products", {"query": "iphone"})),
            _text_response("done"),
        )

        loop.run("phones?")

        second_call = self.gateway.complete.call_args_list[1][0][0]
        assert second_call[-3].role == "assistant"
        assert [m.tool_call_id for m in second_call[-2:]] == ["call_0", "call_1"]
        assert json.loads(second_call[-2].content) == {
            "min_price": 45000.0, "max_price": 45000.0, "total_count": 1, "category": "phone",
        }

    def test_unknown_tool_reported_to_model(self):
        """Test an unknown tool yields an error payload instead of failing the turn."""
        loop = self._loop(_tool_response(("add_to_cart", {"id": "p1"})), _text_response("Sorry."))

        result = loop.run("add it to my cart")

        assert result.reply == "Sorry."
        assert result.tools_used[0].result == {"error": "Unknown tool 'add_to_cart'"}

    def test_empty_show_products(self):
        """Test an explicit empty show_products clears the product list."""
        loop = self._loop(
            _tool_response(("search_products", {"query": "charger"})),
            _tool_response(("show_products", {"ids": []})),
            _text_response(""),
        )

        result = loop.run("charger")

        assert result.products == []
        assert result.shown_products == []
        assert result.reply == EMPTY_REPLY["en"]

    def test_history_window(self):
        """Test only the most recent history turns are sent."""
        history = [
            ConversationTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}")
            for i in range(30)
        ]
        loop = self._loop(_text_response("ok"), max_history_turns=24)

        loop.run("latest", history)

        sent = self.gateway.complete.call_args[0][0]
        assert sent[0].role == "system"
        assert len(sent) == 1 + 24 + 1
        assert sent[1].content == "turn 6"
        assert sent[-1].content == "latest"

    def test_gateway_failure_propagates(self):
        """Test provider failures are raised to the caller."""
        loop = self._loop(ModelGatewayError("All 3 model credentials failed"))

        with pytest.raises(ModelGatewayError):
            loop.run("hello")
