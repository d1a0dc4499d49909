"""Anthropic Claude LLM client implementation."""

import logging
from typing import Optional, List, Dict, Any

import anthropic

from .base_client import (
    BaseLLMClient, Message, LLMResponse, ToolCall, LLMProviderError, decode_tool_arguments,
)

logger = logging.getLogger(__name__)


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client implementation."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[Any] = None
    ):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key for this client
            model: Model to use (default: claude-sonnet-4-20250514)
            timeout: Request timeout in seconds
            client: Preconstructed SDK client (tests)
        """
        if not api_key and client is None:
            raise ValueError("anthropic client requires an API key")

        self.model = model or self.DEFAULT_MODEL
        self.client = client or anthropic.Anthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )
        logger.info(f"Anthropic client initialized with model: {self.model}")

    def _convert_messages(self, messages: List[Message]):
        """Split out the system prompt and convert turns to content blocks."""
        system_content = ""
        conversation_messages: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_content += msg.content + "\n"
            elif msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content
                }
                # Results for one assistant turn travel together in a single user message
                previous = conversation_messages[-1] if conversation_messages else None
                if (
                    previous
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and previous["content"]
                    and previous["content"][0].get("type") == "tool_result"
                ):
                    previous["content"].append(block)
                else:
                    conversation_messages.append({"role": "user", "content": [block]})
            elif msg.role == "assistant" and msg.tool_calls:
                content_blocks = []
                if msg.content:
                    content_blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    content_blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments
                    })
                conversation_messages.append({"role": "assistant", "content": content_blocks})
            else:
                conversation_messages.append({"role": msg.role, "content": msg.content})

        return system_content.strip(), conversation_messages

    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000
    ) -> LLMResponse:
        """Send chat completion request to Anthropic."""
        system_content, conversation_messages = self._convert_messages(messages)

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation_messages,
        }

        if system_content:
            kwargs["system"] = system_content

        # Convert OpenAI-style function definitions to Anthropic tools
        if tools:
            kwargs["tools"] = [
                {
                    "name": tool["function"]["name"],
                    "description": tool["function"].get("description", ""),
                    "input_schema": tool["function"].get("parameters", {})
                }
                for tool in tools
                if tool.get("type") == "function"
            ]

        try:
            response = self.client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            raise LLMProviderError(e.message, status_code=e.status_code) from e
        except anthropic.APITimeoutError as e:
            raise LLMProviderError("anthropic request timed out") from e
        except anthropic.APIError as e:
            raise LLMProviderError(f"anthropic API error: {e}") from e

        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=decode_tool_arguments(block.input)
                ))

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        return LLMResponse(
            content=content,
            tool_calls=tool_calls if tool_calls else None,
            usage=usage,
            finish_reason=response.stop_reason
        )

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return "anthropic"

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
