"""OpenAI-compatible LLM client (OpenAI, Groq)."""

import json
import logging
from typing import Optional, List, Dict, Any

import openai
from openai import OpenAI

from .base_client import (
    BaseLLMClient, Message, LLMResponse, ToolCall, LLMProviderError, decode_tool_arguments,
)

logger = logging.getLogger(__name__)


class OpenAIClient(BaseLLMClient):
    """Chat completions client for OpenAI and OpenAI-compatible endpoints."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        provider_name: str = "openai",
        client: Optional[Any] = None
    ):
        """
        Initialize OpenAI-compatible client.

        Args:
            api_key: API key for this client (one credential per client)
            model: Model to use
            base_url: Endpoint override (e.g. https://api.groq.com/openai/v1)
            timeout: Request timeout in seconds
            provider_name: Name reported by get_provider_name()
            client: Preconstructed SDK client (tests)
        """
        if not api_key and client is None:
            raise ValueError(f"{provider_name} client requires an API key")

        self.model = model or self.DEFAULT_MODEL
        self.provider_name = provider_name
        # Retries are owned by the gateway (credential rotation, schema repair)
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        logger.info(f"{provider_name} client initialized with model: {self.model}")

    def _to_openai_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        openai_messages = []
        for msg in messages:
            openai_msg: Dict[str, Any] = {"role": msg.role, "content": msg.content}
            if msg.tool_call_id:
                openai_msg["tool_call_id"] = msg.tool_call_id
            if msg.name and msg.role == "tool":
                openai_msg["name"] = msg.name
            # Include tool_calls for assistant messages that made tool calls
            if msg.tool_calls:
                openai_msg["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments, ensure_ascii=False)
                        }
                    }
                    for tc in msg.tool_calls
                ]
            openai_messages.append(openai_msg)
        return openai_messages

    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000
    ) -> LLMResponse:
        """Send chat completion request."""
        kwargs = {
            "model": self.model,
            "messages": self._to_openai_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            raise LLMProviderError(e.message, status_code=e.status_code) from e
        except openai.APITimeoutError as e:
            raise LLMProviderError(f"{self.provider_name} request timed out") from e
        except openai.APIError as e:
            raise LLMProviderError(f"{self.provider_name} API error: {e}") from e

        if not response.choices:
            raise LLMProviderError(f"{self.provider_name} response missing assistant message")

        choice = response.choices[0]
        content = choice.message.content or ""

        tool_calls = None
        if choice.message.tool_calls:
            tool_calls = [
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=decode_tool_arguments(tc.function.arguments)
                )
                for tc in choice.message.tool_calls
            ]

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            usage=usage,
            finish_reason=choice.finish_reason
        )

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return self.provider_name

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
