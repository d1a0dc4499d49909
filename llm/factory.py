"""LLM client factory."""

from enum import Enum
from typing import List, Optional

from .base_client import BaseLLMClient
from .openai_client import OpenAIClient
from .anthropic_client import AnthropicClient
from .gateway import ModelGateway


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GROQ = "groq"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


GROQ_BASE_URL = "https://api.groq.com/openai/v1"


def create_llm_client(
    provider: LLMProvider,
    api_key: str,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: float = 30.0
) -> BaseLLMClient:
    """
    Create an LLM client for the specified provider.

    Args:
        provider: LLM provider (groq, openai or anthropic)
        api_key: API key for the provider
        model: Optional model override
        base_url: Optional endpoint override (OpenAI-compatible providers)
        timeout: Request timeout in seconds

    Returns:
        Configured LLM client

    Raises:
        ValueError: If provider is not supported
    """
    if provider == LLMProvider.GROQ:
        return OpenAIClient(
            api_key=api_key,
            model=model or "llama-3.3-70b-versatile",
            base_url=base_url or GROQ_BASE_URL,
            timeout=timeout,
            provider_name="groq",
        )
    elif provider == LLMProvider.OPENAI:
        return OpenAIClient(api_key=api_key, model=model, base_url=base_url, timeout=timeout)
    elif provider == LLMProvider.ANTHROPIC:
        return AnthropicClient(api_key=api_key, model=model, timeout=timeout)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


def create_model_gateway(
    provider: LLMProvider,
    api_keys: List[str],
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: float = 30.0,
    temperature: float = 0.3,
    max_tokens: int = 1024
) -> ModelGateway:
    """
    Build a gateway with one client per credential, in the given order.

    Raises:
        ValueError: If no credentials are supplied
    """
    if not api_keys:
        raise ValueError(f"No API keys configured for {provider.value}")

    clients = [
        create_llm_client(provider, api_key=key, model=model, base_url=base_url, timeout=timeout)
        for key in api_keys
    ]
    return ModelGateway(clients, temperature=temperature, max_tokens=max_tokens)
