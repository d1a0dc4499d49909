"""LLM client abstraction layer."""

from .base_client import BaseLLMClient, Message, LLMResponse, ToolCall, LLMProviderError
from .gateway import ModelGateway, ModelGatewayError
from .factory import create_llm_client, create_model_gateway, LLMProvider

__all__ = [
    "BaseLLMClient",
    "Message",
    "LLMResponse",
    "ToolCall",
    "LLMProviderError",
    "ModelGateway",
    "ModelGatewayError",
    "create_llm_client",
    "create_model_gateway",
    "LLMProvider",
]
