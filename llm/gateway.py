"""Model gateway: credential failover and schema repair around LLM clients."""

import logging
import re
from typing import Dict, List, Optional

from .base_client import BaseLLMClient, LLMProviderError, LLMResponse, Message

logger = logging.getLogger(__name__)

RATE_LIMIT_PATTERN = re.compile(
    r"rate[ _-]?limit|too many requests|quota|tokens per (minute|day)|requests per (minute|day)",
    re.IGNORECASE,
)

SCHEMA_ERROR_PATTERN = re.compile(
    r"tool_use_failed|failed to call a function|tool call validation|"
    r"did not match schema|invalid.*tool.*argument|parameters for tool",
    re.IGNORECASE,
)

SCHEMA_REPAIR_INSTRUCTION = (
    "Your previous tool call was rejected because its arguments did not match the "
    "tool schema. Call the tool again: omit optional fields you do not need, never "
    "send null for optional parameters, and match the schema exactly."
)


class ModelGatewayError(Exception):
    """Completion failed on every available credential."""


def is_rate_limit_error(error: LLMProviderError) -> bool:
    """Provider says this credential is out of capacity."""
    return error.status_code == 429 or bool(RATE_LIMIT_PATTERN.search(str(error)))


def is_schema_error(error: LLMProviderError) -> bool:
    """Provider rejected the model's own tool arguments."""
    if error.status_code not in (None, 400, 422):
        return False
    return bool(SCHEMA_ERROR_PATTERN.search(str(error)))


class ModelGateway:
    """
    Sends a conversation to the completion provider.

    Clients are tried in order, one credential each. A rate-limited, rejected
    or unreachable credential hands over to the next one. A tool-argument
    schema failure is retried once on the same credential with a corrective
    instruction; if that retry fails for any reason other than a rate limit,
    the call fails outright.
    """

    def __init__(
        self,
        clients: List[BaseLLMClient],
        temperature: float = 0.3,
        max_tokens: int = 1024
    ):
        """
        Initialize gateway.

        Args:
            clients: Ordered clients, one per credential
            temperature: Sampling temperature
            max_tokens: Maximum tokens per completion
        """
        if not clients:
            raise ValueError("ModelGateway needs at least one client")

        self.clients = list(clients)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _call(
        self,
        client: BaseLLMClient,
        messages: List[Message],
        tools: Optional[List[Dict]]
    ) -> LLMResponse:
        return client.chat(
            messages=messages,
            tools=tools,
            temperature=self.temperature,
            max_tokens=self.max_tokens
        )

    def _complete_with(
        self,
        client: BaseLLMClient,
        messages: List[Message],
        tools: Optional[List[Dict]]
    ) -> LLMResponse:
        """Call one credential, with a single schema-repair retry."""
        try:
            return self._call(client, messages, tools)
        except LLMProviderError as e:
            if not is_schema_error(e):
                raise
            logger.warning(f"Tool schema validation failed, retrying with repair instruction: {e}")

        repaired = list(messages) + [Message(role="system", content=SCHEMA_REPAIR_INSTRUCTION)]
        try:
            return self._call(client, repaired, tools)
        except LLMProviderError as e:
            # Only capacity problems may move on to the next credential after a repair
            if is_rate_limit_error(e):
                raise
            logger.error(f"Schema repair retry failed: {e}")
            raise ModelGatewayError(f"Model call failed after schema repair: {e}") from e

    def complete(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None
    ) -> LLMResponse:
        """
        Get the assistant's next turn.

        Args:
            messages: Conversation so far
            tools: Tool manifest

        Returns:
            LLMResponse holding plain text or tool calls

        Raises:
            ModelGatewayError: Persistent schema mismatch, or every credential failed
        """
        last_error: Optional[LLMProviderError] = None
        total = len(self.clients)

        for index, client in enumerate(self.clients):
            try:
                return self._complete_with(client, messages, tools)
            except LLMProviderError as e:
                last_error = e
                reason = "rate limited" if is_rate_limit_error(e) else "failed"
                if index + 1 < total:
                    logger.warning(
                        f"Credential {index + 1}/{total} {reason}, rotating to next: {e}"
                    )
                else:
                    logger.error(f"Credential {index + 1}/{total} {reason}, none left: {e}")

        raise ModelGatewayError(f"All {total} model credentials failed; last error: {last_error}")
