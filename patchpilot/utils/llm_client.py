import time
from typing import Optional

from anthropic import AsyncAnthropic

from patchpilot.agents.errors import ReasoningProviderUnavailable
from patchpilot.integrations.connection_config import DEFAULT_LLM_MODEL
from patchpilot.models.schemas import TokenUsage
from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)


def _preview(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class LLMResponse:
    """Wrapper for Anthropic API response."""
    def __init__(self, text: str, input_tokens: int, output_tokens: int):
        self.text = text
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens


class AnthropicClient:
    """Reasoning provider: chat completion over the Anthropic API with token tracking."""

    def __init__(
        self,
        agent_name: str = "unknown",
        model: str = DEFAULT_LLM_MODEL,
        api_key: Optional[str] = None,
        max_tokens: int = 4096,
    ):
        if not api_key:
            raise ReasoningProviderUnavailable(
                "ANTHROPIC_API_KEY is not set",
                user_message="Reasoning provider is not configured: set ANTHROPIC_API_KEY",
            )
        self.agent_name = agent_name
        self.model = model
        self.max_tokens = max_tokens
        self._client = AsyncAnthropic(api_key=api_key)
        self._total_input_tokens = 0
        self._total_output_tokens = 0

    async def complete_chat(self, messages: list[dict], temperature: float = 0.1) -> str:
        """Complete an ordered list of role-tagged messages and return the text.

        ``system`` messages are folded into the system prompt; the rest are sent
        in order.
        """
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        conversation = [m for m in messages if m["role"] != "system"]
        response = await self.chat(
            prompt="",
            system="\n\n".join(system_parts) or None,
            messages=conversation,
            max_tokens=self.max_tokens,
            temperature=temperature,
        )
        return response.text

    async def chat(
        self,
        prompt: str,
        system: str | None = None,
        messages: list[dict] | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """Send a message to Claude and track token usage."""
        if messages is None:
            messages = [{"role": "user", "content": prompt}]

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        logger.info("LLM call", extra={
            "agent_name": self.agent_name,
            "action": "llm_call",
            "extra": {
                "model": self.model,
                "system": _preview(system, 500) if system else None,
                "messages": [
                    {"role": m["role"], "content": _preview(m.get("content", ""), 1000)}
                    for m in messages
                ],
                "temperature": temperature,
            },
        })

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as e:
            logger.error("LLM call failed", extra={"agent_name": self.agent_name, "action": "llm_error", "extra": str(e)})
            raise

        elapsed_ms = round((time.monotonic() - start) * 1000)
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        self._total_input_tokens += input_tokens
        self._total_output_tokens += output_tokens

        text = response.content[0].text if response.content else ""

        logger.info("LLM response", extra={
            "agent_name": self.agent_name,
            "action": "llm_response",
            "duration_ms": elapsed_ms,
            "extra": {
                "tokens": {"input": input_tokens, "output": output_tokens},
                "response": _preview(text, 2000),
                "stop_reason": response.stop_reason,
            },
        })

        return LLMResponse(
            text=text,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    def get_total_usage(self) -> TokenUsage:
        """Get cumulative token usage for this client instance."""
        return TokenUsage(
            agent_name=self.agent_name,
            input_tokens=self._total_input_tokens,
            output_tokens=self._total_output_tokens,
            total_tokens=self._total_input_tokens + self._total_output_tokens,
        )

    def reset_usage(self) -> None:
        """Reset token counters."""
        self._total_input_tokens = 0
        self._total_output_tokens = 0
