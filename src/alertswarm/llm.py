"""LLM completion service.

AlertSwarm supports either:
- Anthropic (via langchain-anthropic)
- OpenAI-compatible (via langchain-openai)

The provider is chosen in `alertswarm.config.LLMConfig`. The planner only
depends on the `LLMCompletionService` protocol: a prompt goes in, free
text comes out.
"""

from __future__ import annotations

import os
from typing import Any, Optional, Protocol

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from pydantic import BaseModel, Field

from alertswarm.config import LLMConfig

logger = structlog.get_logger()


class LLMProviderError(ValueError):
    """Raised when the configured LLM provider is invalid or incomplete."""


class Completion(BaseModel):
    """Text returned by the completion service."""

    text: str
    usage: dict[str, Any] = Field(default_factory=dict)


class LLMCompletionService(Protocol):
    async def complete(self, prompt: str) -> Completion: ...


def create_chat_model(
    llm_config: LLMConfig,
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    **kwargs: Any,
) -> BaseChatModel:
    """Create a chat model for the configured provider.

    Args:
        llm_config: LLM configuration.
        model: Model name override.
        temperature: Sampling temperature override.
        max_tokens: Maximum tokens override.
        kwargs: Provider-specific keyword args.

    Returns:
        A LangChain chat model instance.

    Raises:
        LLMProviderError: If the provider is unknown or its key is missing.
    """
    model = model or llm_config.model
    temperature = llm_config.temperature if temperature is None else temperature
    max_tokens = max_tokens or llm_config.max_tokens

    if llm_config.provider == "anthropic":
        if not llm_config.anthropic_api_key:
            raise LLMProviderError("ANTHROPIC_API_KEY is required when ALERTSWARM_LLM_PROVIDER=anthropic")

        from langchain_anthropic import ChatAnthropic

        anthropic_kwargs: dict[str, Any] = {
            "model": model,
            "api_key": llm_config.anthropic_api_key,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": llm_config.timeout_seconds,
            **kwargs,
        }
        if llm_config.anthropic_base_url:
            anthropic_kwargs["base_url"] = llm_config.anthropic_base_url
        return ChatAnthropic(**anthropic_kwargs)

    if llm_config.provider == "openai":
        if not llm_config.openai_api_key:
            raise LLMProviderError("OPENAI_API_KEY is required when ALERTSWARM_LLM_PROVIDER=openai")

        from langchain_openai import ChatOpenAI

        openai_kwargs: dict[str, Any] = {
            "model": model,
            "api_key": llm_config.openai_api_key,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": llm_config.timeout_seconds,
            **kwargs,
        }
        if llm_config.openai_base_url:
            openai_kwargs["base_url"] = llm_config.openai_base_url
        elif os.getenv("OPENAI_BASE_URL"):
            openai_kwargs["base_url"] = os.environ["OPENAI_BASE_URL"]
        if llm_config.openai_organization:
            openai_kwargs["organization"] = llm_config.openai_organization
        return ChatOpenAI(**openai_kwargs)

    raise LLMProviderError(
        f"Unsupported LLM provider: {llm_config.provider!r}. Expected 'anthropic' or 'openai'."
    )


def _content_to_text(content: Any) -> str:
    # Anthropic may return a list of content blocks
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content)


class ChatModelCompletionService:
    """Completion service backed by a LangChain chat model."""

    def __init__(self, chat_model: BaseChatModel):
        self._chat_model = chat_model

    @classmethod
    def from_config(cls, llm_config: LLMConfig) -> "ChatModelCompletionService":
        return cls(create_chat_model(llm_config))

    async def complete(self, prompt: str) -> Completion:
        response = await self._chat_model.ainvoke([HumanMessage(content=prompt)])
        usage = getattr(response, "usage_metadata", None) or {}
        return Completion(text=_content_to_text(response.content), usage=dict(usage))
