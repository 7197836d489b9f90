"""Completion provider contract and LangChain-backed implementation."""

from __future__ import annotations

import re
from typing import Any, Protocol

ChatMessage = dict[str, str]

_FENCE_START = re.compile(r"^```(?:json)?\s*", flags=re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")


class CompletionProvider(Protocol):
    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        model: str | None = None,
    ) -> str:
        """Return the assistant text for `messages`."""


class LangChainCompletionProvider:
    """Adapts a LangChain chat model to the completion contract.

    `model` overrides are resolved through `models`, a mapping of model name
    to chat model instance; unknown names fall back to the default model.
    """

    def __init__(self, llm: Any, *, models: dict[str, Any] | None = None) -> None:
        self.llm = llm
        self.models = dict(models or {})

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        model: str | None = None,
    ) -> str:
        llm = self.models.get(model, self.llm) if model else self.llm
        response = await llm.bind(temperature=temperature).ainvoke(messages)
        return message_text(response)


def create_openai_provider(
    *,
    api_key: str,
    model_names: list[str],
    timeout: float,
    max_retries: int,
) -> LangChainCompletionProvider:
    """Build one `ChatOpenAI` client per distinct model name."""

    from langchain_openai import ChatOpenAI

    models: dict[str, Any] = {}
    for name in model_names:
        if name not in models:
            models[name] = ChatOpenAI(
                model=name,
                api_key=api_key,
                timeout=timeout,
                max_retries=max_retries,
            )
    return LangChainCompletionProvider(models[model_names[0]], models=models)


def message_text(message: Any) -> str:
    if isinstance(message, str):
        return message
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding ```json fence that models like to add."""
    return _FENCE_END.sub("", _FENCE_START.sub("", raw.strip())).strip()
