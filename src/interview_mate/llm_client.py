"""Chat completion access for interview analysis via Microsoft Agent Framework.

The analysis code only sees :class:`ChatMessage` and :class:`ChatClient`.
Framework modules are resolved when a client is constructed, based on the
configured provider, so a missing or broken install surfaces as a
descriptive :class:`LLMIntegrationError` instead of an import failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import import_module
from typing import Any, AsyncIterator, Iterable, List

from .config import ModelSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChatMessage:
    """Role and text of one prompt or reply message."""

    role: str
    content: str


class LLMIntegrationError(RuntimeError):
    """Raised when the chat client cannot be initialized."""


def _load(module_name: str) -> Any:
    try:
        return import_module(module_name)
    except ModuleNotFoundError as exc:
        missing = exc.name or "a required dependency"
        raise LLMIntegrationError(
            "Microsoft Agent Framework dependency '{missing}' is missing. "
            "Reinstall the project dependencies (e.g. `pip install -e .`)."
            .format(missing=missing)
        ) from exc


class ChatClient:
    """Dispatches chat completion calls through an Agent Framework client."""

    def __init__(self, settings: ModelSettings) -> None:
        self._settings = settings
        self._framework = _load("agent_framework")
        self._client = self._create_client(settings)

    @staticmethod
    def _create_client(settings: ModelSettings) -> Any:
        provider = settings.provider.lower()
        if provider in {"azure-openai", "azure_openai", "azure"}:
            module = _load("agent_framework.azure")
            client_cls = getattr(module, "AzureOpenAIChatClient")
            return client_cls(
                api_key=settings.api_key,
                deployment_name=settings.model,
                endpoint=settings.endpoint,
                api_version=settings.api_version,
            )
        if provider in {"openai", "oai"}:
            module = _load("agent_framework.openai")
            client_cls = getattr(module, "OpenAIChatClient")
            return client_cls(
                api_key=settings.api_key,
                model_id=settings.model,
                base_url=settings.endpoint,
            )
        raise LLMIntegrationError(
            f"Unsupported model provider '{settings.provider}'."
        )

    @staticmethod
    def _merge_consecutive_roles(
        messages: Iterable[ChatMessage],
    ) -> List[ChatMessage]:
        """Combine adjacent messages that share the same role."""

        merged: List[ChatMessage] = []
        for message in messages:
            if merged and merged[-1].role == message.role:
                previous = merged[-1]
                previous.content = (
                    f"{previous.content}\n\n{message.content}".strip()
                )
                continue
            merged.append(
                ChatMessage(role=message.role, content=message.content)
            )
        return merged

    def _to_framework(self, messages: Iterable[ChatMessage]) -> List[Any]:
        message_cls = getattr(self._framework, "ChatMessage")
        role_cls = getattr(self._framework, "Role")
        payload: List[Any] = []
        for message in self._merge_consecutive_roles(messages):
            try:
                role = role_cls(message.role)
            except ValueError as exc:
                raise ValueError(
                    f"Unsupported role for chat message: {message.role}"
                ) from exc
            payload.append(message_cls(role=role, text=message.content))
        return payload

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        """Execute a single chat completion call."""

        response = await self._client.get_response(
            messages=self._to_framework(messages)
        )
        return ChatMessage(role="assistant", content=response.text or "")

    async def stream(self, messages: Iterable[ChatMessage]) -> AsyncIterator[str]:
        """Yield response text incrementally as the model produces it."""

        payload = self._to_framework(messages)
        async for update in self._client.get_streaming_response(messages=payload):
            text = getattr(update, "text", None)
            if text:
                yield text
