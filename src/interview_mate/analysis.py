"""AI interview analysis built on the chat client."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from .config import ModelSettings
from .llm_client import ChatClient, ChatMessage, LLMIntegrationError
from .models import InterviewRecord
from .prompts import (
    DEFAULT_ORGANIZATION,
    SYSTEM_PROMPT,
    build_analysis_prompt,
    build_interview_context,
)
from .schema import Stage

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "AI 분석 기능이 설정되지 않았습니다. 관리자에게 문의하세요."
NO_CONTENT_MESSAGE = "분석할 인터뷰 답변이 없습니다. 답변을 먼저 입력해주세요."
TIMEOUT_MESSAGE = "AI 분석 시간이 초과되었습니다. 잠시 후 다시 시도해주세요."
ERROR_MESSAGE = "AI 어시스턴트와 통신하는 중 오류가 발생했습니다."
EMPTY_RESPONSE_MESSAGE = "요약을 생성하지 못했습니다."

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]
ClientFactory = Callable[[ModelSettings], Any]


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Analysis output. ``succeeded`` is false when ``text`` is a user-facing error."""

    text: str
    succeeded: bool


class InterviewAnalyzer:
    """Request a structured Korean interview report from the model.

    Failures never raise: they come back as an unsuccessful
    :class:`AnalysisResult` carrying a message that can be shown as-is.
    """

    def __init__(
        self,
        settings: Optional[ModelSettings],
        *,
        timeout: float = 90.0,
        organization: str = DEFAULT_ORGANIZATION,
        client_factory: ClientFactory = ChatClient,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._organization = organization
        self._client_factory = client_factory
        self._client: Any = None

    @property
    def configured(self) -> bool:
        return self._settings is not None

    def _get_client(self) -> Any:
        if self._client is None:
            if self._settings is None:
                raise LLMIntegrationError(NOT_CONFIGURED_MESSAGE)
            self._client = self._client_factory(self._settings)
        return self._client

    def build_messages(
        self,
        record: InterviewRecord,
        stages: Sequence[Stage],
    ) -> List[ChatMessage]:
        return [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(
                role="user",
                content=build_analysis_prompt(record, stages, self._organization),
            ),
        ]

    async def analyze(
        self,
        record: InterviewRecord,
        stages: Sequence[Stage],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> AnalysisResult:
        if not self.configured:
            return AnalysisResult(NOT_CONFIGURED_MESSAGE, succeeded=False)
        if not build_interview_context(record, stages):
            return AnalysisResult(NO_CONTENT_MESSAGE, succeeded=False)

        messages = self.build_messages(record, stages)
        try:
            client = self._get_client()
            if on_chunk is None:
                response = await asyncio.wait_for(
                    client.complete(messages), timeout=self._timeout
                )
                text = response.content
            else:
                text = await asyncio.wait_for(
                    self._consume_stream(client, messages, on_chunk),
                    timeout=self._timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(
                "Interview analysis for record %s timed out after %ss",
                record.id,
                self._timeout,
            )
            return AnalysisResult(TIMEOUT_MESSAGE, succeeded=False)
        except LLMIntegrationError:
            logger.exception("Chat client could not be initialized")
            return AnalysisResult(ERROR_MESSAGE, succeeded=False)
        except Exception:  # noqa: BLE001 # pylint: disable=broad-except
            logger.exception("Interview analysis failed for record %s", record.id)
            return AnalysisResult(ERROR_MESSAGE, succeeded=False)

        if not text or not text.strip():
            return AnalysisResult(EMPTY_RESPONSE_MESSAGE, succeeded=False)
        return AnalysisResult(text, succeeded=True)

    @staticmethod
    async def _consume_stream(
        client: Any,
        messages: List[ChatMessage],
        on_chunk: ChunkCallback,
    ) -> str:
        parts: List[str] = []
        async for chunk in client.stream(messages):
            parts.append(chunk)
            result = on_chunk(chunk)
            if inspect.isawaitable(result):
                await result
        return "".join(parts)
