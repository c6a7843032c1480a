"""State machine behind the multi-stage interview form."""

from __future__ import annotations

import inspect
import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Set,
    Union,
)

from .analysis import AnalysisResult
from .answers import AnswerSheet
from .config import InterviewType
from .models import BasicInfo, InterviewRecord, ResumeAttachment, now_millis
from .schema import Question, Section, Stage, find_question, find_section

logger = logging.getLogger(__name__)

NAME_REQUIRED_MESSAGE = "지원자명을 입력해주세요."
CHECKPOINT_SAVED_MESSAGE = "임시 저장되었습니다."
SAVE_FAILED_MESSAGE = "저장 실패: {error}"
ANALYSIS_NEEDS_INFO_MESSAGE = "분석을 위해 기본 정보를 먼저 입력해주세요."


class EffectKind(str, Enum):
    SCROLL_TO_STAGE = "scroll_to_stage"
    FOCUS_FIELD = "focus_field"
    SHOW_ALERT = "show_alert"
    CLOSE_FORM = "close_form"


@dataclass(frozen=True, slots=True)
class Effect:
    """A UI side effect requested by the controller."""

    kind: EffectKind
    target: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"kind": self.kind.value, "target": self.target, "message": self.message}


class SaveMode(str, Enum):
    CHECKPOINT = "checkpoint"
    SAVE_AND_CLOSE = "save_and_close"


class ActionStatus(str, Enum):
    OK = "ok"
    INVALID = "invalid"
    FAILED = "failed"


PersistRecord = Callable[[InterviewRecord], Awaitable[None]]
UpdateCallback = Callable[[str], Union[None, Awaitable[None]]]


class Analyzer(Protocol):
    async def analyze(
        self,
        record: InterviewRecord,
        stages: Sequence[Stage],
        on_chunk: Optional[Callable[[str], Any]] = None,
    ) -> AnalysisResult:
        ...


def _accumulating(on_update: UpdateCallback) -> Callable[[str], Awaitable[None]]:
    received: List[str] = []

    async def on_chunk(chunk: str) -> None:
        received.append(chunk)
        result = on_update("".join(received))
        if inspect.isawaitable(result):
            await result

    return on_chunk


class InterviewFormController:
    """Drives one interview form from first stage to save-and-close.

    The controller never touches a UI directly. Scrolling, focusing,
    alerts and closing the form are queued as :class:`Effect` objects
    which the caller collects with :meth:`drain_effects`.
    """

    def __init__(
        self,
        stages: Sequence[Stage],
        *,
        persist: PersistRecord,
        analyzer: Analyzer,
        initial: Optional[InterviewRecord] = None,
        interview_type: InterviewType = InterviewType.STANDARD,
    ) -> None:
        if not stages:
            raise ValueError("An interview form needs at least one stage.")
        self.stages: List[Stage] = list(stages)
        self._persist = persist
        self._analyzer = analyzer

        if initial is not None:
            self.record_id = initial.id
            self.basic_info = replace(initial.basic_info)
            self.answers = initial.answers.copy()
            self.resume: Optional[ResumeAttachment] = initial.resume
            self.ai_summary: Optional[str] = initial.ai_summary
            self.created_at: Optional[int] = initial.created_at or None
        else:
            self.record_id = str(uuid.uuid4())
            self.basic_info = BasicInfo(interview_type=interview_type)
            self.answers = AnswerSheet()
            self.resume = None
            self.ai_summary = None
            self.created_at = None

        self.active_stage_index = 0
        self.expanded: Set[str] = set()
        self._expand_answered(self.stages[0])
        self.is_saving = False
        self.analysis_in_flight = 0
        self.completed = False
        self._effects: List[Effect] = []

    # Navigation -------------------------------------------------------

    @property
    def active_stage(self) -> Stage:
        return self.stages[self.active_stage_index]

    @property
    def is_last_stage(self) -> bool:
        return self.active_stage_index == len(self.stages) - 1

    @property
    def is_analyzing(self) -> bool:
        return self.analysis_in_flight > 0

    async def next_stage(self) -> ActionStatus:
        """Advance one stage; on the last stage, save and close instead."""

        if self.is_last_stage:
            return await self.save(SaveMode.SAVE_AND_CLOSE)
        self._activate(self.active_stage_index + 1)
        return ActionStatus.OK

    def prev_stage(self) -> bool:
        if self.active_stage_index == 0:
            return False
        self._activate(self.active_stage_index - 1)
        return True

    def jump_to_stage(self, stage_id: str) -> None:
        for index, stage in enumerate(self.stages):
            if stage.id == stage_id:
                self._activate(index)
                return
        raise KeyError(f"Unknown stage '{stage_id}'")

    def _activate(self, index: int) -> None:
        self.active_stage_index = index
        stage = self.stages[index]
        self._effects.append(Effect(EffectKind.SCROLL_TO_STAGE, target=stage.id))
        self._expand_answered(stage)

    def _expand_answered(self, stage: Stage) -> None:
        for question in stage.questions():
            if self.answers.has_answer(question.id):
                self.expanded.add(question.id)

    def visible_sections(self, stage: Optional[Stage] = None) -> List[Section]:
        return (stage or self.active_stage).visible_sections(self.basic_info.flags())

    def _visible_questions(self) -> List[Question]:
        questions: List[Question] = []
        for section in self.visible_sections():
            questions.extend(section.questions)
        return questions

    # Editing ----------------------------------------------------------

    def update_basic_info(self, **fields: Any) -> BasicInfo:
        self.basic_info = self.basic_info.with_changes(**fields)
        return self.basic_info

    def _require_question(self, question_id: str) -> Question:
        question = find_question(self.stages, question_id)
        if question is None:
            raise KeyError(f"Unknown question '{question_id}'")
        return question

    def _require_section(self, section_id: str) -> Section:
        section = find_section(self.stages, section_id)
        if section is None:
            raise KeyError(f"Unknown section '{section_id}'")
        return section

    def set_answer(self, question_id: str, text: str) -> None:
        self._require_question(question_id)
        self.answers.set_text(question_id, text)

    def toggle_question(self, question_id: str) -> bool:
        """Flip the expanded state of a question; return the new state."""

        self._require_question(question_id)
        if question_id in self.expanded:
            self.expanded.discard(question_id)
            return False
        self.expanded.add(question_id)
        return True

    def advance_focus(self, question_id: str, backwards: bool = False) -> Optional[str]:
        """Move focus to the neighbouring visible question of the active stage."""

        self._require_question(question_id)
        ordered = [question.id for question in self._visible_questions()]
        if question_id not in ordered:
            return None
        position = ordered.index(question_id) + (-1 if backwards else 1)
        if not 0 <= position < len(ordered):
            return None
        target = ordered[position]
        self.expanded.add(target)
        self._effects.append(Effect(EffectKind.FOCUS_FIELD, target=target))
        return target

    def set_notice(self, section_id: str, index: int, checked: bool) -> None:
        section = self._require_section(section_id)
        if not 0 <= index < len(section.notices):
            raise IndexError(f"Section '{section_id}' has no notice {index}")
        self.answers.set_notice(section_id, index, checked)

    def set_consent(self, section_id: str, checked: bool) -> None:
        section = self._require_section(section_id)
        self.answers.set_consent(section_id, checked, len(section.notices))

    def attach_resume(
        self,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> ResumeAttachment:
        self.resume = ResumeAttachment.from_bytes(file_name, data, content_type)
        return self.resume

    def clear_resume(self) -> None:
        self.resume = None

    # Persistence ------------------------------------------------------

    def build_record(self) -> InterviewRecord:
        return InterviewRecord(
            id=self.record_id,
            basic_info=replace(self.basic_info),
            answers=self.answers.copy(),
            resume=self.resume,
            ai_summary=self.ai_summary,
            created_at=self.created_at if self.created_at is not None else now_millis(),
        )

    def _stamp_created_at(self) -> None:
        if self.created_at is None:
            self.created_at = now_millis()

    def _alert(self, message: str) -> None:
        self._effects.append(Effect(EffectKind.SHOW_ALERT, message=message))

    async def save(self, mode: SaveMode = SaveMode.CHECKPOINT) -> ActionStatus:
        if not self.basic_info.name.strip():
            self._alert(NAME_REQUIRED_MESSAGE)
            return ActionStatus.INVALID

        self._stamp_created_at()
        self.is_saving = True
        try:
            await self._persist(self.build_record())
        except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-except
            logger.exception("Failed to save interview record %s", self.record_id)
            self._alert(SAVE_FAILED_MESSAGE.format(error=exc))
            return ActionStatus.FAILED
        finally:
            self.is_saving = False

        if mode is SaveMode.SAVE_AND_CLOSE:
            self.completed = True
            self._effects.append(Effect(EffectKind.CLOSE_FORM))
        else:
            self._alert(CHECKPOINT_SAVED_MESSAGE)
        return ActionStatus.OK

    async def analyze(self, on_update: Optional[UpdateCallback] = None) -> ActionStatus:
        """Request an AI summary and auto-save it on success.

        ``on_update`` receives the accumulated text after every streamed
        chunk. Concurrent calls are not serialized; the last one to finish
        wins.
        """

        if not self.basic_info.name.strip():
            self._alert(ANALYSIS_NEEDS_INFO_MESSAGE)
            return ActionStatus.INVALID

        snapshot = self.build_record()
        on_chunk = _accumulating(on_update) if on_update is not None else None
        self.analysis_in_flight += 1
        try:
            result = await self._analyzer.analyze(snapshot, self.stages, on_chunk=on_chunk)
        finally:
            self.analysis_in_flight -= 1

        if not result.succeeded:
            self._alert(result.text)
            return ActionStatus.FAILED

        self.ai_summary = result.text
        self._stamp_created_at()
        try:
            await self._persist(self.build_record())
        except Exception:  # noqa: BLE001 # pylint: disable=broad-except
            logger.exception(
                "Auto-save after analysis failed for record %s", self.record_id
            )
        return ActionStatus.OK

    def drain_effects(self) -> List[Effect]:
        effects, self._effects = self._effects, []
        return effects

    def to_dict(self) -> Dict[str, Any]:
        stage = self.active_stage
        return {
            "id": self.record_id,
            "activeStageIndex": self.active_stage_index,
            "activeStageId": stage.id,
            "stageCount": len(self.stages),
            "visibleSections": [section.id for section in self.visible_sections()],
            "basicInfo": self.basic_info.to_dict(),
            "requiresVisaExpiry": self.basic_info.requires_visa_expiry,
            "answers": self.answers.to_storage(),
            "resume": self.resume.to_dict() if self.resume else None,
            "aiSummary": self.ai_summary,
            "createdAt": self.created_at,
            "expanded": sorted(self.expanded),
            "isSaving": self.is_saving,
            "isAnalyzing": self.is_analyzing,
            "completed": self.completed,
        }
