"""Tests for the interview form controller."""

from unittest.mock import AsyncMock

import pytest

from interview_mate.analysis import AnalysisResult
from interview_mate.catalog import resolve_stages
from interview_mate.config import InterviewType
from interview_mate.form import (
    ANALYSIS_NEEDS_INFO_MESSAGE,
    CHECKPOINT_SAVED_MESSAGE,
    NAME_REQUIRED_MESSAGE,
    ActionStatus,
    Effect,
    EffectKind,
    InterviewFormController,
    SaveMode,
)
from interview_mate.record_store import RecordStoreError

STAGES = resolve_stages(InterviewType.STANDARD)


def make_controller(persist=None, analyzer=None, **kwargs):
    return InterviewFormController(
        STAGES,
        persist=persist or AsyncMock(),
        analyzer=analyzer or AsyncMock(),
        **kwargs,
    )


def alerts(controller):
    return [
        effect.message
        for effect in controller.drain_effects()
        if effect.kind is EffectKind.SHOW_ALERT
    ]


class StreamingAnalyzer:
    """Analyzer double that streams fixed chunks before returning."""

    def __init__(self, chunks, succeeded=True):
        self.chunks = chunks
        self.succeeded = succeeded
        self.calls = []
        self.in_flight_seen = []
        self.controller = None

    async def analyze(self, record, stages, on_chunk=None):
        self.calls.append(record)
        if self.controller is not None:
            self.in_flight_seen.append(self.controller.analysis_in_flight)
        if on_chunk is not None:
            for chunk in self.chunks:
                await on_chunk(chunk)
        return AnalysisResult(text="".join(self.chunks), succeeded=self.succeeded)


class TestNavigation:
    """Stage navigation."""

    def test_prev_on_first_stage_is_noop(self):
        controller = make_controller()

        assert controller.prev_stage() is False
        assert controller.active_stage_index == 0
        assert controller.drain_effects() == []

    @pytest.mark.asyncio
    async def test_next_scrolls_to_stage(self):
        controller = make_controller()

        assert await controller.next_stage() is ActionStatus.OK
        assert controller.active_stage.id == "stage2"
        assert controller.drain_effects() == [
            Effect(EffectKind.SCROLL_TO_STAGE, target="stage2")
        ]

    @pytest.mark.asyncio
    async def test_next_on_last_stage_saves_and_closes(self):
        persist = AsyncMock()
        controller = make_controller(persist=persist)
        controller.update_basic_info(name="홍길동")
        controller.jump_to_stage("stage5")
        controller.drain_effects()

        status = await controller.next_stage()

        assert status is ActionStatus.OK
        assert controller.completed is True
        persist.assert_awaited_once()
        assert controller.drain_effects() == [Effect(EffectKind.CLOSE_FORM)]

    @pytest.mark.asyncio
    async def test_next_on_last_stage_without_name(self):
        persist = AsyncMock()
        controller = make_controller(persist=persist)
        controller.jump_to_stage("stage5")

        status = await controller.next_stage()

        assert status is ActionStatus.INVALID
        persist.assert_not_awaited()
        assert controller.completed is False
        assert alerts(controller) == [NAME_REQUIRED_MESSAGE]

    def test_jump_to_unknown_stage(self):
        with pytest.raises(KeyError):
            make_controller().jump_to_stage("stage9")

    def test_activation_expands_answered_questions(self):
        controller = make_controller()
        controller.set_answer("q2_1", "스시 바에서 2년")
        controller.set_answer("q2_2", "  ")

        controller.jump_to_stage("stage2")

        assert "q2_1" in controller.expanded
        assert "q2_2" not in controller.expanded

    def test_prev_after_jump(self):
        controller = make_controller()
        controller.jump_to_stage("stage3")

        assert controller.prev_stage() is True
        assert controller.active_stage.id == "stage2"


class TestEditing:
    """Answer, notice and basic info editing."""

    def test_visible_sections_follow_experience_flag(self):
        controller = make_controller()
        controller.jump_to_stage("stage2")

        assert [section.id for section in controller.visible_sections()] == [
            "s2_common",
            "s2_junior",
        ]

        controller.update_basic_info(has_prior_experience=True)

        assert [section.id for section in controller.visible_sections()] == [
            "s2_common",
            "s2_experienced",
        ]

    def test_unknown_basic_info_field(self):
        with pytest.raises(TypeError):
            make_controller().update_basic_info(nickname="x")

    def test_unknown_question(self):
        controller = make_controller()

        with pytest.raises(KeyError):
            controller.set_answer("q9_9", "x")
        with pytest.raises(KeyError):
            controller.toggle_question("q9_9")

    def test_toggle_question(self):
        controller = make_controller()

        assert controller.toggle_question("q1_1") is True
        assert controller.toggle_question("q1_1") is False
        assert "q1_1" not in controller.expanded

    def test_consent_cascade(self):
        controller = make_controller()

        controller.set_consent("s5_notice", True)
        controller.set_notice("s5_notice", 3, False)

        flags = controller.answers.to_storage()
        assert flags["consent-s5_notice"] == "false"
        assert flags["notice-s5_notice-3"] == "false"
        assert flags["notice-s5_notice-8"] == "true"

    def test_notice_out_of_range(self):
        controller = make_controller()

        with pytest.raises(IndexError):
            controller.set_notice("s5_notice", 9, True)
        with pytest.raises(KeyError):
            controller.set_notice("s9_notice", 0, True)

    def test_advance_focus(self):
        controller = make_controller()

        assert controller.advance_focus("q1_1") == "q1_2"
        assert "q1_2" in controller.expanded
        assert controller.drain_effects() == [Effect(EffectKind.FOCUS_FIELD, target="q1_2")]
        assert controller.advance_focus("q1_1", backwards=True) is None
        assert controller.advance_focus("q1_4") is None

    def test_advance_focus_skips_hidden_sections(self):
        controller = make_controller()
        controller.jump_to_stage("stage2")

        assert controller.advance_focus("q2_2") == "q2_6"

    def test_advance_focus_outside_active_stage(self):
        controller = make_controller()

        assert controller.advance_focus("q3_1") is None

    def test_resume_attachment(self):
        controller = make_controller()

        resume = controller.attach_resume("cv.pdf", b"%PDF-1.4")

        assert resume.file_data.startswith("data:application/pdf;base64,")
        assert controller.build_record().resume == resume
        controller.clear_resume()
        assert controller.build_record().resume is None


class TestSaving:
    """Checkpoint and final saves."""

    @pytest.mark.asyncio
    async def test_blank_name_is_rejected(self):
        persist = AsyncMock()
        controller = make_controller(persist=persist)
        controller.update_basic_info(name="   ")

        assert await controller.save() is ActionStatus.INVALID
        persist.assert_not_awaited()
        assert alerts(controller) == [NAME_REQUIRED_MESSAGE]

    @pytest.mark.asyncio
    async def test_checkpoint_then_close_reuses_record(self):
        persist = AsyncMock()
        controller = make_controller(persist=persist)
        controller.update_basic_info(name="홍길동")
        controller.set_answer("q1_1", "성장하고 싶어서")

        assert await controller.save(SaveMode.CHECKPOINT) is ActionStatus.OK
        assert alerts(controller) == [CHECKPOINT_SAVED_MESSAGE]
        assert controller.completed is False

        controller.set_answer("q1_2", "3년")
        assert await controller.save(SaveMode.SAVE_AND_CLOSE) is ActionStatus.OK

        first = persist.await_args_list[0].args[0]
        second = persist.await_args_list[1].args[0]
        assert first.id == second.id == controller.record_id
        assert first.created_at == second.created_at
        assert second.answers.text("q1_2") == "3년"
        assert first.answers.text("q1_2") == ""
        assert controller.completed is True

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self):
        persist = AsyncMock(side_effect=RecordStoreError("disk full"))
        controller = make_controller(persist=persist)
        controller.update_basic_info(name="홍길동")

        status = await controller.save(SaveMode.SAVE_AND_CLOSE)

        assert status is ActionStatus.FAILED
        assert controller.is_saving is False
        assert controller.completed is False
        assert alerts(controller) == ["저장 실패: disk full"]

    def test_initial_record_is_resumed(self, make_record):
        record = make_record(record_id="rec-9", answers={"q1_1": "답"}, created_at=123)

        controller = make_controller(initial=record)

        assert controller.record_id == "rec-9"
        assert controller.answers.text("q1_1") == "답"
        assert controller.build_record().created_at == 123

    def test_resumed_first_stage_expands_answers(self, make_record):
        record = make_record(answers={"q1_1": "답", "q2_1": "나중"})

        controller = make_controller(initial=record)

        assert controller.expanded == {"q1_1"}
        assert controller.drain_effects() == []

    def test_to_dict(self):
        controller = make_controller(interview_type=InterviewType.STANDARD)

        payload = controller.to_dict()

        assert payload["activeStageId"] == "stage1"
        assert payload["stageCount"] == 5
        assert payload["visibleSections"] == ["s1_motivation"]
        assert payload["isAnalyzing"] is False
        assert payload["createdAt"] is None


class TestAnalysis:
    """AI summary requests from the form."""

    @pytest.mark.asyncio
    async def test_requires_name(self):
        analyzer = AsyncMock()
        controller = make_controller(analyzer=analyzer)

        assert await controller.analyze() is ActionStatus.INVALID
        analyzer.analyze.assert_not_awaited()
        assert alerts(controller) == [ANALYSIS_NEEDS_INFO_MESSAGE]

    @pytest.mark.asyncio
    async def test_success_stores_summary_and_saves(self):
        persist = AsyncMock()
        analyzer = AsyncMock()
        analyzer.analyze.return_value = AnalysisResult(text="요약", succeeded=True)
        controller = make_controller(persist=persist, analyzer=analyzer)
        controller.update_basic_info(name="홍길동")

        assert await controller.analyze() is ActionStatus.OK

        assert controller.ai_summary == "요약"
        saved = persist.await_args.args[0]
        assert saved.ai_summary == "요약"
        assert controller.created_at is not None
        assert controller.is_analyzing is False

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_summary(self, make_record):
        persist = AsyncMock()
        analyzer = AsyncMock()
        analyzer.analyze.return_value = AnalysisResult(text="분석 오류", succeeded=False)
        controller = make_controller(
            persist=persist,
            analyzer=analyzer,
            initial=make_record(ai_summary="이전 요약"),
        )

        assert await controller.analyze() is ActionStatus.FAILED

        assert controller.ai_summary == "이전 요약"
        persist.assert_not_awaited()
        assert alerts(controller) == ["분석 오류"]

    @pytest.mark.asyncio
    async def test_streaming_updates_are_accumulated(self):
        analyzer = StreamingAnalyzer(["1. 핵심", " 강점", "\n- 성실"])
        controller = make_controller(analyzer=analyzer)
        analyzer.controller = controller
        controller.update_basic_info(name="홍길동")
        updates = []

        status = await controller.analyze(on_update=updates.append)

        assert status is ActionStatus.OK
        assert updates == ["1. 핵심", "1. 핵심 강점", "1. 핵심 강점\n- 성실"]
        assert analyzer.in_flight_seen == [1]
        assert controller.analysis_in_flight == 0

    @pytest.mark.asyncio
    async def test_async_update_callback(self):
        analyzer = StreamingAnalyzer(["a", "b"])
        controller = make_controller(analyzer=analyzer)
        controller.update_basic_info(name="홍길동")
        updates = []

        async def on_update(text):
            updates.append(text)

        await controller.analyze(on_update=on_update)

        assert updates == ["a", "ab"]

    @pytest.mark.asyncio
    async def test_auto_save_failure_keeps_summary(self):
        persist = AsyncMock(side_effect=RecordStoreError("redis down"))
        analyzer = StreamingAnalyzer(["요약"])
        controller = make_controller(persist=persist, analyzer=analyzer)
        controller.update_basic_info(name="홍길동")

        assert await controller.analyze() is ActionStatus.OK
        assert controller.ai_summary == "요약"

    @pytest.mark.asyncio
    async def test_analyzer_receives_current_answers(self):
        analyzer = StreamingAnalyzer(["요약"])
        controller = make_controller(analyzer=analyzer)
        controller.update_basic_info(name="홍길동")
        controller.set_answer("q1_1", "성장")

        await controller.analyze()

        assert analyzer.calls[0].answers.text("q1_1") == "성장"
        assert analyzer.calls[0].basic_info.name == "홍길동"
