"""Tests for the HTTP API."""

import json
from dataclasses import replace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from interview_mate import web

from interview_mate.analysis import NOT_CONFIGURED_MESSAGE, AnalysisResult, InterviewAnalyzer
from interview_mate.auth import UNREGISTERED_USER_MESSAGE
from interview_mate.form import NAME_REQUIRED_MESSAGE
from interview_mate.web import create_app

SUMMARY = "'홍길동'님의 인터뷰 분석 결과\n1. 핵심 강점: 성실\n최종 추천 여부: 추천"


class StreamingAnalyzer:
    """Analyzer double streaming canned chunks."""

    def __init__(self, chunks):
        self.chunks = chunks

    async def analyze(self, record, stages, on_chunk=None):
        if on_chunk is not None:
            for chunk in self.chunks:
                await on_chunk(chunk)
        return AnalysisResult(text="".join(self.chunks), succeeded=True)


def sign_in(client, email):
    response = client.post("/auth/sign-in", json={"email": email})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def sse_events(response):
    return [
        json.loads(line[len("data: ") :])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]


@pytest.fixture
def analyzer():
    return StreamingAnalyzer(["'홍길동'님의 인터뷰 분석 결과\n", "1. 핵심 강점: 성실\n", "최종 추천 여부: 추천"])


@pytest.fixture
def client(settings, repository, analyzer):
    app = create_app(settings, repository=repository, analyzer=analyzer)
    return TestClient(app)


@pytest.fixture
def staff_headers(client):
    return sign_in(client, "staff@example.com")


@pytest.fixture
def admin_headers(client):
    return sign_in(client, "admin@example.com")


def start_form(client, headers, **body):
    response = client.post("/forms", json=body, headers=headers)
    assert response.status_code == 200
    return response.json()["formId"]


class TestAuthEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_unregistered_user(self, client):
        response = client.post("/auth/sign-in", json={"email": "nobody@example.com"})

        assert response.status_code == 403
        assert response.json()["detail"] == UNREGISTERED_USER_MESSAGE

    def test_me_requires_token(self, client):
        assert client.get("/auth/me").status_code == 401
        assert client.get("/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_me(self, client, staff_headers):
        payload = client.get("/auth/me", headers=staff_headers).json()

        assert payload["email"] == "staff@example.com"
        assert payload["interviewTypes"] == ["STANDARD"]

    def test_sign_out(self, client, staff_headers):
        client.post("/auth/sign-out", headers=staff_headers)

        assert client.get("/auth/me", headers=staff_headers).status_code == 401


class TestStageEndpoints:
    def test_stages(self, client, staff_headers):
        payload = client.get("/stages/STANDARD", headers=staff_headers).json()

        assert [stage["id"] for stage in payload] == ["stage1", "stage2", "stage3", "stage4", "stage5"]

    def test_unknown_type(self, client, staff_headers):
        assert client.get("/stages/PANEL", headers=staff_headers).status_code == 404


class TestFormEndpoints:
    def test_role_restricts_interview_type(self, client, staff_headers):
        response = client.post("/forms", json={"interviewType": "HR"}, headers=staff_headers)

        assert response.status_code == 403

    def test_hr_director_starts_hr_form(self, client):
        headers = sign_in(client, "hr@example.com")

        assert client.post("/forms", json={"interviewType": "STANDARD"}, headers=headers).status_code == 403
        response = client.post("/forms", json={"interviewType": "HR"}, headers=headers)
        assert response.json()["form"]["basicInfo"]["interviewType"] == "HR"

    def test_full_flow(self, client, staff_headers):
        form_id = start_form(client, staff_headers)
        base = f"/forms/{form_id}"

        response = client.patch(
            f"{base}/basic-info",
            json={"name": "홍길동", "hasSushiExperience": True},
            headers=staff_headers,
        )
        assert response.json()["form"]["basicInfo"]["name"] == "홍길동"

        response = client.put(f"{base}/answers/q1_1", json={"text": "성장"}, headers=staff_headers)
        assert response.json()["form"]["answers"]["q1_1"] == "성장"

        response = client.post(f"{base}/navigation", json={"action": "next"}, headers=staff_headers)
        payload = response.json()
        assert payload["form"]["activeStageId"] == "stage2"
        assert payload["form"]["visibleSections"] == ["s2_common", "s2_experienced"]
        assert payload["effects"] == [{"kind": "scroll_to_stage", "target": "stage2", "message": None}]

        response = client.post(f"{base}/save", headers=staff_headers)
        assert response.json()["status"] == "ok"

        listed = client.get("/records", headers=staff_headers).json()
        assert [item["name"] for item in listed] == ["홍길동"]
        record_id = listed[0]["id"]

        client.post(f"{base}/navigation", json={"action": "jump", "stageId": "stage5"}, headers=staff_headers)
        client.put(f"{base}/consent/s5_notice", json={"checked": True}, headers=staff_headers)
        response = client.post(f"{base}/navigation", json={"action": "next"}, headers=staff_headers)
        payload = response.json()
        assert payload["status"] == "ok"
        assert payload["form"]["completed"] is True
        assert {"kind": "close_form", "target": None, "message": None} in payload["effects"]

        assert client.get(base, headers=staff_headers).status_code == 404
        record = client.get(f"/records/{record_id}", headers=staff_headers).json()
        assert record["answers"]["consent-s5_notice"] == "true"
        assert record["answers"]["notice-s5_notice-8"] == "true"

    def test_save_without_name(self, client, staff_headers):
        form_id = start_form(client, staff_headers)

        payload = client.post(f"/forms/{form_id}/save", json={"mode": "save_and_close"}, headers=staff_headers).json()

        assert payload["status"] == "invalid"
        assert payload["effects"][0]["message"] == NAME_REQUIRED_MESSAGE
        assert client.get("/records", headers=staff_headers).json() == []

    def test_unknown_basic_info_field(self, client, staff_headers):
        form_id = start_form(client, staff_headers)

        response = client.patch(f"/forms/{form_id}/basic-info", json={"nickname": "x"}, headers=staff_headers)

        assert response.status_code == 422

    @pytest.mark.parametrize(
        "body",
        [
            {"hasSushiExperience": "false"},
            {"hasPriorExperience": 1},
            {"name": None},
            {"email": 42},
        ],
    )
    def test_basic_info_types_are_strict(self, client, staff_headers, body):
        form_id = start_form(client, staff_headers)
        base = f"/forms/{form_id}"
        client.patch(f"{base}/basic-info", json={"name": "홍길동"}, headers=staff_headers)

        response = client.patch(f"{base}/basic-info", json=body, headers=staff_headers)

        assert response.status_code == 422
        form = client.get(base, headers=staff_headers).json()["form"]
        assert form["basicInfo"]["name"] == "홍길동"
        assert form["basicInfo"]["hasSushiExperience"] is False

    def test_string_false_keeps_junior_questions(self, client, staff_headers):
        form_id = start_form(client, staff_headers)
        base = f"/forms/{form_id}"

        client.patch(f"{base}/basic-info", json={"hasSushiExperience": "false"}, headers=staff_headers)
        response = client.post(f"{base}/navigation", json={"action": "next"}, headers=staff_headers)

        assert response.json()["form"]["visibleSections"] == ["s2_common", "s2_junior"]

    def test_null_name_still_saves_cleanly(self, client, staff_headers):
        form_id = start_form(client, staff_headers)
        base = f"/forms/{form_id}"

        assert client.patch(f"{base}/basic-info", json={"name": None}, headers=staff_headers).status_code == 422
        response = client.post(f"{base}/save", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "invalid"

    def test_visa_status_can_be_cleared(self, client, staff_headers):
        form_id = start_form(client, staff_headers)
        base = f"/forms/{form_id}"
        client.patch(f"{base}/basic-info", json={"visaStatus": "Working Holiday"}, headers=staff_headers)

        response = client.patch(f"{base}/basic-info", json={"visaStatus": None}, headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["form"]["basicInfo"]["visaStatus"] == ""

    def test_unknown_question(self, client, staff_headers):
        form_id = start_form(client, staff_headers)

        response = client.put(f"/forms/{form_id}/answers/q9_9", json={"text": "x"}, headers=staff_headers)

        assert response.status_code == 404

    def test_form_belongs_to_owner(self, client, staff_headers):
        form_id = start_form(client, staff_headers)
        other = sign_in(client, "other@example.com")

        assert client.get(f"/forms/{form_id}", headers=other).status_code == 403

    def test_focus_and_toggle(self, client, staff_headers):
        form_id = start_form(client, staff_headers)

        payload = client.post(f"/forms/{form_id}/questions/q1_1/focus", headers=staff_headers).json()
        assert payload["focused"] == "q1_2"

        payload = client.post(f"/forms/{form_id}/questions/q1_1/toggle", headers=staff_headers).json()
        assert payload["expanded"] is True

    def test_notice_out_of_range(self, client, staff_headers):
        form_id = start_form(client, staff_headers)

        response = client.put(f"/forms/{form_id}/notices/s5_notice/20", json={"checked": True}, headers=staff_headers)

        assert response.status_code == 404

    def test_resume_upload(self, client, staff_headers):
        form_id = start_form(client, staff_headers)

        response = client.post(
            f"/forms/{form_id}/resume",
            files={"file": ("cv.pdf", b"%PDF-1.4", "application/pdf")},
            headers=staff_headers,
        )

        resume = response.json()["form"]["resume"]
        assert resume["fileName"] == "cv.pdf"
        assert resume["fileData"].startswith("data:application/pdf;base64,")

        response = client.delete(f"/forms/{form_id}/resume", headers=staff_headers)
        assert response.json()["form"]["resume"] is None

    def test_resume_existing_record(self, client, staff_headers, repository, staff, make_record):
        repository.save(make_record(answers={"q1_1": "기존 답변"}), staff)

        response = client.post("/forms", json={"recordId": "rec-1"}, headers=staff_headers)

        form = response.json()["form"]
        assert form["id"] == "rec-1"
        assert form["answers"]["q1_1"] == "기존 답변"

    def test_analyze_streams_blocks(self, client, staff_headers):
        form_id = start_form(client, staff_headers)
        client.patch(f"/forms/{form_id}/basic-info", json={"name": "홍길동"}, headers=staff_headers)

        response = client.post(f"/forms/{form_id}/analyze", headers=staff_headers)

        assert response.headers["content-type"].startswith("text/event-stream")
        events = sse_events(response)
        assert [event["type"] for event in events] == ["chunk", "chunk", "chunk", "complete"]
        assert events[0]["blocks"][0]["kind"] == "intro"
        complete = events[-1]
        assert complete["text"] == SUMMARY
        assert complete["blocks"][-1]["verdict"] == "recommended"
        assert complete["form"]["aiSummary"] == SUMMARY

        listed = client.get("/records", headers=staff_headers).json()
        assert listed[0]["hasSummary"] is True

    def test_analyze_not_configured(self, settings, repository):
        app = create_app(settings, repository=repository, analyzer=InterviewAnalyzer(None))
        client = TestClient(app)
        headers = sign_in(client, "staff@example.com")
        form_id = start_form(client, headers)
        client.patch(f"/forms/{form_id}/basic-info", json={"name": "홍길동"}, headers=headers)
        client.put(f"/forms/{form_id}/answers/q1_1", json={"text": "답"}, headers=headers)

        events = sse_events(client.post(f"/forms/{form_id}/analyze", headers=headers))

        assert events == [
            {
                "type": "error",
                "status": "failed",
                "message": NOT_CONFIGURED_MESSAGE,
                "effects": [{"kind": "show_alert", "target": None, "message": NOT_CONFIGURED_MESSAGE}],
            }
        ]


class TestRecordEndpoints:
    def test_records_are_scoped_by_owner(self, client, repository, staff, other_staff, make_record, staff_headers, admin_headers):
        repository.save(make_record(record_id="mine", name="김철수"), staff)
        repository.save(make_record(record_id="theirs", name="Lee"), other_staff)

        assert [item["id"] for item in client.get("/records", headers=staff_headers).json()] == ["mine"]
        assert len(client.get("/records", headers=admin_headers).json()) == 2
        assert client.get("/records/theirs", headers=staff_headers).status_code == 403
        assert client.get("/records/missing", headers=staff_headers).status_code == 404

    def test_search_query(self, client, repository, staff, make_record, staff_headers):
        repository.save(make_record(record_id="a", name="김철수"), staff)
        repository.save(make_record(record_id="b", name="Kim"), staff)

        payload = client.get("/records", params={"q": "ㄱ"}, headers=staff_headers).json()

        assert [item["id"] for item in payload] == ["a"]
        assert payload[0]["initial"] == "ㄱ"

    def test_summary_blocks(self, client, repository, staff, make_record, staff_headers):
        repository.save(make_record(ai_summary=SUMMARY), staff)

        payload = client.get("/records/rec-1/summary", headers=staff_headers).json()

        assert [block["kind"] for block in payload["blocks"]] == ["intro", "header", "paragraph", "verdict"]

    def test_summary_missing(self, client, repository, staff, make_record, staff_headers):
        repository.save(make_record(), staff)

        assert client.get("/records/rec-1/summary", headers=staff_headers).status_code == 404

    def test_summary_pdf(self, client, repository, staff, make_record, staff_headers):
        repository.save(make_record(ai_summary=SUMMARY), staff)

        response = client.get("/records/rec-1/summary.pdf", headers=staff_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_delete(self, client, repository, staff, make_record, staff_headers):
        repository.save(make_record(), staff)

        assert client.delete("/records/rec-1", headers=staff_headers).json()["status"] == "deleted"
        assert client.get("/records/rec-1", headers=staff_headers).status_code == 404


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSessionLifetime:
    """Expiry of bearer tokens and idle form sessions."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def client(self, settings, repository, analyzer, clock):
        short_lived = replace(settings, session_ttl=600.0, form_ttl=60.0)
        app = create_app(short_lived, repository=repository, analyzer=analyzer, clock=clock)
        return TestClient(app)

    def test_token_expires(self, client, clock):
        headers = sign_in(client, "staff@example.com")
        clock.now = 599.0
        assert client.get("/auth/me", headers=headers).status_code == 200

        clock.now = 600.0

        assert client.get("/auth/me", headers=headers).status_code == 401

    def test_idle_form_is_discarded(self, client, clock):
        headers = sign_in(client, "staff@example.com")
        form_id = start_form(client, headers)

        clock.now = 50.0
        assert client.get(f"/forms/{form_id}", headers=headers).status_code == 200
        clock.now = 100.0
        assert client.get(f"/forms/{form_id}", headers=headers).status_code == 200

        clock.now = 160.0

        assert client.get(f"/forms/{form_id}", headers=headers).status_code == 404

    def test_sign_out_closes_open_forms(self, client):
        headers = sign_in(client, "staff@example.com")
        form_id = start_form(client, headers)

        client.post("/auth/sign-out", headers=headers)
        fresh = sign_in(client, "staff@example.com")

        assert client.get(f"/forms/{form_id}", headers=fresh).status_code == 404

    def test_sign_out_keeps_other_sessions_forms(self, client):
        first = sign_in(client, "staff@example.com")
        second = sign_in(client, "staff@example.com")
        form_id = start_form(client, second)

        client.post("/auth/sign-out", headers=first)

        assert client.get(f"/forms/{form_id}", headers=second).status_code == 200


class TestRunServer:
    def test_tracing_is_initialized_before_serving(self, settings):
        with patch.object(web, "initialize_tracing") as tracing, patch.object(
            web, "create_app"
        ) as factory, patch.object(web.uvicorn, "run") as run:
            web.run_server(settings, port=9001)

        tracing.assert_called_once_with()
        factory.assert_called_once_with(settings=settings, allow_origins=None)
        assert run.call_args.kwargs["port"] == 9001
