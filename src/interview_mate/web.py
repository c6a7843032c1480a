"""FastAPI entrypoint exposing records, form sessions and AI analysis."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Literal, Optional, Sequence, Set

import uvicorn
from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr
from starlette.responses import Response, StreamingResponse

from .analysis import InterviewAnalyzer
from .auth import (
    AccessPolicy,
    AuthorizationError,
    AuthService,
    Principal,
    ensure_can_start,
)
from .catalog import resolve_stages
from .config import AppSettings, InterviewType, Language
from .form import (
    ActionStatus,
    EffectKind,
    InterviewFormController,
    PersistRecord,
    SaveMode,
)
from .formatter import SummaryStream, blocks_to_dict, format_summary
from .models import InterviewRecord
from .observability import initialize_tracing
from .pdf_exporter import SummaryExportError, SummaryPDFExporter
from .record_store import RecordRepository, RecordStoreError
from .schema import stages_to_dict
from .search import RecordSearch, RecordSummary

logger = logging.getLogger(__name__)

# Browser field names accepted by PATCH /forms/{id}/basic-info.
BASIC_INFO_FIELDS: Dict[str, str] = {
    "name": "name",
    "position": "position",
    "store": "store",
    "date": "date",
    "interviewer": "interviewer",
    "hasSushiExperience": "has_prior_experience",
    "hasPriorExperience": "has_prior_experience",
    "visaStatus": "visa_status",
    "visaExpiryDate": "visa_expiry_date",
    "email": "email",
    "mobile": "mobile",
    "birthDate": "birth_date",
}


class SignInRequest(BaseModel):
    email: str


class FormStartRequest(BaseModel):
    interviewType: str = InterviewType.STANDARD.value
    language: Optional[str] = None
    recordId: Optional[str] = None


class BasicInfoPatch(BaseModel):
    """Partial basic-info update; only the keys sent are applied."""

    model_config = ConfigDict(extra="forbid")

    name: StrictStr = ""
    position: StrictStr = ""
    store: StrictStr = ""
    date: StrictStr = ""
    interviewer: StrictStr = ""
    hasSushiExperience: StrictBool = False
    hasPriorExperience: StrictBool = False
    visaStatus: Optional[StrictStr] = None
    visaExpiryDate: StrictStr = ""
    email: StrictStr = ""
    mobile: StrictStr = ""
    birthDate: StrictStr = ""

    def to_changes(self) -> Dict[str, Any]:
        sent = self.model_dump(exclude_unset=True)
        return {BASIC_INFO_FIELDS[key]: value for key, value in sent.items()}


class AnswerRequest(BaseModel):
    text: str


class CheckRequest(BaseModel):
    checked: bool


class FocusRequest(BaseModel):
    backwards: bool = False


class NavigationRequest(BaseModel):
    action: Literal["next", "prev", "jump"]
    stageId: Optional[str] = None


class SaveRequest(BaseModel):
    mode: SaveMode = SaveMode.CHECKPOINT


@dataclass(slots=True)
class _FormSession:
    controller: InterviewFormController
    principal: Principal
    token: str
    touched_at: float


def create_app(
    settings: AppSettings,
    *,
    repository: Optional[RecordRepository] = None,
    analyzer: Optional[InterviewAnalyzer] = None,
    auth: Optional[AuthService] = None,
    allow_origins: Sequence[str] | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """Create the FastAPI app serving the interview tool."""

    app = FastAPI(title="Interview Mate")

    origins = list(allow_origins) if allow_origins else ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    records = repository or RecordRepository(
        archive_path=settings.record_log,
        redis_url=settings.redis_url,
    )
    summarizer = analyzer or InterviewAnalyzer(
        settings.model,
        timeout=settings.analysis_timeout,
        organization=settings.organization,
    )
    auth_service = auth or AuthService(
        AccessPolicy.from_settings(settings),
        ttl=settings.session_ttl,
        clock=clock,
    )
    exporter = SummaryPDFExporter(font_path=settings.pdf_font_path)
    search = RecordSearch()
    forms: Dict[str, _FormSession] = {}
    background: Set[asyncio.Task[None]] = set()
    bearer = HTTPBearer(auto_error=False)

    def current_principal(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ) -> Principal:
        principal = auth_service.resolve(credentials.credentials if credentials else None)
        if principal is None:
            raise HTTPException(status_code=401, detail="Not signed in.")
        return principal

    def _resolve_type(value: str) -> InterviewType:
        try:
            return InterviewType.from_string(value)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    def _resolve_language(value: Optional[str]) -> Language:
        return Language.from_string(value, default=settings.default_language)

    def _load_record(record_id: str, principal: Principal) -> InterviewRecord:
        try:
            record = records.get(record_id)
            allowed = record is not None and records.can_access(record_id, principal)
        except RecordStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        if record is None:
            raise HTTPException(status_code=404, detail=f"Record '{record_id}' not found.")
        if not allowed:
            raise HTTPException(status_code=403, detail="You may not access this record.")
        return record

    def _prune_forms() -> None:
        cutoff = clock() - settings.form_ttl
        stale = [form_id for form_id, session in forms.items() if session.touched_at <= cutoff]
        for form_id in stale:
            forms.pop(form_id, None)
            logger.info("Discarded idle form %s", form_id)

    def _evict_forms(token: str) -> int:
        owned = [form_id for form_id, session in forms.items() if session.token == token]
        for form_id in owned:
            forms.pop(form_id, None)
        return len(owned)

    def _session(form_id: str, principal: Principal) -> _FormSession:
        _prune_forms()
        session = forms.get(form_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Form '{form_id}' not found.")
        if session.principal.email != principal.email:
            raise HTTPException(status_code=403, detail="This form belongs to another user.")
        session.touched_at = clock()
        return session

    def _form_payload(form_id: str, session: _FormSession, **extra: Any) -> Dict[str, Any]:
        effects = session.controller.drain_effects()
        payload: Dict[str, Any] = {
            "formId": form_id,
            "form": session.controller.to_dict(),
            "effects": [effect.to_dict() for effect in effects],
        }
        payload.update(extra)
        if session.controller.completed:
            forms.pop(form_id, None)
        return payload

    def _persist_for(principal: Principal) -> PersistRecord:
        async def persist(record: InterviewRecord) -> None:
            await asyncio.to_thread(records.save, record, principal)

        return persist

    # Authentication ---------------------------------------------------

    @app.post("/auth/sign-in")
    async def sign_in(payload: SignInRequest) -> Dict[str, Any]:
        try:
            token, principal = auth_service.sign_in(payload.email)
        except AuthorizationError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        return {"token": token, "user": principal.to_dict()}

    @app.post("/auth/sign-out")
    async def sign_out(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ) -> Dict[str, str]:
        if credentials is not None:
            principal = auth_service.sign_out(credentials.credentials)
            evicted = _evict_forms(credentials.credentials)
            if principal is not None and evicted:
                logger.info("Closed %d open form(s) for %s", evicted, principal.email)
        return {"status": "signed_out"}

    @app.get("/auth/me")
    async def me(principal: Principal = Depends(current_principal)) -> Dict[str, Any]:
        return principal.to_dict()

    # Schema -----------------------------------------------------------

    @app.get("/stages/{interview_type}")
    async def stages(
        interview_type: str,
        language: Optional[str] = None,
        principal: Principal = Depends(current_principal),
    ) -> List[Dict[str, Any]]:
        resolved = resolve_stages(_resolve_type(interview_type), _resolve_language(language))
        return stages_to_dict(resolved)

    # Records ----------------------------------------------------------

    @app.get("/records")
    def list_records(
        q: str = "",
        principal: Principal = Depends(current_principal),
    ) -> List[Dict[str, Any]]:
        try:
            visible = records.list(principal)
        except RecordStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return [
            RecordSummary.from_record(record, search).to_dict()
            for record in search.filter(visible, q)
        ]

    @app.get("/records/{record_id}")
    def get_record(
        record_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        return _load_record(record_id, principal).to_dict()

    @app.delete("/records/{record_id}")
    def delete_record(
        record_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, str]:
        _load_record(record_id, principal)
        try:
            records.delete(record_id, principal)
        except RecordStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"status": "deleted", "id": record_id}

    @app.get("/records/{record_id}/summary")
    def record_summary(
        record_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        record = _load_record(record_id, principal)
        if not record.ai_summary:
            raise HTTPException(status_code=404, detail="No AI summary for this record.")
        return {
            "id": record.id,
            "text": record.ai_summary,
            "blocks": blocks_to_dict(format_summary(record.ai_summary)),
        }

    @app.get("/records/{record_id}/summary.pdf")
    def record_summary_pdf(
        record_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Response:
        record = _load_record(record_id, principal)
        if not record.ai_summary:
            raise HTTPException(status_code=404, detail="No AI summary for this record.")
        try:
            pdf_bytes = exporter.render(record.ai_summary)
        except SummaryExportError as exc:
            logger.exception("PDF export failed for record %s", record_id)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        headers = {"Content-Disposition": f'attachment; filename="{record_id}.pdf"'}
        return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)

    # Form sessions ----------------------------------------------------

    @app.post("/forms")
    async def start_form(
        payload: FormStartRequest,
        principal: Principal = Depends(current_principal),
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ) -> Dict[str, Any]:
        _prune_forms()
        language = _resolve_language(payload.language)
        initial: Optional[InterviewRecord] = None
        if payload.recordId:
            initial = await asyncio.to_thread(_load_record, payload.recordId, principal)
            interview_type = initial.basic_info.interview_type
        else:
            interview_type = _resolve_type(payload.interviewType)
            try:
                ensure_can_start(principal, interview_type)
            except AuthorizationError as exc:
                raise HTTPException(status_code=403, detail=str(exc)) from exc

        controller = InterviewFormController(
            resolve_stages(interview_type, language),
            persist=_persist_for(principal),
            analyzer=summarizer,
            initial=initial,
            interview_type=interview_type,
        )
        form_id = uuid.uuid4().hex
        session = _FormSession(
            controller=controller,
            principal=principal,
            token=credentials.credentials if credentials else "",
            touched_at=clock(),
        )
        forms[form_id] = session
        logger.info(
            "Opened form %s for record %s (%s)",
            form_id,
            controller.record_id,
            principal.email,
        )
        return _form_payload(form_id, session)

    @app.get("/forms/{form_id}")
    async def get_form(
        form_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        return _form_payload(form_id, _session(form_id, principal))

    @app.delete("/forms/{form_id}")
    async def discard_form(
        form_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, str]:
        _session(form_id, principal)
        forms.pop(form_id, None)
        return {"status": "discarded", "formId": form_id}

    @app.patch("/forms/{form_id}/basic-info")
    async def update_basic_info(
        form_id: str,
        payload: BasicInfoPatch,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        try:
            session.controller.update_basic_info(**payload.to_changes())
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _form_payload(form_id, session)

    @app.put("/forms/{form_id}/answers/{question_id}")
    async def set_answer(
        form_id: str,
        question_id: str,
        payload: AnswerRequest,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        try:
            session.controller.set_answer(question_id, payload.text)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _form_payload(form_id, session)

    @app.post("/forms/{form_id}/questions/{question_id}/toggle")
    async def toggle_question(
        form_id: str,
        question_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        try:
            expanded = session.controller.toggle_question(question_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _form_payload(form_id, session, expanded=expanded)

    @app.post("/forms/{form_id}/questions/{question_id}/focus")
    async def advance_focus(
        form_id: str,
        question_id: str,
        payload: Optional[FocusRequest] = None,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        try:
            target = session.controller.advance_focus(
                question_id, payload.backwards if payload else False
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _form_payload(form_id, session, focused=target)

    @app.put("/forms/{form_id}/notices/{section_id}/{index}")
    async def set_notice(
        form_id: str,
        section_id: str,
        index: int,
        payload: CheckRequest,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        try:
            session.controller.set_notice(section_id, index, payload.checked)
        except (KeyError, IndexError) as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _form_payload(form_id, session)

    @app.put("/forms/{form_id}/consent/{section_id}")
    async def set_consent(
        form_id: str,
        section_id: str,
        payload: CheckRequest,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        try:
            session.controller.set_consent(section_id, payload.checked)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _form_payload(form_id, session)

    @app.post("/forms/{form_id}/resume")
    async def upload_resume(
        form_id: str,
        file: UploadFile = File(...),
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        data = await file.read()
        session.controller.attach_resume(
            file.filename or "resume",
            data,
            file.content_type,
        )
        return _form_payload(form_id, session)

    @app.delete("/forms/{form_id}/resume")
    async def remove_resume(
        form_id: str,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        session.controller.clear_resume()
        return _form_payload(form_id, session)

    @app.post("/forms/{form_id}/navigation")
    async def navigate(
        form_id: str,
        payload: NavigationRequest,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        controller = session.controller
        status = ActionStatus.OK
        if payload.action == "next":
            status = await controller.next_stage()
        elif payload.action == "prev":
            controller.prev_stage()
        else:
            if not payload.stageId:
                raise HTTPException(status_code=422, detail="stageId is required for jump.")
            try:
                controller.jump_to_stage(payload.stageId)
            except KeyError as exc:
                raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _form_payload(form_id, session, status=status.value)

    @app.post("/forms/{form_id}/save")
    async def save_form(
        form_id: str,
        payload: Optional[SaveRequest] = None,
        principal: Principal = Depends(current_principal),
    ) -> Dict[str, Any]:
        session = _session(form_id, principal)
        mode = payload.mode if payload else SaveMode.CHECKPOINT
        status = await session.controller.save(mode)
        return _form_payload(form_id, session, status=status.value)

    @app.post("/forms/{form_id}/analyze")
    async def analyze_form(
        form_id: str,
        principal: Principal = Depends(current_principal),
    ) -> StreamingResponse:
        session = _session(form_id, principal)
        controller = session.controller
        queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()
        done_token = object()
        stream = SummaryStream()

        async def on_update(accumulated: str) -> None:
            blocks = stream.update(accumulated)
            await queue.put(
                {"type": "chunk", "text": accumulated, "blocks": blocks_to_dict(blocks)}
            )

        async def producer() -> None:
            try:
                status = await controller.analyze(on_update=on_update)
                effects = [effect.to_dict() for effect in controller.drain_effects()]
                if status is ActionStatus.OK:
                    summary = controller.ai_summary or ""
                    await queue.put(
                        {
                            "type": "complete",
                            "text": summary,
                            "blocks": blocks_to_dict(format_summary(summary)),
                            "form": controller.to_dict(),
                            "effects": effects,
                        }
                    )
                else:
                    alerts = [
                        effect["message"]
                        for effect in effects
                        if effect["kind"] == EffectKind.SHOW_ALERT.value
                    ]
                    await queue.put(
                        {
                            "type": "error",
                            "status": status.value,
                            "message": alerts[-1] if alerts else "",
                            "effects": effects,
                        }
                    )
            except Exception as exc:
                logger.exception("Analysis stream failed for form %s", form_id)
                await queue.put({"type": "error", "message": str(exc)})
            finally:
                await queue.put({"type": done_token})

        # A disconnected client does not cancel the analysis; its auto-save still runs.
        analysis_task = asyncio.create_task(producer())
        background.add(analysis_task)
        analysis_task.add_done_callback(background.discard)

        async def event_stream() -> AsyncIterator[bytes]:
            while True:
                event = await queue.get()
                if event.get("type") is done_token:
                    break
                payload = json.dumps(event, ensure_ascii=False)
                yield f"data: {payload}\n\n".encode("utf-8")

        headers = {"Cache-Control": "no-cache"}
        return StreamingResponse(event_stream(), media_type="text/event-stream", headers=headers)

    @app.get("/health")
    async def health() -> Dict[str, str]:  # pragma: no cover - simple health check
        return {"status": "ok"}

    return app


def run_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8080,
    allow_origins: Sequence[str] | None = None,
    reload: bool = False,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server."""

    initialize_tracing()
    app = create_app(settings=settings, allow_origins=allow_origins)
    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the server (default: 8080).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*' if not provided.",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Run the server in auto-reload development mode.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        prog="python -m interview_mate.web",
        description="Launch the Interview Mate API server.",
    )
    add_server_arguments(parser)
    args = parser.parse_args(argv)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc

    run_server(
        settings=settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
