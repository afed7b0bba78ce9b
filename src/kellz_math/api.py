"""FastAPI HTTP layer wrapping tutor sessions."""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from kellz_math.config import load_settings
from kellz_math.gateway import Gateway, GeminiGateway
from kellz_math.models import Difficulty, Mode, Rigor, Turn, TutorConfig
from kellz_math.quiz_models import QuizState
from kellz_math.session import (
    SessionBusyError,
    SessionStore,
    SessionUpdate,
    SetupIncompleteError,
    TutorSession,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = load_settings()

app = FastAPI(
    title="Kellz Math API",
    description="Conversational math tutor powered by Google Gemini",
    version="0.1.0",
)

if not settings.api_key:
    logger.warning("API_KEY not set. All requests will be allowed.")
if not settings.gemini_api_key:
    logger.warning("GOOGLE_API_KEY not set. New sessions will be unavailable.")


@app.middleware("http")
async def verify_api_key(request: Request, call_next):
    if settings.api_key and request.url.path != "/health":
        key = request.headers.get("x-api-key", "")
        if not hmac.compare_digest(key, settings.api_key):
            return JSONResponse(status_code=401, content={"detail": "Invalid API key"})
    return await call_next(request)


@app.get("/health")
def health():
    """Unauthenticated health check."""
    return {"status": "ok"}


store = SessionStore(idle_ttl=settings.session_ttl, max_sessions=settings.max_sessions)


def get_gateway() -> Gateway:
    if not settings.gemini_api_key:
        raise HTTPException(
            status_code=503,
            detail="Tutor unavailable: GOOGLE_API_KEY not configured",
        )
    return GeminiGateway(api_key=settings.gemini_api_key, model=settings.model)


# --- Request / response models ---


class ChoiceRequest(BaseModel):
    value: str


class MessageRequest(BaseModel):
    text: str = ""
    image: str | None = None  # base64 PNG, bare or as a data URL


class UploadRequest(BaseModel):
    filename: str
    data: str


class ScratchpadRequest(BaseModel):
    data_url: str


class ActionRequest(BaseModel):
    value: str
    label: str | None = None


class SetupState(BaseModel):
    step: int
    options: list[str]
    config: TutorConfig | None


class SessionSnapshot(BaseModel):
    id: str
    setup: SetupState
    turns: list[Turn]
    quiz: QuizState
    current_problem: str | None
    busy: bool


def _setup_state(session: TutorSession) -> SetupState:
    return SetupState(
        step=session.wizard.step,
        options=session.wizard.options(),
        config=session.config,
    )


def _snapshot(session: TutorSession) -> dict:
    return SessionSnapshot(
        id=session.id,
        setup=_setup_state(session),
        turns=session.transcript.turns,
        quiz=session.quiz.state,
        current_problem=session.current_problem,
        busy=session.busy,
    ).model_dump(mode="json")


def _session(session_id: str) -> TutorSession:
    try:
        return store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")


def _run(session: TutorSession, fn, *args) -> dict:
    """Call a session operation and map its errors to HTTP statuses."""
    try:
        update: SessionUpdate = fn(*args)
    except (SessionBusyError, SetupIncompleteError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "turns": [t.model_dump(mode="json") for t in update.turns],
        "sound_cue": update.sound_cue,
        "setup": _setup_state(session).model_dump(mode="json"),
        "quiz_status": session.quiz.status,
    }


# --- Endpoints ---


@app.get("/api/setup/options")
def setup_options():
    """All choices offered by the setup wizard, in step order."""
    return {
        "difficulties": [d.value for d in Difficulty],
        "rigors": [r.value for r in Rigor],
        "modes": [m.value for m in Mode],
    }


@app.post("/api/sessions")
def create_session(gateway: Gateway = Depends(get_gateway)):
    """Start a new session at the first setup step."""
    session = store.create(gateway, question_delay=settings.question_delay)
    return _snapshot(session)


@app.get("/api/sessions/{session_id}")
def get_session(session_id: str):
    """Full transcript and state of a session."""
    return _snapshot(_session(session_id))


@app.delete("/api/sessions/{session_id}")
def delete_session(session_id: str):
    store.delete(session_id)
    return {"status": "deleted"}


@app.post("/api/sessions/{session_id}/setup")
def choose(session_id: str, req: ChoiceRequest):
    """Answer the current setup step. The mode step also returns the greeting."""
    session = _session(session_id)
    return _run(session, session.choose, req.value)


@app.post("/api/sessions/{session_id}/messages")
def send_message(session_id: str, req: MessageRequest):
    """A typed message, optionally with a work image."""
    session = _session(session_id)
    return _run(session, session.send_message, req.text, req.image)


@app.post("/api/sessions/{session_id}/uploads")
def upload_image(session_id: str, req: UploadRequest):
    """A picture picked from disk, sent as base64."""
    session = _session(session_id)
    return _run(session, session.submit_upload, req.filename, req.data)


@app.post("/api/sessions/{session_id}/scratchpad")
def submit_scratchpad(session_id: str, req: ScratchpadRequest):
    """A scratchpad drawing exported as a PNG data URL."""
    session = _session(session_id)
    return _run(session, session.submit_scratchpad, req.data_url)


@app.post("/api/sessions/{session_id}/actions")
def click_action(session_id: str, req: ActionRequest):
    """A follow-up button under an assistant turn."""
    session = _session(session_id)
    return _run(session, session.click_action, req.value, req.label)


def main():
    """Run the API server."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
