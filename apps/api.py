"""FastAPI application exposing the Rust mentor as a REST API."""

from __future__ import annotations

import asyncio
import logging
import os
import queue
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field

from rust_mentor.data_models import ChatMode
from rust_mentor.errors import (
    ChapterIndexError,
    MentorError,
    ProviderError,
    SessionBusyError,
    StructuredOutputError,
    UnsupportedOperationError,
)
from rust_mentor.ingestion import guess_mime_type
from rust_mentor.learning import QuizStatus
from rust_mentor.llm import CancellationToken
from rust_mentor.system import MentorSystem

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _get_system() -> MentorSystem:
    """Create a singleton MentorSystem instance."""
    logger.info("Initializing MentorSystem for FastAPI service")
    return MentorSystem.from_config(os.getenv("RUST_MENTOR_CONFIG"))


async def get_system() -> MentorSystem:
    """FastAPI dependency that returns the shared MentorSystem."""
    return _get_system()


def _http_error(exc: Exception) -> HTTPException:
    """Map mentor failures onto status codes the client can act on."""
    if isinstance(exc, ChapterIndexError):
        status = 404
    elif isinstance(exc, SessionBusyError):
        status = 409
    elif isinstance(exc, UnsupportedOperationError):
        status = 400
    elif isinstance(exc, (ProviderError, StructuredOutputError)):
        status = 502
    elif isinstance(exc, ValueError):
        status = 400
    elif isinstance(exc, RuntimeError):
        status = 409
    else:
        status = 500
    if status >= 500:
        logger.exception("Request failed: %s", exc)
    return HTTPException(status_code=status, detail=str(exc))


class ChatRequest(BaseModel):
    text: str = Field(..., description="Learner message")
    stream: bool = Field(default=False, description="Stream the reply as text/plain")


class MessagePayload(BaseModel):
    role: str
    text: str


class ChatResponse(BaseModel):
    reply: Optional[str]
    messages: List[MessagePayload]


class ArtifactResponse(BaseModel):
    artifact: Dict[str, Any]
    local: Optional[str]
    cloud: Optional[str]
    errors: List[str]


class QuizSubmitRequest(BaseModel):
    answers: List[int]


class LLMSettingsRequest(BaseModel):
    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None


class SpeechRequest(BaseModel):
    text: str = Field(..., min_length=1)


app = FastAPI(
    title="Rust Mentor API",
    description="REST API for the Rust mentor",
    version="0.1.0",
)

allow_origins = os.getenv("API_ALLOW_ORIGINS", "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allow_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _messages(system: MentorSystem, mode: ChatMode) -> List[MessagePayload]:
    return [MessagePayload(role=message.role, text=message.text) for message in system.history(mode)]


def _quiz_payload(system: MentorSystem) -> Dict[str, Any]:
    attempt = system.quiz_attempt
    if attempt is None:
        return {"status": None}
    payload: Dict[str, Any] = {
        "status": attempt.status.value,
        "chapter_title": attempt.chapter_title,
        "error": attempt.error,
    }
    if attempt.quiz is not None:
        # correct answers stay hidden until submission
        payload["questions"] = [
            {"question": question.question, "options": question.options} for question in attempt.quiz.questions
        ]
    if attempt.evaluation is not None:
        payload["evaluation"] = attempt.evaluation.model_dump(mode="json")
        payload["passed"] = attempt.passed
    return payload


def _stream_reply(system: MentorSystem, mode: ChatMode, text: str) -> Iterator[str]:
    """Relay deltas from a worker thread; closing the response cancels the generation."""
    chunks: "queue.Queue[Optional[str]]" = queue.Queue()
    token = CancellationToken()

    def worker() -> None:
        try:
            system.send_message(mode, text, on_delta=chunks.put, cancel_token=token)
        finally:
            chunks.put(None)

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    try:
        while True:
            chunk = chunks.get()
            if chunk is None:
                break
            yield chunk
        history = system.history(mode)
        if history and history[-1].role == "system":
            yield f"\n\n{history[-1].text}"
    finally:
        token.cancel()
        thread.join()


@app.get("/health", summary="Health check")
async def health() -> Dict[str, str]:
    """Return service health information."""
    return {"status": "ok"}


@app.get("/dashboard", summary="Progress summary")
async def dashboard(system: MentorSystem = Depends(get_system)) -> Dict[str, Any]:
    return system.dashboard()


@app.post("/chapters/{index}/start", summary="Select the chapter to study")
async def start_chapter(index: int, system: MentorSystem = Depends(get_system)) -> Dict[str, Any]:
    try:
        title = system.start_chapter(index)
    except MentorError as exc:
        raise _http_error(exc) from exc
    return {"index": index, "title": title}


@app.post("/chat/{mode}", summary="Send a message to a chat mode")
async def chat(mode: ChatMode, payload: ChatRequest, system: MentorSystem = Depends(get_system)):
    """Append the learner message and return (or stream) the mentor reply."""
    if system.sessions[mode].in_flight:
        raise HTTPException(status_code=409, detail=f"{mode.value} session is already waiting for a reply.")
    if payload.stream:
        if not payload.text.strip():
            raise HTTPException(status_code=400, detail="Message text is empty.")
        return StreamingResponse(_stream_reply(system, mode, payload.text), media_type="text/plain")
    try:
        reply = await asyncio.to_thread(system.send_message, mode, payload.text)
    except MentorError as exc:
        raise _http_error(exc) from exc
    return ChatResponse(reply=reply.text if reply else None, messages=_messages(system, mode))


@app.get("/chat/{mode}", response_model=ChatResponse, summary="Chat history of a mode")
async def chat_history(mode: ChatMode, system: MentorSystem = Depends(get_system)) -> ChatResponse:
    return ChatResponse(reply=None, messages=_messages(system, mode))


@app.post("/artifacts/{mode}", response_model=ArtifactResponse, summary="Save the chat as an artifact")
async def create_artifact(mode: ChatMode, system: MentorSystem = Depends(get_system)) -> ArtifactResponse:
    try:
        result = await asyncio.to_thread(system.generate_artifact, mode)
    except MentorError as exc:
        raise _http_error(exc) from exc
    if result is None:
        raise HTTPException(status_code=400, detail="An artifact needs at least one exchange.")
    return ArtifactResponse(
        artifact=result.artifact.model_dump(mode="json"),
        local=result.local.value if result.local else None,
        cloud=result.cloud.value if result.cloud else None,
        errors=result.errors,
    )


@app.get("/artifacts", summary="List saved artifacts")
async def list_artifacts(system: MentorSystem = Depends(get_system)) -> List[Dict[str, Any]]:
    return [artifact.model_dump(mode="json") for artifact in system.state.artifacts]


@app.post("/quiz", summary="Generate a quiz for the current chapter")
async def create_quiz(system: MentorSystem = Depends(get_system)) -> Dict[str, Any]:
    try:
        await asyncio.to_thread(system.start_quiz)
    except MentorError as exc:
        raise _http_error(exc) from exc
    payload = _quiz_payload(system)
    if payload["status"] == QuizStatus.FAILED.value:
        raise HTTPException(status_code=502, detail=payload["error"])
    return payload


@app.post("/quiz/submit", summary="Submit answers for the active quiz")
async def submit_quiz(payload: QuizSubmitRequest, system: MentorSystem = Depends(get_system)) -> Dict[str, Any]:
    try:
        system.submit_quiz(payload.answers)
    except (RuntimeError, ValueError, IndexError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _quiz_payload(system)


@app.post("/curriculum", summary="Replace the curriculum from a document")
async def upload_curriculum(
    file: UploadFile = File(...),
    system: MentorSystem = Depends(get_system),
) -> Dict[str, Any]:
    data = await file.read()
    mime_type = file.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = guess_mime_type(Path(file.filename or "upload"))
    try:
        topics = await asyncio.to_thread(system.upload_curriculum, data, mime_type)
    except MentorError as exc:
        raise _http_error(exc) from exc
    return {"topics": topics}


@app.delete("/curriculum", summary="Return to the default curriculum")
async def reset_curriculum(system: MentorSystem = Depends(get_system)) -> Dict[str, Any]:
    return {"topics": system.reset_curriculum()}


@app.put("/settings/llm", summary="Change the LLM provider")
async def update_llm(payload: LLMSettingsRequest, system: MentorSystem = Depends(get_system)) -> Dict[str, Any]:
    try:
        config = system.update_llm_config(**payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"provider": config.provider, "model": config.model, "base_url": config.base_url}


@app.post("/speech", summary="Synthesize speech as raw 16-bit PCM")
async def speech(payload: SpeechRequest, system: MentorSystem = Depends(get_system)) -> Response:
    try:
        pcm = await asyncio.to_thread(system.speak, payload.text)
    except MentorError as exc:
        raise _http_error(exc) from exc
    return Response(
        content=pcm,
        media_type="application/octet-stream",
        headers={"X-Sample-Rate": str(system.settings.speech.sample_rate)},
    )


@app.post("/reset", summary="Erase all learner data")
async def reset(system: MentorSystem = Depends(get_system)) -> Dict[str, str]:
    system.reset_all()
    return {"status": "reset"}
