"""
FastAPI server for the UI agent and the shared UI state.

``/stream`` runs the agent graph once for a user message and emits its state
updates as Server‑Sent Events; a component that survives validation arrives
in the ``render`` update already admitted to the session's canvas.  The
``/validate`` and ``/sessions/...`` endpoints expose the core directly so a
client can check payloads, read and patch the shared document, and manage
the canvas without going through the agent.

Errors from the core come back as JSON bodies with a ``kind``:
400 for a bad section or patch, 409 for a stale write or an id conflict,
422 for a component that fails validation.

To start the server run ``uvicorn openjsonui.main:app --reload`` from the
project root after installing dependencies.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from typing import Any, Iterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .agents import AgentState
from .agents import _compiled_agent_graph as agent_graph
from .errors import (
    DuplicateIdConflictError,
    InvalidPatchError,
    InvalidSectionError,
    StaleWriteError,
    UIStateError,
    ValidationError,
)
from .schemas import loads_strict
from .session import get_session, get_session_registry
from .tools.langfuse_tracing import end_trace, start_trace
from .validator import validate

app = FastAPI(title="OpenJSONUI Backend")

# Configure a simple application-wide logger.  The log level can be set via
# the LOG_LEVEL environment variable (default: INFO).  Logs are emitted to
# standard output, which can be captured by the hosting environment.
_log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=_log_level,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger("openjsonui.main")

_STATUS = {
    InvalidSectionError: 400,
    InvalidPatchError: 400,
    StaleWriteError: 409,
    DuplicateIdConflictError: 409,
}


class CanvasAdmission(BaseModel):
    # Either a decoded object or the raw JSON text of one.
    component: Any
    dedupKey: Optional[str] = None


@app.exception_handler(UIStateError)
async def ui_state_error_handler(request: Request, exc: UIStateError) -> JSONResponse:
    status = _STATUS.get(type(exc), 400)
    logger.info(f"{request.method} {request.url.path} -> {status}: {exc.error.kind.value} {exc.error.message}")
    return JSONResponse({"error": exc.error.to_dict()}, status_code=status)


def _rejected(error: ValidationError) -> JSONResponse:
    return JSONResponse({"valid": False, "error": error.to_dict()}, status_code=422)


async def _json_body(request: Request, what: str) -> Any:
    """Decode a request body as strict JSON (no NaN or Infinity)."""
    try:
        return loads_strict(await request.body())
    except ValueError as e:
        raise InvalidPatchError(ValidationError.malformed_input(f"{what} is not valid JSON: {e}")) from e


@app.get("/stream")
async def stream(message: str, session_id: str = "default") -> StreamingResponse:
    """Stream graph updates as Server‑Sent Events for a given user message.

    Clients should open an EventSource on this endpoint and supply a
    ``message`` query parameter (and a ``session_id`` to keep state across
    messages).  Each event is prepended with ``data:`` as required by the
    SSE wire format.
    """
    run_id = uuid.uuid4().hex

    # Start a Langfuse trace (optional) so all LLM/tool spans are linked.
    trace = start_trace(
        name="/stream",
        session_id=session_id,
        input={"message": message},
        metadata={"endpoint": "/stream", "run_id": run_id},
    )

    initial_state: AgentState = {"input": message, "output": "", "session_id": session_id, "run_id": run_id}

    logger.info(f"[{session_id}] Received stream request (run {run_id}): {message}")

    def generate_events() -> Iterator[str]:
        try:
            last_chunk = None
            for chunk in agent_graph.stream(initial_state, stream_mode="updates"):
                last_chunk = chunk
                logger.info(f"Graph update: {chunk}")
                # Each ``chunk`` is a dict keyed by node name with updated values.
                yield f"data: {json.dumps(chunk)}\n\n"
            end_trace(trace, output={"last_chunk": last_chunk})
        except Exception as e:
            end_trace(trace, error=str(e))
            raise

    return StreamingResponse(generate_events(), media_type="text/event-stream")


@app.post("/validate")
async def validate_component(request: Request) -> JSONResponse:
    """Validate a raw component payload without admitting it anywhere."""
    result = validate(await request.body())
    if isinstance(result, ValidationError):
        return _rejected(result)
    return JSONResponse({"valid": True, "component": result})


@app.get("/sessions/{session_id}/state")
async def read_state(session_id: str, section: Optional[str] = None, key: Optional[str] = None) -> JSONResponse:
    store = get_session(session_id).store
    if key is not None and section is None:
        return JSONResponse(
            {"error": ValidationError.missing_field("section").to_dict()},
            status_code=400,
        )
    return JSONResponse({"data": store.read_section(section, key), "lastUpdate": store.last_update})


@app.patch("/sessions/{session_id}/state/{section}")
async def patch_state(
    session_id: str,
    section: str,
    request: Request,
    expected_last_update: Optional[int] = None,
) -> JSONResponse:
    patch = await _json_body(request, "patch")
    document = get_session(session_id).store.apply_patch(
        section, patch, expected_last_update=expected_last_update
    )
    return JSONResponse(document)


@app.get("/sessions/{session_id}/canvas")
async def read_canvas(session_id: str) -> JSONResponse:
    return JSONResponse([inst.to_dict() for inst in get_session(session_id).canvas.instances()])


@app.post("/sessions/{session_id}/canvas")
async def admit_component(session_id: str, body: CanvasAdmission) -> JSONResponse:
    result = get_session(session_id).ingest(body.component, body.dedupKey)
    if isinstance(result, ValidationError):
        return _rejected(result)
    return JSONResponse([inst.to_dict() for inst in result])


@app.get("/sessions/{session_id}/checkpoint")
async def checkpoint(session_id: str) -> JSONResponse:
    return JSONResponse(get_session(session_id).checkpoint())


@app.put("/sessions/{session_id}/checkpoint")
async def restore(session_id: str, request: Request) -> JSONResponse:
    body = await _json_body(request, "checkpoint")
    if not isinstance(body, dict):
        raise InvalidPatchError(ValidationError.field_type_mismatch("<root>", "object", type(body).__name__))
    session = get_session(session_id)
    session.restore(body)
    return JSONResponse(session.checkpoint())


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str) -> JSONResponse:
    """Reset the session's document and canvas, then forget the session."""
    registry = get_session_registry()
    if session_id not in registry.ids():
        return JSONResponse({"sessionId": session_id, "deleted": False}, status_code=404)
    registry.get(session_id).reset()
    registry.drop(session_id)
    return JSONResponse({"sessionId": session_id, "deleted": True})


@app.get("/")
async def root() -> JSONResponse:
    """Return a brief description of the API."""
    return JSONResponse(
        {
            "message": "OpenJSONUI backend is running. Use /stream?message=... for streaming, "
            "/validate to check a component, and /sessions/{id}/... for state and canvas.",
        }
    )
