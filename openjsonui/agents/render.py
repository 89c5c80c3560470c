from __future__ import annotations

import logging

from ..errors import UIStateError, ValidationError
from ..session import get_session
from ..tools.langfuse_tracing import traced_span
from ..validator import validate

from .types import AgentState
from .ui import error_fallback

logger = logging.getLogger("openjsonui.agents.render")


def render(state: AgentState) -> AgentState:
    """Validate the agent's raw payload and admit it into the session canvas.

    The dedup key is derived from the run id, so replaying a run's updates
    cannot put the same component on the canvas twice.  A rejected payload
    never reaches the canvas; the client gets the error and a fallback card
    to show instead.
    """
    raw = state.get("ui")
    if not raw:
        return {}

    session = get_session(state.get("session_id") or "default")
    dedup_key = f"{state.get('run_id') or 'run'}:ui"

    with traced_span("render", input={"dedup_key": dedup_key}, kind="render") as span:
        result = validate(raw, max_depth=session.max_depth)
        if isinstance(result, ValidationError):
            logger.info(f"[{session.session_id}] Rejected component: {result.kind.value} {result.message}")
            error = result.to_dict()
            out: AgentState = {"ui_error": error, "component": error_fallback(error)}
            span["output"] = out
            return out

        try:
            session.canvas.admit(result, dedup_key, strict=session.strict_ids)
        except UIStateError as e:
            logger.warning(f"[{session.session_id}] Component not admitted: {e}")
            error = e.error.to_dict()
            out = {"ui_error": error, "component": error_fallback(error)}
            span["output"] = out
            return out

        instance = session.canvas.get(result["id"])
        if instance is None:
            span["output"] = {"dedup_key": dedup_key, "admitted": False}
            return {}
        span["output"] = {"instanceId": instance.instance_id, "count": len(session.canvas)}
        return {"component": instance.to_dict()}
