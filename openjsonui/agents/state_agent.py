from __future__ import annotations

import json
import logging
import re
from typing import Optional

from ..errors import UIStateError
from ..session import get_session
from ..tools.agent_config import get_agent_settings
from ..tools.components import get_ui_state, update_ui_state
from ..tools.langfuse_tracing import traced_span
from ..tools.llm import ask_llm, get_llm

from .types import AgentState
from .ui import system_prompt_with_state

logger = logging.getLogger("openjsonui.agents.state")

_ASSIGNMENT = re.compile(
    r"\b(?:set|remember)\s+(?:my\s+|the\s+)?(?P<key>[A-Za-z][\w \-]{0,40}?)\s+(?:to|as|=)\s+(?P<value>.+?)[.!]?\s*$",
    flags=re.IGNORECASE,
)


def parse_assignment(text: str) -> Optional[tuple[str, str]]:
    """``"set theme to dark"`` -> ``("theme", "dark")``."""
    m = _ASSIGNMENT.search(text or "")
    if not m:
        return None
    key = re.sub(r"[\s\-]+", "_", m.group("key").strip().lower())
    value = m.group("value").strip().strip("'\"")
    if not key or not value:
        return None
    return key, value


def _summarise(data: dict) -> str:
    if not data:
        return "Nothing has been entered into any form yet."
    lines = [f"- {key}: {value}" for key, value in data.items()]
    return "Here is what you entered:\n" + "\n".join(lines)


def ui_state_agent(state: AgentState) -> AgentState:
    """Answer questions about the shared UI state, or store a value in it."""
    query = state.get("input", "")
    session = get_session(state.get("session_id") or "default")

    with traced_span("agent:ui_state_agent", input={"input": query}, kind="agent") as span:
        assignment = parse_assignment(query)
        if assignment is not None:
            key, value = assignment
            try:
                result = update_ui_state(session, "appData", {key: value})
            except UIStateError as e:
                logger.warning(f"[{session.session_id}] State update rejected: {e}")
                out: AgentState = {"output": f"I couldn't store that: {e}", "ui_error": e.error.to_dict()}
                span["output"] = out
                return out
            out = {"output": f"Saved {key} = {value}.", "ui_state": result}
            span["output"] = out
            return out

        read = get_ui_state(session, "formData")
        text = _summarise(read["data"] or {})

        settings = get_agent_settings("ui_state_agent")
        if get_llm(settings.model_name) is not None:
            try:
                answer = ask_llm(
                    f"User question: {query}\n\nForm data: {json.dumps(read['data'])}",
                    model_name=settings.model_name,
                    system_prompt=system_prompt_with_state(settings.system_prompt, session.store.snapshot()),
                )
                if isinstance(answer, str) and answer.strip():
                    text = answer.strip()
            except Exception:
                logger.exception("LLM answer failed; using the plain summary")

        out = {"output": text, "ui_state": read}
        span["output"] = out
        return out
