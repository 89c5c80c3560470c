from __future__ import annotations

import json
import logging
import re
from typing import Optional

from ..session import get_session
from ..tools.agent_config import get_agent_settings
from ..tools.components import get_weather
from ..tools.langfuse_tracing import end_span, start_span
from ..tools.llm import ask_llm, get_llm

from .types import AgentState
from .ui import extract_json_object, system_prompt_with_state

logger = logging.getLogger("openjsonui.agents.weather")


def _extract_location_guess(user_text: str) -> Optional[str]:
    if not user_text:
        return None
    m = re.search(r"\b(?:in|for|at)\s+([^\n\r\?\!\.]+)", user_text, flags=re.IGNORECASE)
    if not m:
        return None
    loc = m.group(1).strip()
    loc = re.sub(
        r"\b(today|tomorrow|tonight|this week|next week|right now|now)\b.*$",
        "",
        loc,
        flags=re.IGNORECASE,
    ).strip()
    return loc or None


def _narrative(card: dict) -> str:
    head = f"Weather in {card.get('location')}"
    details = ", ".join(v for v in (card.get("temperature"), card.get("description")) if v)
    return f"{head}: {details}" if details else head


def weather_agent(state: AgentState) -> AgentState:
    """Emit a weather card for the location the user asked about."""
    _span = start_span(name="agent:weather_agent", input={"input": state.get("input")}, metadata={"kind": "agent"})
    query = state.get("input", "")
    weather_settings = get_agent_settings("weather_agent")

    location_text = _extract_location_guess(query)

    llm = get_llm(weather_settings.model_name)
    if llm is not None:
        try:
            document = get_session(state.get("session_id") or "default").store.snapshot()
            intent_prompt = (
                "Extract the location of this weather request. Return ONLY valid JSON with the key "
                "location (string or null).\n\n"
                f"User message: {query}"
            )
            intent_raw = ask_llm(
                intent_prompt,
                model_name=weather_settings.model_name,
                system_prompt=system_prompt_with_state(weather_settings.system_prompt, document),
            )
            intent = extract_json_object(intent_raw) or {}
            if isinstance(intent.get("location"), str) and intent["location"].strip():
                location_text = intent["location"].strip()
        except Exception:
            logger.exception("Weather intent extraction failed; using the regex guess")

    if not location_text:
        out: AgentState = {"output": "Which location should I use (e.g., 'Seattle, WA')?"}
        end_span(_span, output=out)
        return out

    raw = get_weather(location_text)
    card = json.loads(raw)
    out = {"output": _narrative(card), "ui": raw}
    end_span(_span, output=out)
    return out
