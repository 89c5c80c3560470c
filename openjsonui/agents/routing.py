from __future__ import annotations

import logging
from typing import Literal

from ..session import get_session
from ..tools.agent_config import get_agent_settings
from ..tools.langfuse_tracing import end_span, start_span
from ..tools.llm import ask_llm, get_llm

from .state_agent import parse_assignment
from .types import AgentState
from .ui import system_prompt_with_state

logger = logging.getLogger("openjsonui.agents.routing")

Route = Literal[
    "weather_agent",
    "visualization_agent",
    "form_agent",
    "action_card_agent",
    "dashboard_agent",
    "workflow_agent",
    "ui_state_agent",
]

ROUTES: tuple = (
    "weather_agent",
    "visualization_agent",
    "form_agent",
    "action_card_agent",
    "dashboard_agent",
    "workflow_agent",
    "ui_state_agent",
)

# Checked in order; the first group with a hit wins.
_KEYWORD_ROUTES: tuple = (
    (
        "ui_state_agent",
        ["what did i enter", "what i entered", "form data", "my answers", "ui state"],
    ),
    (
        "weather_agent",
        ["weather", "forecast", "temperature", "rain", "snow", "wind", "humidity"],
    ),
    ("dashboard_agent", ["dashboard", "overview", "kpi", "metrics"]),
    ("workflow_agent", ["workflow", "step by step", "steps", "process", "onboarding", "wizard"]),
    ("form_agent", ["form", "sign up", "signup", "register", "survey", "feedback", "contact"]),
    ("visualization_agent", ["chart", "graph", "plot", "visuali", "table", "data"]),
    ("action_card_agent", ["action", "button", "options", "choose", "card"]),
)


def supervisor(state: AgentState) -> AgentState:
    """Supervisor node: pass-through state."""
    return {}


def _keyword_route(text: str) -> Route:
    if parse_assignment(text) is not None:
        return "ui_state_agent"
    for decision, keywords in _KEYWORD_ROUTES:
        if any(k in text for k in keywords):
            return decision  # type: ignore[return-value]
    if "?" in text:
        return "visualization_agent"
    return "form_agent"


def route(state: AgentState) -> Route:
    """Determine which component agent should handle the current request."""
    user_text = state.get("input", "")

    route_span = start_span(
        name="agent:route",
        input={"input": user_text},
        metadata={"kind": "routing"},
    )

    supervisor_settings = get_agent_settings("supervisor")
    llm = get_llm(supervisor_settings.model_name)
    if llm is not None:
        router_prompt = (
            "Choose the single best specialist for the user's request. "
            f"Return ONLY one of these exact tokens: {', '.join(ROUTES)}.\n\n"
            "Routing guidance:\n"
            "- weather_agent: weather, forecast, temperature, rain, snow, wind\n"
            "- visualization_agent: charts, graphs, tables of data\n"
            "- form_agent: collecting input from the user (sign-ups, surveys, contact details)\n"
            "- action_card_agent: presenting a few choices or actions as buttons\n"
            "- dashboard_agent: overviews combining metrics, charts and other widgets\n"
            "- workflow_agent: multi-step processes, wizards, onboarding\n"
            "- ui_state_agent: questions about what the user entered, or storing a value\n\n"
            f"User message: {user_text}"
        )
        try:
            document = get_session(state.get("session_id") or "default").store.snapshot()
            decision = ask_llm(
                router_prompt,
                model_name=supervisor_settings.model_name,
                system_prompt=system_prompt_with_state(supervisor_settings.system_prompt, document),
            )
            token = (decision or "").strip().split()[0].strip().lower() if (decision or "").strip() else ""
            if token in ROUTES:
                end_span(route_span, output={"decision": token, "mode": "llm"})
                return token  # type: ignore[return-value]
            logger.warning(f"Router returned an unknown token {decision!r}; using keyword routing")
        except Exception:
            logger.exception("LLM routing failed; using keyword routing")

    decision = _keyword_route(user_text.lower())
    end_span(route_span, output={"decision": decision, "mode": "keyword"})
    return decision
