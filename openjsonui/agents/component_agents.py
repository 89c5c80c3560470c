"""Agents that turn a request into one candidate component.

Each agent asks the language model for the arguments of its component tool
(the contract from the registry goes into the prompt) and falls back to a
keyword-picked template when no model is configured or the answer is
unusable.  The tool's JSON text is left under ``ui`` for the render node.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from ..schemas import REGISTRY
from ..session import get_session
from ..tools.agent_config import get_agent_settings
from ..tools.components import (
    create_action_card,
    create_dashboard,
    create_interactive_form,
    create_workflow,
    show_data_visualization,
)
from ..tools.langfuse_tracing import traced_span
from ..tools.llm import ask_llm, get_llm

from .types import AgentState
from .ui import extract_json_object, system_prompt_with_state

logger = logging.getLogger("openjsonui.agents.components")

_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun"]


def _title_from(query: str, default: str) -> str:
    text = re.sub(r"^(please\s+)?(show|create|build|make|give|draw)\s+(me\s+)?(an?\s+|the\s+)?", "", query.strip(), flags=re.I)
    text = text.strip(" .!?")
    return text[:1].upper() + text[1:80] if text else default


def _llm_args(agent_name: str, tag: str, state: AgentState, arguments: str) -> Optional[Dict[str, Any]]:
    """Tool arguments proposed by the model, or None."""
    settings = get_agent_settings(agent_name)
    if get_llm(settings.model_name) is None:
        return None
    query = state.get("input", "")
    document = get_session(state.get("session_id") or "default").store.snapshot()
    prompt = (
        f"Build arguments for a '{tag}' component answering the user's request.\n"
        f"Return ONLY a JSON object with these keys: {arguments}.\n"
        f"The rendered component must satisfy this contract:\n{json.dumps(REGISTRY.describe(tag))}\n\n"
        f"User message: {query}"
    )
    try:
        raw = ask_llm(
            prompt,
            model_name=settings.model_name,
            system_prompt=system_prompt_with_state(settings.system_prompt, document),
        )
    except Exception:
        logger.exception(f"{agent_name}: LLM call failed; using a template")
        return None
    args = extract_json_object(raw)
    if args is None:
        logger.warning(f"{agent_name}: no JSON object in the model answer; using a template")
    return args


# ---------------------------------------------------------------------------
# Data visualization
# ---------------------------------------------------------------------------


def _visualization_template(query: str) -> Dict[str, Any]:
    text = query.lower()
    if "pie" in text or "share" in text or "breakdown" in text:
        return {
            "chart_type": "pie",
            "items": [
                {"label": "Product A", "value": 45},
                {"label": "Product B", "value": 30},
                {"label": "Product C", "value": 25},
            ],
        }
    chart_type = "line" if ("line" in text or "trend" in text or "over time" in text) else "bar"
    if "table" in text:
        chart_type = "table"
    values = [120, 150, 170, 140, 190, 210]
    return {
        "chart_type": chart_type,
        "items": [{"label": month, "value": value} for month, value in zip(_MONTHS, values)],
        "x_axis": "Month",
        "y_axis": "Value",
    }


def visualization_agent(state: AgentState) -> AgentState:
    """Chart or table for the requested data."""
    query = state.get("input", "")
    with traced_span("agent:visualization_agent", input={"input": query}, kind="agent") as span:
        args = _llm_args(
            "visualization_agent",
            "dataVisualization",
            state,
            "title, chart_type (bar|line|pie|table), items (list of {label, value, color?}), x_axis, y_axis",
        )
        template = _visualization_template(query)
        if not args or not isinstance(args.get("items"), list):
            args = template
        raw = show_data_visualization(
            title=str(args.get("title") or _title_from(query, "Data overview")),
            chart_type=args.get("chart_type") or template["chart_type"],
            items=args.get("items"),
            x_axis=args.get("x_axis"),
            y_axis=args.get("y_axis"),
        )
        out: AgentState = {"output": "Here is the visualization you asked for.", "ui": raw}
        span["output"] = out
        return out


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


def _form_template(query: str) -> Dict[str, Any]:
    text = query.lower()
    if "feedback" in text or "survey" in text:
        return {
            "title": "Feedback",
            "description": "Tell us how we are doing.",
            "fields": [
                {
                    "name": "rating",
                    "type": "select",
                    "label": "Rating",
                    "required": True,
                    "options": ["Excellent", "Good", "Fair", "Poor"],
                },
                {"name": "comments", "type": "textarea", "label": "Comments", "placeholder": "Anything else?"},
            ],
            "submit_text": "Send feedback",
        }
    if "sign up" in text or "signup" in text or "register" in text:
        return {
            "title": "Create your account",
            "fields": [
                {"name": "name", "type": "text", "label": "Full name", "required": True},
                {"name": "email", "type": "email", "label": "Email", "required": True},
                {
                    "name": "password",
                    "type": "password",
                    "label": "Password",
                    "required": True,
                    "validation": {"min": 8, "message": "At least 8 characters"},
                },
                {"name": "newsletter", "type": "checkbox", "label": "Subscribe to the newsletter"},
            ],
            "submit_text": "Sign up",
        }
    return {
        "title": "Contact us",
        "fields": [
            {"name": "name", "type": "text", "label": "Name", "required": True},
            {"name": "email", "type": "email", "label": "Email", "required": True},
            {"name": "message", "type": "textarea", "label": "Message", "placeholder": "How can we help?"},
        ],
        "submit_text": "Send",
    }


def form_agent(state: AgentState) -> AgentState:
    """Form collecting what the request asks for."""
    query = state.get("input", "")
    with traced_span("agent:form_agent", input={"input": query}, kind="agent") as span:
        args = _llm_args(
            "form_agent",
            "form",
            state,
            "title, description, fields (list of {name, type, label, placeholder?, required?, options?}), submit_text",
        )
        if not args or not isinstance(args.get("fields"), list):
            args = _form_template(query)
        raw = create_interactive_form(
            title=str(args.get("title") or "Form"),
            description=args.get("description"),
            fields=args.get("fields"),
            submit_text=str(args.get("submit_text") or "Submit"),
        )
        out: AgentState = {"output": "Please fill in the form.", "ui": raw}
        span["output"] = out
        return out


# ---------------------------------------------------------------------------
# Action cards
# ---------------------------------------------------------------------------


def _action_card_template(query: str) -> Dict[str, Any]:
    return {
        "title": _title_from(query, "What would you like to do?"),
        "description": "Pick one of the options below.",
        "actions": [
            {"label": "Continue", "action": "continue", "style": "primary"},
            {"label": "Learn more", "action": "learn_more", "style": "secondary"},
            {"label": "Cancel", "action": "cancel", "style": "danger"},
        ],
    }


def action_card_agent(state: AgentState) -> AgentState:
    """Card presenting a few actions."""
    query = state.get("input", "")
    with traced_span("agent:action_card_agent", input={"input": query}, kind="agent") as span:
        args = _llm_args(
            "action_card_agent",
            "actionCard",
            state,
            "title, description, actions (list of {label, action, style?, params?})",
        )
        if not args or not isinstance(args.get("actions"), list):
            args = _action_card_template(query)
        raw = create_action_card(
            title=str(args.get("title") or "Actions"),
            description=args.get("description"),
            actions=args["actions"],
        )
        out: AgentState = {"output": "Here are your options.", "ui": raw}
        span["output"] = out
        return out


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------


def _dashboard_template(query: str) -> Dict[str, Any]:
    sections: List[Dict[str, Any]] = [
        {"type": "metric", "title": "Revenue", "data": {"value": "$48,200", "unit": "USD"}},
        {"type": "metric", "title": "Active users", "data": {"value": "1,284"}},
        {"type": "metric", "title": "Conversion", "data": {"value": "3.4", "unit": "%"}},
        {
            "type": "chart",
            "title": "Monthly revenue",
            "span": {"cols": 2},
            "data": {
                "chartType": "line",
                "data": [{"label": m, "value": v} for m, v in zip(_MONTHS, [31, 35, 38, 42, 45, 48])],
            },
        },
        {
            "type": "table",
            "title": "Top products",
            "data": {
                "data": [
                    {"label": "Product A", "value": 1200},
                    {"label": "Product B", "value": 860},
                    {"label": "Product C", "value": 540},
                ]
            },
        },
    ]
    return {"title": _title_from(query, "Overview"), "layout": "grid", "grid_cols": 3, "sections": sections}


def dashboard_agent(state: AgentState) -> AgentState:
    """Dashboard of metric, chart and table sections."""
    query = state.get("input", "")
    with traced_span("agent:dashboard_agent", input={"input": query}, kind="agent") as span:
        args = _llm_args(
            "dashboard_agent",
            "dashboard",
            state,
            "title, layout (grid|columns|rows), grid_cols, sections (list of "
            "{type: metric|chart|table|form|weather|actionCard, title, span?, data})",
        )
        if not args or not isinstance(args.get("sections"), list):
            args = _dashboard_template(query)
        grid_cols = args.get("grid_cols")
        raw = create_dashboard(
            title=str(args.get("title") or "Dashboard"),
            sections=args["sections"],
            layout=args.get("layout"),
            grid_cols=grid_cols if isinstance(grid_cols, int) else 3,
        )
        out: AgentState = {"output": "Here is your dashboard.", "ui": raw}
        span["output"] = out
        return out


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


def _workflow_template(query: str) -> Dict[str, Any]:
    return {
        "title": _title_from(query, "Getting started"),
        "current_step": 0,
        "steps": [
            {
                "title": "Welcome",
                "type": "info",
                "description": "A quick overview of what happens next.",
                "component": {"type": "info", "content": "This takes about two minutes."},
            },
            {
                "title": "Your details",
                "type": "form",
                "component": {
                    "id": "workflow-details-form",
                    "type": "form",
                    "title": "Your details",
                    "fields": [
                        {"name": "name", "type": "text", "label": "Name", "required": True},
                        {"name": "email", "type": "email", "label": "Email", "required": True},
                    ],
                },
            },
            {"title": "Review and confirm", "type": "review"},
        ],
    }


def workflow_agent(state: AgentState) -> AgentState:
    """Multi-step workflow for a process."""
    query = state.get("input", "")
    with traced_span("agent:workflow_agent", input={"input": query}, kind="agent") as span:
        args = _llm_args(
            "workflow_agent",
            "workflow",
            state,
            "title, current_step (integer, 0-based), steps (list of "
            "{title, type: form|info|action|review, description?, component?})",
        )
        if not args or not isinstance(args.get("steps"), list):
            args = _workflow_template(query)
        current_step = args.get("current_step")
        raw = create_workflow(
            title=str(args.get("title") or "Workflow"),
            steps=args["steps"],
            current_step=current_step if isinstance(current_step, int) else 0,
        )
        out: AgentState = {"output": "Let's go through this step by step.", "ui": raw}
        span["output"] = out
        return out
