"""
Component tools: each returns the JSON text of one candidate UI description.

These are the calls the agent makes to put something on the canvas.  Their
output is untrusted from the core's point of view and goes through
:func:`openjsonui.validator.validate` before anything is rendered, so the
tools only shape the payload; they do not enforce the contract themselves.

Ids are minted here, once per emission (``weather-3f9c0a1b2``), so a
re-validated payload keeps its id.  The two state tools at the bottom read
and patch a session's shared document.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .langfuse_tracing import traced_tool
from .weather import current_conditions, fetch_current, geocode_location

if TYPE_CHECKING:
    from ..session import Session

logger = logging.getLogger("openjsonui.tools.components")

# Dashboard section kinds -> component kinds.
_SECTION_COMPONENT = {
    "metric": "metric",
    "chart": "dataVisualization",
    "table": "dataVisualization",
    "form": "form",
    "weather": "weather",
    "actionCard": "actionCard",
    "dataVisualization": "dataVisualization",
    "dashboard": "dashboard",
    "workflow": "workflow",
}


def new_component_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:9]}"


def _dump(component: Dict[str, Any]) -> str:
    return json.dumps(component)


@traced_tool("ui.weather")
def get_weather(location: str) -> str:
    """Weather card for ``location``; degrades to a location-only card."""
    component: Dict[str, Any] = {
        "id": new_component_id("weather"),
        "type": "weather",
        "location": location,
        "title": f"Weather in {location}",
    }
    try:
        loc = geocode_location(location)
        if loc is None:
            component["description"] = f"No location found matching '{location}'"
        else:
            component["location"] = loc.name
            component["title"] = f"Weather in {loc.name}"
            component.update(current_conditions(fetch_current(loc)))
    except Exception:
        logger.exception(f"Weather lookup failed for {location!r}")
        component["description"] = "Weather service is temporarily unavailable"
    return _dump(component)


@traced_tool("ui.data_visualization")
def show_data_visualization(
    title: str,
    chart_type: Optional[str] = None,
    items: Optional[List[Dict[str, Any]]] = None,
    x_axis: Optional[str] = None,
    y_axis: Optional[str] = None,
) -> str:
    component: Dict[str, Any] = {
        "id": new_component_id("dataviz"),
        "type": "dataVisualization",
        "title": title,
        "chartType": chart_type or "table",
        "data": items or [{"label": "Sample Data", "value": "No data provided"}],
    }
    if x_axis:
        component["xAxis"] = x_axis
    if y_axis:
        component["yAxis"] = y_axis
    return _dump(component)


@traced_tool("ui.form")
def create_interactive_form(
    title: str,
    description: Optional[str] = None,
    fields: Optional[List[Dict[str, Any]]] = None,
    submit_text: str = "Submit",
) -> str:
    component: Dict[str, Any] = {
        "id": new_component_id("form"),
        "type": "form",
        "title": title,
        "fields": fields
        or [{"name": "example", "type": "text", "label": "Example Field", "placeholder": "Enter text..."}],
        "submitButton": {"text": submit_text, "style": "primary"},
    }
    if description:
        component["description"] = description
    return _dump(component)


def _section_component(section: Dict[str, Any]) -> Dict[str, Any]:
    kind = section.get("type")
    data = section.get("data")
    component: Dict[str, Any] = dict(data) if isinstance(data, dict) else {}
    component_type = _SECTION_COMPONENT.get(kind, kind) if isinstance(kind, str) else kind
    component.setdefault("type", component_type)
    if component_type == "dataVisualization" and kind == "table":
        component.setdefault("chartType", "table")
    if component_type != "metric":
        component.setdefault("id", new_component_id(str(component_type)))
        if section.get("title"):
            component.setdefault("title", section["title"])
    return component


@traced_tool("ui.dashboard")
def create_dashboard(
    title: str,
    sections: List[Dict[str, Any]],
    layout: Optional[str] = None,
    grid_cols: int = 3,
) -> str:
    """Dashboard whose sections carry ``type``, ``title`` and optional ``data``."""
    component = {
        "id": new_component_id("dashboard"),
        "type": "dashboard",
        "title": title,
        "layout": layout or "grid",
        "gridCols": grid_cols,
        "sections": [
            {
                "id": new_component_id("section"),
                "type": section.get("type"),
                "title": section.get("title"),
                **({"span": section["span"]} if isinstance(section.get("span"), dict) else {}),
                "component": _section_component(section),
            }
            for section in sections or []
        ],
    }
    return _dump(component)


@traced_tool("ui.action_card")
def create_action_card(
    title: str,
    actions: List[Dict[str, Any]],
    description: Optional[str] = None,
) -> str:
    component: Dict[str, Any] = {
        "id": new_component_id("actioncard"),
        "type": "actionCard",
        "title": title,
        "actions": [
            {
                "label": action.get("label"),
                "action": action.get("action"),
                "style": action.get("style") or "primary",
                **({"params": action["params"]} if isinstance(action.get("params"), dict) else {}),
            }
            for action in actions or []
        ],
    }
    if description:
        component["description"] = description
    return _dump(component)


@traced_tool("ui.workflow")
def create_workflow(
    title: str,
    steps: List[Dict[str, Any]],
    current_step: int = 0,
) -> str:
    component = {
        "id": new_component_id("workflow"),
        "type": "workflow",
        "title": title,
        "currentStep": current_step,
        "showProgress": True,
        "steps": [
            {
                "id": f"step-{index}-{uuid.uuid4().hex[:6]}",
                "title": step.get("title"),
                "type": step.get("type"),
                "completed": bool(step.get("completed", False)),
                **({"description": step["description"]} if step.get("description") else {}),
                **({"component": step["component"]} if isinstance(step.get("component"), dict) else {}),
            }
            for index, step in enumerate(steps or [])
        ],
    }
    return _dump(component)


def get_ui_state(session: Session, state_key: Optional[str] = None, key: Optional[str] = None) -> Dict[str, Any]:
    """Read the shared document (or one section, or one entry)."""
    return {
        "action": "getUIState",
        "stateKey": state_key,
        "data": session.store.read_section(state_key, key),
        "lastUpdate": session.store.last_update,
    }


def update_ui_state(
    session: Session,
    state_key: str,
    data: Dict[str, Any],
    *,
    expected_last_update: Optional[int] = None,
) -> Dict[str, Any]:
    """Shallow-merge ``data`` into one section of the shared document."""
    document = session.store.apply_patch(state_key, data, expected_last_update=expected_last_update)
    return {
        "action": "updateUIState",
        "stateKey": state_key,
        "keys": sorted(data),
        "lastUpdate": document["lastUpdate"],
    }


__all__ = [
    "get_weather",
    "show_data_visualization",
    "create_interactive_form",
    "create_dashboard",
    "create_action_card",
    "create_workflow",
    "get_ui_state",
    "update_ui_state",
    "new_component_id",
]
