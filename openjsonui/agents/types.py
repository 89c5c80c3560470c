from __future__ import annotations

from typing import Any, Dict, TypedDict


class AgentState(TypedDict, total=False):
    """Schema for the graph’s state."""

    input: str
    output: str
    session_id: str
    # Identifies one graph run; the render step derives its dedup key from it.
    run_id: str
    # Raw JSON text emitted by a component agent, not yet validated.
    ui: str
    # The admitted component (after validation), or the rejection.
    component: Dict[str, Any]
    ui_error: Dict[str, Any]
    ui_state: Dict[str, Any]
