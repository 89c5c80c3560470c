"""Build and expose the LangGraph agent that puts components on the canvas.

The graph consists of a supervisor node, one agent per component kind
(``weather_agent``, ``visualization_agent``, ``form_agent``,
``action_card_agent``, ``dashboard_agent``, ``workflow_agent``) followed by a
``render`` node that validates and admits the payload, and a
``ui_state_agent`` that reads or patches the shared document.
"""

from .types import AgentState
from .graph import get_agent_graph, _compiled_agent_graph

__all__ = [
    "AgentState",
    "get_agent_graph",
    "_compiled_agent_graph",
]
