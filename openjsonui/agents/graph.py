from __future__ import annotations

from langgraph.graph import END, START, StateGraph

from .component_agents import (
    action_card_agent,
    dashboard_agent,
    form_agent,
    visualization_agent,
    workflow_agent,
)
from .render import render
from .routing import ROUTES, route, supervisor
from .state_agent import ui_state_agent
from .types import AgentState
from .weather_agent import weather_agent

# Agents whose payload goes through the render node.
COMPONENT_AGENTS = {
    "weather_agent": weather_agent,
    "visualization_agent": visualization_agent,
    "form_agent": form_agent,
    "action_card_agent": action_card_agent,
    "dashboard_agent": dashboard_agent,
    "workflow_agent": workflow_agent,
}


def get_agent_graph() -> "StateGraph[AgentState]":
    """Construct and return a compiled StateGraph for the UI agent."""
    graph_builder: StateGraph[AgentState] = StateGraph(AgentState)

    graph_builder.add_node("supervisor", supervisor)
    for name, node in COMPONENT_AGENTS.items():
        graph_builder.add_node(name, node)
    graph_builder.add_node("ui_state_agent", ui_state_agent)
    graph_builder.add_node("render", render)

    graph_builder.add_edge(START, "supervisor")
    graph_builder.add_conditional_edges("supervisor", route, {name: name for name in ROUTES})

    for name in COMPONENT_AGENTS:
        graph_builder.add_edge(name, "render")
    graph_builder.add_edge("render", END)
    graph_builder.add_edge("ui_state_agent", END)

    return graph_builder.compile()


_compiled_agent_graph = get_agent_graph()
