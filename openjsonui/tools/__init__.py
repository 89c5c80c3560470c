# This package aggregates the tool functions used by the UI agent.
#
# The component tools return the JSON text of a candidate component; the
# state tools read and patch a session's shared document.  The remaining
# modules hold the plumbing those tools share: configuration, the language
# model client, tracing and the weather service.

from .components import (
    create_action_card,
    create_dashboard,
    create_interactive_form,
    create_workflow,
    get_ui_state,
    get_weather,
    show_data_visualization,
    update_ui_state,
)

__all__ = [
    "get_weather",
    "show_data_visualization",
    "create_interactive_form",
    "create_dashboard",
    "create_action_card",
    "create_workflow",
    "get_ui_state",
    "update_ui_state",
]
