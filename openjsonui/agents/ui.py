from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping, Optional


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """Best-effort extraction of a JSON object from an LLM response."""
    if not text:
        return None
    fenced = re.search(r"```json\s*(\{.*?\})\s*```", text, flags=re.DOTALL | re.IGNORECASE)
    if fenced:
        snippet = fenced.group(1)
    else:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            return None
        snippet = text[start : end + 1]
    try:
        obj = json.loads(snippet)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def state_context(document: Mapping[str, Any]) -> str:
    """Summary of the shared UI state for a system prompt."""
    components = document.get("components") or {}
    form_data = document.get("formData") or {}
    app_data = document.get("appData") or {}
    lines = [
        "Current UI State:",
        f"- Active Components: {len(components)}",
        f"- Form Data: {json.dumps(form_data, indent=2)}",
        f"- App Data: {json.dumps(app_data, indent=2)}",
    ]
    if form_data:
        lines.append(
            "The user has entered data into forms. Use getUIState to read it when "
            "they ask what they entered or how their form data is doing."
        )
    return "\n".join(lines)


def error_fallback(error: Mapping[str, Any]) -> Dict[str, Any]:
    """A component shown in place of one that failed validation."""
    message = str(error.get("message") or "invalid component")
    return {
        "id": "error-fallback",
        "type": "actionCard",
        "title": "This component could not be displayed",
        "description": message,
        "variant": "outlined",
        "actions": [{"label": "Try again", "action": "retry", "style": "secondary"}],
    }


def system_prompt_with_state(system_prompt: Optional[str], document: Mapping[str, Any]) -> str:
    return f"{system_prompt or ''}\n\n{state_context(document)}".strip()
