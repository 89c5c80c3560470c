"""Agent and UI-core configuration loader.

Settings live in `openjsonui/agent_config.yaml` (or the file named by the
`AGENT_CONFIG_PATH` environment variable).

The loader is tolerant:
- If the YAML file is missing or invalid, it falls back to empty defaults.
- Callers can still override model names explicitly at call sites.

The YAML schema:

- default_model: <string | null>
- supervisor/weather_agent/form_agent/...:
    system_prompt: <string | null>
    model_name: <string | null>
- ui_core:
    max_depth: <int, default 32>
    strict_ids: <bool, default false>
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

import yaml

logger = logging.getLogger("openjsonui.config")

DEFAULT_MAX_DEPTH = 32


@dataclass(frozen=True)
class AgentSettings:
    model_name: Optional[str]
    system_prompt: Optional[str]


@dataclass(frozen=True)
class CoreSettings:
    max_depth: int = DEFAULT_MAX_DEPTH
    strict_ids: bool = False


def _default_config_path() -> str:
    # openjsonui/tools/agent_config.py -> openjsonui/agent_config.yaml
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "agent_config.yaml"))


@lru_cache(maxsize=1)
def load_agent_config(path: Optional[str] = None) -> dict[str, Any]:
    config_path = path or os.getenv("AGENT_CONFIG_PATH") or _default_config_path()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.info(f"No config file at {config_path}; using defaults")
        return {}
    except (OSError, yaml.YAMLError):
        logger.exception(f"Could not read config file {config_path}; using defaults")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Config file {config_path} is not a mapping; using defaults")
        return {}
    return data


def _block(name: str) -> dict[str, Any]:
    block = load_agent_config().get(name)
    return block if isinstance(block, dict) else {}


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def get_agent_settings(agent_name: str) -> AgentSettings:
    """Settings for one agent; its own ``model_name`` wins over ``default_model``."""
    block = _block(agent_name)
    model_name = block.get("model_name")
    if model_name is None:
        model_name = load_agent_config().get("default_model")
    return AgentSettings(
        model_name=_str_or_none(model_name),
        system_prompt=_str_or_none(block.get("system_prompt")),
    )


def get_core_settings() -> CoreSettings:
    block = _block("ui_core")
    max_depth = block.get("max_depth")
    if not isinstance(max_depth, int) or isinstance(max_depth, bool) or max_depth < 1:
        max_depth = DEFAULT_MAX_DEPTH
    return CoreSettings(max_depth=max_depth, strict_ids=block.get("strict_ids") is True)
