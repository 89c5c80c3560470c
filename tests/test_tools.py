from __future__ import annotations

import json

import httpx
import pytest

from openjsonui.errors import StaleWriteError
from openjsonui.tools import components, weather
from openjsonui.tools.agent_config import get_agent_settings, get_core_settings, load_agent_config
from openjsonui.tools.components import (
    create_action_card,
    create_dashboard,
    create_interactive_form,
    create_workflow,
    get_ui_state,
    get_weather,
    show_data_visualization,
    update_ui_state,
)
from openjsonui.validator import is_valid, validate

_OSLO = weather.Location(name="Oslo", latitude=59.91, longitude=10.75, timezone="Europe/Oslo")


def _response(url: str, payload: dict, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("GET", url))


# ============================================================
# Weather service
# ============================================================

def test_temperature_formatting() -> None:
    assert weather.c_to_f(0) == 32.0
    assert weather.fmt_temp_c_f(21.1) == "70°F (21.1°C)"
    assert weather.fmt_temp_c_f(None) == ""
    assert weather.fmt_num(12.0, " mph") == "12 mph"


def test_name_candidates_simplify_qualifiers() -> None:
    assert weather._name_candidates("Seattle, WA") == ["Seattle, WA", "Seattle"]


def test_current_conditions_maps_weather_codes() -> None:
    out = weather.current_conditions(
        {
            "current": {
                "temperature_2m": 10,
                "apparent_temperature": 8.5,
                "relative_humidity_2m": 81,
                "wind_speed_10m": 7.24,
                "weather_code": 63,
            }
        }
    )
    assert out == {
        "temperature": "50°F (10°C)",
        "feelsLike": "47.3°F (8.5°C)",
        "humidity": "81%",
        "windSpeed": "7.2 mph",
        "description": "Rain",
        "icon": "rain",
    }


def test_geocode_tries_simpler_names(monkeypatch) -> None:
    seen = []

    def fake_get(url, params=None, timeout=None):
        seen.append(params["name"])
        if params["name"] == "Portland":
            return _response(url, {"results": [{"name": "Portland", "latitude": 45.5, "longitude": -122.6}]})
        return _response(url, {})

    monkeypatch.setattr(weather.httpx, "get", fake_get)
    loc = weather.geocode_location("Portland, OR")
    assert seen == ["Portland, OR", "Portland"]
    assert loc == weather.Location("Portland", 45.5, -122.6, "auto")


def test_fetch_current(monkeypatch) -> None:
    def fake_get(url, params=None, timeout=None):
        assert url == weather.FORECAST_URL
        assert params["wind_speed_unit"] == "mph"
        return _response(url, {"timezone": "Europe/Oslo", "current": {"temperature_2m": 3}})

    monkeypatch.setattr(weather.httpx, "get", fake_get)
    forecast = weather.fetch_current(_OSLO)
    assert forecast["location"]["name"] == "Oslo"
    assert forecast["current"] == {"temperature_2m": 3}


# ============================================================
# Component tools produce valid payloads
# ============================================================

def test_get_weather_builds_a_valid_card(monkeypatch) -> None:
    monkeypatch.setattr(components, "geocode_location", lambda q: _OSLO)
    monkeypatch.setattr(
        components,
        "fetch_current",
        lambda loc: {"location": {"name": loc.name}, "current": {"temperature_2m": 0, "weather_code": 0}},
    )
    card = validate(get_weather("oslo"))
    assert is_valid(card)
    assert card["location"] == "Oslo"
    assert card["temperature"] == "32°F (0°C)"
    assert card["icon"] == "sun"
    assert card["id"].startswith("weather-")


def test_get_weather_degrades_when_the_service_fails(monkeypatch) -> None:
    def boom(query):
        raise httpx.ConnectError("offline")

    monkeypatch.setattr(components, "geocode_location", boom)
    card = validate(get_weather("Oslo"))
    assert is_valid(card)
    assert card["location"] == "Oslo"
    assert card["description"] == "Weather service is temporarily unavailable"
    assert "temperature" not in card


def test_get_weather_unknown_place(monkeypatch) -> None:
    monkeypatch.setattr(components, "geocode_location", lambda q: None)
    card = validate(get_weather("Atlantis"))
    assert card["description"] == "No location found matching 'Atlantis'"


def test_visualization_tool() -> None:
    result = validate(show_data_visualization("Sales", "bar", [{"label": "Q1", "value": 10}], x_axis="Quarter"))
    assert result["chartType"] == "bar"
    assert result["xAxis"] == "Quarter"
    assert validate(show_data_visualization("Empty"))["data"][0]["label"] == "Sample Data"


def test_form_tool() -> None:
    result = validate(create_interactive_form("Contact", "Say hi"))
    assert result["fields"][0]["name"] == "example"
    assert result["submitButton"] == {"text": "Submit", "style": "primary"}


def test_dashboard_tool_maps_section_kinds() -> None:
    raw = create_dashboard(
        "Ops",
        sections=[
            {"type": "metric", "title": "Users", "data": {"value": "12"}},
            {"type": "chart", "title": "Trend", "data": {"chartType": "line", "data": [{"label": "a", "value": 1}]}},
            {"type": "table", "title": "Top", "data": {"data": [{"label": "b", "value": 2}]}},
        ],
    )
    result = validate(raw)
    assert is_valid(result), result
    kinds = [s["component"]["type"] for s in result["sections"]]
    assert kinds == ["metric", "dataVisualization", "dataVisualization"]
    assert result["sections"][2]["component"]["chartType"] == "table"
    assert result["sections"][1]["component"]["title"] == "Trend"


def test_action_card_tool() -> None:
    result = validate(create_action_card("Next", [{"label": "Go", "action": "go", "params": {"n": 1}}]))
    assert result["actions"][0]["params"] == {"n": 1}
    assert result["actions"][0]["style"] == "primary"


def test_workflow_tool() -> None:
    result = validate(
        create_workflow(
            "Onboarding",
            steps=[
                {"title": "Hello", "type": "info", "component": {"type": "info", "content": "hi"}},
                {"title": "Check", "type": "review", "completed": True},
            ],
            current_step=1,
        )
    )
    assert is_valid(result), result
    assert result["currentStep"] == 1
    assert [s["completed"] for s in result["steps"]] == [False, True]


def test_tool_ids_are_unique() -> None:
    a = json.loads(show_data_visualization("x"))["id"]
    b = json.loads(show_data_visualization("x"))["id"]
    assert a != b


# ============================================================
# State tools
# ============================================================

def test_update_and_read_ui_state(session) -> None:
    result = update_ui_state(session, "appData", {"theme": "dark"})
    assert result["keys"] == ["theme"]
    read = get_ui_state(session, "appData", "theme")
    assert read["data"] == "dark"
    assert read["lastUpdate"] == result["lastUpdate"]
    assert get_ui_state(session)["data"]["appData"] == {"theme": "dark"}


def test_update_ui_state_honours_the_guard(session) -> None:
    update_ui_state(session, "appData", {"a": 1})
    with pytest.raises(StaleWriteError):
        update_ui_state(session, "appData", {"a": 2}, expected_last_update=0)


# ============================================================
# Configuration
# ============================================================

def test_config_from_custom_path(tmp_path, monkeypatch) -> None:
    path = tmp_path / "agents.yaml"
    path.write_text(
        "default_model: gpt-test\n"
        "form_agent:\n  system_prompt: forms only\n"
        "ui_core:\n  max_depth: 8\n  strict_ids: true\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("AGENT_CONFIG_PATH", str(path))
    load_agent_config.cache_clear()
    try:
        settings = get_agent_settings("form_agent")
        assert settings.model_name == "gpt-test"
        assert settings.system_prompt == "forms only"
        core = get_core_settings()
        assert (core.max_depth, core.strict_ids) == (8, True)
    finally:
        load_agent_config.cache_clear()


def test_missing_config_falls_back_to_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("AGENT_CONFIG_PATH", str(tmp_path / "absent.yaml"))
    load_agent_config.cache_clear()
    try:
        assert get_agent_settings("form_agent").system_prompt is None
        assert get_core_settings().max_depth == 32
    finally:
        load_agent_config.cache_clear()


def test_bundled_config_has_every_agent() -> None:
    load_agent_config.cache_clear()
    config = load_agent_config()
    for name in (
        "supervisor",
        "weather_agent",
        "visualization_agent",
        "form_agent",
        "action_card_agent",
        "dashboard_agent",
        "workflow_agent",
        "ui_state_agent",
    ):
        assert get_agent_settings(name).system_prompt, name
    assert config["ui_core"] == {"max_depth": 32, "strict_ids": False}
