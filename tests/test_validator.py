from __future__ import annotations

import copy
import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from openjsonui.errors import ErrorKind, ValidationError
from openjsonui.validator import MAX_DEPTH, is_valid, validate

MINIMAL = {
    "weather": {"type": "weather", "location": "Tokyo"},
    "dataVisualization": {"type": "dataVisualization", "data": [{"label": "a", "value": 1}]},
    "form": {"type": "form", "fields": [{"name": "email", "type": "email"}]},
    "actionCard": {"type": "actionCard", "actions": [{"label": "Go", "action": "go"}]},
    "dashboard": {
        "type": "dashboard",
        "sections": [
            {"type": "metric", "title": "Users", "component": {"type": "metric", "value": "12"}},
        ],
    },
    "workflow": {"type": "workflow", "steps": [{"title": "Start", "type": "info"}]},
}


def _nested_dashboards(levels: int) -> dict:
    component = {"type": "weather", "id": "leaf", "location": "Oslo"}
    for i in range(levels - 1):
        component = {
            "type": "dashboard",
            "id": f"d{i}",
            "sections": [{"type": "dashboard", "title": f"level {i}", "component": component}],
        }
    return component


# ============================================================
# Scenarios
# ============================================================

def test_weather_keeps_id_and_leaves_optional_fields_absent(weather_payload) -> None:
    result = validate(weather_payload)
    assert is_valid(result)
    assert result == {"id": "w1", "type": "weather", "location": "Tokyo"}
    for name in ("temperature", "description", "humidity", "windSpeed", "feelsLike", "icon"):
        assert name not in result


def test_form_fills_field_and_button_defaults(form_payload) -> None:
    result = validate(form_payload)
    assert is_valid(result)
    assert result["fields"] == [{"name": "email", "type": "email", "required": False}]
    assert result["submitButton"] == {"text": "Submit", "style": "primary"}


def test_bogus_type_is_an_unknown_variant() -> None:
    error = validate({"type": "bogus"})
    assert isinstance(error, ValidationError)
    assert error.kind is ErrorKind.UNKNOWN_VARIANT
    assert "bogus" in error.message
    assert error.path == "type"


def test_missing_discriminant() -> None:
    error = validate({"location": "Tokyo"})
    assert error.kind is ErrorKind.UNKNOWN_VARIANT
    assert "missing discriminant" in error.message


def test_embedded_kind_is_not_accepted_at_top_level() -> None:
    error = validate({"type": "metric", "value": "3"})
    assert error.kind is ErrorKind.UNKNOWN_VARIANT


# ============================================================
# Defaults and idempotency
# ============================================================

@pytest.mark.parametrize("tag", sorted(MINIMAL))
def test_minimal_payload_gets_declared_defaults(tag) -> None:
    result = validate(MINIMAL[tag])
    assert is_valid(result), result
    assert result["type"] == tag
    assert isinstance(result["id"], str) and result["id"].startswith(f"{tag}-")


def test_variant_defaults() -> None:
    assert validate(MINIMAL["dataVisualization"])["chartType"] == "table"
    card = validate(MINIMAL["actionCard"])
    assert card["variant"] == "default"
    assert card["actions"][0] == {
        "label": "Go",
        "action": "go",
        "style": "primary",
        "size": "md",
        "disabled": False,
    }
    dashboard = validate(MINIMAL["dashboard"])
    assert (dashboard["layout"], dashboard["gridCols"], dashboard["gap"]) == ("grid", 3, "md")
    section = dashboard["sections"][0]
    assert section["span"] == {"cols": 1, "rows": 1}
    assert section["id"].startswith("section-")
    workflow = validate(MINIMAL["workflow"])
    assert (workflow["currentStep"], workflow["showProgress"], workflow["allowSkip"]) == (0, True, False)
    assert workflow["steps"][0]["completed"] is False
    assert workflow["steps"][0]["id"].startswith("step-")


@pytest.mark.parametrize("tag", sorted(MINIMAL))
def test_validate_is_idempotent(tag) -> None:
    once = validate(MINIMAL[tag])
    assert validate(json.dumps(once)) == once


def test_generated_id_is_deterministic() -> None:
    assert validate(MINIMAL["weather"])["id"] == validate(dict(MINIMAL["weather"]))["id"]


def test_input_is_not_mutated() -> None:
    payload = copy.deepcopy(MINIMAL["dashboard"])
    validate(payload)
    assert payload == MINIMAL["dashboard"]


def test_unknown_keys_are_dropped() -> None:
    result = validate({"type": "weather", "id": "w1", "location": "Tokyo", "extra": {"x": 1}})
    assert "extra" not in result


def test_explicit_null_on_optional_field_is_kept() -> None:
    result = validate({"type": "weather", "id": "w1", "location": "Tokyo", "title": None})
    assert result["title"] is None


# ============================================================
# Rejections carry a path
# ============================================================

def test_missing_required_field_path() -> None:
    error = validate({"type": "form", "id": "f1", "fields": [{"type": "email"}]})
    assert error.kind is ErrorKind.MISSING_FIELD
    assert error.path == "fields[0].name"
    assert error.field == "name"


def test_type_mismatch_path() -> None:
    payload = copy.deepcopy(MINIMAL["dashboard"])
    payload["sections"][0]["component"]["value"] = 12
    error = validate(payload)
    assert error.kind is ErrorKind.FIELD_TYPE_MISMATCH
    assert error.path == "sections[0].component.value"
    assert (error.expected, error.actual) == ("string", "number")


def test_null_on_required_field_is_a_mismatch() -> None:
    error = validate({"type": "weather", "location": None})
    assert error.kind is ErrorKind.FIELD_TYPE_MISMATCH
    assert error.path == "location"


def test_null_id_is_rejected() -> None:
    error = validate({"type": "weather", "id": None, "location": "Tokyo"})
    assert error.kind is ErrorKind.FIELD_TYPE_MISMATCH
    assert error.path == "id"


def test_enum_violation() -> None:
    error = validate({"type": "dataVisualization", "chartType": "radar", "data": []})
    assert error.kind is ErrorKind.FIELD_TYPE_MISMATCH
    assert error.path == "chartType"
    assert "'bar'" in error.expected


def test_boolean_is_not_a_number() -> None:
    error = validate({"type": "dataVisualization", "data": [{"label": "a", "value": True}]})
    assert error.kind is ErrorKind.FIELD_TYPE_MISMATCH
    assert error.path == "data[0].value"


def test_layout_bounds_are_clamped() -> None:
    payload = copy.deepcopy(MINIMAL["dashboard"])
    payload["gridCols"] = 40
    payload["sections"][0]["span"] = {"cols": 0, "rows": 9}
    result = validate(payload)
    assert result["gridCols"] == 12
    assert result["sections"][0]["span"] == {"cols": 1, "rows": 6}


def test_negative_current_step_is_rejected() -> None:
    error = validate({"type": "workflow", "currentStep": -1, "steps": []})
    assert error.kind is ErrorKind.FIELD_TYPE_MISMATCH
    assert error.path == "currentStep"


def test_integral_float_is_accepted_as_integer() -> None:
    result = validate({"type": "workflow", "currentStep": 2.0, "steps": []})
    assert result["currentStep"] == 2
    assert isinstance(result["currentStep"], int)


def test_section_component_must_be_an_allowed_kind() -> None:
    payload = {
        "type": "dashboard",
        "sections": [{"type": "table", "title": "x", "component": {"type": "info", "content": "no"}}],
    }
    error = validate(payload)
    assert error.kind is ErrorKind.UNKNOWN_VARIANT
    assert error.path == "sections[0].component.type"


# ============================================================
# Malformed input, depth and cycles
# ============================================================

def test_malformed_json_reports_position() -> None:
    error = validate('{"type": "weather", "location": }')
    assert error.kind is ErrorKind.MALFORMED_INPUT
    assert error.position == 32


def test_non_object_input() -> None:
    assert validate("[1, 2]").kind is ErrorKind.MALFORMED_INPUT
    assert validate(b"42").kind is ErrorKind.MALFORMED_INPUT


def test_bytes_input_is_accepted() -> None:
    assert validate(json.dumps(MINIMAL["weather"]).encode("utf-8"))["location"] == "Tokyo"


def test_nesting_up_to_the_bound_is_accepted() -> None:
    assert is_valid(validate(_nested_dashboards(MAX_DEPTH)))


def test_nesting_past_the_bound_is_rejected() -> None:
    error = validate(_nested_dashboards(MAX_DEPTH + 1))
    assert error.kind is ErrorKind.MAX_DEPTH_EXCEEDED
    assert error.path.endswith(".component")


def test_max_depth_is_configurable() -> None:
    assert validate(_nested_dashboards(3), max_depth=2).kind is ErrorKind.MAX_DEPTH_EXCEEDED


def test_reusing_an_ancestor_id_is_cyclic() -> None:
    payload = {
        "type": "dashboard",
        "id": "d1",
        "sections": [
            {"type": "weather", "title": "w", "component": {"type": "dashboard", "id": "d1", "sections": []}},
        ],
    }
    error = validate(payload)
    assert error.kind is ErrorKind.CYCLIC_REFERENCE
    assert error.path == "sections[0].component.id"
    assert error.actual == "d1"


def test_sibling_ids_may_repeat() -> None:
    leaf = {"type": "weather", "id": "same", "location": "Oslo"}
    payload = {
        "type": "dashboard",
        "id": "d1",
        "sections": [
            {"type": "weather", "title": "a", "component": leaf},
            {"type": "weather", "title": "b", "component": leaf},
        ],
    }
    assert is_valid(validate(payload))


def test_error_to_dict() -> None:
    error = validate({"type": "bogus"})
    assert error.to_dict() == {
        "kind": "UnknownVariant",
        "message": "unknown component type 'bogus'",
        "path": "type",
        "actual": "'bogus'",
    }


# ============================================================
# Idempotency
# ============================================================

_SPAN_INT = st.one_of(st.integers(-20, 40), st.integers(-20, 40).map(float))
_TITLE = st.one_of(st.none(), st.text(max_size=8))


@st.composite
def _dashboards(draw, depth: int = 0) -> dict:
    sections = []
    for _ in range(draw(st.integers(0, 3))):
        if depth < 2 and draw(st.booleans()):
            component = draw(_dashboards(depth + 1))
        else:
            component = {"type": "weather", "location": draw(st.text(min_size=1, max_size=8)), "title": draw(_TITLE)}
        sections.append(
            {
                "type": "chart",
                "title": draw(st.text(max_size=8)),
                "span": {"cols": draw(_SPAN_INT), "rows": draw(_SPAN_INT)},
                "component": component,
            }
        )
    return {"type": "dashboard", "title": draw(_TITLE), "gridCols": draw(_SPAN_INT), "sections": sections}


@pytest.mark.parametrize(
    "payload",
    [
        {
            "type": "dashboard",
            "gridCols": 40.0,
            "sections": [
                {
                    "type": "metric",
                    "title": "Users",
                    "span": {"cols": 0, "rows": 9.0},
                    "component": {"type": "metric", "value": "12"},
                }
            ],
        },
        {"type": "workflow", "currentStep": 2.0, "steps": [{"title": "Start", "type": "info"}]},
        {"type": "weather", "id": "w1", "location": "Tokyo", "title": None},
        {
            "type": "actionCard",
            "actions": [{"label": "Go", "action": "go", "params": {"n": 1.5, "tags": ["a", None]}}],
        },
        {
            "type": "dashboard",
            "sections": [
                {
                    "type": "chart",
                    "title": "inner",
                    "component": {
                        "type": "workflow",
                        "steps": [{"title": "a", "type": "info", "component": {"type": "info", "content": "x"}}],
                    },
                }
            ],
        },
    ],
)
def test_normalizing_twice_changes_nothing(payload) -> None:
    once = validate(payload)
    assert is_valid(once), once
    assert validate(json.dumps(once)) == once
    assert validate(once) == once


@settings(max_examples=60, deadline=None)
@given(_dashboards())
def test_generated_dashboards_normalize_idempotently(payload) -> None:
    once = validate(payload)
    assert is_valid(once), once
    assert validate(json.dumps(once)) == once
    assert 1 <= once["gridCols"] <= 12
    assert all(1 <= s["span"]["cols"] <= 12 and 1 <= s["span"]["rows"] <= 6 for s in once["sections"])


# ============================================================
# Non-finite numbers
# ============================================================

@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_json_number_literals_are_malformed(literal) -> None:
    text = '{"type": "actionCard", "actions": [{"label": "Go", "action": "go", "params": {"x": %s}}]}' % literal
    error = validate(text)
    assert error.kind is ErrorKind.MALFORMED_INPUT
    assert literal.lstrip("-") in error.message


def test_non_finite_value_in_decoded_payload_is_rejected() -> None:
    payload = {"type": "actionCard", "actions": [{"label": "Go", "action": "go", "params": {"x": [1, float("inf")]}}]}
    error = validate(payload)
    assert error.kind is ErrorKind.FIELD_TYPE_MISMATCH
    assert error.path == "actions[0].params.x[1]"
