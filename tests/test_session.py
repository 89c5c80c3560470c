from __future__ import annotations

import pytest

from openjsonui.errors import DuplicateIdConflictError, ErrorKind, InvalidPatchError, ValidationError
from openjsonui.session import Session, SessionRegistry, get_session, get_session_registry


def test_ingest_validates_then_admits(session, weather_payload) -> None:
    instances = session.ingest(weather_payload, "run-1:ui")
    assert [inst.component_id for inst in instances] == ["w1"]
    assert instances[0].description == {"id": "w1", "type": "weather", "location": "Tokyo"}


def test_ingest_accepts_raw_json_text(session) -> None:
    instances = session.ingest('{"type": "weather", "id": "w9", "location": "Lima"}')
    assert instances[0].component_id == "w9"


def test_rejected_payload_leaves_canvas_untouched(session, weather_payload) -> None:
    session.ingest(weather_payload, "k1")
    result = session.ingest({"type": "bogus"}, "k2")
    assert isinstance(result, ValidationError)
    assert result.kind is ErrorKind.UNKNOWN_VARIANT
    assert len(session.canvas) == 1
    assert not session.canvas.seen("k2")


def test_canvas_clear_does_not_touch_state(session, weather_payload) -> None:
    session.ingest(weather_payload)
    session.store.apply_patch("formData", {"f1": {"email": "a@x.com"}})
    session.canvas.clear()
    assert session.store.read_section("formData", "f1") == {"email": "a@x.com"}


def test_reset_clears_state_and_canvas(session, weather_payload) -> None:
    session.ingest(weather_payload, "k1")
    stamp = session.store.apply_patch("appData", {"theme": "dark"})["lastUpdate"]
    document = session.reset()
    assert document["appData"] == {}
    assert document["lastUpdate"] > stamp
    assert len(session.canvas) == 0
    assert not session.canvas.seen("k1")


def test_checkpoint_and_restore(session, weather_payload, form_payload, clock) -> None:
    session.ingest(weather_payload, "k1")
    session.ingest(form_payload, "k2")
    session.store.apply_patch("formData", {"f1": {"email": "a@x.com"}})
    checkpoint = session.checkpoint()

    assert checkpoint["sessionId"] == "test-session"
    assert [item["component"]["id"] for item in checkpoint["canvas"]] == ["w1", "f1"]
    assert checkpoint["dedupKeys"] == ["k1", "k2"]

    other = Session("copy", clock=clock)
    other.restore(checkpoint)
    assert [inst.component_id for inst in other.canvas.instances()] == ["w1", "f1"]
    assert other.store.read_section("formData", "f1") == {"email": "a@x.com"}
    assert other.canvas.seen("k1")
    assert len(other.ingest(weather_payload, "k1")) == 2


def test_strict_session_rejects_reused_ids(clock, weather_payload) -> None:
    strict = Session("strict", strict_ids=True, clock=clock)
    strict.ingest(weather_payload)
    with pytest.raises(DuplicateIdConflictError):
        strict.ingest(dict(weather_payload, location="Kyoto"))


def test_session_max_depth_is_applied(clock) -> None:
    shallow = Session("shallow", max_depth=1, clock=clock)
    payload = {
        "type": "dashboard",
        "sections": [{"type": "weather", "title": "w", "component": {"type": "weather", "location": "Oslo"}}],
    }
    assert shallow.ingest(payload).kind is ErrorKind.MAX_DEPTH_EXCEEDED


def test_registry_creates_sessions_once() -> None:
    registry = SessionRegistry()
    assert registry.get("a") is registry.get("a")
    assert registry.ids() == ["a"]
    assert registry.drop("a") is True
    assert registry.drop("a") is False


def test_process_registry_uses_configured_defaults() -> None:
    session = get_session("configured")
    assert session is get_session_registry().get("configured")
    assert session.max_depth == 32
    assert session.strict_ids is False


@pytest.mark.parametrize(
    "checkpoint,path",
    [
        ({"canvas": [{"instanceId": "i1", "component": {"type": "bogus"}}]}, "canvas[0].component.type"),
        ({"canvas": [{"instanceId": "i1", "component": {"type": "weather"}}]}, "canvas[0].component.location"),
        ({"canvas": [{"component": {"type": "weather", "location": "Oslo"}}]}, "canvas[0].instanceId"),
        ({"canvas": [{"instanceId": "i1", "timestamp": "soon", "component": {}}]}, "canvas[0].timestamp"),
        ({"canvas": [7]}, "canvas[0]"),
        ({"canvas": {"i1": {}}}, "canvas"),
        ({"dedupKeys": [1]}, "dedupKeys[0]"),
        ({"state": {"appData": {"n": float("nan")}}}, "appData.n"),
    ],
)
def test_restore_rejects_bad_checkpoints_and_keeps_the_session(session, weather_payload, checkpoint, path) -> None:
    session.ingest(weather_payload, "k1")
    session.store.apply_patch("appData", {"theme": "dark"})
    before = session.checkpoint()

    with pytest.raises(InvalidPatchError) as excinfo:
        session.restore(checkpoint)

    assert excinfo.value.error.path == path
    assert session.checkpoint() == before


def test_restore_rejects_non_mapping(session) -> None:
    with pytest.raises(InvalidPatchError):
        session.restore([1, 2])  # type: ignore[arg-type]


def test_restored_components_are_normalized_and_admit_still_works(session, weather_payload) -> None:
    session.restore({"canvas": [{"instanceId": "i1", "component": {"type": "weather", "location": "Lima"}}]})
    restored = session.canvas.instances()[0]
    assert restored.component_id.startswith("weather-")
    assert restored.timestamp == 0

    instances = session.ingest(weather_payload)
    assert [inst.component_id for inst in instances] == [restored.component_id, "w1"]
