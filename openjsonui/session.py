"""
One conversation's UI state: a shared document plus the canvas.

A :class:`Session` owns exactly one :class:`~openjsonui.state.SharedStateStore`
and one :class:`~openjsonui.canvas.CanvasController`.  The two are independent
for ordinary writes, and coupled on purpose for the operations that must see
both at once: a full reset and checkpoint export/restore.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .canvas import CanvasController, CanvasInstance
from .errors import InvalidPatchError, ValidationError
from .state import SharedStateDocument, SharedStateStore
from .tools.agent_config import get_core_settings
from .validator import MAX_DEPTH, validate

logger = logging.getLogger("openjsonui.session")


class Session:
    def __init__(
        self,
        session_id: str,
        *,
        max_depth: int = MAX_DEPTH,
        strict_ids: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.session_id = session_id
        self.max_depth = max_depth
        self.strict_ids = strict_ids
        self.store = SharedStateStore(clock=clock)
        self.canvas = CanvasController(clock=clock)

    def ingest(
        self, raw: Any, dedup_key: Optional[str] = None
    ) -> Union[List[CanvasInstance], ValidationError]:
        """Validate ``raw`` and admit it; nothing changes when validation fails."""
        result = validate(raw, max_depth=self.max_depth)
        if isinstance(result, ValidationError):
            logger.info(f"[{self.session_id}] Rejected component: {result.kind.value} {result.message}")
            return result
        return self.canvas.admit(result, dedup_key, strict=self.strict_ids)

    def reset(self) -> SharedStateDocument:
        """Clear the shared document and the canvas as one step."""
        with self.store.transaction(), self.canvas.transaction():
            self.canvas.clear()
            document = self.store.clear()
        logger.info(f"[{self.session_id}] Session reset")
        return document

    def checkpoint(self) -> Dict[str, Any]:
        """The durable unit: document, ordered instances, dedup keys."""
        with self.store.transaction(), self.canvas.transaction():
            return {
                "sessionId": self.session_id,
                "state": self.store.snapshot(),
                "canvas": [inst.to_dict() for inst in self.canvas.instances()],
                "dedupKeys": sorted(self.canvas.dedup_keys),
            }

    def restore(self, checkpoint: Mapping[str, Any]) -> None:
        """Replace document, canvas and dedup keys from a :meth:`checkpoint`.

        Every canvas entry is re-validated first; the first bad entry raises
        :class:`InvalidPatchError` and the session is left as it was.
        """
        if not isinstance(checkpoint, Mapping):
            raise InvalidPatchError(
                ValidationError.field_type_mismatch("<root>", "object", type(checkpoint).__name__)
            )
        instances = [
            self._restored_instance(item, f"canvas[{i}]")
            for i, item in enumerate(self._list_field(checkpoint, "canvas"))
        ]
        keys = self._list_field(checkpoint, "dedupKeys")
        for i, key in enumerate(keys):
            if not isinstance(key, str):
                raise InvalidPatchError(
                    ValidationError.field_type_mismatch(f"dedupKeys[{i}]", "string", type(key).__name__)
                )
        state = checkpoint.get("state") or {}
        if not isinstance(state, Mapping):
            raise InvalidPatchError(ValidationError.field_type_mismatch("state", "object", type(state).__name__))

        with self.store.transaction(), self.canvas.transaction():
            self.store.load(state)
            self.canvas.load(instances, keys)
        logger.info(f"[{self.session_id}] Restored {len(instances)} instances from checkpoint")

    @staticmethod
    def _list_field(checkpoint: Mapping[str, Any], name: str) -> List[Any]:
        value = checkpoint.get(name) or []
        if not isinstance(value, list):
            raise InvalidPatchError(ValidationError.field_type_mismatch(name, "array", type(value).__name__))
        return value

    def _restored_instance(self, item: Any, path: str) -> CanvasInstance:
        if not isinstance(item, Mapping):
            raise InvalidPatchError(ValidationError.field_type_mismatch(path, "object", type(item).__name__))
        instance_id = item.get("instanceId")
        if not isinstance(instance_id, str) or not instance_id:
            raise InvalidPatchError(
                ValidationError.field_type_mismatch(f"{path}.instanceId", "string", type(instance_id).__name__)
            )
        timestamp = item.get("timestamp", 0)
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            raise InvalidPatchError(
                ValidationError.field_type_mismatch(f"{path}.timestamp", "integer", type(timestamp).__name__)
            )
        result = validate(item.get("component"), max_depth=self.max_depth)
        if isinstance(result, ValidationError):
            logger.info(f"[{self.session_id}] Rejected checkpoint entry {path}: {result.message}")
            raise InvalidPatchError(replace(result, path=f"{path}.component.{result.path}".rstrip(".")))
        return CanvasInstance(instance_id=instance_id, description=dict(result), timestamp=timestamp)


class SessionRegistry:
    """Session id -> :class:`Session`, created on first use."""

    def __init__(self, **session_kwargs: Any) -> None:
        self._session_kwargs = session_kwargs
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def get(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(session_id, **self._session_kwargs)
                self._sessions[session_id] = session
                logger.info(f"Created session {session_id}")
            return session

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)


_registry: Optional[SessionRegistry] = None
_registry_lock = threading.Lock()


def get_session_registry() -> SessionRegistry:
    """Process-wide registry configured from the ``ui_core`` config block."""
    global _registry
    with _registry_lock:
        if _registry is None:
            settings = get_core_settings()
            _registry = SessionRegistry(max_depth=settings.max_depth, strict_ids=settings.strict_ids)
        return _registry


def get_session(session_id: str) -> Session:
    return get_session_registry().get(session_id)


__all__ = ["Session", "SessionRegistry", "get_session_registry", "get_session"]
