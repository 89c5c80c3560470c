"""
Bookkeeping for the components currently shown on the canvas.

The agent tends to emit the same result more than once (a tool call that is
re-rendered, an updated version of a widget it already produced).  The
:class:`CanvasController` keeps one ordered list of materialized instances
and applies three rules on admission, in this order:

1. a dedup key seen earlier in the session makes the admission a no-op;
2. a description whose ``id`` is already on the canvas replaces that
   instance in place, keeping its position and ``instanceId``;
3. anything else is appended, so insertion order is display order.

``strict=True`` turns rule 2 into a :class:`DuplicateIdConflictError` for
callers that want create-only semantics.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from .errors import DuplicateIdConflictError, ValidationError
from .schemas import ComponentDescription

logger = logging.getLogger("openjsonui.canvas")


@dataclass(frozen=True)
class CanvasInstance:
    instance_id: str
    description: Dict[str, Any]
    timestamp: int

    @property
    def component_id(self) -> str:
        return self.description["id"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instanceId": self.instance_id,
            "timestamp": self.timestamp,
            "component": copy.deepcopy(self.description),
        }


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_instance_id() -> str:
    return f"inst-{uuid.uuid4().hex[:12]}"


class CanvasController:
    """Owner of one session's ordered instance list and dedup-key memory."""

    def __init__(
        self,
        *,
        clock: Optional[Callable[[], int]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._clock = clock or _wall_clock_ms
        self._id_factory = id_factory or _new_instance_id
        self._lock = threading.RLock()
        self._instances: List[CanvasInstance] = []
        self._seen_keys: set[str] = set()

    @contextmanager
    def transaction(self) -> Iterator["CanvasController"]:
        with self._lock:
            yield self

    def _copies(self) -> List[CanvasInstance]:
        return [replace(inst, description=copy.deepcopy(inst.description)) for inst in self._instances]

    def admit(
        self,
        description: ComponentDescription,
        dedup_key: Optional[str] = None,
        *,
        strict: bool = False,
    ) -> List[CanvasInstance]:
        """Materialize a validated description and return the full list.

        Raises:
            ValueError: ``description`` has no string ``id``.
            DuplicateIdConflictError: ``strict`` is set and the id is taken.
        """
        ident = description.get("id") if isinstance(description, Mapping) else None
        if not isinstance(ident, str):
            raise ValueError("only validated component descriptions (with an 'id') can be admitted")
        payload = copy.deepcopy(dict(description))

        with self._lock:
            if dedup_key is not None and dedup_key in self._seen_keys:
                logger.debug(f"Skipped duplicate emission (dedup_key={dedup_key}, id={ident})")
                return self._copies()

            index = next(
                (i for i, inst in enumerate(self._instances) if inst.component_id == ident),
                None,
            )
            if index is not None and strict:
                raise DuplicateIdConflictError(ValidationError.duplicate_id(ident))

            stamp = int(self._clock())
            if index is not None:
                current = self._instances[index]
                self._instances[index] = replace(current, description=payload, timestamp=stamp)
                logger.info(f"Replaced {ident} in place at position {index} ({current.instance_id})")
            else:
                instance = CanvasInstance(instance_id=self._id_factory(), description=payload, timestamp=stamp)
                self._instances.append(instance)
                logger.info(f"Admitted {ident} as {instance.instance_id}")

            if dedup_key is not None:
                self._seen_keys.add(dedup_key)
            return self._copies()

    def instances(self) -> List[CanvasInstance]:
        with self._lock:
            return self._copies()

    def get(self, component_id: str) -> Optional[CanvasInstance]:
        with self._lock:
            for inst in self._instances:
                if inst.component_id == component_id:
                    return replace(inst, description=copy.deepcopy(inst.description))
            return None

    def seen(self, dedup_key: str) -> bool:
        with self._lock:
            return dedup_key in self._seen_keys

    @property
    def dedup_keys(self) -> frozenset:
        with self._lock:
            return frozenset(self._seen_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def clear(self) -> None:
        """Forget every instance and dedup key; shared state is not touched."""
        with self._lock:
            dropped = len(self._instances)
            self._instances = []
            self._seen_keys = set()
            logger.info(f"Cleared canvas ({dropped} instances)")

    def load(self, instances: Iterable[CanvasInstance], dedup_keys: Iterable[str]) -> None:
        restored = [replace(inst, description=copy.deepcopy(inst.description)) for inst in instances]
        keys = set(dedup_keys)
        with self._lock:
            self._instances = restored
            self._seen_keys = keys


__all__ = ["CanvasInstance", "CanvasController"]
