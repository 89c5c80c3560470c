"""
The shared UI state document and its merge-patch protocol.

Every rendered component and the agent read and write one document per
session::

    {
        "components": {instance id: component-local state},
        "formData":   {form id: {field name: value}},
        "appData":    {key: value},
        "lastUpdate": <int, milliseconds>,
    }

Writes go through :meth:`SharedStateStore.apply_patch`, a *shallow* key-wise
merge into one section.  Conflict policy is last-writer-wins per top-level
key: patches touching different keys of a section never interfere, while two
patches to the same key land in arrival order and the later one wins
wholesale (nested values are replaced, not deep-merged).  Callers that need
more than that read ``lastUpdate`` first and pass it back as
``expected_last_update``; the store then refuses the write if anything else
got in between.

``lastUpdate`` is wall-clock milliseconds, bumped on every successful write
and kept strictly increasing: when the clock has not advanced (or went
backwards) the previous value plus one is used instead, so writes are always
totally ordered.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, TypedDict

from .errors import (
    InvalidPatchError,
    InvalidSectionError,
    StaleWriteError,
    ValidationError,
)
from .schemas import non_finite_path

logger = logging.getLogger("openjsonui.state")

SECTIONS = ("components", "formData", "appData")


class SharedStateDocument(TypedDict):
    components: Dict[str, Any]
    formData: Dict[str, Any]
    appData: Dict[str, Any]
    lastUpdate: int


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


def empty_document(last_update: int = 0) -> SharedStateDocument:
    return {"components": {}, "formData": {}, "appData": {}, "lastUpdate": last_update}


def _check_finite(values: Mapping[str, Any], section: str) -> None:
    bad = non_finite_path(values, section)
    if bad is not None:
        raise InvalidPatchError(
            ValidationError.field_type_mismatch(bad, "finite number", "non-finite number")
        )


def check_section(section: Any) -> str:
    if section not in SECTIONS:
        raise InvalidSectionError(ValidationError.invalid_section(section, SECTIONS))
    return section


class SharedStateStore:
    """Owner of one session's :class:`SharedStateDocument`.

    All access is serialized by a re-entrant lock and every value crossing
    the boundary is deep-copied, so no caller ever holds a reference into
    the live document.
    """

    def __init__(self, *, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock or _wall_clock_ms
        self._lock = threading.RLock()
        self._doc: SharedStateDocument = empty_document()

    @contextmanager
    def transaction(self) -> Iterator["SharedStateStore"]:
        """Hold the store lock across several calls."""
        with self._lock:
            yield self

    @property
    def last_update(self) -> int:
        with self._lock:
            return self._doc["lastUpdate"]

    def _next_stamp(self) -> int:
        return max(int(self._clock()), self._doc["lastUpdate"] + 1)

    def apply_patch(
        self,
        section: str,
        patch: Mapping[str, Any],
        *,
        expected_last_update: Optional[int] = None,
    ) -> SharedStateDocument:
        """Merge ``patch`` into ``section`` and return the new document.

        Each top-level key of ``patch`` replaces the entry stored under that
        key; keys the patch does not mention are left alone.

        Raises:
            InvalidSectionError: ``section`` is not a known section.
            InvalidPatchError: ``patch`` is not a mapping with string keys, or
                holds a NaN or infinite number.
            StaleWriteError: ``expected_last_update`` no longer matches.
        """
        check_section(section)
        if not isinstance(patch, Mapping):
            raise InvalidPatchError(
                ValidationError.field_type_mismatch(section, "object", type(patch).__name__)
            )
        bad_keys = [k for k in patch if not isinstance(k, str)]
        if bad_keys:
            raise InvalidPatchError(
                ValidationError.field_type_mismatch(section, "string keys", repr(bad_keys[0]))
            )
        _check_finite(patch, section)
        values = copy.deepcopy(dict(patch))

        with self._lock:
            current = self._doc["lastUpdate"]
            if expected_last_update is not None and expected_last_update != current:
                raise StaleWriteError(ValidationError.stale_write(expected_last_update, current))
            self._doc[section].update(values)  # type: ignore[literal-required]
            self._doc["lastUpdate"] = self._next_stamp()
            logger.debug(
                f"Patched {section} keys={sorted(values)} lastUpdate={self._doc['lastUpdate']}"
            )
            return copy.deepcopy(self._doc)

    def read_section(self, section: Optional[str] = None, key: Optional[str] = None) -> Any:
        """Return the whole document, one section, or one entry of a section.

        A missing entry reads as ``None``.  The store is never modified.
        """
        with self._lock:
            if section is None:
                if key is not None:
                    raise ValueError("a key can only be read from a named section")
                return copy.deepcopy(self._doc)
            check_section(section)
            entries = self._doc[section]  # type: ignore[literal-required]
            if key is None:
                return copy.deepcopy(entries)
            return copy.deepcopy(entries.get(key))

    def snapshot(self) -> SharedStateDocument:
        return self.read_section()

    def clear(self) -> SharedStateDocument:
        """Empty every section; ``lastUpdate`` still moves forward."""
        with self._lock:
            self._doc = empty_document(self._next_stamp())
            logger.info(f"Cleared shared state (lastUpdate={self._doc['lastUpdate']})")
            return copy.deepcopy(self._doc)

    def load(self, document: Mapping[str, Any]) -> SharedStateDocument:
        """Replace the document wholesale from a checkpoint."""
        restored = empty_document()
        for section in SECTIONS:
            entries = document.get(section) or {}
            if not isinstance(entries, Mapping):
                raise InvalidPatchError(
                    ValidationError.field_type_mismatch(section, "object", type(entries).__name__)
                )
            _check_finite(entries, section)
            restored[section] = copy.deepcopy(dict(entries))  # type: ignore[literal-required]
        with self._lock:
            stamp = document.get("lastUpdate")
            restored["lastUpdate"] = max(
                int(stamp) if isinstance(stamp, int) else 0, self._doc["lastUpdate"] + 1
            )
            self._doc = restored
            return copy.deepcopy(self._doc)


def apply_patch(
    store: SharedStateStore,
    section: str,
    patch: Mapping[str, Any],
    *,
    expected_last_update: Optional[int] = None,
) -> SharedStateDocument:
    return store.apply_patch(section, patch, expected_last_update=expected_last_update)


def read_section(store: SharedStateStore, section: Optional[str] = None, key: Optional[str] = None) -> Any:
    return store.read_section(section, key)


__all__ = [
    "SECTIONS",
    "SharedStateDocument",
    "SharedStateStore",
    "apply_patch",
    "read_section",
    "check_section",
    "empty_document",
]
