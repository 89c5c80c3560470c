"""Langfuse tracing for agent runs.

Tracing switches itself on when LANGFUSE_PUBLIC_KEY, LANGFUSE_SECRET_KEY and
LANGFUSE_HOST are all set; otherwise every helper here returns ``None`` or
does nothing, and callers never need to check.

What gets recorded:
1) one trace per ``/stream`` request, tagged with the session id
2) a span per agent node and per render step (``traced_span``)
3) a span per component tool call (``traced_tool``) and per LLM call

The open trace and its span stack travel in one context variable, so spans
opened by a tool nest under the agent node that called it.
"""

from __future__ import annotations

import functools
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

try:
    from langfuse import Langfuse  # type: ignore
except Exception as e:  # pragma: no cover
    Langfuse = None  # type: ignore
    _import_error: Optional[Exception] = e
else:  # pragma: no cover
    _import_error = None

_T = TypeVar("_T")

logger = logging.getLogger("openjsonui.langfuse")


@dataclass(frozen=True)
class _Active:
    trace: Any
    spans: tuple = ()

    @property
    def parent(self) -> Any:
        return self.spans[-1] if self.spans else self.trace


_active: ContextVar[Optional[_Active]] = ContextVar("langfuse_active", default=None)
_client: Optional[Any] = None


def get_langfuse() -> Optional[Any]:
    """The shared Langfuse client, created on first use; None when disabled."""
    global _client
    if _client is not None:
        return _client
    keys = ("LANGFUSE_PUBLIC_KEY", "LANGFUSE_SECRET_KEY", "LANGFUSE_HOST")
    if not all(os.getenv(k) for k in keys):
        return None
    if Langfuse is None:
        logger.warning(f"Langfuse is configured but the SDK failed to import ({_import_error}); not tracing")
        return None
    _client = Langfuse(
        public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
        secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
        host=os.getenv("LANGFUSE_HOST"),
    )
    return _client


def _record(observation: Any, output: Optional[Any], error: Optional[str]) -> None:
    if error:
        observation.update(level="ERROR", status_message=error)
    if output is not None:
        observation.update(output=output)


def start_trace(
    *,
    name: str,
    session_id: Optional[str] = None,
    input: Optional[Any] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[Any]:
    client = get_langfuse()
    if client is None:
        return None
    trace = client.trace(name=name, session_id=session_id, input=input, metadata=metadata)
    _active.set(_Active(trace))
    return trace


def end_trace(trace: Optional[Any], *, output: Optional[Any] = None, error: Optional[str] = None) -> None:
    if trace is None:
        return
    _record(trace, output, error)
    _active.set(None)
    client = get_langfuse()
    if client is None:
        return
    try:
        client.flush()
    except Exception:
        logger.exception("Langfuse flush failed")


def start_span(
    *,
    name: str,
    input: Optional[Any] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[Any]:
    """Open a span under the innermost open span; None outside a trace."""
    active = _active.get()
    if active is None:
        return None
    span = active.parent.span(name=name, input=input, metadata=metadata)
    _active.set(_Active(active.trace, active.spans + (span,)))
    return span


def end_span(span: Optional[Any], *, output: Optional[Any] = None, error: Optional[str] = None) -> None:
    if span is None:
        return
    _record(span, output, error)
    span.end()
    active = _active.get()
    if active is not None and span in active.spans:
        _active.set(_Active(active.trace, active.spans[: active.spans.index(span)]))


@contextmanager
def traced_span(name: str, *, input: Optional[Any] = None, kind: str = "step") -> Iterator[dict[str, Any]]:
    """Span around a block; whatever the block stores under ``out["output"]`` is recorded."""
    span = start_span(name=name, input=input, metadata={"kind": kind})
    out: dict[str, Any] = {}
    try:
        yield out
    except Exception as e:
        end_span(span, error=str(e))
        raise
    end_span(span, output=out.get("output"))


def traced_tool(name: Optional[str] = None) -> Callable[[Callable[..., _T]], Callable[..., _T]]:
    """Record each call of the decorated tool as a ``tool:<name>`` span."""

    def deco(fn: Callable[..., _T]) -> Callable[..., _T]:
        tool_name = name or fn.__name__

        @functools.wraps(fn)
        def wrapped(*args: Any, **kwargs: Any) -> _T:
            with traced_span(f"tool:{tool_name}", input={"args": args, "kwargs": kwargs}, kind="tool") as span:
                result = fn(*args, **kwargs)
                span["output"] = result
                return result

        return cast(Callable[..., _T], wrapped)

    return deco
