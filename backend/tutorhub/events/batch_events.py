"""Typed class batch events and dispatcher helpers."""

from __future__ import annotations

import logging
from typing import Callable, List, Literal, Sequence

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("tutorhub.events.batches")

BatchChangeKind = Literal["created", "updated", "deactivated"]


class BatchEvent(BaseModel):
    """Base class for class batch domain events."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class BatchChanged(BatchEvent):
    batch_id: str
    teacher_id: str
    kind: BatchChangeKind


BatchEventListener = Callable[[BatchEvent], None]


class BatchEvents:
    """Registry for batch event listeners."""

    _listeners: List[BatchEventListener] = []

    @classmethod
    def register(cls, listener: BatchEventListener) -> None:
        if any(existing is listener for existing in cls._listeners):
            return
        cls._listeners.append(listener)

    @classmethod
    def unregister(cls, listener: BatchEventListener) -> None:
        cls._listeners = [existing for existing in cls._listeners if existing is not listener]

    @classmethod
    def listeners(cls) -> Sequence[BatchEventListener]:
        return tuple(cls._listeners)

    @classmethod
    def dispatch(cls, event: BatchEvent) -> None:
        # Listeners are best-effort: a failing listener never fails the mutation
        for listener in list(cls._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Batch event listener error: %s", listener)
        logger.info("batch_event=%s payload=%s", event.__class__.__name__, event.model_dump())


def register_listener(listener: BatchEventListener) -> None:
    """Register an in-process listener for batch events."""

    BatchEvents.register(listener)


def unregister_listener(listener: BatchEventListener) -> None:
    """Remove a previously registered listener."""

    BatchEvents.unregister(listener)


def emit_batch_changed(*, batch_id: str, teacher_id: str, kind: BatchChangeKind) -> BatchChanged:
    event = BatchChanged(batch_id=batch_id, teacher_id=teacher_id, kind=kind)
    BatchEvents.dispatch(event)
    return event


__all__ = [
    "BatchChangeKind",
    "BatchChanged",
    "BatchEvent",
    "BatchEventListener",
    "BatchEvents",
    "emit_batch_changed",
    "register_listener",
    "unregister_listener",
]
