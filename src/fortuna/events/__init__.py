"""Projection lifecycle events."""

from fortuna.events.publisher import EventPublisher, Subscription
from fortuna.events.types import (
    EventType,
    ProjectionEvent,
    projections_cleaned_up,
    projections_generated,
    sync_completed,
    worker_started,
    worker_stopped,
)

__all__ = [
    "EventPublisher",
    "Subscription",
    "EventType",
    "ProjectionEvent",
    "projections_cleaned_up",
    "projections_generated",
    "sync_completed",
    "worker_started",
    "worker_stopped",
]
