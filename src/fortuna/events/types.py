"""Event type definitions for projection lifecycle notifications.

These events are handed to the in-process publisher; a real-time hub can
subscribe to it to fan them out to connected clients.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventType(str, Enum):
    """Types of events published by the projection engine."""

    # Worker lifecycle
    WORKER_STARTED = "worker.started"
    WORKER_STOPPED = "worker.stopped"

    # Projection activity
    PROJECTIONS_GENERATED = "projection.generated"
    PROJECTIONS_CLEANED_UP = "projection.cleaned_up"
    SYNC_COMPLETED = "projection.sync_completed"


@dataclass
class ProjectionEvent:
    """Base event structure for all projection events."""

    event_type: EventType
    workspace_id: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: UUID = field(default_factory=uuid4)
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary for JSON transmission."""
        return {
            "id": str(self.event_id),
            "type": self.event_type.value,
            "workspaceId": self.workspace_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


# Factory functions for creating events


def worker_started(interval_seconds: float, months_ahead: int) -> ProjectionEvent:
    """Create a worker started event."""
    return ProjectionEvent(
        event_type=EventType.WORKER_STARTED,
        data={"interval_seconds": interval_seconds, "months_ahead": months_ahead},
    )


def worker_stopped(reason: str = "stopped") -> ProjectionEvent:
    """Create a worker stopped event."""
    return ProjectionEvent(event_type=EventType.WORKER_STOPPED, data={"reason": reason})


def projections_generated(
    workspace_id: int, generated: int, skipped: int, template_id: int | None = None
) -> ProjectionEvent:
    """Create an event for a generation run that materialized rows."""
    data: dict[str, Any] = {"generated": generated, "skipped": skipped}
    if template_id is not None:
        data["template_id"] = template_id
    return ProjectionEvent(
        event_type=EventType.PROJECTIONS_GENERATED,
        workspace_id=workspace_id,
        data=data,
    )


def projections_cleaned_up(workspace_id: int, template_id: int, deleted: int) -> ProjectionEvent:
    """Create an event for projections removed past a template's end date."""
    return ProjectionEvent(
        event_type=EventType.PROJECTIONS_CLEANED_UP,
        workspace_id=workspace_id,
        data={"template_id": template_id, "deleted": deleted},
    )


def sync_completed(
    workspaces: int, generated: int, skipped: int, errors: int, elapsed_seconds: float
) -> ProjectionEvent:
    """Create an event summarizing one scheduled sync across all workspaces."""
    return ProjectionEvent(
        event_type=EventType.SYNC_COMPLETED,
        data={
            "workspaces": workspaces,
            "generated": generated,
            "skipped": skipped,
            "errors": errors,
            "elapsed_seconds": round(elapsed_seconds, 3),
        },
    )
