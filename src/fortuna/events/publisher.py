"""In-process event publisher.

The publisher keeps a buffer of recent events and calls registered hooks
for every event, optionally filtered by workspace. It never raises into
the code that publishes.
"""

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from fortuna.events.types import EventType, ProjectionEvent

logger = structlog.get_logger(__name__)

EventHook = Callable[[ProjectionEvent], None]


@dataclass(eq=False)
class Subscription:
    """A hook plus the filters it was registered with."""

    hook: EventHook
    event_types: set[EventType] = field(default_factory=set)
    workspace_ids: set[int] = field(default_factory=set)

    def matches(self, event: ProjectionEvent) -> bool:
        if self.event_types and event.event_type not in self.event_types:
            return False
        # Events without a workspace (worker lifecycle) go to everyone
        if self.workspace_ids and event.workspace_id is not None:
            return event.workspace_id in self.workspace_ids
        return True


class EventPublisher:
    """Fans projection events out to in-process subscribers.

    Usage:
        publisher = EventPublisher()
        publisher.subscribe(print, workspace_ids={1})
        publisher.publish(some_event)
    """

    def __init__(self, buffer_size: int = 100):
        self._event_buffer: deque[ProjectionEvent] = deque(maxlen=buffer_size)
        self._subscriptions: list[Subscription] = []
        self._logger = logger.bind(component="event_publisher")

    @property
    def recent_events(self) -> list[ProjectionEvent]:
        """Get recently published events."""
        return list(self._event_buffer)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        hook: EventHook,
        event_types: set[EventType] | None = None,
        workspace_ids: set[int] | None = None,
    ) -> Subscription:
        """Register a hook, optionally filtered by event type and workspace.

        Args:
            hook: Callable invoked with each matching event.
            event_types: Only deliver these types (all when empty).
            workspace_ids: Only deliver events for these workspaces (all when empty).

        Returns:
            The subscription handle, for use with unsubscribe().
        """
        subscription = Subscription(
            hook=hook,
            event_types=set(event_types or ()),
            workspace_ids=set(workspace_ids or ()),
        )
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: ProjectionEvent) -> None:
        """Buffer an event and deliver it to every matching subscriber.

        Args:
            event: The event to publish.
        """
        self._event_buffer.append(event)

        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            try:
                subscription.hook(event)
            except Exception as e:
                self._logger.error(
                    "event_hook_error", event_type=event.event_type.value, error=str(e)
                )

    def get_status(self) -> dict[str, Any]:
        """Get publisher status information."""
        return {
            "subscriber_count": len(self._subscriptions),
            "buffer_size": len(self._event_buffer),
        }
