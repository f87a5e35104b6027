# vision_avatar/processors/event_emitter.py
"""Event system shared by the session controller and its consumers"""
import asyncio
from typing import Dict, Any, List, Optional, Callable
from collections import defaultdict, deque
import time
import logging

logger = logging.getLogger(__name__)

WILDCARD = "*"


class EventEmitter:
    """
    Pub/sub with event history and filtering.

    Subscribers may be plain callables or coroutine functions. Subscribing to
    "*" receives every event. A failing subscriber is logged and does not stop
    the others.
    """

    def __init__(self, buffer_size: int = 1000):
        self.buffer_size = buffer_size

        # Event handling
        self._subscribers: Dict[str, List[Callable]] = defaultdict(list)
        self._event_buffer = deque(maxlen=buffer_size)
        self._event_count = 0

    def subscribe(self, event_type: str, callback: Callable):
        """Subscribe to an event type"""
        self._subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: str, callback: Callable):
        """Unsubscribe from an event type"""
        if callback in self._subscribers[event_type]:
            self._subscribers[event_type].remove(callback)

    async def emit(self, event_type: str, data: Any) -> Dict[str, Any]:
        """Emit an event"""
        event = {
            "type": event_type,
            "data": data,
            "timestamp": time.time(),
            "id": self._event_count
        }

        self._event_count += 1
        self._event_buffer.append(event)

        callbacks = list(self._subscribers[event_type])
        if event_type != WILDCARD:
            callbacks.extend(self._subscribers[WILDCARD])

        for callback in callbacks:
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    callback(event)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type}: {e}")

        return event

    def get_event_history(
        self,
        event_type: Optional[str] = None,
        since_timestamp: Optional[float] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Get event history with optional filtering"""
        events = list(self._event_buffer)

        # Filter by type
        if event_type:
            events = [e for e in events if e["type"] == event_type]

        # Filter by timestamp
        if since_timestamp:
            events = [e for e in events if e["timestamp"] > since_timestamp]

        # Limit results
        if limit:
            events = events[-limit:]

        return events
