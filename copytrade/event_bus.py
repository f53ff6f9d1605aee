from typing import Any, Callable, Dict

from utils.logger import logger

class EventBus:
    """
    Lightweight in-process pub/sub for replication outcomes and monitor lifecycle.
    """

    def __init__(self) -> None:
        self._subs: Dict[str, list[Callable[[Any], None]]] = {}

    def subscribe(self, topic: str, handler: Callable[[Any], None]) -> None:
        """Register a synchronous callback; wrap async handlers externally."""
        self._subs.setdefault(topic, []).append(handler)

    def publish(self, topic: str, payload: Any) -> None:
        """Publish an event to subscribers (fire-and-forget)."""
        for h in self._subs.get(topic, []):
            try:
                h(payload)
            except Exception:
                logger.exception(f"EventBus handler failed on topic={topic}")

# Common topics
TOPIC_REPLICATION_OK = "replication.succeeded"
TOPIC_REPLICATION_FAILED = "replication.failed"
TOPIC_MONITOR_RESTARTING = "monitor.restarting"
TOPIC_MONITOR_GAVE_UP = "monitor.gave_up"
