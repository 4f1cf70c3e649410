"""In-process change notifications between workbench components."""
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger("workbench-session")

Handler = Callable[..., None]

# Topics published by WorkbenchSession
PROFILES_CHANGED = "profiles_changed"
VARIANT_CHANGED = "variant_changed"
DERIVED_WRITTEN = "derived_written"
RECOMPUTE_FAILED = "recompute_failed"
REFERENCE_CLEARED = "reference_cleared"
PROJECT_REPLACED = "project_replaced"


class EventBus:
    """
    Synchronous publish/subscribe keyed by topic name.

    Handlers run in subscription order on the publishing call.  The
    workbench is single-threaded, so no locking is done.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}
        self._published: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler``; returns a callable that unsubscribes it."""
        self._handlers.setdefault(topic, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, topic: str, **payload: Any) -> int:
        """Call every handler of ``topic``; returns how many ran."""
        self._published[topic] = self._published.get(topic, 0) + 1
        handlers = list(self._handlers.get(topic, []))
        for handler in handlers:
            handler(**payload)
        logger.debug("Published %s to %d handler(s)", topic, len(handlers))
        return len(handlers)

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def published_count(self, topic: str) -> int:
        return self._published.get(topic, 0)
