# src/a11y_auditor/managers/event_manager.py
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]

# Single-page lifecycle
START = "start"
AXE_COMPLETE = "axe:complete"
RULE_START = "rule:start"
RULE_COMPLETE = "rule:complete"
COMPLETE = "complete"

# Batch lifecycle
PAGE_START = "page:start"
PAGE_COMPLETE = "page:complete"
PAGE_ERROR = "page:error"
PROGRESS = "progress"


class AuditEventBus:
    """
    Explicit listener registry for audit lifecycle events.

    Listeners receive `(event_name, payload)`. Delivery is best-effort: a
    listener that raises is logged and skipped, it never breaks the audit.
    """

    def __init__(self):
        self._listeners: List[tuple] = []

    def subscribe(self, listener: Listener, events: Optional[Sequence[str]] = None) -> Callable[[], None]:
        """
        Registers `listener` for `events` (all events when None).
        Returns a callable that removes the subscription again.
        """
        entry = (listener, frozenset(events) if events else None)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        for listener, events in list(self._listeners):
            if events is not None and event not in events:
                continue
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Listener %r failed while handling '%s'.", listener, event)

    def __len__(self) -> int:
        return len(self._listeners)


def rule_payload(rule_id: str, results: Optional[list] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"rule_id": rule_id}
    if results is not None:
        payload["results"] = results
    return payload
