"""Status and progress events emitted while autofilling."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

STATUS = "status"
PROGRESS = "progress"
AVAILABILITY = "availability"


@dataclass(frozen=True)
class StatusEvent:
    kind: str
    message: str
    error: bool = False

    def to_dict(self) -> dict:
        return {"type": self.kind, "message": self.message, "error": self.error}


Listener = Callable[[StatusEvent], None]


class StatusReporter:
    """Fans events out to subscribers and keeps the full history.

    A listener that raises is logged and skipped; emitting never fails.
    """

    def __init__(self, listeners: Optional[List[Listener]] = None):
        self._listeners: List[Listener] = list(listeners or [])
        self.history: List[StatusEvent] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def emit(self, kind: str, message: str, error: bool = False) -> StatusEvent:
        event = StatusEvent(kind=kind, message=message, error=error)
        self.history.append(event)
        log = logger.warning if error else logger.info
        log(f"[{kind}] {message}")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Status listener {listener!r} failed: {e}")
        return event

    def status(self, message: str, error: bool = False) -> StatusEvent:
        return self.emit(STATUS, message, error)

    def progress(self, message: str, error: bool = False) -> StatusEvent:
        return self.emit(PROGRESS, message, error)

    def messages(self, kind: Optional[str] = None) -> List[str]:
        return [e.message for e in self.history if kind is None or e.kind == kind]
