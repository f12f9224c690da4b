"""
Audit logging for authorization decisions

Every decision (allow, deny, or failure while deciding) is reported as an
outcome event:
- Records who attempted what on which resource, and how long it took
- Logs to the structured "audit" logger
- Recording is best-effort: a broken sink never fails the request
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

# Structured audit logger
audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

STATUS_SUCCESS = "success"
STATUS_DENIED = "denied"
STATUS_ERROR = "error"

# HTTP method -> audited action
METHOD_ACTIONS = {
    "GET": "read",
    "HEAD": "read",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


def action_for_method(method: str) -> str:
    return METHOD_ACTIONS.get(method.upper(), method.lower())


@dataclass
class AuditEvent:
    """Outcome of one authorization decision."""
    user_id: Optional[int]
    action: str
    resource: str
    status: str
    duration_ms: float
    resource_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditRecorder:
    """
    Base audit sink.

    Subclasses implement `emit`; `record` guarantees the caller never sees a
    sink failure.
    """

    def emit(self, event: AuditEvent) -> None:
        raise NotImplementedError

    def record(self, event: AuditEvent) -> None:
        if not settings.AUDIT_ENABLED:
            return
        try:
            self.emit(event)
        except Exception as e:
            # Auditing must never block the primary operation
            logger.error(f"Audit sink failed for {event.action} on {event.resource}: {e}")


class LoggingAuditRecorder(AuditRecorder):
    """Writes events to the structured "audit" logger."""

    def emit(self, event: AuditEvent) -> None:
        entry = event.to_dict()
        entry["environment"] = settings.ENVIRONMENT
        message = (
            f"AUDIT: {event.action} by user {event.user_id} on "
            f"{event.resource}/{event.resource_id} -> {event.status} ({event.duration_ms:.1f}ms)"
        )
        if event.status == STATUS_SUCCESS:
            audit_logger.info(message, extra={"audit": entry})
        else:
            audit_logger.warning(message, extra={"audit": entry})


class MemoryAuditRecorder(AuditRecorder):
    """Keeps events in a list. Used by tests and local tooling."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)


audit_recorder = LoggingAuditRecorder()
