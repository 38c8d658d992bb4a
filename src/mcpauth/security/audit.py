"""
OAuth audit trail.
Created: 2026-10-19

Append-only JSONL log of authorization events (codes issued, tokens minted,
refreshed and revoked, clients registered, grants rejected). Token values are
never written; only an 8-character fingerprint is kept.
"""

import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """A single audit log entry."""

    id: str
    timestamp: str
    actor: str  # client_id performing the action
    action: str  # e.g. "token_issued", "token_revoked"
    status: str  # "success" or "rejected"
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, actor: str, action: str, status: str, **context: Any) -> "AuditEvent":
        return cls(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(tz=UTC).isoformat(),
            actor=actor,
            action=action,
            status=status,
            context=context,
        )


def fingerprint(token: str) -> str:
    """Token prefix for correlating log lines without recording the token."""
    return f"{token[:8]}..."


class AuditLogger:
    """
    Append-only audit logger.
    Writes one JSON object per line to *log_path*.
    """

    def __init__(self, log_path: Path):
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._callbacks: list[Callable[[dict], None]] = []

    def on_log(self, callback: Callable[[dict], None]) -> None:
        """Register a callback to be called after each audit log write."""
        self._callbacks.append(callback)

    def log(self, event: AuditEvent) -> None:
        """Write an event to the audit log."""
        try:
            event_dict = asdict(event)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event_dict) + "\n")
        except Exception as e:
            # The request must not fail because the audit trail is broken
            logger.critical("FAILED TO WRITE AUDIT LOG: %s | Event: %s", e, event)
            return
        for cb in self._callbacks:
            try:
                cb(event_dict)
            except Exception:
                logger.exception("Audit callback failed for event %s", event.action)

    def log_oauth_event(
        self,
        action: str,
        client_id: str,
        status: str = "success",
        **context: Any,
    ) -> str:
        """Helper to log an OAuth lifecycle event."""
        event = AuditEvent.create(actor=client_id, action=action, status=status, **context)
        self.log(event)
        return event.id
