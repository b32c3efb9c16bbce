"""Chat message data model shared by the session and the backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Literal


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)

ChatRole = Literal["user", "assistant", "system"]


@dataclass(slots=True)
class ChatMessage:
    """One entry of the running conversation sent to the backend."""

    role: ChatRole
    content: str
    created_at: datetime = field(default_factory=_utcnow)

    def as_param(self) -> Dict[str, str]:
        """Return the ``{"role", "content"}`` mapping the chat API expects."""

        return {"role": self.role, "content": self.content}
