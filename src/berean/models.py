"""Shared data models for the Berean assistant client.

This module contains the dataclasses and enums that flow between the
session, the coordinator and the remote stream.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List


class Role(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class GenerationState(str, Enum):
    """Lifecycle of a single streaming request."""

    REQUESTED = "requested"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            GenerationState.COMPLETED,
            GenerationState.CANCELLED,
            GenerationState.FAILED,
        )


def _new_message_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A single conversation turn.

    Attributes:
        role: The role of the message sender (user, assistant, system)
        content: The message text. Only the session's streaming assistant
            message is ever appended to.
        id: Unique identifier assigned at creation
        timestamp: Creation time (UTC)
        citations: Scripture references found in the finished response
    """

    role: Role
    content: str
    id: str = field(default_factory=_new_message_id)
    timestamp: datetime = field(default_factory=_utcnow)
    citations: List[str] = field(default_factory=list)

    @property
    def is_from_user(self) -> bool:
        return self.role == Role.USER

    def to_chat_dict(self) -> Dict[str, str]:
        """Outbound representation used for request context."""
        return {"role": self.role.value, "content": self.content}
