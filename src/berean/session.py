"""Chat session state (the message store)."""

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from .errors import SessionStateError
from .models import Message, Role

if TYPE_CHECKING:
    from .coordinator import Generation

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50


@dataclass
class ChatSession:
    """Holds the ordered message log for a single conversation.

    Messages are only ever appended. The one exception to immutability is
    the assistant message currently receiving streamed chunks, tracked by
    ``streaming_message_id``.

    Attributes:
        active_generation: The in-flight generation that owns the streaming
            message, if any. Set and cleared by the coordinator.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    messages: List[Message] = field(default_factory=list)
    active_generation: Optional["Generation"] = None
    streaming_message_id: Optional[str] = None

    def add_message(self, role: Role, content: str) -> Message:
        """Append a finished message to the session."""
        msg = Message(role=role, content=content)
        self.messages.append(msg)
        return msg

    def begin_assistant_message(self) -> Message:
        """Append an empty assistant placeholder that will receive chunks.

        Raises:
            SessionStateError: If another message is still streaming.
        """
        if self.streaming_message_id is not None:
            raise SessionStateError(
                "Cannot start a new assistant message while another is streaming",
                {"streaming_message_id": self.streaming_message_id},
            )
        msg = self.add_message(Role.ASSISTANT, "")
        self.streaming_message_id = msg.id
        return msg

    def append_chunk(self, message_id: str, chunk: str) -> Message:
        """Append streamed text to the current streaming message."""
        index = self._streaming_index(message_id)
        msg = self.messages[index]
        msg.content += chunk
        return msg

    def finalize(self, message_id: str, citations: List[str]) -> Message:
        """Replace the streaming message with its finished form.

        Returns:
            The finalized message, which is no longer mutable.
        """
        index = self._streaming_index(message_id)
        final = dataclasses.replace(self.messages[index], citations=list(citations))
        self.messages[index] = final
        self.streaming_message_id = None
        return final

    def end_streaming(self, message_id: str) -> None:
        """Freeze the streaming message without finalizing it (cancel/failure)."""
        if self.streaming_message_id == message_id:
            self.streaming_message_id = None

    def prune_empty_placeholders(self) -> int:
        """Drop assistant messages left empty by a cancelled or failed request.

        The message currently streaming is never removed.

        Returns:
            Number of messages removed.
        """
        kept = [
            msg
            for msg in self.messages
            if msg.id == self.streaming_message_id
            or msg.role != Role.ASSISTANT
            or msg.content.strip()
        ]
        removed = len(self.messages) - len(kept)
        if removed:
            self.messages = kept
            logger.debug(f"Pruned {removed} empty assistant message(s) from session {self.id}")
        return removed

    def title(self) -> str:
        """Short title derived from the first user message."""
        first = next((m for m in self.messages if m.role == Role.USER), None)
        content = first.content if first else "Conversation"
        if len(content) > TITLE_MAX_CHARS:
            return content[:TITLE_MAX_CHARS] + "..."
        return content

    def clear(self) -> None:
        """Clear all messages, cancelling any in-flight generation first."""
        if self.active_generation is not None:
            self.active_generation.cancel()
            self.active_generation = None
        self.streaming_message_id = None
        self.messages = []

    def _streaming_index(self, message_id: str) -> int:
        if message_id != self.streaming_message_id:
            raise SessionStateError(
                f"Message {message_id} is not the streaming message",
                {"message_id": message_id, "streaming_message_id": self.streaming_message_id},
            )
        for index in range(len(self.messages) - 1, -1, -1):
            if self.messages[index].id == message_id:
                return index
        raise SessionStateError(f"Message {message_id} not found in session {self.id}")
