"""GenerationCoordinator - owns the single in-flight streaming request.

The coordinator appends the user turn and an assistant placeholder, streams
chunks from the remote service into that placeholder, and reports exactly one
terminal callback per generation unless the generation was cancelled.

All session mutation happens on the event loop thread: ``start`` and
``cancel`` are called from the loop, and each generation runs as a single
``asyncio.Task`` on that loop.
"""

import asyncio
import logging
import time
from typing import Any, Callable, List, Optional

from .citations import extract_citations
from .errors import (
    BereanError,
    GenerationTimeoutError,
    InvalidResponseError,
    RateLimitExceededError,
    classify,
)
from .history import DEFAULT_HISTORY_LIMIT, window
from .models import GenerationState, Message, Role
from .session import ChatSession
from .stream import GenerationStream
from .usage import UsageGate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0

ChunkCallback = Callable[[str], Any]
CompleteCallback = Callable[[Message], Any]
ErrorCallback = Callable[[BereanError], Any]


class Generation:
    """One streaming request/response lifecycle for a single query.

    Attributes:
        query: The submitted text.
        started_at: Clock reading when the generation was submitted.
        buffer: Text received so far.
        state: Current ``GenerationState``.
        error: The classified error once the generation has failed.
    """

    def __init__(self, query: str, started_at: float) -> None:
        self.query = query
        self.started_at = started_at
        self.buffer = ""
        self.state = GenerationState.REQUESTED
        self.error: Optional[BereanError] = None
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def cancel(self) -> bool:
        """Mark the generation cancelled and request stream teardown.

        Returns:
            True if this call cancelled a live generation.
        """
        if self._cancelled or self.is_terminal:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        else:
            self.state = GenerationState.CANCELLED
        return True

    def __repr__(self) -> str:
        return f"Generation(query={self.query[:30]!r}, state={self.state.value})"


class GenerationCoordinator:
    """Drives streaming generations for one chat session.

    Args:
        session: The message store this coordinator writes to.
        stream: Remote generation stream.
        usage_gate: Consulted before each start, told about each success.
        history_window_limit: Max messages (query included) sent as context.
        timeout_seconds: Wall-clock budget per generation, checked whenever
            a chunk arrives.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        session: ChatSession,
        stream: GenerationStream,
        usage_gate: UsageGate,
        history_window_limit: int = DEFAULT_HISTORY_LIMIT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._stream = stream
        self._usage_gate = usage_gate
        self._history_window_limit = history_window_limit
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._latest: Optional[Generation] = None

    @property
    def session(self) -> ChatSession:
        return self._session

    @property
    def active(self) -> Optional[Generation]:
        """The live generation, if any."""
        generation = self._session.active_generation
        if generation is None or generation.is_terminal or generation.cancelled:
            return None
        return generation

    @property
    def is_generating(self) -> bool:
        return self.active is not None

    def start(
        self,
        query: str,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> Optional[Generation]:
        """Begin a new generation for ``query``.

        Any generation already in flight is cancelled silently first. If the
        usage gate refuses, ``on_error`` is called synchronously with a
        ``RateLimitExceededError`` and nothing else happens.

        Args:
            query: User text; must be non-empty after trimming.
            on_chunk: Called with each text fragment, in arrival order.
            on_complete: Called once with the finalized assistant message.
            on_error: Called once with a classified ``BereanError``.

        Returns:
            The new Generation, or None if the usage gate refused.

        Raises:
            ValueError: If ``query`` is blank.
            RuntimeError: If called without a running event loop.
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        if not self._usage_gate.can_send():
            logger.info("Usage gate refused a new generation")
            self._notify(on_error, RateLimitExceededError())
            return None

        loop = asyncio.get_running_loop()

        previous = self.active
        if previous is not None:
            logger.debug(f"Superseding {previous!r}")
            previous.cancel()
        if self._session.streaming_message_id is not None:
            # The superseded task has not unwound yet; freeze its placeholder now.
            self._session.end_streaming(self._session.streaming_message_id)

        prior: List[Message] = list(self._session.messages)
        user_message = self._session.add_message(Role.USER, query)
        context = window(prior + [user_message], self._history_window_limit)
        placeholder = self._session.begin_assistant_message()

        generation = Generation(query, started_at=self._clock())
        self._session.active_generation = generation
        self._latest = generation
        task = loop.create_task(
            self._run(generation, placeholder, context, on_chunk, on_complete, on_error)
        )
        # A task cancelled before its first step never enters _run.
        task.add_done_callback(lambda _: self._finish(generation, placeholder))
        generation._task = task
        logger.info(f"Started generation with {len(context)} context message(s)")
        return generation

    def cancel(self) -> None:
        """Cancel the active generation, if any. Never invokes callbacks."""
        generation = self.active
        if generation is not None and generation.cancel():
            logger.info("Generation cancelled by user")

    async def wait(self) -> Optional[Generation]:
        """Wait for the most recently started generation to stop running."""
        generation = self._latest
        if generation is None or generation._task is None:
            return generation
        try:
            await generation._task
        except asyncio.CancelledError:
            pass
        return generation

    def clear_session(self) -> None:
        """Cancel any active generation and empty the message store."""
        self._session.clear()

    def prune_empty_placeholders(self) -> int:
        return self._session.prune_empty_placeholders()

    # =========================================================================
    # Generation task
    # =========================================================================

    async def _run(
        self,
        generation: Generation,
        placeholder: Message,
        context: List[Message],
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> None:
        stream = None
        try:
            stream = self._stream.open(context)
            generation.state = GenerationState.STREAMING

            async for chunk in stream:
                if generation.cancelled:
                    generation.state = GenerationState.CANCELLED
                    return

                elapsed = self._clock() - generation.started_at
                if elapsed > self._timeout_seconds:
                    raise GenerationTimeoutError(elapsed, self._timeout_seconds)

                generation.buffer += chunk
                self._session.append_chunk(placeholder.id, chunk)
                self._notify(on_chunk, chunk)

            if generation.cancelled:
                generation.state = GenerationState.CANCELLED
                return

            if not generation.buffer.strip():
                self._fail(generation, placeholder, InvalidResponseError("Empty response"), on_error)
                return

            citations = extract_citations(generation.buffer)
            final = self._session.finalize(placeholder.id, citations)
            self._usage_gate.record_usage()
            generation.state = GenerationState.COMPLETED
            logger.info(
                f"Generation completed: {len(generation.buffer)} chars, "
                f"{len(citations)} citation(s)"
            )
            self._notify(on_complete, final)

        except asyncio.CancelledError:
            generation.state = GenerationState.CANCELLED
            raise

        except Exception as e:
            if generation.cancelled:
                generation.state = GenerationState.CANCELLED
                return
            error = classify(e)
            logger.error(f"Generation failed ({error.kind.value}): {e}")
            self._fail(generation, placeholder, error, on_error)

        finally:
            self._finish(generation, placeholder)
            if stream is not None and hasattr(stream, "aclose"):
                await asyncio.shield(self._close_stream(stream))

    def _finish(self, generation: Generation, placeholder: Message) -> None:
        """Release the session from a generation that has stopped running."""
        if not generation.is_terminal:
            generation.state = GenerationState.CANCELLED
        self._session.end_streaming(placeholder.id)
        if self._session.active_generation is generation:
            self._session.active_generation = None

    def _fail(
        self,
        generation: Generation,
        placeholder: Message,
        error: BereanError,
        on_error: ErrorCallback,
    ) -> None:
        generation.state = GenerationState.FAILED
        generation.error = error
        self._session.end_streaming(placeholder.id)
        self._notify(on_error, error)

    @staticmethod
    async def _close_stream(stream: Any) -> None:
        try:
            await stream.aclose()
        except Exception as e:
            logger.warning(f"Error while closing generation stream: {e}")

    @staticmethod
    def _notify(callback: Callable[[Any], Any], payload: Any) -> None:
        try:
            callback(payload)
        except Exception:
            logger.exception("Error in generation callback")
