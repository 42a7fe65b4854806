"""Shared fakes for coordinator tests."""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pytest

from berean.models import Message
from berean.session import ChatSession


@dataclass
class Script:
    """What one ``open()`` call on ScriptedStream produces.

    Attributes:
        chunks: Text fragments to yield, in order.
        error: Raised after the chunks are exhausted (or before, with no chunks).
        hold_after: Block before yielding chunk at this index until released.
    """

    chunks: List[str] = field(default_factory=list)
    error: Optional[BaseException] = None
    hold_after: Optional[int] = None


class ScriptedStream:
    """GenerationStream fake that replays one Script per ``open()``."""

    def __init__(self, *scripts: Script) -> None:
        self._scripts = list(scripts)
        self.opened_with: List[List[Message]] = []
        self.closed = 0
        self.release = asyncio.Event()

    def open(self, messages: Sequence[Message]):
        self.opened_with.append(list(messages))
        script = self._scripts.pop(0) if self._scripts else Script()
        return self._generate(script)

    async def _generate(self, script: Script):
        try:
            for index, chunk in enumerate(script.chunks):
                if script.hold_after is not None and index == script.hold_after:
                    await self.release.wait()
                yield chunk
            if script.error is not None:
                raise script.error
        finally:
            self.closed += 1


class FakeGate:
    """UsageGate fake with a fixed answer and a usage counter."""

    def __init__(self, allow: bool = True) -> None:
        self.allow = allow
        self.checks = 0
        self.recorded = 0

    def can_send(self) -> bool:
        self.checks += 1
        return self.allow

    def record_usage(self) -> None:
        self.recorded += 1


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class Recorder:
    """Collects coordinator callbacks in arrival order."""

    def __init__(self) -> None:
        self.events = []
        self.first_chunk = asyncio.Event()

    def on_chunk(self, chunk: str) -> None:
        self.events.append(("chunk", chunk))
        self.first_chunk.set()

    def on_complete(self, message: Message) -> None:
        self.events.append(("complete", message))

    def on_error(self, error) -> None:
        self.events.append(("error", error))

    @property
    def chunks(self) -> List[str]:
        return [payload for kind, payload in self.events if kind == "chunk"]

    @property
    def completed(self) -> List[Message]:
        return [payload for kind, payload in self.events if kind == "complete"]

    @property
    def errors(self) -> list:
        return [payload for kind, payload in self.events if kind == "error"]

    def callbacks(self):
        return self.on_chunk, self.on_complete, self.on_error


@pytest.fixture
def session():
    return ChatSession()


@pytest.fixture
def gate():
    return FakeGate()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return Recorder()
