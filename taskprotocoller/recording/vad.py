"""
Voice-activity classifier collaborator and the message queue feeding it into
a RecordingSession.

The classifier emits callbacks asynchronously and at high frequency. Rather
than mutating session state directly, each callback becomes a VadMessage
appended to a single-consumer queue that the owning session drains.
"""
from __future__ import annotations

import enum
from collections import deque
from collections.abc import Callable
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any
from typing import Protocol

from taskprotocoller.recording import config


@dataclass(frozen=True)
class VadParams:
    positive_speech_threshold: float = 0.5
    negative_speech_threshold: float = 0.45
    redemption_ms: int = 2000
    pre_speech_pad_ms: int = 500
    min_speech_ms: int = 600

    @classmethod
    def from_settings(cls) -> VadParams:
        return cls(**config.VAD_PARAMS)


@dataclass(frozen=True)
class VadCallbacks:
    on_frame_processed: Callable[[float], None]
    on_speech_start: Callable[[], None]
    on_speech_end: Callable[[], None]
    on_vad_misfire: Callable[[], None]


class VoiceActivityClassifier(Protocol):
    def start(self) -> None: ...

    def pause(self) -> None: ...


# Called with (stream, params, callbacks); may raise if the model cannot load.
ClassifierFactory = Callable[[Any, VadParams, VadCallbacks], VoiceActivityClassifier]


class VadEvent(enum.Enum):
    FRAME = "frame"
    SPEECH_START = "speech_start"
    SPEECH_END = "speech_end"
    MISFIRE = "misfire"


@dataclass(frozen=True)
class VadMessage:
    kind: VadEvent
    epoch: int
    at_ms: int
    prob: float | None = None


class VadMessageQueue:
    """FIFO of classifier messages with a single consumer."""

    def __init__(self) -> None:
        self._messages: deque[VadMessage] = deque()

    def __len__(self) -> int:
        return len(self._messages)

    def put(self, message: VadMessage) -> None:
        self._messages.append(message)

    def drain(self) -> Iterator[VadMessage]:
        # Messages appended while draining are yielded in the same pass.
        while self._messages:
            yield self._messages.popleft()

    def clear(self) -> None:
        self._messages.clear()
