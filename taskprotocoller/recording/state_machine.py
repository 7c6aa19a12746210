"""
Recording session state machine for one voice task.

States::

    idle -> permission_pending -> ready -> recording <-> paused
                                    ^          |
                                    |          v
                                    +------ recorded -> (submitted)

Three event sources interleave on a single event loop: participant actions
(start/pause/resume/stop/repeat/submit), the periodic ``tick`` poll, and the
voice-activity classifier callbacks. Classifier callbacks are queued and
drained by the session; every message carries the epoch of the attempt it
arrived in, and messages from an earlier attempt are dropped.
"""
from __future__ import annotations

import enum
import functools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import datetime
from typing import Any

from taskprotocoller.recording import config
from taskprotocoller.recording.exceptions import InvalidTransitionError
from taskprotocoller.recording.exceptions import PermissionDeniedError
from taskprotocoller.recording.exceptions import SubmissionError
from taskprotocoller.recording.media import CapturedAudio
from taskprotocoller.recording.media import MediaCapture
from taskprotocoller.recording.prompts import interpolate_prompt
from taskprotocoller.recording.vad import ClassifierFactory
from taskprotocoller.recording.vad import VadCallbacks
from taskprotocoller.recording.vad import VadEvent
from taskprotocoller.recording.vad import VadMessage
from taskprotocoller.recording.vad import VadMessageQueue
from taskprotocoller.recording.vad import VadParams

logger = logging.getLogger(__name__)

MODE_FREE = "free"
MODE_DELAYED_STOP = "delayed_stop"
MODE_COUNT_DOWN = "count_down"
RECORDING_MODES = frozenset({MODE_FREE, MODE_DELAYED_STOP, MODE_COUNT_DOWN})


class RecordingStatus(enum.Enum):
    IDLE = "idle"
    PERMISSION_PENDING = "permission_pending"
    READY = "ready"
    RECORDING = "recording"
    PAUSED = "paused"
    RECORDED = "recorded"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SpeechSegment:
    start_time: int
    end_time: int
    duration_ms: int

    @classmethod
    def between(cls, start_time: int, end_time: int) -> SpeechSegment:
        end_time = max(end_time, start_time)
        return cls(start_time=start_time, end_time=end_time, duration_ms=end_time - start_time)

    @classmethod
    def from_dict(cls, data: dict) -> SpeechSegment:
        """
        Build a segment from client data, raising ValueError if it is malformed.

        Both ``start_time``/``end_time`` and ``startTime``/``endTime`` are accepted.
        """
        try:
            start_time = int(data["start_time"] if "start_time" in data else data["startTime"])
            end_time = int(data["end_time"] if "end_time" in data else data["endTime"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed speech segment: {data!r}") from exc
        if end_time < start_time:
            raise ValueError(f"Speech segment ends before it starts: {data!r}")
        return cls.between(start_time, end_time)

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_ms": self.duration_ms,
        }


def parse_speech_segments(items: list) -> tuple[SpeechSegment, ...]:
    """
    Parse and validate a client-supplied segment log.

    Segments must be ordered by start time and must not overlap.
    """
    segments = tuple(SpeechSegment.from_dict(item) for item in items or [])
    for previous, current in zip(segments, segments[1:]):
        if current.start_time < previous.end_time:
            raise ValueError("Speech segments overlap or are out of order")
    return segments


@dataclass(frozen=True)
class RecordingTaskConfig:
    """Per-task recording parameters."""

    category: str = "voice"
    instructions: str = ""
    instructions_active: str = ""
    mode: str = MODE_FREE
    duration_ms: int = 0
    use_vad: bool = False
    sub_items: tuple = ()
    placeholder: str | None = None
    sub_item_field: str | None = None
    allow_pause: bool = False
    freeze_threshold_ms: int = config.SILENCE_FREEZE_MS
    advance_threshold_ms: int = config.SILENCE_ADVANCE_MS
    poll_interval_ms: int = config.POLL_INTERVAL_MS
    vad_params: VadParams = field(default_factory=VadParams.from_settings)

    @classmethod
    def from_task(cls, task, **overrides) -> RecordingTaskConfig:
        """Build a config from a resolved voice task (see protocols.variants.VoiceTask)."""
        values = {
            "category": task.category,
            "instructions": task.instructions,
            "instructions_active": task.instructions_active,
            "mode": task.recording.mode,
            "duration_ms": task.recording.duration_ms,
            "use_vad": task.use_vad,
            "sub_items": tuple(task.sub_items),
            "placeholder": task.placeholder,
            "sub_item_field": task.sub_item_field,
            "allow_pause": task.allow_pause,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class AttemptResult:
    """Packaged outcome of one recording attempt, handed to a result sink."""

    audio: CapturedAudio | None
    elapsed_ms: int
    timestamp: str
    speech_segments: tuple[SpeechSegment, ...] = ()
    task_category: str = ""
    dynamic_index: int = 0

    def to_dict(self) -> dict:
        return {
            "elapsed_ms": self.elapsed_ms,
            "timestamp": self.timestamp,
            "speech_segments": [s.to_dict() for s in self.speech_segments],
            "task_category": self.task_category,
            "dynamic_index": self.dynamic_index,
        }


class RecordingSession:
    """
    Runtime state of the voice task currently on screen.

    Args:
        config:             Per-task recording parameters.
        media:              Media capture collaborator.
        classifier_factory: Builds the voice-activity classifier for the
                            stream; ``None`` disables voice-activity gating.
        clock:              Returns "now" in epoch milliseconds.
        scheduler:          Anything with ``call_later(seconds, callback)``
                            returning a cancellable handle (an asyncio loop,
                            for instance). Without one the host must call
                            ``tick`` itself.
        log_event:          ``log_event(action, **extra)`` interaction logger;
                            best effort, failures are logged and ignored.
    """

    def __init__(
        self,
        config: RecordingTaskConfig,
        media: MediaCapture,
        classifier_factory: ClassifierFactory | None = None,
        clock: Callable[[], int] | None = None,
        scheduler: Any = None,
        log_event: Callable[..., None] | None = None,
    ) -> None:
        self.config = config
        self._media = media
        self._classifier_factory = classifier_factory
        self._clock = clock or _now_ms
        self._scheduler = scheduler
        self._log_event = log_event

        self.status = RecordingStatus.IDLE
        self.permission_error: str | None = None
        self.stream = None
        self.vad_enabled = False
        self.submitted = False
        self._recorder = None
        self._classifier = None
        self._classifier_epoch: int | None = None
        self._queue = VadMessageQueue()
        self._epoch = 0
        self._closed = False
        self._pumping = False
        self._poll_handle = None
        self._reset_attempt()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def timer_active(self) -> bool:
        """Whether the visible timer advances: always without VAD, otherwise only while speech is flowing."""
        return not self.vad_enabled or (self.has_spoken and not self.is_silent_pause)

    @property
    def remaining_ms(self) -> int | None:
        if not self.config.duration_ms:
            return None
        return max(self.config.duration_ms - self.elapsed_ms, 0)

    @property
    def controls_enabled(self) -> bool:
        return self.config.mode != MODE_COUNT_DOWN

    @property
    def can_stop(self) -> bool:
        if self.status not in (RecordingStatus.RECORDING, RecordingStatus.PAUSED):
            return False
        if not self.controls_enabled:
            return False
        if self.config.mode == MODE_DELAYED_STOP:
            return self.duration_expired
        return True

    @property
    def current_sub_item(self):
        items = self.config.sub_items
        if not items:
            return None
        return items[min(self.dynamic_index, len(items) - 1)]

    @property
    def active_instructions(self) -> str:
        """Instruction text for the current status, with the active sub-item substituted."""
        template = self.config.instructions
        if self.status in (RecordingStatus.RECORDING, RecordingStatus.PAUSED) and self.config.instructions_active:
            template = self.config.instructions_active
        if self.config.sub_items and self.config.placeholder:
            return interpolate_prompt(
                template,
                self.current_sub_item,
                self.config.placeholder,
                self.config.sub_item_field,
            )
        return template

    @property
    def vad_state(self) -> str:
        """One of ``idle``, ``waiting``, ``warning`` or ``speaking`` for the participant UI."""
        if not self.vad_enabled or self.status != RecordingStatus.RECORDING:
            return "idle"
        if not self.has_spoken:
            return "waiting"
        if self.is_silent_pause:
            return "warning"
        if self.is_speaking:
            return "speaking"
        return "idle"

    # ------------------------------------------------------------------
    # Participant actions
    # ------------------------------------------------------------------

    def request_permission(self) -> bool:
        """
        Ask the media collaborator for a stream.

        Returns True once the session is ready. A denial leaves the session
        idle with ``permission_error`` set, as does a missing or failing
        device; calling again retries.
        """
        self._require(RecordingStatus.IDLE, action="request permission")
        self.status = RecordingStatus.PERMISSION_PENDING
        try:
            stream = self._media.request_permission()
        except PermissionDeniedError as exc:
            self.status = RecordingStatus.IDLE
            self.permission_error = str(exc) or "Microphone access was denied"
            logger.info("Media permission denied for task %s: %s", self.config.category, exc)
            return False
        except Exception as exc:
            self.status = RecordingStatus.IDLE
            self.permission_error = str(exc) or "Microphone is unavailable"
            logger.warning("Media device unavailable for task %s", self.config.category, exc_info=True)
            return False
        self.stream = stream
        self.permission_error = None
        self.status = RecordingStatus.READY
        self._init_classifier()
        return True

    def start(self) -> None:
        self._require(RecordingStatus.READY, action="start")
        self._epoch += 1
        self._queue.clear()
        self._reset_attempt()
        self._recorder = self._media.start_recording(self.stream)
        now = self._clock()
        self._last_activity_ms = now
        self._last_tick_ms = now
        self.status = RecordingStatus.RECORDING
        if self._classifier is not None and self._classifier_epoch != self._epoch:
            self._pause_classifier()
            self._build_classifier(self._epoch)
        self._start_classifier()
        self._schedule_poll()
        self._log("button_start")

    def pause(self) -> None:
        if not self.config.allow_pause:
            raise InvalidTransitionError("pause", self.status)
        self._require(RecordingStatus.RECORDING, action="pause")
        self.pump()
        now = self._clock()
        self._advance_timer(now)
        self._close_segment(now)
        self._media.pause_recording(self._recorder)
        self._pause_classifier()
        self.is_silent_pause = False
        self.is_speaking = False
        self.status = RecordingStatus.PAUSED
        self._log("button_pause")

    def resume(self) -> None:
        self._require(RecordingStatus.PAUSED, action="resume")
        self._media.resume_recording(self._recorder)
        now = self._clock()
        self._last_activity_ms = now
        self._last_tick_ms = now
        self.status = RecordingStatus.RECORDING
        self._start_classifier()
        self._log("button_resume")

    def stop(self) -> None:
        self._require(RecordingStatus.RECORDING, RecordingStatus.PAUSED, action="stop")
        if not self.can_stop:
            raise InvalidTransitionError("stop", self.status)
        self._finish()
        self._log("button_stop")

    def repeat(self) -> None:
        """Discard the recorded attempt and return to ready."""
        self._require(RecordingStatus.RECORDED, action="repeat")
        self._epoch += 1
        self._queue.clear()
        self._reset_attempt()
        self.status = RecordingStatus.READY
        self._log("button_repeat")

    def submit(self, sink) -> AttemptResult:
        """
        Package the attempt and hand it to *sink* (anything with ``submit(result)``).

        A SubmissionError from the sink propagates and leaves the session in
        ``recorded`` so the participant may retry or repeat. On success the
        session is torn down.
        """
        self._require(RecordingStatus.RECORDED, action="submit")
        result = AttemptResult(
            audio=self.audio,
            elapsed_ms=self.elapsed_ms,
            timestamp=datetime.fromtimestamp(self._clock() / 1000, tz=UTC).isoformat(),
            speech_segments=tuple(self.speech_segments),
            task_category=self.config.category,
            dynamic_index=self.dynamic_index,
        )
        self._log("button_next", recording_duration=self.elapsed_ms)
        try:
            sink.submit(result)
        except SubmissionError:
            logger.warning("Submission rejected for task %s; attempt kept", self.config.category)
            raise
        self.submitted = True
        self.teardown()
        return result

    def teardown(self) -> None:
        """
        Release everything owned by this session.

        Cancels the poll, detaches the classifier, stops an unfinished
        recording and releases the stream. Callbacks arriving afterwards are
        ignored.
        """
        if self._closed:
            return
        self._closed = True
        self._epoch += 1
        self._cancel_poll()
        self._queue.clear()
        self._pause_classifier()
        self._classifier = None
        if self.status in (RecordingStatus.RECORDING, RecordingStatus.PAUSED):
            self._media.stop_recording(self._recorder)
            self._recorder = None
        if self.stream is not None:
            self._media.release(self.stream)
            self.stream = None

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """
        Body of the periodic poll.

        Drains queued classifier messages, advances the visible timer unless
        frozen, auto-stops count-down tasks whose duration elapsed, then
        checks how long the participant has been silent.
        """
        if self._closed:
            return
        self.pump()
        if self.status != RecordingStatus.RECORDING:
            return
        now = self._clock()
        self._advance_timer(now)

        if self.remaining_ms == 0 and not self.duration_expired:
            self.duration_expired = True
            if self.config.mode == MODE_COUNT_DOWN:
                self._finish()
                self._log("auto_stop")
                return

        if self.vad_enabled:
            self._check_silence(now)

    def _check_silence(self, now: int) -> None:
        if self.is_speaking:
            # While speech is ongoing the silence clock does not run.
            self._last_activity_ms = now
            return
        silence_ms = now - self._last_activity_ms
        if silence_ms >= self.config.freeze_threshold_ms and not self.is_silent_pause:
            self.is_silent_pause = True
            logger.debug("Silence freeze after %d ms on task %s", silence_ms, self.config.category)
        if self._can_advance() and silence_ms >= self.config.advance_threshold_ms:
            self.dynamic_index += 1
            self._last_activity_ms = now
            self._log("topic_advanced", dynamic_index=self.dynamic_index)

    def _can_advance(self) -> bool:
        return len(self.config.sub_items) > 1 and self.dynamic_index < len(self.config.sub_items) - 1

    def _advance_timer(self, now: int) -> None:
        if self._last_tick_ms is not None and self.timer_active:
            self.elapsed_ms += max(now - self._last_tick_ms, 0)
        self._last_tick_ms = now

    def _schedule_poll(self) -> None:
        if self._scheduler is None or self._closed:
            return
        callback = functools.partial(self._on_poll, self._epoch)
        self._poll_handle = self._scheduler.call_later(self.config.poll_interval_ms / 1000, callback)

    def _on_poll(self, epoch: int) -> None:
        self._poll_handle = None
        if self._closed or epoch != self._epoch:
            return
        self.tick()
        if self.status in (RecordingStatus.RECORDING, RecordingStatus.PAUSED):
            self._schedule_poll()

    def _cancel_poll(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None

    # ------------------------------------------------------------------
    # Classifier
    # ------------------------------------------------------------------

    def _init_classifier(self) -> None:
        self.vad_enabled = False
        if not self.config.use_vad or self._classifier_factory is None:
            return
        # Bound to the epoch the first attempt will run in.
        self._build_classifier(self._epoch + 1)

    def _build_classifier(self, epoch: int) -> None:
        """Build a classifier whose callbacks are stamped with *epoch*."""
        callbacks = VadCallbacks(
            on_frame_processed=functools.partial(self._enqueue, epoch, VadEvent.FRAME),
            on_speech_start=functools.partial(self._enqueue, epoch, VadEvent.SPEECH_START),
            on_speech_end=functools.partial(self._enqueue, epoch, VadEvent.SPEECH_END),
            on_vad_misfire=functools.partial(self._enqueue, epoch, VadEvent.MISFIRE),
        )
        try:
            self._classifier = self._classifier_factory(self.stream, self.config.vad_params, callbacks)
        except Exception:
            logger.warning(
                "Voice-activity classifier failed to load for task %s; timer runs unconditionally",
                self.config.category,
                exc_info=True,
            )
            self._classifier = None
            self._classifier_epoch = None
            self.vad_enabled = False
            return
        self._classifier_epoch = epoch
        self.vad_enabled = True

    def _start_classifier(self) -> None:
        if self._classifier is None:
            return
        try:
            self._classifier.start()
        except Exception:
            logger.warning("Voice-activity classifier failed to start; disabling it", exc_info=True)
            self._classifier = None
            self.vad_enabled = False

    def _pause_classifier(self) -> None:
        if self._classifier is None:
            return
        try:
            self._classifier.pause()
        except Exception:
            logger.warning("Voice-activity classifier failed to pause", exc_info=True)

    def _enqueue(self, epoch: int, kind: VadEvent, prob: float | None = None) -> None:
        # The classifier is paused outside of recording; late callbacks are noise.
        if self._closed or self.status != RecordingStatus.RECORDING:
            return
        self._queue.put(VadMessage(kind=kind, epoch=epoch, at_ms=self._clock(), prob=prob))
        self.pump()

    def pump(self) -> None:
        """Apply queued classifier messages belonging to the current attempt."""
        if self._pumping:
            return
        self._pumping = True
        try:
            for message in self._queue.drain():
                if message.epoch != self._epoch:
                    logger.debug("Dropping stale %s message from epoch %d", message.kind.value, message.epoch)
                    continue
                self._apply(message)
        finally:
            self._pumping = False

    def _apply(self, message: VadMessage) -> None:
        if message.kind is VadEvent.FRAME:
            self.speech_prob = float(message.prob or 0.0)
        elif message.kind is VadEvent.SPEECH_START:
            # Close the interval that ran before speech resumed.
            self._advance_timer(message.at_ms)
            self.is_speaking = True
            self.has_spoken = True
            self.is_silent_pause = False
            self._last_activity_ms = message.at_ms
            if self.status == RecordingStatus.RECORDING and self._segment_start is None:
                self._segment_start = message.at_ms
        elif message.kind is VadEvent.MISFIRE:
            # Too short to be speech, but it was still audio activity.
            self.is_speaking = False
            self._last_activity_ms = message.at_ms
            self._segment_start = None
        elif message.kind is VadEvent.SPEECH_END:
            self.is_speaking = False
            self._last_activity_ms = message.at_ms
            if self.status == RecordingStatus.RECORDING:
                self._close_segment(message.at_ms)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset_attempt(self) -> None:
        self.elapsed_ms = 0
        self.duration_expired = False
        self.has_spoken = False
        self.is_silent_pause = False
        self.is_speaking = False
        self.speech_prob = 0.0
        self.speech_segments: list[SpeechSegment] = []
        self.dynamic_index = 0
        self.audio: CapturedAudio | None = None
        self._segment_start: int | None = None
        self._last_activity_ms = self._clock()
        self._last_tick_ms: int | None = None
        self._cancel_poll()

    def _close_segment(self, at_ms: int) -> None:
        if self._segment_start is None:
            return
        self.speech_segments.append(SpeechSegment.between(self._segment_start, at_ms))
        self._segment_start = None

    def _finish(self) -> None:
        # Apply everything that arrived before the stop, then make sure no
        # further poll or classifier message can touch this attempt.
        self.pump()
        self._cancel_poll()
        now = self._clock()
        if self.status == RecordingStatus.RECORDING:
            self._advance_timer(now)
        self._close_segment(now)
        self._pause_classifier()
        self._epoch += 1
        self._queue.clear()
        self.audio = self._media.stop_recording(self._recorder)
        self._recorder = None
        self.is_silent_pause = False
        self.is_speaking = False
        self.status = RecordingStatus.RECORDED

    def _require(self, *statuses: RecordingStatus, action: str) -> None:
        if self._closed or self.status not in statuses:
            raise InvalidTransitionError(action, self.status)

    def _log(self, action: str, **extra) -> None:
        if self._log_event is None:
            return
        try:
            self._log_event(action, **extra)
        except Exception:
            logger.exception("Interaction logging failed for action %s", action)
