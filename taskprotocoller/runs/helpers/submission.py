"""
Persisting task results.

``DjangoResultSink`` is the result sink a RecordingSession submits to; the
plain functions are used directly for questionnaire, vision and consent
results.
"""
import logging

from django.core.files.base import ContentFile
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from taskprotocoller.recording.exceptions import SubmissionError
from taskprotocoller.runs.models import Recording
from taskprotocoller.runs.models import TaskResponse

logger = logging.getLogger(__name__)

__all__ = ["DjangoResultSink", "SubmissionError", "save_recording", "save_task_response"]


def save_recording(session, task: dict, task_order: int, result) -> Recording:
    """
    Store one voice attempt.

    *task_order* is the 1-based position of *task* in the session. Raises
    SubmissionError when the attempt carries no audio.
    """
    if result.audio is None or not result.audio.blob:
        raise SubmissionError("A voice task result needs audio")

    category = result.task_category or task["category"]
    repeat_index = task.get("repeat_index") or 1
    recording = Recording(
        session=session,
        protocol_task_id=task.get("protocol_task_id"),
        task_category=category,
        task_order=task_order,
        duration_ms=max(int(result.elapsed_ms or 0), 0),
        task_param=str(task.get("task_param") or ""),
        repeat_index=repeat_index,
        dynamic_index=result.dynamic_index,
        speech_segments=[segment.to_dict() for segment in result.speech_segments],
        recorded_at=parse_datetime(result.timestamp or "") or timezone.now(),
    )
    filename = f"{task_order:02d}_{category}_{repeat_index}.{result.audio.extension}"
    recording.audio.save(filename, ContentFile(result.audio.blob), save=False)
    recording.save()
    logger.info("Saved recording %s for session %s task %d", recording.pk, session.pk, task_order)
    return recording


def save_task_response(session, task: dict, task_order: int, payload: dict) -> TaskResponse:
    """Store a questionnaire, vision or consent result."""
    return TaskResponse.objects.create(
        session=session,
        protocol_task_id=task.get("protocol_task_id"),
        task_type=task["type"],
        task_order=task_order,
        payload=payload,
    )


class DjangoResultSink:
    """
    Result sink for a RecordingSession.

    Results of preview sessions are accepted but not stored.
    """

    def __init__(self, session, task: dict, task_order: int) -> None:
        self.session = session
        self.task = task
        self.task_order = task_order
        self.saved = None

    def submit(self, result) -> None:
        if self.session.is_preview:
            if result.audio is None:
                raise SubmissionError("A voice task result needs audio")
            return
        self.saved = save_recording(self.session, self.task, self.task_order, result)
