"""
Huey background tasks for participant runs.

Progress events are written off the request path: the task flow enqueues them
and moves on, so a slow or failing queue never blocks a participant.
"""
import datetime
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone
from huey import crontab
from huey.contrib.djhuey import db_periodic_task
from huey.contrib.djhuey import db_task

from taskprotocoller.runs.models import ParticipantSession
from taskprotocoller.runs.models import ProgressEvent

logger = logging.getLogger(__name__)

# In-progress sessions untouched for this long are marked abandoned.
ABANDON_AFTER_HOURS: int = getattr(settings, "RUNS_ABANDON_AFTER_HOURS", 48)


@db_task(retries=2, retry_delay=30)
def track_progress_task(session_id: str, event: dict | None = None, mark_completed: bool = False) -> None:
    """
    Persist one interaction event and/or mark the session complete.

    *event* is ``{"protocol_task_id", "task_index", "action", **extra}``.
    """
    try:
        session = ParticipantSession.objects.get(pk=session_id)
    except (ParticipantSession.DoesNotExist, ValidationError, ValueError):
        logger.warning("track_progress_task: session %s not found", session_id)
        return

    if event:
        event = dict(event)
        ProgressEvent.objects.create(
            session=session,
            protocol_task_id=event.pop("protocol_task_id", None),
            task_index=event.pop("task_index", 0) or 0,
            action=str(event.pop("action", "unknown"))[:50],
            extra=event,
        )

    if mark_completed and not session.is_complete:
        ParticipantSession.objects.filter(pk=session.pk).update(
            completion_status=ParticipantSession.CompletionStatus.COMPLETE,
            completed_at=timezone.now(),
        )
        logger.info("Session %s completed", session.pk)


@db_periodic_task(crontab(hour="3", minute="0"))
def abandon_stale_sessions_task() -> int:
    """Runs nightly. Marks in-progress sessions with no recent activity as abandoned."""
    cutoff = timezone.now() - datetime.timedelta(hours=ABANDON_AFTER_HOURS)
    count = ParticipantSession.objects.filter(
        completion_status=ParticipantSession.CompletionStatus.IN_PROGRESS,
        started_at__lt=cutoff,
    ).exclude(events__created_at__gte=cutoff).update(
        completion_status=ParticipantSession.CompletionStatus.ABANDONED,
    )
    if count:
        logger.info("abandon_stale_sessions_task: %d session(s) marked abandoned", count)
    return count


class HueyProgressReporter:
    """
    Session-progress reporter backed by the huey queue.

    Reporting is best effort: a queueing failure is logged and swallowed.
    """

    def report(self, session_id, event: dict) -> None:
        self._enqueue(session_id, event=event)

    def mark_completed(self, session_id) -> None:
        self._enqueue(session_id, mark_completed=True)

    def _enqueue(self, session_id, **kwargs) -> None:
        try:
            track_progress_task(str(session_id), **kwargs)
        except Exception:
            logger.exception("Could not queue progress for session %s", session_id)
