import random
import uuid

from django.utils import timezone

from taskprotocoller.protocols.helpers.resolver import build_run_order
from taskprotocoller.runs.helpers.runtime import ParticipantRun


def create_session(protocol, participant=None, is_preview=False):
    """
    Create a new ParticipantSession with a deterministic-seeded randomised task order.

    The seed is stored on the session so the order can be reproduced for auditing.
    """
    from taskprotocoller.runs.models import ParticipantSession  # local import avoids circular

    seed = str(uuid.uuid4())
    rng = random.Random(seed)
    task_order = build_run_order(protocol, rng)

    session = ParticipantSession.objects.create(
        protocol=protocol,
        participant=participant,
        is_preview=is_preview,
        random_seed=seed,
        task_order=task_order,
        strategy=protocol.randomization_settings.strategy,
        started_at=timezone.now(),
        completion_status=ParticipantSession.CompletionStatus.IN_PROGRESS,
    )
    return session


def run_for(session, reporter=None, opened_index=None) -> ParticipantRun:
    """
    Build the runtime object for *session*.

    Preview sessions report nothing unless a reporter is passed explicitly.
    """
    if reporter is None and not session.is_preview:
        from taskprotocoller.runs.tasks import HueyProgressReporter  # local import avoids circular

        reporter = HueyProgressReporter()
    return ParticipantRun(
        session.task_order,
        strategy=session.strategy,
        session_id=str(session.pk),
        index=session.current_index,
        reporter=reporter,
        opened_index=opened_index,
    )


class StaleRunPositionError(Exception):
    """The stored session moved past the task a result was saved for."""


def save_run_position(session, run, expected_index=None) -> None:
    """
    Persist the run's index, and completion once the last task is done.

    With *expected_index* the write only lands while the stored index still
    equals it; otherwise StaleRunPositionError is raised.
    """
    from taskprotocoller.runs.models import ParticipantSession  # local import avoids circular

    update_fields = {"current_index": run.index}
    if run.is_complete and not session.is_complete:
        update_fields["completion_status"] = ParticipantSession.CompletionStatus.COMPLETE
        update_fields["completed_at"] = timezone.now()
    rows = ParticipantSession.objects.filter(pk=session.pk)
    if expected_index is not None:
        rows = rows.filter(current_index=expected_index)
    if not rows.update(**update_fields) and expected_index is not None:
        raise StaleRunPositionError(f"Session {session.pk} is no longer on task {expected_index}")
    session.refresh_from_db()
