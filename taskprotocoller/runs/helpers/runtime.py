"""
The runtime of one participant run.

A ParticipantRun owns the position within a session's task list. The hosting
view builds one per request from the stored session, calls into it, and
persists ``index`` back afterwards.
"""
import logging

from taskprotocoller.protocols.variants import task_from_dict
from taskprotocoller.runs.helpers.progress import completion_overlay
from taskprotocoller.runs.helpers.progress import task_progress_display

logger = logging.getLogger(__name__)


class RunCompleteError(Exception):
    """Raised when advancing a run that has no tasks left."""


class ParticipantRun:
    """
    Args:
        tasks:        Resolved task dicts in presentation order.
        strategy:     Randomization strategy the order was built with.
        session_id:   Session the interaction events belong to.
        index:        Index of the current task.
        reporter:     Session-progress reporter (``report`` / ``mark_completed``).
        opened_index: Last index a ``task_opened`` event was reported for.
    """

    def __init__(self, tasks, strategy="none", session_id=None, index=0, reporter=None, opened_index=None):
        self.tasks = list(tasks)
        self.strategy = strategy
        self.session_id = session_id
        self.index = index
        self.reporter = reporter
        self.opened_index = opened_index

    @property
    def is_complete(self) -> bool:
        return self.index >= len(self.tasks)

    @property
    def current_task(self) -> dict | None:
        return None if self.is_complete else self.tasks[self.index]

    @property
    def next_task(self) -> dict | None:
        return self.tasks[self.index + 1] if self.index + 1 < len(self.tasks) else None

    @property
    def current_variant(self):
        task = self.current_task
        return task_from_dict(task) if task is not None else None

    def progress(self) -> dict | None:
        return task_progress_display(self.tasks, self.index, self.strategy)

    def open_current(self) -> None:
        """Report ``task_opened`` once per index."""
        if self.is_complete or self.opened_index == self.index:
            return
        self.log_interaction("task_opened")
        self.opened_index = self.index

    def log_interaction(self, action: str, **extra) -> None:
        if self.session_id is None or self.reporter is None:
            return
        task = self.current_task or {}
        event = {
            "protocol_task_id": task.get("protocol_task_id"),
            "task_index": self.index + 1,
            "action": action,
            **extra,
        }
        try:
            self.reporter.report(self.session_id, event)
        except Exception:
            logger.exception("Progress reporting failed for session %s", self.session_id)

    def complete_current(self, **extra) -> str | None:
        """
        Mark the current task saved and move on.

        Returns the completion overlay category to show, if any. Reports the
        session complete once the last task is done.
        """
        if self.is_complete:
            raise RunCompleteError("Run has no current task")
        overlay = completion_overlay(self.tasks, self.index, self.strategy)
        self.log_interaction("task_saved", **extra)
        self._advance()
        return overlay

    def skip(self) -> None:
        """Advance without saving. Only offered for preview runs."""
        if self.is_complete:
            raise RunCompleteError("Run has no current task")
        self.log_interaction("task_skipped")
        self._advance()

    def _advance(self) -> None:
        self.index += 1
        if self.is_complete and self.session_id is not None and self.reporter is not None:
            try:
                self.reporter.mark_completed(self.session_id)
            except Exception:
                logger.exception("Completion reporting failed for session %s", self.session_id)
