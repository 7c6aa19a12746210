"""
Progress display and completion overlays for a participant run.

Intro steps (info and consent pages) never count as tasks. Under the module
strategy progress is shown per task type ("Voice task 2/5") and an overlay is
raised whenever the type changes; otherwise progress is overall ("Task 3/10")
and overlays mark milestones.
"""
import math

from django.conf import settings

from taskprotocoller.protocols.helpers.randomizer import STRATEGY_MODULE
from taskprotocoller.protocols.helpers.randomizer import task_type
from taskprotocoller.protocols.registry import INTRO_TYPES
from taskprotocoller.protocols.registry import TASK_TYPE_LABELS

# Protocols with fewer real tasks than this only get the 50% milestone.
SMALL_PROTOCOL_TASKS: int = getattr(settings, "RUNS_MILESTONE_SMALL_PROTOCOL", 16)


def _is_real(task) -> bool:
    return task_type(task) not in INTRO_TYPES


def task_progress_display(tasks, index: int, strategy: str) -> dict | None:
    """
    Return ``{"label", "current", "total"}`` for the task at *index*, or None
    for intro steps and out-of-range indices.
    """
    if not 0 <= index < len(tasks) or not _is_real(tasks[index]):
        return None

    if strategy == STRATEGY_MODULE:
        current_type = task_type(tasks[index])
        return {
            "label": str(TASK_TYPE_LABELS.get(current_type, current_type)),
            "current": sum(1 for t in tasks[: index + 1] if task_type(t) == current_type),
            "total": sum(1 for t in tasks if task_type(t) == current_type),
        }

    return {
        "label": str(TASK_TYPE_LABELS["task"]),
        "current": sum(1 for t in tasks[: index + 1] if _is_real(t)),
        "total": sum(1 for t in tasks if _is_real(t)),
    }


def milestones(total: int) -> list[tuple[int, str]]:
    """``(task count, label)`` pairs at which a milestone overlay is shown."""
    fractions = [(0.5, "milestone_50")]
    if total >= SMALL_PROTOCOL_TASKS:
        fractions = [(0.25, "milestone_25"), (0.5, "milestone_50"), (0.75, "milestone_75")]
    candidates = [(math.ceil(total * fraction), label) for fraction, label in fractions]
    return [(count, label) for count, label in candidates if 0 < count < total]


def completion_overlay(tasks, index: int, strategy: str) -> str | None:
    """
    Overlay category to show after the task at *index* is completed, or None.

    Never shown after the last task or after an intro step.
    """
    if not 0 <= index < len(tasks) - 1 or not _is_real(tasks[index]):
        return None

    current_type = task_type(tasks[index])
    if strategy == STRATEGY_MODULE:
        if task_type(tasks[index + 1]) != current_type:
            return current_type
        return None

    total = sum(1 for t in tasks if _is_real(t))
    completed = sum(1 for t in tasks[: index + 1] if _is_real(t))
    for count, label in milestones(total):
        if count == completed:
            return label
    return None
