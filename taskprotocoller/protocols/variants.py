"""
Runtime task variants.

A run's task list is stored as plain dicts (see helpers.resolver). The task
page and the submission endpoint build one of the variants below from such a
dict so that each task type only carries the fields relevant to it.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from dataclasses import field
from typing import ClassVar


class UnknownTaskTypeError(Exception):
    """Raised when a task dict carries a type no variant handles."""


@dataclass(frozen=True)
class RecordingSpec:
    mode: str = "free"
    duration_ms: int = 0


@dataclass(frozen=True)
class VoiceTask:
    type: ClassVar[str] = "voice"

    category: str
    protocol_task_id: int | None = None
    title: str = ""
    instructions: str = ""
    instructions_active: str = ""
    recording: RecordingSpec = RecordingSpec()
    use_vad: bool = False
    allow_pause: bool = False
    params: dict = field(default_factory=dict)
    task_param: str | None = None
    repeat_index: int = 1
    sub_items: tuple = ()
    placeholder: str | None = None
    sub_item_field: str | None = None
    illustration: str = ""


@dataclass(frozen=True)
class QuestionnaireTask:
    type: ClassVar[str] = "questionnaire"

    category: str = "questionnaire"
    protocol_task_id: int | None = None
    title: str = ""
    questions: tuple = ()


@dataclass(frozen=True)
class VisionTask:
    type: ClassVar[str] = "vision"

    category: str
    protocol_task_id: int | None = None
    title: str = ""
    instructions: str = ""


@dataclass(frozen=True)
class InfoTask:
    type: ClassVar[str] = "info"

    content: str
    category: str = "introduction"
    protocol_task_id: int | None = None


@dataclass(frozen=True)
class ConsentTask:
    type: ClassVar[str] = "consent"

    content: str
    category: str = "consent"
    protocol_task_id: int | None = None


Task = VoiceTask | QuestionnaireTask | VisionTask | InfoTask | ConsentTask

_VARIANTS = {cls.type: cls for cls in (VoiceTask, QuestionnaireTask, VisionTask, InfoTask, ConsentTask)}


def task_from_dict(data: dict) -> Task:
    """Build the variant for *data*, ignoring keys the variant does not carry."""
    try:
        cls = _VARIANTS[data.get("type")]
    except (KeyError, TypeError) as exc:
        raise UnknownTaskTypeError(f"Unknown task type: {data.get('type')!r}") from exc

    names = {f.name for f in dataclasses.fields(cls)}
    values = {key: value for key, value in data.items() if key in names}
    if "recording" in values:
        values["recording"] = RecordingSpec(**(values["recording"] or {}))
    for key in ("sub_items", "questions"):
        if key in values:
            values[key] = tuple(values[key] or ())
    return cls(**values)
