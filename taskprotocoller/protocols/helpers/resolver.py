"""
Turn a stored Protocol into the list of task dicts a participant run walks through.

A run is made of three sections: intro steps (info page, consent page), the
protocol's own tasks, and a closing questionnaire. Only the middle section is
ever randomized.
"""
import random

from taskprotocoller.protocols.helpers.randomizer import randomize_tasks
from taskprotocoller.protocols.registry import TASK_REGISTRY
from taskprotocoller.protocols.registry import default_params
from taskprotocoller.protocols.registry import task_type_for
from taskprotocoller.recording.prompts import fill_placeholders


def resolve_task(protocol_task) -> list[dict]:
    """
    Resolve one ProtocolTask against the registry.

    Configured params are merged over the registry defaults and placeholders
    in the instruction texts are filled. A ``repeat`` param of N yields N
    consecutive copies numbered by ``repeat_index``.
    """
    category = protocol_task.category
    entry = TASK_REGISTRY[category]
    task_type = task_type_for(category)
    params = {**default_params(category), **(protocol_task.params or {})}
    repeat = params.pop("repeat", 1) or 1

    task = {
        "type": task_type,
        "category": category,
        "protocol_task_id": protocol_task.pk,
        "position": protocol_task.position,
        "title": str(entry["label"]),
        "instructions": fill_placeholders(entry.get("instructions", ""), params),
        "params": params,
    }
    if task_type == "voice":
        primary = entry.get("primary_param")
        sub_items_param = entry.get("sub_items_param")
        task.update(
            {
                "instructions_active": fill_placeholders(entry.get("instructions_active", ""), params),
                "recording": dict(entry["recording"]),
                "use_vad": entry.get("use_vad", False),
                "allow_pause": entry.get("allow_pause", False),
                "task_param": params.get(primary) if primary else None,
                "sub_items": list(params.get(sub_items_param) or []) if sub_items_param else [],
                "placeholder": entry.get("placeholder"),
                "sub_item_field": entry.get("sub_item_field"),
                "illustration": fill_placeholders(entry.get("illustration", ""), params),
            }
        )
    return [{**task, "repeat_index": index} for index in range(1, repeat + 1)]


def resolve_sections(protocol) -> tuple[list[dict], list[dict], list[dict]]:
    """Return ``(intro, tasks, closing)`` task dict lists for *protocol*."""
    intro = []
    if protocol.info_text:
        intro.append({"type": "info", "category": "introduction", "content": protocol.info_text})
    if protocol.consent_text:
        intro.append({"type": "consent", "category": "consent", "content": protocol.consent_text})

    tasks = []
    for protocol_task in protocol.tasks.all():
        tasks.extend(resolve_task(protocol_task))

    closing = []
    if protocol.questionnaire:
        questionnaire = protocol.questionnaire
        questions = questionnaire.get("questions", []) if isinstance(questionnaire, dict) else questionnaire
        title = questionnaire.get("title", "") if isinstance(questionnaire, dict) else ""
        closing.append(
            {
                "type": "questionnaire",
                "category": "questionnaire",
                "title": title,
                "questions": list(questions),
            }
        )
    return intro, tasks, closing


def resolve_protocol_tasks(protocol) -> list[dict]:
    """All steps of a run in configured order."""
    intro, tasks, closing = resolve_sections(protocol)
    return [*intro, *tasks, *closing]


def build_run_order(protocol, rng: random.Random | None = None) -> list[dict]:
    """
    Resolve *protocol* and randomize its tasks with the protocol's settings.

    Intro steps stay first and the closing questionnaire stays last.
    """
    intro, tasks, closing = resolve_sections(protocol)
    return [*intro, *randomize_tasks(tasks, protocol.randomization, rng=rng), *closing]
