import random
import uuid

from taskprotocoller.protocols.helpers.randomizer import partition_blocks
from taskprotocoller.protocols.helpers.randomizer import randomize_tasks
from taskprotocoller.protocols.helpers.resolver import resolve_sections


def _summary(task: dict) -> dict:
    return {
        "type": task["type"],
        "category": task["category"],
        "title": task.get("title", ""),
        "task_param": task.get("task_param"),
        "repeat_index": task.get("repeat_index"),
    }


def simulate_run(protocol, seed: str | None = None) -> dict:
    """
    Preview the order a participant would get for *protocol*.

    The seed is returned so a preview can be reproduced. ``blocks`` shows the
    configured task section partitioned the way the module strategy sees it.
    """
    seed = seed or str(uuid.uuid4())
    intro, tasks, closing = resolve_sections(protocol)
    order = [*intro, *randomize_tasks(tasks, protocol.randomization, rng=random.Random(seed)), *closing]
    return {
        "protocol_id": protocol.pk,
        "seed": seed,
        "randomization": protocol.randomization_settings.to_dict(),
        "order": [_summary(task) for task in order],
        "blocks": [[_summary(task) for task in block] for block in partition_blocks(tasks)],
    }
