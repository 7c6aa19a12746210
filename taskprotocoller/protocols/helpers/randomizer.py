"""
Task order randomization.

Policies:

* ``none``:   keep the configured order.
* ``global``: Fisher-Yates shuffle of the whole list.
* ``module``: partition into blocks of adjacent same-type tasks, optionally
  shuffle the members of every block and/or the sequence of blocks, then
  flatten.

Randomization never mutates its input and never raises on bad settings: any
configuration it does not understand degrades to ``none``.
"""
import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

STRATEGY_NONE = "none"
STRATEGY_GLOBAL = "global"
STRATEGY_MODULE = "module"
STRATEGIES = (STRATEGY_NONE, STRATEGY_GLOBAL, STRATEGY_MODULE)


def _flag(data: Mapping, *keys) -> bool:
    for key in keys:
        if key in data:
            return bool(data[key])
    return False


@dataclass(frozen=True)
class RandomizationSettings:
    strategy: str = STRATEGY_NONE
    shuffle_blocks: bool = False
    shuffle_within: bool = False

    @classmethod
    def from_dict(cls, data) -> "RandomizationSettings":
        """
        Parse stored settings (``{"strategy", "moduleSettings": {"shuffleBlocks",
        "shuffleWithin"}}``; snake_case keys are accepted as well).
        """
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            return cls()
        strategy = data.get("strategy") or STRATEGY_NONE
        if strategy not in STRATEGIES:
            logger.warning("Unknown randomization strategy %r; keeping configured order", strategy)
            return cls()
        module = data.get("moduleSettings", data.get("module_settings"))
        if not isinstance(module, Mapping):
            module = {}
        return cls(
            strategy=strategy,
            shuffle_blocks=_flag(module, "shuffleBlocks", "shuffle_blocks"),
            shuffle_within=_flag(module, "shuffleWithin", "shuffle_within"),
        )

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "moduleSettings": {
                "shuffleBlocks": self.shuffle_blocks,
                "shuffleWithin": self.shuffle_within,
            },
        }


def task_type(task):
    """Type tag of a task dict or a task variant."""
    if isinstance(task, Mapping):
        return task.get("type")
    return getattr(task, "type", None)


def partition_blocks(tasks) -> list[list]:
    """
    Split *tasks* into maximal runs of adjacent tasks sharing the same type.

    Same-type runs separated by another type stay separate blocks, e.g.
    ``[voice, voice, quiz, voice]`` gives three blocks.
    """
    blocks: list[list] = []
    previous = object()
    for task in tasks:
        current = task_type(task)
        if blocks and current == previous:
            blocks[-1].append(task)
        else:
            blocks.append([task])
        previous = current
    return blocks


def randomize_tasks(tasks, settings=None, rng: random.Random | None = None) -> list:
    """
    Return a new list with *tasks* reordered according to *settings*.

    *rng* defaults to a fresh ``random.Random()``; pass a seeded instance to
    reproduce an order.
    """
    settings = RandomizationSettings.from_dict(settings)
    rng = rng or random.Random()
    ordered = list(tasks)

    if settings.strategy == STRATEGY_GLOBAL:
        rng.shuffle(ordered)
        return ordered

    if settings.strategy == STRATEGY_MODULE:
        blocks = partition_blocks(ordered)
        if settings.shuffle_within:
            for block in blocks:
                rng.shuffle(block)
        if settings.shuffle_blocks:
            rng.shuffle(blocks)
        return [task for block in blocks for task in block]

    return ordered
