import itertools
import random
from collections import Counter

import pytest

from taskprotocoller.protocols.helpers.randomizer import RandomizationSettings
from taskprotocoller.protocols.helpers.randomizer import partition_blocks
from taskprotocoller.protocols.helpers.randomizer import randomize_tasks
from taskprotocoller.protocols.variants import QuestionnaireTask
from taskprotocoller.protocols.variants import VoiceTask


def _task(task_id, task_type):
    return {"id": task_id, "type": task_type}


def _ids(tasks):
    return [t["id"] for t in tasks]


@pytest.fixture
def mixed_tasks():
    return [
        _task("V1", "voice"),
        _task("V2", "voice"),
        _task("Q1", "questionnaire"),
        _task("V3", "voice"),
        _task("S1", "vision"),
        _task("S2", "vision"),
    ]


def _module(shuffle_blocks=False, shuffle_within=False):
    return {
        "strategy": "module",
        "moduleSettings": {"shuffleBlocks": shuffle_blocks, "shuffleWithin": shuffle_within},
    }


# ─────────────────────────────────────────────────────────────────────────────
# Block partitioning
# ─────────────────────────────────────────────────────────────────────────────

class TestPartitionBlocks:
    def test_adjacent_same_type_only(self):
        tasks = [_task("V1", "voice"), _task("V2", "voice"), _task("Q1", "quiz"), _task("V3", "voice")]
        blocks = partition_blocks(tasks)
        assert [_ids(b) for b in blocks] == [["V1", "V2"], ["Q1"], ["V3"]]

    def test_flatten_reconstructs_input(self, mixed_tasks):
        blocks = partition_blocks(mixed_tasks)
        assert [t for b in blocks for t in b] == mixed_tasks

    def test_every_block_is_single_type(self, mixed_tasks):
        for block in partition_blocks(mixed_tasks):
            assert len({t["type"] for t in block}) == 1

    def test_idempotent(self, mixed_tasks):
        first = partition_blocks(mixed_tasks)
        second = partition_blocks([t for b in first for t in b])
        assert first == second

    def test_empty(self):
        assert partition_blocks([]) == []

    def test_accepts_task_variants(self):
        tasks = [VoiceTask(category="ddk"), VoiceTask(category="reading"), QuestionnaireTask()]
        assert [len(b) for b in partition_blocks(tasks)] == [2, 1]


# ─────────────────────────────────────────────────────────────────────────────
# Settings parsing
# ─────────────────────────────────────────────────────────────────────────────

class TestRandomizationSettings:
    @pytest.mark.parametrize("data", [None, "global", 42, [], {}, {"strategy": None}])
    def test_garbage_degrades_to_none(self, data):
        assert RandomizationSettings.from_dict(data) == RandomizationSettings()

    def test_unknown_strategy_degrades_to_none(self, caplog):
        settings = RandomizationSettings.from_dict({"strategy": "chaos"})
        assert settings.strategy == "none"
        assert "Unknown randomization strategy" in caplog.text

    def test_camel_case_module_settings(self):
        settings = RandomizationSettings.from_dict(_module(shuffle_blocks=True))
        assert settings == RandomizationSettings("module", shuffle_blocks=True, shuffle_within=False)

    def test_snake_case_module_settings(self):
        settings = RandomizationSettings.from_dict(
            {"strategy": "module", "module_settings": {"shuffle_within": True}}
        )
        assert settings.shuffle_within is True
        assert settings.shuffle_blocks is False

    def test_module_settings_not_a_dict(self):
        settings = RandomizationSettings.from_dict({"strategy": "module", "moduleSettings": "yes"})
        assert settings == RandomizationSettings("module")

    def test_to_dict_round_trip(self):
        settings = RandomizationSettings("module", shuffle_blocks=True, shuffle_within=True)
        assert RandomizationSettings.from_dict(settings.to_dict()) == settings


# ─────────────────────────────────────────────────────────────────────────────
# randomize_tasks
# ─────────────────────────────────────────────────────────────────────────────

class TestNoneStrategy:
    def test_identity(self, mixed_tasks):
        assert randomize_tasks(mixed_tasks, {"strategy": "none"}) == mixed_tasks

    def test_missing_settings_is_identity(self, mixed_tasks):
        assert randomize_tasks(mixed_tasks) == mixed_tasks

    def test_unknown_strategy_is_identity(self, mixed_tasks):
        assert randomize_tasks(mixed_tasks, {"strategy": "reverse"}) == mixed_tasks

    def test_returns_new_list(self, mixed_tasks):
        result = randomize_tasks(mixed_tasks)
        assert result is not mixed_tasks


class TestGlobalStrategy:
    def test_is_permutation(self, mixed_tasks):
        for seed in range(20):
            result = randomize_tasks(mixed_tasks, {"strategy": "global"}, rng=random.Random(seed))
            assert Counter(_ids(result)) == Counter(_ids(mixed_tasks))

    def test_input_not_mutated(self, mixed_tasks):
        snapshot = list(mixed_tasks)
        randomize_tasks(mixed_tasks, {"strategy": "global"}, rng=random.Random(3))
        assert mixed_tasks == snapshot

    def test_same_seed_same_order(self, mixed_tasks):
        first = randomize_tasks(mixed_tasks, {"strategy": "global"}, rng=random.Random("seed-1"))
        second = randomize_tasks(mixed_tasks, {"strategy": "global"}, rng=random.Random("seed-1"))
        assert first == second

    def test_empty_and_single(self):
        assert randomize_tasks([], {"strategy": "global"}) == []
        single = [_task("A", "voice")]
        assert randomize_tasks(single, {"strategy": "global"}) == single

    def test_uniform_over_permutations(self):
        tasks = [_task("A", "voice"), _task("B", "voice"), _task("C", "voice")]
        rng = random.Random(20240611)
        trials = 6000
        counts = Counter(
            tuple(_ids(randomize_tasks(tasks, {"strategy": "global"}, rng=rng))) for _ in range(trials)
        )
        assert len(counts) == 6
        expected = trials / 6
        for count in counts.values():
            # Roughly five standard deviations either side.
            assert abs(count - expected) < 150


class TestModuleStrategy:
    def test_without_flags_is_identity(self, mixed_tasks):
        for seed in range(10):
            assert randomize_tasks(mixed_tasks, _module(), rng=random.Random(seed)) == mixed_tasks

    def test_shuffle_within_keeps_blocks(self, mixed_tasks):
        original_blocks = partition_blocks(mixed_tasks)
        for seed in range(20):
            result = randomize_tasks(mixed_tasks, _module(shuffle_within=True), rng=random.Random(seed))
            blocks = partition_blocks(result)
            assert [sorted(_ids(b)) for b in blocks] == [sorted(_ids(b)) for b in original_blocks]

    def test_shuffle_within_reorders_members(self, mixed_tasks):
        orders = {
            tuple(_ids(randomize_tasks(mixed_tasks, _module(shuffle_within=True), rng=random.Random(seed))))
            for seed in range(50)
        }
        assert len(orders) > 1

    def test_shuffle_blocks_keeps_block_contents(self, mixed_tasks):
        original_blocks = partition_blocks(mixed_tasks)
        candidates = [
            [t for b in permutation for t in b] for permutation in itertools.permutations(original_blocks)
        ]
        for seed in range(20):
            result = randomize_tasks(mixed_tasks, _module(shuffle_blocks=True), rng=random.Random(seed))
            assert result in candidates

    def test_distant_same_type_blocks_stay_separate(self):
        tasks = [_task("V1", "voice"), _task("Q1", "quiz"), _task("V2", "voice")]
        for seed in range(20):
            result = randomize_tasks(tasks, _module(shuffle_within=True), rng=random.Random(seed))
            assert _ids(result) == ["V1", "Q1", "V2"]

    def test_works_on_variants(self):
        tasks = [VoiceTask(category="ddk"), QuestionnaireTask(), VoiceTask(category="reading")]
        result = randomize_tasks(tasks, _module(shuffle_blocks=True), rng=random.Random(1))
        assert sorted(t.category for t in result) == ["ddk", "questionnaire", "reading"]
