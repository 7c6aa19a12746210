from taskprotocoller.runs.helpers.progress import completion_overlay
from taskprotocoller.runs.helpers.progress import milestones
from taskprotocoller.runs.helpers.progress import task_progress_display


def _tasks(*types):
    return [{"type": t, "category": t} for t in types]


class TestMilestones:
    def test_small_protocol_only_gets_halfway(self):
        assert milestones(10) == [(5, "milestone_50")]

    def test_rounds_up(self):
        assert milestones(15) == [(8, "milestone_50")]

    def test_large_protocol_gets_quarters(self):
        assert milestones(16) == [(4, "milestone_25"), (8, "milestone_50"), (12, "milestone_75")]

    def test_quarters_round_up(self):
        assert milestones(18) == [(5, "milestone_25"), (9, "milestone_50"), (14, "milestone_75")]

    def test_single_task_has_no_milestones(self):
        assert milestones(1) == []


class TestTaskProgressDisplay:
    def test_intro_steps_show_no_progress(self):
        tasks = _tasks("info", "consent", "voice")
        assert task_progress_display(tasks, 0, "none") is None
        assert task_progress_display(tasks, 1, "none") is None

    def test_overall_progress_skips_intro_steps(self):
        tasks = _tasks("info", "voice", "voice", "vision")
        progress = task_progress_display(tasks, 2, "global")
        assert progress == {"label": "Task", "current": 2, "total": 3}

    def test_module_progress_is_per_type(self):
        tasks = _tasks("consent", "voice", "voice", "vision")
        assert task_progress_display(tasks, 2, "module") == {"label": "Voice task", "current": 2, "total": 2}
        assert task_progress_display(tasks, 3, "module") == {"label": "Vision task", "current": 1, "total": 1}

    def test_out_of_range_is_none(self):
        assert task_progress_display(_tasks("voice"), 1, "none") is None


class TestCompletionOverlay:
    def test_module_overlay_on_type_change(self):
        tasks = _tasks("voice", "voice", "vision", "questionnaire")
        assert completion_overlay(tasks, 0, "module") is None
        assert completion_overlay(tasks, 1, "module") == "voice"
        assert completion_overlay(tasks, 2, "module") == "vision"

    def test_never_after_last_task(self):
        tasks = _tasks("voice", "vision")
        assert completion_overlay(tasks, 1, "module") is None
        assert completion_overlay(tasks, 1, "none") is None

    def test_never_after_intro_step(self):
        tasks = _tasks("info", "voice", "voice")
        assert completion_overlay(tasks, 0, "module") is None
        assert completion_overlay(tasks, 0, "none") is None

    def test_milestone_counts_real_tasks_only(self):
        tasks = _tasks("info", "consent", "voice", "voice", "voice", "voice")
        overlays = [completion_overlay(tasks, index, "global") for index in range(len(tasks))]
        assert overlays == [None, None, None, "milestone_50", None, None]
