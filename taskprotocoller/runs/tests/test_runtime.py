import logging

import pytest

from taskprotocoller.protocols.variants import ConsentTask
from taskprotocoller.protocols.variants import VoiceTask
from taskprotocoller.runs.helpers.runtime import ParticipantRun
from taskprotocoller.runs.helpers.runtime import RunCompleteError


class FakeReporter:
    def __init__(self, fail=False):
        self.fail = fail
        self.events = []
        self.completed = []

    def report(self, session_id, event):
        if self.fail:
            raise RuntimeError("queue down")
        self.events.append((session_id, event))

    def mark_completed(self, session_id):
        if self.fail:
            raise RuntimeError("queue down")
        self.completed.append(session_id)


def _tasks():
    return [
        {"type": "consent", "category": "consent", "content": "I agree"},
        {"type": "voice", "category": "phonation", "protocol_task_id": 7, "recording": {"mode": "count_down"}},
        {"type": "voice", "category": "reading", "protocol_task_id": 8},
    ]


def _run(**kwargs):
    kwargs.setdefault("session_id", "s-1")
    kwargs.setdefault("reporter", FakeReporter())
    return ParticipantRun(_tasks(), **kwargs)


class TestParticipantRun:
    def test_current_and_next_task(self):
        run = _run()
        assert run.current_task["type"] == "consent"
        assert run.next_task["category"] == "phonation"
        assert isinstance(run.current_variant, ConsentTask)

    def test_variant_of_voice_task(self):
        run = _run(index=1)
        variant = run.current_variant
        assert isinstance(variant, VoiceTask)
        assert variant.recording.mode == "count_down"

    def test_open_current_reports_once_per_index(self):
        run = _run(index=1)
        run.open_current()
        run.open_current()
        assert len(run.reporter.events) == 1
        assert run.reporter.events[0] == (
            "s-1",
            {"protocol_task_id": 7, "task_index": 2, "action": "task_opened"},
        )

    def test_open_current_skips_already_opened_index(self):
        run = _run(index=1, opened_index=1)
        run.open_current()
        assert run.reporter.events == []

    def test_complete_current_advances_and_reports(self):
        run = _run(index=1)
        run.complete_current(recording_duration=4000)
        assert run.index == 2
        _, event = run.reporter.events[-1]
        assert event["action"] == "task_saved"
        assert event["recording_duration"] == 4000
        assert run.reporter.completed == []

    def test_last_task_marks_session_completed(self):
        run = _run(index=2)
        run.complete_current()
        assert run.is_complete
        assert run.current_task is None
        assert run.reporter.completed == ["s-1"]

    def test_complete_after_end_raises(self):
        run = _run(index=3)
        with pytest.raises(RunCompleteError):
            run.complete_current()
        with pytest.raises(RunCompleteError):
            run.skip()

    def test_skip_reports_skipped(self):
        run = _run()
        run.skip()
        assert run.index == 1
        assert run.reporter.events[-1][1]["action"] == "task_skipped"

    def test_nothing_reported_without_reporter(self):
        run = ParticipantRun(_tasks(), session_id="s-1")
        run.open_current()
        run.complete_current()
        assert run.index == 1

    def test_reporter_failure_is_logged_not_raised(self, caplog):
        run = _run(index=2, reporter=FakeReporter(fail=True))
        with caplog.at_level(logging.ERROR, logger="taskprotocoller.runs.helpers.runtime"):
            run.open_current()
            run.complete_current()
        assert run.is_complete
        assert "Progress reporting failed" in caplog.text
        assert "Completion reporting failed" in caplog.text

    def test_progress_of_intro_step_is_none(self):
        assert _run().progress() is None
        assert _run(index=2).progress() == {"label": "Task", "current": 2, "total": 2}
