from taskprotocoller.recording.vad import VadEvent
from taskprotocoller.recording.vad import VadMessage
from taskprotocoller.recording.vad import VadMessageQueue
from taskprotocoller.recording.vad import VadParams


class TestVadParams:
    def test_defaults_from_settings(self):
        params = VadParams.from_settings()
        assert params.positive_speech_threshold == 0.5
        assert params.negative_speech_threshold == 0.45
        assert params.redemption_ms == 2000
        assert params.pre_speech_pad_ms == 500
        assert params.min_speech_ms == 600


class TestVadMessageQueue:
    def test_drain_is_fifo(self):
        queue = VadMessageQueue()
        queue.put(VadMessage(VadEvent.SPEECH_START, epoch=1, at_ms=10))
        queue.put(VadMessage(VadEvent.SPEECH_END, epoch=1, at_ms=20))
        assert [m.kind for m in queue.drain()] == [VadEvent.SPEECH_START, VadEvent.SPEECH_END]
        assert len(queue) == 0

    def test_messages_added_while_draining_are_consumed(self):
        queue = VadMessageQueue()
        queue.put(VadMessage(VadEvent.FRAME, epoch=1, at_ms=0, prob=0.1))
        seen = []
        for message in queue.drain():
            seen.append(message.kind)
            if len(seen) == 1:
                queue.put(VadMessage(VadEvent.MISFIRE, epoch=1, at_ms=5))
        assert seen == [VadEvent.FRAME, VadEvent.MISFIRE]

    def test_clear(self):
        queue = VadMessageQueue()
        queue.put(VadMessage(VadEvent.FRAME, epoch=1, at_ms=0))
        queue.clear()
        assert list(queue.drain()) == []
