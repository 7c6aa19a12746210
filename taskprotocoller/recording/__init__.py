"""
Participant-side recording runtime.

A RecordingSession owns one voice task's lifecycle: microphone permission,
the recording itself, optional voice-activity gating of the timer, adaptive
prompt switching after long silences, and packaging of the attempt result.
Media capture and the voice-activity classifier are external collaborators.
"""
