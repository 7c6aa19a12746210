"""
Recording runtime tunables.

Defaults are overridable via Django settings so they can be adjusted without
code changes.
"""
from django.conf import settings

_DEFAULT_VAD_PARAMS = {
    "positive_speech_threshold": 0.5,
    "negative_speech_threshold": 0.45,
    "redemption_ms": 2000,
    "pre_speech_pad_ms": 500,
    "min_speech_ms": 600,
}

# Defaults, overridable via settings
SILENCE_FREEZE_MS: int = getattr(settings, "RECORDING_SILENCE_FREEZE_MS", 4000)
SILENCE_ADVANCE_MS: int = getattr(settings, "RECORDING_SILENCE_ADVANCE_MS", 10000)
POLL_INTERVAL_MS: int = getattr(settings, "RECORDING_POLL_INTERVAL_MS", 500)
VAD_PARAMS: dict = {**_DEFAULT_VAD_PARAMS, **getattr(settings, "RECORDING_VAD_PARAMS", {})}
