"""Media capture collaborator interface."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Protocol


@dataclass(frozen=True)
class CapturedAudio:
    """Audio produced by one recording attempt."""

    blob: bytes
    duration_ms: int
    content_type: str = "audio/webm"

    @property
    def extension(self) -> str:
        subtype = self.content_type.split("/", 1)[-1]
        return subtype.split(";", 1)[0] or "bin"


class MediaCapture(Protocol):
    """
    Black-box recording device.

    ``request_permission`` raises PermissionDeniedError when access is refused.
    The stream it returns is shared by the recorder and the voice-activity
    classifier and is released by the owning session on teardown.
    """

    def request_permission(self) -> Any: ...

    def start_recording(self, stream: Any) -> Any: ...

    def pause_recording(self, recorder: Any) -> None: ...

    def resume_recording(self, recorder: Any) -> None: ...

    def stop_recording(self, recorder: Any) -> CapturedAudio: ...

    def release(self, stream: Any) -> None: ...
