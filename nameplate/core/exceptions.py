from typing import Optional

from nameplate.domain.models import RecognitionFailureKind, RecognitionResult


class NameplateError(Exception):
    """Base class for every failure raised by the scan pipeline."""


class PreprocessingFailure(NameplateError):
    """The captured image could not be brought within the upload budget."""

    def __init__(self, message: str, size: Optional[int] = None, max_bytes: Optional[int] = None):
        super().__init__(message)
        self.size = size
        self.max_bytes = max_bytes


class RecognitionTransientFailure(NameplateError):
    """A single recognition try failed in a way that is worth retrying."""

    def __init__(self, message: str, kind: RecognitionFailureKind, http_status: Optional[int] = None, backoff_ms: int = 0):
        super().__init__(message)
        self.kind = kind
        self.http_status = http_status
        self.backoff_ms = backoff_ms


class RecognitionFailure(NameplateError):
    """Recognition failed permanently or every engine/attempt was exhausted."""

    def __init__(self, result: RecognitionResult):
        detail = result.error_message or (result.failure.value if result.failure else "unknown")
        super().__init__(f"Recognition failed after {result.attempts} attempt(s): {detail}")
        self.result = result
