"""Exception hierarchy for the recording pipeline."""

from __future__ import annotations


class RecordingError(Exception):
    """Base class for all recording pipeline errors."""


class ValidationError(RecordingError):
    """A request or event is missing a file or required fields."""


class RecordingIOError(RecordingError, OSError):
    """Reading or writing a local file failed."""


class NetworkError(RecordingError):
    """A call to an external collaborator failed."""


class UploadError(NetworkError):
    """The storage service rejected or failed the upload."""


class EmptyRecording(RecordingError):
    """Finalize was requested for a session with no chunks."""


class SessionFinalized(RecordingError):
    """The session was already finalized; no more appends or finalizes."""


class BufferLimitExceeded(RecordingError):
    """Appending the chunk would exceed the configured memory limits."""


class NoTranscript(RecordingError):
    """Speech-to-text returned no segments."""


class PartialFailure(RecordingError):
    """The recording was delivered but transcription enrichment failed."""
