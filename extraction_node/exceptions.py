"""
Defines custom exceptions for the extraction node to allow for more specific error handling.
"""

from typing import Optional


class ExtractionNodeError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(ExtractionNodeError):
    """Raised for issues related to configuration loading or validation."""


class ValidationError(ExtractionNodeError):
    """Raised when a request to the node carries malformed input."""


class CatalogQueryError(ExtractionNodeError):
    """Raised when the upstream platform refuses or cannot serve a catalog query."""


class PersonaError(ExtractionNodeError):
    """
    Raised when a single persona attempt fails (timeout, empty catalog,
    no audio formats, unresolvable URL or download failure).
    """

    def __init__(self, persona: str, video_id: str, message: str):
        super().__init__(f"{persona} failed for {video_id}: {message}")
        self.persona = persona
        self.video_id = video_id
        self.reason = message


class ExhaustionError(ExtractionNodeError):
    """Raised when every persona attempt for a video has failed."""

    def __init__(self, video_id: str, last_error: Optional[PersonaError] = None):
        super().__init__(f"All personas exhausted for {video_id}")
        self.video_id = video_id
        self.last_error = last_error


class DownloadFailed(ExtractionNodeError):
    """Raised when both the full GET and the chunked range download fail."""


class LegacyExtractionFailed(ExtractionNodeError):
    """Raised when the external-tool fallback cannot produce audio."""


class ExtractionFailed(ExtractionNodeError):
    """The final, caller-visible failure of an extraction request."""


class ProcessError(ExtractionNodeError):
    """Base class for failures of an external process invocation."""


class ProcessTimeoutError(ProcessError):
    """Raised when an external process exceeds its wall-clock timeout."""


class ProcessFailedError(ProcessError):
    """Raised when an external process exits non-zero or cannot be started."""


class ProcessOutputTooLargeError(ProcessError):
    """Raised when an external process writes more output than allowed."""


class RegistrationError(ExtractionNodeError):
    """Raised when the coordinator rejects a node registration."""
