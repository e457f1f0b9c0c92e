"""
Error taxonomy for HTML to PDF conversion.

Client-caused problems are raised as InvalidRequestError and carry the
HTTP status to answer with. Everything raised by the renderer stage is a
ConversionError; the HTTP boundary collapses those into an opaque 500.
"""


class ServiceError(Exception):
    """Base class for all service-level errors."""


class InvalidRequestError(ServiceError):
    """Raised when an inbound request fails validation."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class ArtifactIOError(ServiceError):
    """Raised when an artifact cannot be written to the temporary directory."""


class ArtifactNotFoundError(ServiceError):
    """Raised when an artifact is opened for streaming but does not exist."""


class ConversionError(ServiceError):
    """Base class for renderer-stage failures."""

    reason = "conversion_failed"


class RendererUnavailableError(ConversionError):
    reason = "binary_not_found"


class InputMissingError(ConversionError):
    reason = "input_missing"


class InputEmptyError(ConversionError):
    reason = "input_empty"


class RendererTimeoutError(ConversionError):
    reason = "timeout"


class DiagnosticOutputError(ConversionError):
    """The renderer wrote to stderr. Treated as failure even on exit code 0."""

    reason = "diagnostic_output"


class NonZeroExitError(ConversionError):
    reason = "non_zero_exit"

    def __init__(self, exit_code: int) -> None:
        super().__init__(f"Failed to convert HTML to PDF, the process exited with code {exit_code}")
        self.exit_code = exit_code


class OutputEmptyError(ConversionError):
    reason = "output_empty"
