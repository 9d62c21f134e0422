"""Exceptions raised by the meditone audio pipeline."""


class MeditoneError(Exception):
    """Base exception for pipeline errors.

    Args:
        message: Human-readable description, safe to show to callers
        stage: Pipeline stage that failed (e.g. "segment", "assemble")
        original_error: Underlying exception, if any
    """

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.original_error = original_error
        if stage is not None:
            self.stage = stage


class SegmentationError(MeditoneError, ValueError):
    """Exception raised for malformed scripts.

    This typically occurs when:
    - A pause marker carries a zero, negative or non-numeric duration
    - A pause marker is never closed
    - The script contains no content at all
    """

    stage = "segment"


class SynthesisError(MeditoneError):
    """Exception raised when a speech chunk could not be synthesized."""

    stage = "synthesize"


class TTSAuthError(SynthesisError):
    """Exception raised for authentication failures.

    This typically occurs when:
    - API key is missing or invalid
    - Account has insufficient credits
    - API key permissions are insufficient
    """

    pass


class TTSAPIError(SynthesisError):
    """Exception raised for API communication errors.

    This typically occurs when:
    - API server is unavailable (5xx errors)
    - Rate limits are exceeded (429 error)
    - Request format is invalid (4xx errors)
    - Network connectivity issues
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code


class SilenceGenerationError(MeditoneError):
    """Exception raised when a silent clip could not be built or encoded."""

    stage = "silence"


class TranscodeError(MeditoneError):
    """Structured failure of an ffmpeg or ffprobe invocation."""

    stage = "transcode"

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class AssemblyError(MeditoneError):
    """Exception raised when no track could be assembled from the chunks."""

    stage = "assemble"


class NotFoundError(MeditoneError):
    """Exception raised when a referenced speech or music artifact is missing."""

    stage = "mix"


class MixError(MeditoneError):
    """Exception raised when mixing speech with background music fails."""

    stage = "mix"
