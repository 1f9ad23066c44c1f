"""Pipeline error taxonomy.

Every subclass of PipelineError is fatal for the session it occurs in; the
orchestrator turns it into a ``failed`` status with ``user_message`` as the
session's error message. Advisory failures never raise.
"""


class PipelineError(Exception):
    """Base class for errors that terminate a pipeline run."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class AcquisitionError(PipelineError):
    """The repository could not be checked out."""


class ReasoningProviderUnavailable(PipelineError):
    """No usable reasoning provider (missing credentials or failed call)."""


class PatchExtractionError(PipelineError):
    """No file could be extracted and applied from the model output."""


class VerificationFailedError(PipelineError):
    """The reproduction command did not pass against the patched tree."""


class SubmissionRejectedError(PipelineError):
    """PR creation refused for the session's current state."""
