"""
Exception types shared by the Gmail and WordPress sides of the pipeline.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline failures."""


class ValidationError(PipelineError):
    """A message could not be processed because required data is missing."""


class ExternalCallFailure(PipelineError):
    """A collaborator (Gmail, WordPress, IAM) answered with an error."""

    def __init__(self, service: str, status: Optional[int], detail: str = ""):
        self.service = service
        self.status = status
        self.detail = detail
        super().__init__(f"{status} error from {service}: {detail}")


class CompensationFailure(PipelineError):
    """A rollback step failed. Recorded, never raised over the original error."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"Compensation for '{step}' failed: {cause}")


class PipelineTimeout(PipelineError):
    """The run deadline passed while a message was being published."""
