"""Shared settings, error types and collaborator interfaces."""

from common.config import CategoryMapping, EmailList, Settings, get_settings
from common.errors import (
    CompensationFailure,
    ExternalCallFailure,
    PipelineError,
    PipelineTimeout,
    ValidationError,
)
from common.ports import ContentApi, Directory, Mailbox

__all__ = [
    "CategoryMapping",
    "EmailList",
    "Settings",
    "get_settings",
    "CompensationFailure",
    "ExternalCallFailure",
    "PipelineError",
    "PipelineTimeout",
    "ValidationError",
    "ContentApi",
    "Directory",
    "Mailbox",
]
