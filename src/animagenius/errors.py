"""Error taxonomy shared by the pipeline, the API and the CLI.

Every error carries a stable ``code`` and the HTTP status the API answers
with. Tier-limit errors are user-actionable through an upgrade;
``UpstreamFailureError`` is retryable by the caller; ``InternalError`` is
fatal to the current request.
"""

from typing import Any


class PipelineError(Exception):
    """Base class for errors surfaced to API clients."""

    code = "pipeline_error"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PipelineError):
    """Missing or malformed request data."""

    code = "validation_error"
    status_code = 400


class NotFoundError(PipelineError):
    """Referenced entity is absent or not owned by the caller."""

    code = "not_found"
    status_code = 404


class PermissionDeniedError(PipelineError):
    """Caller lacks the privilege the operation needs."""

    code = "permission_denied"
    status_code = 403


class QuotaExceededError(PipelineError):
    """Monthly video quota for the tier is used up."""

    code = "quota_exceeded"
    status_code = 429


class DurationExceededError(PipelineError):
    """Requested duration is above the tier maximum."""

    code = "duration_exceeded"
    status_code = 413


class FileSizeExceededError(PipelineError):
    """Uploaded file is larger than the tier allows."""

    code = "file_size_exceeded"
    status_code = 413


class ConflictingJobError(PipelineError):
    """Another stage or render job for the project is still in flight."""

    code = "conflicting_job"
    status_code = 409


class UpstreamFailureError(PipelineError):
    """The AI or billing collaborator failed or timed out."""

    code = "upstream_failure"
    status_code = 502


class InternalError(PipelineError):
    """Store or transport fault."""

    code = "internal_error"
    status_code = 500


class SubscriptionExistsError(ConflictingJobError):
    """The user already has an open subscription."""

    code = "subscription_exists"
