"""TripoAI v2 OpenAPI payload schemas.

Every response from the service is wrapped in an envelope:

    {"code": 0, "data": {...}}             success
    {"code": 2002, "message": "..."}       application-level error

Task payloads are validated loosely (unknown keys are kept) so that the
status snapshot stored on the generation log stays close to what the
service actually sent.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict

from model_pipeline.models import GenerationStatus


class TripoEnvelope(BaseModel):
    """Outer response envelope."""

    model_config = ConfigDict(extra="allow")

    code: int
    data: dict[str, Any] | None = None
    message: str | None = None
    suggestion: str | None = None


class TripoFileRef(BaseModel):
    """Reference to one file produced by a task."""

    model_config = ConfigDict(extra="allow")

    url: str | None = None
    type: str | None = None


class TripoTaskResult(BaseModel):
    """Files produced by a successful task."""

    model_config = ConfigDict(extra="allow")

    pbr_model: TripoFileRef | None = None
    rendered_image: TripoFileRef | None = None


class TripoCreatedTask(BaseModel):
    """Data returned when a task is created."""

    model_config = ConfigDict(extra="allow")

    task_id: str


class TripoTaskData(BaseModel):
    """Status snapshot of one task.

    ``status`` is kept as the raw string; use ``reported_status`` for the
    enum (unknown values fall back to processing). ``progress`` is kept
    as sent and normalized with ``progress_or``.
    """

    model_config = ConfigDict(extra="allow")

    task_id: str
    status: str | None = None
    progress: Any = None
    result: TripoTaskResult | None = None
    error: Any = None

    @property
    def reported_status(self) -> GenerationStatus:
        return GenerationStatus.from_reported(self.status)

    @property
    def model_url(self) -> str | None:
        if self.result and self.result.pbr_model:
            return self.result.pbr_model.url
        return None

    @property
    def preview_url(self) -> str | None:
        if self.result and self.result.rendered_image:
            return self.result.rendered_image.url
        return None

    @property
    def error_message(self) -> str | None:
        """Service-supplied failure reason as text, if any."""
        if self.error is None or self.error == "":
            return None
        if isinstance(self.error, dict):
            return str(self.error.get("message") or self.error)
        return str(self.error)

    def progress_or(self, previous: int) -> int:
        """Return reported progress clamped to 0-100.

        Non-integer values (missing, strings, floats, booleans) keep
        ``previous``.
        """
        value = self.progress
        if isinstance(value, bool) or not isinstance(value, int):
            return previous
        return max(0, min(100, value))

    def raw(self) -> dict[str, Any]:
        """Payload as received, for storing in ``last_response``."""
        return self.model_dump(mode="json", exclude_unset=True)
