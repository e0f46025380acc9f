"""Shared exceptions for the generation pipeline.

This module contains exception classes used across the gateway client,
the persistence helpers and the job workers, so that no worker has to
import another worker just to catch its errors.
"""


class ConfigurationError(Exception):
    """Raised when required configuration is missing.

    This error indicates a configuration problem that prevents the
    pipeline from talking to the generation service (e.g., TRIPO_API_KEY
    not set).
    """

    pass


class InvalidStateTransitionError(Exception):
    """Raised when a generation log status would move backwards or leave a terminal state.

    Attributes:
        message: Human-readable error message describing the invalid transition.
        from_status: The current GenerationStatus before the attempted transition.
        to_status: The GenerationStatus that was attempted but is not valid.

    Example:
        >>> log.status = GenerationStatus.SUCCESS
        >>> log.status = GenerationStatus.PROCESSING
        InvalidStateTransitionError: Invalid transition: success → processing
    """

    def __init__(self, message: str, from_status: "GenerationStatus", to_status: "GenerationStatus"):
        """Initialize InvalidStateTransitionError with transition details.

        Args:
            message: Human-readable error message.
            from_status: Current status before transition attempt.
            to_status: Target status that was attempted.
        """
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)

    def __str__(self) -> str:
        """Return detailed error message with transition context."""
        base_message = super().__str__()
        return f"{base_message} (from={self.from_status.value}, to={self.to_status.value})"


class TripoAPIError(Exception):
    """Raised when the generation service answers with an application-level error.

    The service wraps every response in an envelope with a numeric ``code``;
    anything other than ``0`` is an application error even when the HTTP
    status is 200. Undecodable or structurally invalid bodies are reported
    with this error too (``code`` is None in that case).

    Attributes:
        code: Envelope error code, or None for malformed responses.
        message: Error message reported by the service.
    """

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        if self.code is None:
            return f"Tripo API error: {self.message}"
        return f"Tripo API error: code={self.code}, message={self.message}"


class ProductNotFoundError(Exception):
    """Raised when a product referenced by a job no longer exists."""

    def __init__(self, product_id: object):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class NoProductImageError(Exception):
    """Raised when a product has no image that can seed a 3D generation."""

    def __init__(self, product_id: object):
        self.product_id = product_id
        super().__init__(f"Product {product_id} has no images available for 3D generation")


class GenerationLogNotFoundError(Exception):
    """Raised when no generation log row exists for a task id."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Generation log not found for task: {task_id}")


class AssetDownloadError(Exception):
    """Raised when a generated asset cannot be fetched.

    Attributes:
        url: Remote URL that was requested (None when the service gave no URL).
        status_code: HTTP status returned, when the failure was an HTTP answer.
    """

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)
