"""TripoAI generation service client.

This module wraps the two TripoAI v2 OpenAPI calls the pipeline needs:
creating an image-to-model task and reading its status.

Architecture Pattern:
    Simple HTTP client wrapper - no retry logic (handled by the job layer)
    Async-only interface using httpx.AsyncClient

Error Contract:
    - Non-200 HTTP response → httpx.HTTPStatusError
    - Network failure / timeout → httpx.TransportError subclasses
    - Envelope with non-zero ``code`` → TripoAPIError(code, message)
    - Body that is not a valid envelope → TripoAPIError("malformed response")

Usage:
    from model_pipeline.clients.tripo import TripoClient

    client = TripoClient()
    task_id, payload = await client.submit_task("https://cdn.example.com/chair.jpg")
    status = await client.get_task_status(task_id)
    await client.close()

Security:
    - Bearer token read from TRIPO_API_KEY, never logged
"""

from typing import Any

import httpx
from pydantic import ValidationError

from model_pipeline.config import (
    get_status_timeout,
    get_submit_timeout,
    get_tripo_api_key,
    get_tripo_api_url,
)
from model_pipeline.constants import DEFAULT_IMAGE_FILE_TYPE, IMAGE_FILE_TYPES
from model_pipeline.exceptions import TripoAPIError
from model_pipeline.schemas.tripo import TripoCreatedTask, TripoEnvelope, TripoTaskData
from model_pipeline.utils.logging import get_logger

log = get_logger(__name__)

TASK_PATH = "/v2/openapi/task"


def infer_file_type(image_url: str) -> str:
    """Infer the file type the service expects from an image URL.

    The extension of the URL path is used (query string and fragment are
    ignored). ``jpeg`` becomes ``jpg``; unknown extensions are passed
    through lowercased; a URL without an extension defaults to ``jpg``.

    Example:
        >>> infer_file_type("https://cdn.example.com/a/chair.PNG?w=800")
        'png'
    """
    path = httpx.URL(image_url).path
    filename = path.rsplit("/", 1)[-1]
    if "." not in filename:
        return DEFAULT_IMAGE_FILE_TYPE
    extension = filename.rsplit(".", 1)[-1].lower()
    if not extension:
        return DEFAULT_IMAGE_FILE_TYPE
    return IMAGE_FILE_TYPES.get(extension, extension)


def build_task_payload(image_url: str) -> dict[str, Any]:
    """Build the image-to-model request body for one image URL."""
    return {
        "type": "image_to_model",
        "file": {
            "type": infer_file_type(image_url),
            "url": image_url,
        },
    }


class TripoClient:
    """Client for the TripoAI task API.

    Attributes:
        base_url: Service base URL (no trailing slash)
        client: Async HTTP client carrying the bearer token

    Args:
        api_key: Bearer token (defaults to TRIPO_API_KEY)
        base_url: Service base URL (defaults to TRIPO_API_URL)
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or get_tripo_api_url()).rstrip("/")
        self.submit_timeout = get_submit_timeout()
        self.status_timeout = get_status_timeout()
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key or get_tripo_api_key()}",
                "Content-Type": "application/json",
            },
            timeout=self.submit_timeout,
            transport=transport,
        )

    async def submit_task(self, image_url: str) -> tuple[str, dict[str, Any]]:
        """Create an image-to-model task.

        Args:
            image_url: Publicly reachable product image.

        Returns:
            (task_id, request_payload) - the payload is returned so callers
            can persist exactly what was sent.

        Raises:
            TripoAPIError: Non-zero envelope code or malformed response.
            httpx.HTTPError: Transport failure or non-200 status.
        """
        payload = build_task_payload(image_url)
        response = await self.client.post(
            TASK_PATH,
            json=payload,
            timeout=self.submit_timeout,
        )
        self._ensure_ok(response)

        data = self._unwrap(response)
        try:
            created = TripoCreatedTask.model_validate(data)
        except ValidationError as e:
            raise TripoAPIError("malformed response: missing task_id") from e

        log.info(
            "tripo_task_submitted",
            task_id=created.task_id,
            file_type=payload["file"]["type"],
        )
        return created.task_id, payload

    async def get_task_status(self, task_id: str) -> TripoTaskData:
        """Read the current status of a task.

        Raises:
            TripoAPIError: Non-zero envelope code or malformed response.
            httpx.HTTPError: Transport failure or non-200 status.
        """
        response = await self.client.get(
            f"{TASK_PATH}/{task_id}",
            timeout=self.status_timeout,
        )
        self._ensure_ok(response)

        data = self._unwrap(response)
        # Some responses omit task_id inside data
        data.setdefault("task_id", task_id)
        try:
            status = TripoTaskData.model_validate(data)
        except ValidationError as e:
            raise TripoAPIError("malformed response: invalid task data") from e

        log.debug(
            "tripo_task_status",
            task_id=task_id,
            status=status.status,
            progress=status.progress,
        )
        return status

    @staticmethod
    def _ensure_ok(response: httpx.Response) -> None:
        """Only HTTP 200 is a usable answer; anything else is a transport failure."""
        if response.status_code != 200:
            raise httpx.HTTPStatusError(
                f"Unexpected HTTP {response.status_code} from {response.request.url.path}",
                request=response.request,
                response=response,
            )

    @staticmethod
    def _unwrap(response: httpx.Response) -> dict[str, Any]:
        """Validate the envelope and return its ``data`` object."""
        try:
            envelope = TripoEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TripoAPIError("malformed response") from e

        if envelope.code != 0:
            raise TripoAPIError(envelope.message or "request rejected", code=envelope.code)
        if envelope.data is None:
            raise TripoAPIError("malformed response: missing data")
        return dict(envelope.data)

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
