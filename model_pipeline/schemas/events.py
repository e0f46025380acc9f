"""Notification event payloads.

Events are published as JSON on the per-product topics. The ``event``
field is the discriminator subscribers switch on.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class GenerationStarted(BaseModel):
    """A task was accepted by the generation service."""

    event: Literal["generation_started"] = "generation_started"
    product_id: str
    task_id: str


class ModelGenerated(BaseModel):
    """Model stored locally (product topic)."""

    model_config = ConfigDict(protected_namespaces=())

    event: Literal["model_generated"] = "model_generated"
    model_url: str


class ModelReady(BaseModel):
    """Model stored locally (product updates topic)."""

    model_config = ConfigDict(protected_namespaces=())

    event: Literal["model_ready"] = "model_ready"
    product_id: str
    model_url: str


class ModelFailed(BaseModel):
    """Generation ended without a model."""

    event: Literal["model_failed"] = "model_failed"
    product_id: str
    error: str


ProductEvent = GenerationStarted | ModelGenerated | ModelReady | ModelFailed
