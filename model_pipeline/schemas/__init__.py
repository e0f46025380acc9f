"""Pydantic schemas for validation and serialization."""

from model_pipeline.schemas.events import (
    GenerationStarted,
    ModelFailed,
    ModelGenerated,
    ModelReady,
    ProductEvent,
)
from model_pipeline.schemas.tripo import (
    TripoCreatedTask,
    TripoEnvelope,
    TripoFileRef,
    TripoTaskData,
    TripoTaskResult,
)

__all__ = [
    "GenerationStarted",
    "ModelFailed",
    "ModelGenerated",
    "ModelReady",
    "ProductEvent",
    "TripoCreatedTask",
    "TripoEnvelope",
    "TripoFileRef",
    "TripoTaskData",
    "TripoTaskResult",
]
