"""Product 3D Model Generation Pipeline.

This package drives image-to-3D generation tasks for catalog products:
submission to the generation service, status polling, asset download and
observer notification, all as PgQueuer jobs backed by PostgreSQL.
"""

from model_pipeline.models import (
    Base,
    GenerationStatus,
    GenerationTask,
    ModelGenerationPhase,
    Product,
)

__all__ = [
    "Base",
    "GenerationStatus",
    "GenerationTask",
    "ModelGenerationPhase",
    "Product",
]
