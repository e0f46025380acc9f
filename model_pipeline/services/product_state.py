"""Product generation state.

Helpers that read products and mutate the generation fields this
pipeline owns (phase, asset pointer, completion time, latest task id).
Like the other services they flush but never commit.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from model_pipeline.exceptions import NoProductImageError, ProductNotFoundError
from model_pipeline.models import ModelGenerationPhase, Product, utcnow
from model_pipeline.utils.logging import get_logger

log = get_logger(__name__)


def as_product_id(value: uuid.UUID | str) -> uuid.UUID:
    """Coerce a job argument into a product UUID.

    Raises:
        ValueError: If value is not a valid UUID.
    """
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


async def get_product(db: AsyncSession, product_id: uuid.UUID | str) -> Product:
    """Load a product.

    Raises:
        ProductNotFoundError: If the product does not exist.
    """
    product = await db.get(Product, as_product_id(product_id))
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


async def update_generation_phase(
    db: AsyncSession,
    product_id: uuid.UUID | str,
    phase: ModelGenerationPhase,
) -> Product:
    """Set the product's generation phase (latest write wins)."""
    product = await get_product(db, product_id)
    previous = product.model_generation_status
    product.model_generation_status = phase
    await db.flush()

    log.info(
        "product_generation_phase_updated",
        product_id=str(product.id),
        from_phase=previous.value if previous else None,
        to_phase=phase.value,
    )
    return product


async def set_tripo_task_id(db: AsyncSession, product_id: uuid.UUID | str, task_id: str) -> Product:
    product = await get_product(db, product_id)
    product.tripo_task_id = task_id
    await db.flush()
    return product


async def mark_model_completed(
    db: AsyncSession,
    product_id: uuid.UUID | str,
    asset_path: str,
) -> Product:
    """Point the product at its stored model and mark generation completed."""
    product = await get_product(db, product_id)
    product.ar_model_url = asset_path
    product.model_generation_status = ModelGenerationPhase.COMPLETED
    product.model_generated_at = utcnow()
    await db.flush()

    log.info("product_model_completed", product_id=str(product.id), ar_model_url=asset_path)
    return product


def select_source_image(product: Product) -> str:
    """Pick the image used to seed generation.

    The primary image wins when set; otherwise the first of image_urls.

    Raises:
        NoProductImageError: If the product has no usable image.
    """
    if product.primary_image_url and product.primary_image_url.strip():
        return product.primary_image_url.strip()

    for url in product.image_urls or []:
        if isinstance(url, str) and url.strip():
            return url.strip()

    raise NoProductImageError(product.id)
