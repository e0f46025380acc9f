"""Tests for product generation state helpers."""

import uuid

import pytest

from model_pipeline.exceptions import NoProductImageError, ProductNotFoundError
from model_pipeline.models import ModelGenerationPhase
from model_pipeline.services.product_state import (
    as_product_id,
    get_product,
    mark_model_completed,
    select_source_image,
    set_tripo_task_id,
    update_generation_phase,
)
from tests.support.factories import create_product


def test_as_product_id_accepts_string_and_uuid():
    value = uuid.uuid4()
    assert as_product_id(value) is value
    assert as_product_id(str(value)) == value


def test_as_product_id_rejects_garbage():
    with pytest.raises(ValueError):
        as_product_id("not-a-uuid")


@pytest.mark.asyncio
async def test_get_product_missing_raises(async_session):
    missing = uuid.uuid4()
    with pytest.raises(ProductNotFoundError, match=str(missing)):
        await get_product(async_session, missing)


@pytest.mark.asyncio
async def test_update_generation_phase_latest_write_wins(session_factory, product_factory, load_product):
    product = await product_factory()

    async with session_factory() as db, db.begin():
        await update_generation_phase(db, product.id, ModelGenerationPhase.QUEUED)
    async with session_factory() as db, db.begin():
        await update_generation_phase(db, str(product.id), ModelGenerationPhase.DOWNLOAD_FAILED)

    loaded = await load_product(product.id)
    assert loaded.model_generation_status is ModelGenerationPhase.DOWNLOAD_FAILED


@pytest.mark.asyncio
async def test_mark_model_completed(session_factory, product_factory, load_product):
    product = await product_factory(model_generation_status=ModelGenerationPhase.DOWNLOADING)

    async with session_factory() as db, db.begin():
        await mark_model_completed(db, product.id, f"/3d/products/{product.id}/model.glb")

    loaded = await load_product(product.id)
    assert loaded.model_generation_status is ModelGenerationPhase.COMPLETED
    assert loaded.ar_model_url == f"/3d/products/{product.id}/model.glb"
    assert loaded.model_generated_at is not None


@pytest.mark.asyncio
async def test_set_tripo_task_id(session_factory, product_factory, load_product):
    product = await product_factory()
    async with session_factory() as db, db.begin():
        await set_tripo_task_id(db, product.id, "task-9")
    assert (await load_product(product.id)).tripo_task_id == "task-9"


class TestSelectSourceImage:
    def test_primary_image_wins(self):
        product = create_product(
            primary_image_url="https://x/primary.png",
            image_urls=["https://x/other.png"],
        )
        assert select_source_image(product) == "https://x/primary.png"

    def test_falls_back_to_first_image(self):
        product = create_product(
            primary_image_url="",
            image_urls=["https://x/first.jpg", "https://x/second.jpg"],
        )
        assert select_source_image(product) == "https://x/first.jpg"

    @pytest.mark.parametrize("image_urls", [None, []])
    def test_no_images_raises(self, image_urls):
        product = create_product(primary_image_url=None, image_urls=image_urls)
        with pytest.raises(NoProductImageError, match="no images available"):
            select_source_image(product)
