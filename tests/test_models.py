"""Tests for Product and GenerationTask models.

Covers the forward-only status state machine, progress bounds, reported
status parsing and persistence through SQLite.
"""

import uuid

import pytest
from sqlalchemy import select

from model_pipeline.exceptions import InvalidStateTransitionError
from model_pipeline.models import (
    TERMINAL_STATUSES,
    GenerationStatus,
    GenerationTask,
    ModelGenerationPhase,
    Product,
)
from tests.support.factories import create_generation_task, create_product


class TestGenerationStatus:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("queued", GenerationStatus.QUEUED),
            ("processing", GenerationStatus.PROCESSING),
            ("success", GenerationStatus.SUCCESS),
            ("failed", GenerationStatus.FAILED),
            ("cancelled", GenerationStatus.CANCELLED),
            ("timeout", GenerationStatus.TIMEOUT),
            ("SUCCESS", GenerationStatus.SUCCESS),
        ],
    )
    def test_known_statuses(self, raw, expected):
        assert GenerationStatus.from_reported(raw) is expected

    @pytest.mark.parametrize("raw", ["running", "banned", "", None])
    def test_unrecognized_status_falls_back_to_processing(self, raw):
        assert GenerationStatus.from_reported(raw) is GenerationStatus.PROCESSING

    def test_terminal_set(self):
        assert TERMINAL_STATUSES == {
            GenerationStatus.SUCCESS,
            GenerationStatus.FAILED,
            GenerationStatus.CANCELLED,
            GenerationStatus.TIMEOUT,
        }
        assert not GenerationStatus.QUEUED.is_terminal
        assert GenerationStatus.CANCELLED.is_terminal


class TestGenerationTaskTransitions:
    def test_queued_to_processing_to_success(self):
        task = create_generation_task(uuid.uuid4())
        task.status = GenerationStatus.PROCESSING
        task.status = GenerationStatus.SUCCESS
        assert task.status is GenerationStatus.SUCCESS
        assert task.is_terminal

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_queued_may_jump_to_any_terminal(self, terminal):
        task = create_generation_task(uuid.uuid4())
        task.status = terminal
        assert task.status is terminal

    def test_same_status_assignment_is_allowed(self):
        task = create_generation_task(uuid.uuid4(), status=GenerationStatus.PROCESSING)
        task.status = GenerationStatus.PROCESSING
        assert task.status is GenerationStatus.PROCESSING

    def test_processing_cannot_go_back_to_queued(self):
        task = create_generation_task(uuid.uuid4(), status=GenerationStatus.PROCESSING)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            task.status = GenerationStatus.QUEUED
        assert exc_info.value.from_status is GenerationStatus.PROCESSING
        assert exc_info.value.to_status is GenerationStatus.QUEUED

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_status_cannot_be_left(self, terminal):
        task = create_generation_task(uuid.uuid4(), status=terminal)
        for target in GenerationStatus:
            if target is terminal:
                continue
            with pytest.raises(InvalidStateTransitionError):
                task.status = target
        assert task.status is terminal

    def test_error_message_includes_transition(self):
        task = create_generation_task(uuid.uuid4(), status=GenerationStatus.SUCCESS)
        with pytest.raises(InvalidStateTransitionError, match=r"from=success, to=failed"):
            task.status = GenerationStatus.FAILED


class TestGenerationTaskProgress:
    @pytest.mark.parametrize("value", [0, 1, 50, 100])
    def test_progress_within_bounds(self, value):
        task = create_generation_task(uuid.uuid4(), progress=value)
        assert task.progress == value

    @pytest.mark.parametrize("value", [-1, 101, 250])
    def test_progress_out_of_bounds_rejected(self, value):
        task = create_generation_task(uuid.uuid4())
        with pytest.raises(ValueError, match="progress must be within 0-100"):
            task.progress = value


class TestPersistence:
    @pytest.mark.asyncio
    async def test_product_defaults(self, async_session):
        product = create_product()
        async_session.add(product)
        await async_session.commit()

        loaded = await async_session.get(Product, product.id)
        assert loaded.model_generation_status is ModelGenerationPhase.NONE
        assert loaded.ar_model_url is None
        assert loaded.created_at is not None

    @pytest.mark.asyncio
    async def test_generation_task_round_trip(self, async_session):
        product = create_product()
        async_session.add(product)
        await async_session.flush()

        task = create_generation_task(
            product.id,
            task_id="task-abc",
            request_payload={"type": "image_to_model"},
        )
        async_session.add(task)
        await async_session.commit()

        result = await async_session.execute(
            select(GenerationTask).where(GenerationTask.task_id == "task-abc")
        )
        loaded = result.scalar_one()
        assert loaded.status is GenerationStatus.QUEUED
        assert loaded.progress == 0
        assert loaded.request_payload == {"type": "image_to_model"}
        assert loaded.product_id == product.id

    def test_repr(self):
        product = create_product(title="Lamp")
        assert "Lamp" in repr(product)
        task = create_generation_task(uuid.uuid4(), task_id="t-1")
        assert "t-1" in repr(task)
