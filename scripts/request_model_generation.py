#!/usr/bin/env python3
"""Request 3D model generation for one product.

Enqueues the submission job (or marks the product "disabled" when
generation is switched off) and prints the resulting generation phase.

Usage:
    python scripts/request_model_generation.py --product-id <uuid>
"""

import argparse
import asyncio
import sys
import uuid

from model_pipeline.database import async_engine, get_session_factory
from model_pipeline.exceptions import ProductNotFoundError
from model_pipeline.queue import initialize_pgqueuer
from model_pipeline.services.product_state import get_product
from model_pipeline.workers.submission_worker import request_model_generation


async def request_generation(product_id: uuid.UUID) -> int:
    session_factory = get_session_factory()
    _pgq, pool, scheduler = await initialize_pgqueuer()

    try:
        job_id = await request_model_generation(product_id, session_factory, scheduler)

        async with session_factory() as db:
            product = await get_product(db, product_id)

        print(f"Product: {product.id} ({product.title})")
        print(f"Generation phase: {product.model_generation_status.value}")
        if job_id is not None:
            print(f"Submission job: {job_id}")
        else:
            print("Generation is disabled (TRIPO_ENABLED / SKIP_3D_MODEL_GENERATION)")
        return 0

    except ProductNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        await pool.close()
        if async_engine is not None:
            await async_engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Request 3D model generation for a product")
    parser.add_argument("--product-id", required=True, type=uuid.UUID, help="Product UUID")
    args = parser.parse_args()

    sys.exit(asyncio.run(request_generation(args.product_id)))


if __name__ == "__main__":
    main()
