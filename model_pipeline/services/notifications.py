"""Product notification channel.

Broadcasts generation events to subscribers over PostgreSQL LISTEN/NOTIFY.
Each event is published on one or both per-product topics:

    product:{product_id}            generation_started, model_generated, model_failed
    product_updates:{product_id}    generation_started, model_ready, model_failed

Architecture Pattern:
    - Fire-and-forget: publishing never raises into the pipeline
    - Short retry (tenacity, 3 attempts) for transient connection errors
    - Graceful degradation (log on failure, don't crash)

Usage:
    notifier = ProductNotifier(pool)
    await notifier.model_failed(product_id, "timeout")
"""

from typing import Any

from pydantic import BaseModel
from tenacity import retry, stop_after_attempt, wait_exponential

from model_pipeline.constants import product_topic, product_updates_topic
from model_pipeline.schemas.events import (
    GenerationStarted,
    ModelFailed,
    ModelGenerated,
    ModelReady,
)
from model_pipeline.utils.logging import get_logger

log = get_logger(__name__)

NOTIFY_SQL = "SELECT pg_notify($1, $2)"


class ProductNotifier:
    """Publishes product events through ``pg_notify``.

    Args:
        pool: asyncpg pool (anything with an async ``execute(query, *args)``)
    """

    def __init__(self, pool: Any) -> None:
        self.pool = pool

    async def generation_started(self, product_id: object, task_id: str) -> None:
        event = GenerationStarted(product_id=str(product_id), task_id=task_id)
        await self.publish(product_topic(str(product_id)), event)
        await self.publish(product_updates_topic(str(product_id)), event)

    async def model_completed(self, product_id: object, model_url: str) -> None:
        await self.publish(product_topic(str(product_id)), ModelGenerated(model_url=model_url))
        await self.publish(
            product_updates_topic(str(product_id)),
            ModelReady(product_id=str(product_id), model_url=model_url),
        )

    async def model_failed(self, product_id: object, error: str) -> None:
        event = ModelFailed(product_id=str(product_id), error=error)
        await self.publish(product_topic(str(product_id)), event)
        await self.publish(product_updates_topic(str(product_id)), event)

    async def publish(self, topic: str, event: BaseModel) -> bool:
        """Publish one event; returns False instead of raising on failure."""
        event_name = getattr(event, "event", type(event).__name__)
        try:
            await self._notify(topic, event.model_dump_json())
        except Exception as e:
            log.error(
                "notification_publish_failed",
                topic=topic,
                event_name=event_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        log.info("notification_published", topic=topic, event_name=event_name)
        return True

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    async def _notify(self, topic: str, payload: str) -> None:
        await self.pool.execute(NOTIFY_SQL, topic, payload)
