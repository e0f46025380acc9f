# Data factories for test data generation

from tests.support.factories.product_factory import create_generation_task, create_product

__all__ = [
    "create_generation_task",
    "create_product",
]
