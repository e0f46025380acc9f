"""Project-wide constants.

This module contains the fixed asset layout, notification topic names,
job entrypoint names and the image-extension mapping used when a task is
submitted to the generation service.
"""

# Generated files are written under <static-root>/3d/products/<product_id>/
ASSET_DIR_PARTS: tuple[str, ...] = ("3d", "products")
MODEL_FILENAME = "model.glb"
PREVIEW_FILENAME = "preview.webp"

# Web-relative prefix stored on Product.ar_model_url
ASSET_URL_PREFIX = "/3d/products"

# Notification topics (pg_notify channel names)
PRODUCT_TOPIC_PREFIX = "product"
PRODUCT_UPDATES_TOPIC_PREFIX = "product_updates"

# PgQueuer entrypoint names
SUBMIT_ENTRYPOINT = "submit_model_generation"
POLL_ENTRYPOINT = "poll_generation_status"
DOWNLOAD_ENTRYPOINT = "download_generated_model"

# Error message persisted when the failure-attempt ceiling is reached
POLL_TIMEOUT_MESSAGE = "Task timed out after maximum polling attempts"

# Image URL extension → file type accepted by the generation service
IMAGE_FILE_TYPES: dict[str, str] = {
    "jpg": "jpg",
    "jpeg": "jpg",
    "png": "png",
    "webp": "webp",
}
DEFAULT_IMAGE_FILE_TYPE = "jpg"


def model_asset_url(product_id: str) -> str:
    """Web-relative path of a product's generated model."""
    return f"{ASSET_URL_PREFIX}/{product_id}/{MODEL_FILENAME}"


def product_topic(product_id: str) -> str:
    """Per-product notification topic."""
    return f"{PRODUCT_TOPIC_PREFIX}:{product_id}"


def product_updates_topic(product_id: str) -> str:
    """General product-updates notification topic."""
    return f"{PRODUCT_UPDATES_TOPIC_PREFIX}:{product_id}"
