"""Filesystem path helpers for generated product assets.

Generated files live under the static web root so they can be served
directly:

    {STATIC_ROOT}/3d/products/{product_id}/
    ├── model.glb
    └── preview.webp

Security:
    Product IDs must be alphanumeric with optional underscores/dashes.
    Resolved paths are verified to stay within the static root.

Usage:
    from model_pipeline.utils.filesystem import get_model_path

    model_path = get_model_path(str(product.id))  # auto-creates the directory
"""

import re
from pathlib import Path

from model_pipeline.config import get_static_root
from model_pipeline.constants import ASSET_DIR_PARTS, MODEL_FILENAME, PREVIEW_FILENAME

__all__ = [
    "get_model_path",
    "get_preview_path",
    "get_product_asset_dir",
]

# Validation pattern: alphanumeric, underscores, dashes only
_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def _validate_identifier(identifier: str, name: str) -> None:
    """Validate identifier to prevent path traversal attacks.

    Raises:
        ValueError: If identifier is empty or contains anything but
            letters, digits, underscores and dashes.
    """
    if not identifier:
        raise ValueError(f"{name} cannot be empty")

    if not _ID_PATTERN.match(identifier):
        raise ValueError(
            f"Invalid {name}: '{identifier}'. "
            f"Only alphanumeric characters, underscores, and dashes are allowed."
        )


def _verify_path_in_root(path: Path, root: Path) -> None:
    """Verify that resolved path stays within the static root.

    Raises:
        ValueError: If resolved path escapes root
    """
    if not path.resolve().is_relative_to(root.resolve()):
        raise ValueError(f"Path traversal detected: {path} is outside {root}")


def get_product_asset_dir(product_id: str, static_root: Path | None = None) -> Path:
    """Get the asset directory for one product (auto-creates).

    Args:
        product_id: Product identifier (UUID string)
        static_root: Override for STATIC_ROOT (tests pass tmp_path)

    Returns:
        Absolute path to {static_root}/3d/products/{product_id}

    Raises:
        ValueError: If product_id is not a safe path segment

    Example:
        >>> get_product_asset_dir("5f0c...", Path("/srv/static"))
        PosixPath('/srv/static/3d/products/5f0c...')
    """
    _validate_identifier(product_id, "product_id")

    root = static_root if static_root is not None else get_static_root()
    asset_dir = root.joinpath(*ASSET_DIR_PARTS, product_id)
    _verify_path_in_root(asset_dir, root)

    asset_dir.mkdir(parents=True, exist_ok=True)
    return asset_dir


def get_model_path(product_id: str, static_root: Path | None = None) -> Path:
    """Path of the product's model.glb (directory auto-created)."""
    return get_product_asset_dir(product_id, static_root) / MODEL_FILENAME


def get_preview_path(product_id: str, static_root: Path | None = None) -> Path:
    """Path of the product's preview.webp (directory auto-created)."""
    return get_product_asset_dir(product_id, static_root) / PREVIEW_FILENAME
