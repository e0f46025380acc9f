"""Cross-cutting utilities for the generation pipeline.

Modules:
    filesystem: Product asset directory helpers with path validation.
    logging: structlog configuration.
"""
