"""HTTP clients for external services."""
