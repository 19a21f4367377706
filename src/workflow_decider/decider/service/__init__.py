"""Transport to the orchestration service."""
