"""API dependencies: dependency injection for FastAPI endpoints."""

from __future__ import annotations

from oaexplorer.core.engine import ExplorerEngine

# Global engine instance (set during application lifespan)
_engine: ExplorerEngine | None = None


def set_engine(engine: ExplorerEngine | None) -> None:
    """Set the global engine instance (called during app lifespan)."""
    global _engine
    _engine = engine


def get_engine() -> ExplorerEngine:
    """Get the global explorer engine instance.

    Raises:
        RuntimeError: If the engine is not initialized.
    """
    if _engine is None:
        raise RuntimeError("Explorer engine not initialized. Is the server running?")
    return _engine
