"""FastAPI dependency injection — provides the EngineManager singleton."""

from __future__ import annotations

from src.api.engine_manager import EngineManager

_engine_manager: EngineManager | None = None


def set_engine_manager(manager: EngineManager | None) -> None:
    """Install (or with ``None``, drop) the manager the routes resolve."""
    global _engine_manager
    _engine_manager = manager


def get_engine_manager() -> EngineManager:
    if _engine_manager is None:
        raise RuntimeError("EngineManager not initialized: the arena is built in the app lifespan.")
    return _engine_manager
