"""FastAPI application factory with lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.dependencies import set_engine_manager
from src.api.engine_manager import EngineManager
from src.api.routes import api_router
from src.config import CombatConfig
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(config: CombatConfig | None = None) -> FastAPI:
    """Build and return the fully-configured FastAPI application."""
    if config is None:
        config = CombatConfig()

    _config = config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(_config.log_level)
        manager = EngineManager(_config)
        set_engine_manager(manager)
        manager.start()
        logger.info("API server started — arena running.")
        yield
        manager.stop()
        set_engine_manager(None)
        logger.info("API server shutting down.")

    app = FastAPI(
        title="Combat Decision Core",
        description=(
            "Threat prediction, behavior classification and target selection "
            "driven by a simulated arena.\n\n"
            "## API Groups\n\n"
            "- **State** — Immediate threat, chosen target, scenario, statistics, combat events\n"
            "- **Learning** — Classifications, persisted patterns, danger auto-tuning\n"
            "- **Control** — Arena lifecycle: start, pause, resume, step, reset, speed\n"
            "- **Config** — Read-only core configuration\n"
        ),
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "State", "description": "Live combat state polled by observers."},
            {"name": "Learning", "description": "What the core has learned about creature types, and the danger auto-tuner."},
            {"name": "Control", "description": "Arena lifecycle controls: start, pause, resume, single-step, reset and speed."},
            {"name": "Config", "description": "Read-only combat core configuration parameters."},
        ],
    )

    # CORS: any origin, observers run locally
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app
