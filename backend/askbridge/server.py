"""
FastAPI application entry point for askbridge.

Startup: load config, configure logging, open the document store, build and
load the broker.
Shutdown: dispose the broker (history saved, queue flushed).
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

log = logging.getLogger("askbridge.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 1. Load config  (get_config() keeps the singleton)
    from .config import get_config
    config = get_config()

    # 2. Configure logging
    from .logging_config import configure_logging
    log_file = configure_logging(config)

    # 3. Store
    from .core.store import FileDocumentStore
    store = FileDocumentStore(data_dir=config.data_dir)

    # 4. Broker
    from .core.broker import RequestBroker
    broker = await RequestBroker.open(config, store)

    app.state.config = config
    app.state.store = store
    app.state.broker = broker

    log.info("Started  host=%s port=%d log=%s", config.host, config.port, log_file.name)

    yield

    # Shutdown
    log.info("Shutting down...")
    broker.dispose()
    log.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(title="askbridge", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .api.websocket.manager import ConnectionManager
    app.state.connections = ConnectionManager()

    # Health endpoint
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # API routes
    from .api.routes.ask import router as ask_router
    from .api.routes.history import router as history_router
    from .api.routes.queue import router as queue_router
    from .api.websocket.handlers import router as ws_router

    app.include_router(ask_router, prefix="/api")
    app.include_router(queue_router, prefix="/api")
    app.include_router(history_router, prefix="/api")
    app.include_router(ws_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    from .config import get_config
    _config = get_config()
    uvicorn.run(
        "askbridge.server:app",
        host=_config.host,
        port=_config.port,
        reload=os.getenv("DEV_MODE", "").lower() in ("1", "true"),
    )
