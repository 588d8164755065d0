"""Optional /health endpoint for process supervisors."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .. import __version__

logger = logging.getLogger("ccremote.health")

StatusFn = Callable[[], Dict[str, Any]]


def create_app(status_fn: StatusFn) -> FastAPI:
    app = FastAPI(title="ccremote health", version=__version__)

    @app.get("/health")
    def health() -> JSONResponse:
        snapshot = status_fn()
        code = 200 if snapshot.get("status") == "ok" else 503
        return JSONResponse(snapshot, status_code=code)

    return app


def start_health_server(port: int, app: FastAPI, host: str = "127.0.0.1") -> threading.Thread:
    """Serve `app` from a daemon thread; the bridge loop keeps the main thread."""
    config = uvicorn.Config(app, host=host, port=int(port), log_level="warning")
    server = uvicorn.Server(config)
    t = threading.Thread(target=server.run, name="ccremote-health", daemon=True)
    t.start()
    logger.info(f"health endpoint: http://{host}:{port}/health")
    return t
