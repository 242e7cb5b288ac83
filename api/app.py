from __future__ import annotations

import logging

from fastapi import FastAPI

from api.routers import pulse
from pipeline.service import PulseService

log = logging.getLogger(__name__)


def create_app(service: PulseService) -> FastAPI:
    app = FastAPI(title="Pain Pulse", version="0.1.0")
    app.state.service = service

    app.include_router(pulse.router)

    # Health check
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
