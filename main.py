"""Pain Pulse entry point."""

from __future__ import annotations

import logging

import uvicorn

from analysis.embeddings import EmbeddingModel
from api.app import create_app
from config.settings import settings
from core.throttle import RequestThrottle
from data.database import init_db
from data.repositories import SqlReportStore
from pipeline.orchestrator import PulsePipeline
from pipeline.service import PulseService
from sources.registry import build_connectors

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
log = logging.getLogger(__name__)

model = EmbeddingModel()
service = PulseService(
    pipeline=PulsePipeline(build_connectors(), model),
    store=SqlReportStore(),
    throttle=RequestThrottle(),
)
app = create_app(service)


@app.on_event("startup")
async def on_startup() -> None:
    log.info("Creating report tables…")
    await init_db()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.API_PORT,
        reload=False,
    )
