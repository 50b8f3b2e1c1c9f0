from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .db import init_db
from .errors import ConfigError, FeatureUnavailableError
from .log import configure_logging, get_logger
from .routes import router
from .settings import load_settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = load_settings()
    configure_logging(settings.logging.level, settings.logging.json_output)
    init_db()
    logger.info("application_started")
    yield


app = FastAPI(title="Learner Engine", lifespan=lifespan)
app.include_router(router)


@app.exception_handler(ConfigError)
async def config_error_handler(_: Request, exc: ConfigError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "invalid_configuration", "field": exc.field, "message": exc.message},
    )


@app.exception_handler(FeatureUnavailableError)
async def feature_unavailable_handler(_: Request, exc: FeatureUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "feature_unavailable", "feature": exc.feature, "message": exc.reason},
    )


def main() -> None:
    import uvicorn

    uvicorn.run(
        "learner_engine.app:app",
        host=os.environ.get("LEARNER_ENGINE_HOST", "127.0.0.1"),
        port=int(os.environ.get("LEARNER_ENGINE_PORT", "8000")),
    )


__all__ = ["app", "main"]
