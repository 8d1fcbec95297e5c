"""
Service container run by the Fargate tasks.

GET / answers the load balancer health check with the service name, the
task's hostname and the image tag; GET /health is a plain liveness check.
"""

import os
import socket
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ]
)

logger = structlog.get_logger(__name__)


def service_info() -> dict:
    return {
        "service": os.environ.get("SERVICE_NAME", "local"),
        "host": socket.gethostname(),
        "version": os.environ.get("IMAGE_TAG", "latest"),
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("service_started", **service_info())
    yield
    logger.info("service_stopped")


app = FastAPI(title="rolling-update-service", lifespan=lifespan)


@app.get("/")
async def root() -> dict:
    # ALB health check target
    return service_info()


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
