"""
Facade Design Workbench API
FastAPI surface over the document model: YAML export/import, local glass and
wind derivations, and per-variant schema hints for form rendering.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workbench import config
from workbench.services.logging_config import setup_logging
from workbench.services.middleware import RequestTimingMiddleware
from workbench.services.preview_client import PreviewClient
from workbench.services.workbench_session import WorkbenchSession

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_JSON)
logger = logging.getLogger("workbench-api")

_PROCESS_START = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = PreviewClient()
    session = WorkbenchSession(client=client)
    app.state.session = session

    if config.REFRESH_CATALOG_ON_STARTUP:
        loaded = await session.refresh_catalog()
        if loaded:
            logger.info(f"Profile catalog loaded: {len(session.catalog.alum_names())} aluminium profiles")
        else:
            logger.warning(f"Collaborator at {config.COLLABORATOR_URL} unreachable; catalog options empty")

    yield
    await client.aclose()


app = FastAPI(
    title="Facade Design Workbench API",
    version="1.0.0",
    description="Structural design inputs for aluminium & glass facade systems",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

from workbench.api.document_routes import router as document_router  # noqa: E402

app.include_router(document_router)


@app.get("/health")
async def health_check():
    session = getattr(app.state, "session", None)
    return {
        "status": "active",
        "version": "1.0.0",
        "collaborator_url": config.COLLABORATOR_URL,
        "catalog_profiles": len(session.catalog.alum_names()) if session is not None else 0,
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
    }
