"""FastAPI application factory.

Main entry point for the aula-docente Web API.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aula import __version__
from aula.config import load_app_config
from aula.db import init_db
from aula.errors import AulaError
from aula.llm.client import LLMError
from aula.scripts.client import ScriptError
from aula.web.routes import (
    actividades_router,
    alumnos_router,
    asistencia_router,
    auth_router,
    cola_router,
    drive_sync_router,
    evaluaciones_router,
    health_router,
    ia_router,
    material_router,
    materias_router,
    plagio_router,
    puzzles_router,
    reportes_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    init_db(Path(config.database.path))
    logger.info(
        "api_startup",
        db_path=str(config.database.path),
        llm_provider=config.llm.provider,
        script_configured=bool(config.script.get_url()),
    )
    yield


async def _aula_error_handler(request: Request, exc: AulaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("api.error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def _integration_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning(
        "api.integration_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(status_code=502, content={"message": str(exc)})


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api.unexpected_error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"message": "Error interno del servidor."})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Aula Docente API",
        description="Course management backend: attendance, grading, exams and AI tools",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for the single-page frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AulaError, _aula_error_handler)
    app.add_exception_handler(LLMError, _integration_error_handler)
    app.add_exception_handler(ScriptError, _integration_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(materias_router)
    app.include_router(material_router)
    app.include_router(alumnos_router)
    app.include_router(actividades_router)
    app.include_router(asistencia_router)
    app.include_router(evaluaciones_router)
    app.include_router(ia_router)
    app.include_router(cola_router)
    app.include_router(plagio_router)
    app.include_router(reportes_router)
    app.include_router(drive_sync_router)
    app.include_router(puzzles_router)

    return app


# Default app instance for uvicorn
app = create_app()
