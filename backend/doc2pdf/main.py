"""Punto de entrada de la API usando FastAPI.

`create_app` construye el limitador, el ejecutor y los servicios de forma
explícita y los guarda en `app.state`; las rutas los obtienen mediante
dependencias. Así cada test puede montar una app aislada con su propia
configuración.
"""

from __future__ import annotations

import logging
import shutil
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from doc2pdf.api.v1.convert import router as convert_router
from doc2pdf.core.config import Settings, get_settings
from doc2pdf.core.errors import ConversionError, conversion_error_handler
from doc2pdf.core.logging import configure_logging
from doc2pdf.services.artifact_lifecycle import ArtifactLifecycle
from doc2pdf.services.conversion_executor import ConversionExecutor
from doc2pdf.services.conversion_service import ConversionService
from doc2pdf.services.job_limiter import JobLimiter
from doc2pdf.services.job_service import JobService
from doc2pdf.services.upload_service import UploadService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    if shutil.which(settings.soffice_binary) is None:
        logger.warning(
            "Conversion engine %r not found on PATH; conversions will fail",
            settings.soffice_binary,
        )
    app.state.lifecycle.purge_stale(
        settings.uploads_dir, settings.stale_file_max_age_seconds
    )
    logger.info(
        "%s listening on port %d | uploads: %s | concurrency: %d",
        settings.app_name,
        settings.port,
        settings.uploads_dir,
        app.state.conversion_service.limiter.capacity,
    )
    yield


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    # Asegura directorios de trabajo
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    settings.resolved_output_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="doc2pdf", version="0.1.0", lifespan=lifespan)

    job_service = JobService()
    app.state.settings = settings
    app.state.job_service = job_service
    app.state.lifecycle = ArtifactLifecycle(on_cleaned=job_service.discard_job)
    app.state.upload_service = UploadService(max_file_size=settings.max_file_size)
    app.state.conversion_service = ConversionService(
        limiter=JobLimiter(settings.max_concurrency),
        executor=ConversionExecutor(
            binary=settings.soffice_binary,
            target_format=settings.target_format.value,
        ),
        timeout_seconds=settings.conversion_timeout_seconds,
        job_service=job_service,
    )

    # CORS configurable via `settings.allowed_origins` (definido en .env)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o) for o in settings.allowed_origins],
        allow_credentials=settings.allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ConversionError, conversion_error_handler)
    app.include_router(convert_router)
    return app


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
