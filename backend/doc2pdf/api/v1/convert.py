from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import PlainTextResponse

from doc2pdf.core.config import Settings
from doc2pdf.core.errors import NoInputProvided
from doc2pdf.services.artifact_lifecycle import ArtifactLifecycle
from doc2pdf.services.conversion_service import ConversionService
from doc2pdf.services.job_service import JobService
from doc2pdf.services.upload_service import UploadService

router = APIRouter(tags=["convert"])


# Dependencias: los servicios se construyen en `create_app` y viven en app.state

def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_job_service(request: Request) -> JobService:
    return request.app.state.job_service


def get_conversion_service(request: Request) -> ConversionService:
    return request.app.state.conversion_service


def get_lifecycle(request: Request) -> ArtifactLifecycle:
    return request.app.state.lifecycle


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service


@router.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    return "ok"


@router.get("/status", summary="Limiter and in-flight jobs snapshot")
async def get_status(
    settings: Settings = Depends(get_settings_dep),
    job_service: JobService = Depends(get_job_service),
    conversion_service: ConversionService = Depends(get_conversion_service),
) -> dict:
    limiter = conversion_service.limiter
    return {
        "status": "ok",
        "capacity": limiter.capacity,
        "active": limiter.active,
        "waiting": limiter.waiting,
        "jobs_in_flight": len(job_service.list_jobs()),
        "conversion_timeout_ms": settings.conversion_timeout_ms,
    }


@router.post("/convert", summary="Upload a document and get it back as PDF")
async def convert_document(
    file: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings_dep),
    job_service: JobService = Depends(get_job_service),
    conversion_service: ConversionService = Depends(get_conversion_service),
    lifecycle: ArtifactLifecycle = Depends(get_lifecycle),
    upload_service: UploadService = Depends(get_upload_service),
):
    if file is None:
        raise NoInputProvided()

    job = job_service.create_job(
        original_filename=file.filename,
        upload_dir=settings.uploads_dir,
        output_dir=settings.resolved_output_dir,
        output_format=settings.target_format,
    )

    # Cualquier salida sin `deliver()` borra entrada y salida del job
    with lifecycle.hold(job) as artifacts:
        await upload_service.store(file, job.input_path)
        await conversion_service.run(job)
        return artifacts.deliver()
