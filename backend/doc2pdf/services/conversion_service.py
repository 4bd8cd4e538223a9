from __future__ import annotations

import logging

from doc2pdf.core.enums import FailureKind
from doc2pdf.core.errors import ConversionError, EngineNonZeroExit
from doc2pdf.models.job import Job
from doc2pdf.services.conversion_executor import ConversionExecutor
from doc2pdf.services.job_limiter import JobLimiter
from doc2pdf.services.job_service import JobService

logger = logging.getLogger(__name__)


class ConversionService:
    """
    Orquesta la conversión de un Job:
    esperar slot -> convertir con deadline -> registrar el resultado.
    La limpieza de archivos es responsabilidad de `ArtifactLifecycle`.
    """

    def __init__(
        self,
        limiter: JobLimiter,
        executor: ConversionExecutor,
        timeout_seconds: float,
        job_service: JobService | None = None,
    ) -> None:
        self.limiter = limiter
        self.executor = executor
        self.timeout_seconds = timeout_seconds
        self.job_service = job_service

    async def run(self, job: Job) -> Job:
        """
        Ejecuta el job ocupando un slot del limitador. Cualquier fallo es
        terminal: el job queda marcado y se relanza como `ConversionError`.
        """
        if self.limiter.active >= self.limiter.capacity:
            logger.info(
                "Job %s waiting for a slot (%d queued)", job.id, self.limiter.waiting + 1
            )

        async with self.limiter.slot():
            job.mark_admitted(self.timeout_seconds)
            self._save(job)
            logger.info("Job %s admitted, converting %s", job.id, job.input_path.name)

            job.mark_converting()
            self._save(job)
            try:
                await self.executor.convert(job)
            except ConversionError as e:
                job.mark_failed(e.kind, e.message)
                self._save(job)
                raise
            except Exception as e:
                logger.exception("Unexpected error converting job %s", job.id)
                job.mark_failed(FailureKind.ENGINE_NON_ZERO_EXIT, EngineNonZeroExit.message)
                self._save(job)
                raise EngineNonZeroExit(detail=str(e)) from e

            job.mark_succeeded()
            self._save(job)
            logger.info("Job %s converted in %s ms", job.id, job.timing_convert_ms)
            return job

    def _save(self, job: Job) -> None:
        if self.job_service is not None:
            self.job_service.update_job(job)
