"""Ciclo de vida de los archivos temporales de un job.

Cada job es dueño de dos rutas: el archivo subido y el archivo que el
motor debería generar. Este módulo garantiza que ambas desaparecen en
cualquier salida (éxito, fallo, timeout o excepción inesperada) y que el
archivo convertido no se borra mientras todavía se está enviando.

El borrado es "best-effort": un error al borrar se registra en el log y
nunca se convierte en un segundo error para el cliente.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Awaitable, Callable, Iterator, List, Optional

from starlette.responses import FileResponse
from starlette.types import Receive, Scope, Send

from doc2pdf.core.enums import MEDIA_TYPES
from doc2pdf.core.errors import DeliveryError
from doc2pdf.models.job import Job

logger = logging.getLogger(__name__)


class DeliveryResponse(FileResponse):
    """
    `FileResponse` que avisa cuando termina el intento de envío, haya
    salido bien o mal. Los archivos se borran en ese momento, nunca antes.
    """

    def __init__(
        self,
        job: Job,
        on_finished: Callable[[Optional[DeliveryError]], Awaitable[None]],
    ) -> None:
        super().__init__(
            path=job.output_path,
            media_type=MEDIA_TYPES[job.output_format],
            filename=job.download_name,
        )
        self.job = job
        self._on_finished = on_finished

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        error: Optional[DeliveryError] = None
        try:
            await super().__call__(scope, receive, send)
        except Exception as exc:
            # Las cabeceras pueden haber salido ya: sólo queda registrarlo
            error = DeliveryError(detail=str(exc))
            logger.exception(
                "Error sending %s for job %s", self.job.download_name, self.job.id
            )
        finally:
            await self._on_finished(error)


class JobArtifacts:
    """Handle de `ArtifactLifecycle.hold()` para un único job."""

    def __init__(self, lifecycle: ArtifactLifecycle, job: Job) -> None:
        self.lifecycle = lifecycle
        self.job = job
        self.handed_off = False

    def deliver(self) -> DeliveryResponse:
        """Pasa la propiedad de los archivos a la respuesta HTTP."""
        if self.handed_off:
            raise RuntimeError(f"Artifacts of job {self.job.id} already handed off")
        self.handed_off = True
        return DeliveryResponse(self.job, on_finished=self._finish_delivery)

    async def _finish_delivery(self, error: Optional[DeliveryError]) -> None:
        if error is None:
            self.job.mark_delivered()
        else:
            self.job.mark_failed(error.kind, error.detail or error.message)
        self.lifecycle.cleanup(self.job)


class ArtifactLifecycle:
    """Borra los archivos de los jobs en todas las salidas posibles."""

    def __init__(self, on_cleaned: Callable[[Job], None] | None = None) -> None:
        # Permite al registro de jobs olvidar el job una vez limpio
        self.on_cleaned = on_cleaned

    def paths_for(self, job: Job) -> List[Path]:
        return [job.input_path, job.output_path]

    def cleanup(self, job: Job) -> List[Path]:
        """Borra entrada y salida (si existen). Devuelve lo que se borró."""
        removed: List[Path] = []
        for path in self.paths_for(job):
            if _remove_quietly(path):
                removed.append(path)
        job.mark_cleaned()
        if self.on_cleaned is not None:
            self.on_cleaned(job)
        logger.debug("Job %s cleaned (%d files removed)", job.id, len(removed))
        return removed

    @contextmanager
    def hold(self, job: Job) -> Iterator[JobArtifacts]:
        """
        Adquisición con ámbito de los archivos del job. Si el bloque lanza
        una excepción o termina sin llamar a `deliver()`, se borra todo.
        """
        artifacts = JobArtifacts(self, job)
        try:
            yield artifacts
        except BaseException:
            self.cleanup(job)
            raise
        if not artifacts.handed_off:
            self.cleanup(job)

    def purge_stale(self, directory: Path, max_age_seconds: float) -> int:
        """Elimina archivos huérfanos más antiguos que `max_age_seconds`."""
        if not directory.exists():
            return 0
        cutoff = time.time() - max_age_seconds
        removed = 0
        for path in directory.iterdir():
            try:
                if not path.is_file() or path.stat().st_mtime >= cutoff:
                    continue
            except OSError:
                continue
            if _remove_quietly(path):
                removed += 1
        if removed:
            logger.info("Purged %d stale files from %s", removed, directory)
        return removed


def _remove_quietly(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("Could not delete %s", path, exc_info=True)
        return False
    return True
