"""Registro en memoria de los Jobs en curso.

Sólo guarda los jobs mientras tienen archivos en disco: en cuanto el
gestor de artefactos los limpia, `discard_job` los olvida.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional
from uuid import uuid4

from doc2pdf.core.enums import OutputFormat
from doc2pdf.models.job import Job

# La extensión original se conserva, recortada como medida de seguridad
MAX_EXTENSION_LENGTH = 10
DEFAULT_DOWNLOAD_STEM = "document"


def derive_download_name(original_filename: str | None, output_format: OutputFormat) -> str:
    """`informe final.docx` -> `informe final.pdf`."""
    stem = Path(original_filename or "").stem or DEFAULT_DOWNLOAD_STEM
    return f"{stem}.{output_format.value}"


def derive_input_name(job_id: str, original_filename: str | None) -> str:
    suffix = Path(original_filename or "").suffix[:MAX_EXTENSION_LENGTH]
    return f"{job_id}{suffix}"


class JobService:
    """
    Gestión de jobs. MVP: almacenamiento en memoria.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}

    def create_job(
        self,
        original_filename: str | None,
        upload_dir: Path,
        output_dir: Path,
        output_format: OutputFormat = OutputFormat.PDF,
    ) -> Job:
        """Crea un job con una ruta de entrada única y lo registra."""
        job_id = str(uuid4())
        job = Job(
            id=job_id,
            output_format=output_format,
            input_path=upload_dir / derive_input_name(job_id, original_filename),
            output_dir=output_dir,
            download_name=derive_download_name(original_filename, output_format),
        )
        self._jobs[job_id] = job
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Devuelve un job por id o None si no existe."""
        return self._jobs.get(job_id)

    def update_job(self, job: Job) -> None:
        self._jobs[job.id] = job

    def discard_job(self, job: Job) -> None:
        self._jobs.pop(job.id, None)

    def list_jobs(self) -> List[Job]:
        """Listado sencillo para el endpoint de estado."""
        return list(self._jobs.values())
