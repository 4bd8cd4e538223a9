"""Definición del modelo de datos de un Job.

Un job representa una petición de conversión desde que el archivo subido
queda guardado en disco hasta que sus archivos temporales se borran. Se
almacena en memoria; sólo lo modifican el servicio de conversión (que fija
el resultado) y el gestor de artefactos (que borra archivos y lo marca como
limpio).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from doc2pdf.core.enums import FailureKind, JobStatus, OutputFormat


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """Modelo principal que describe el estado de un trabajo."""

    id: str
    status: JobStatus = JobStatus.CREATED  # Estado actual en el ciclo de vida
    output_format: OutputFormat = OutputFormat.PDF

    input_path: Path  # Archivo subido; pertenece en exclusiva a este job
    output_dir: Path  # Carpeta donde el motor escribe el resultado
    download_name: str  # Nombre sugerido al cliente, p.ej. "informe.pdf"

    deadline: Optional[datetime] = None  # Se fija al obtener el slot
    failure_kind: Optional[FailureKind] = None
    error_message: Optional[str] = None  # Texto explicando por qué falló

    timing_convert_ms: Optional[int] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def output_path(self) -> Path:
        """Ruta donde el motor debería dejar el archivo convertido."""
        return self.output_dir / f"{self.input_path.stem}.{self.output_format.value}"

    def seconds_left(self, now: datetime | None = None) -> float:
        """Segundos hasta el deadline (0 si ya pasó)."""
        if self.deadline is None:
            raise ValueError(f"Job {self.id} has no deadline yet")
        now = now or _utcnow()
        return max((self.deadline - now).total_seconds(), 0.0)

    def _touch(self, status: JobStatus) -> None:
        self.status = status
        self.updated_at = _utcnow()

    def mark_admitted(self, timeout_seconds: float) -> None:
        """Slot obtenido: el reloj del deadline empieza ahora."""
        self._touch(JobStatus.ADMITTED)
        self.deadline = self.updated_at + timedelta(seconds=timeout_seconds)

    def mark_converting(self) -> None:
        self._touch(JobStatus.CONVERTING)

    def mark_succeeded(self) -> None:
        self._touch(JobStatus.SUCCEEDED)

    def mark_failed(self, kind: FailureKind, error_message: str) -> None:
        """Registra un fallo y almacena el mensaje mostrado al cliente."""
        if kind == FailureKind.ENGINE_TIMEOUT:
            self._touch(JobStatus.TIMED_OUT)
        else:
            self._touch(JobStatus.FAILED)
        self.failure_kind = kind
        self.error_message = error_message

    def mark_delivered(self) -> None:
        self._touch(JobStatus.DELIVERED)

    def mark_cleaned(self) -> None:
        self._touch(JobStatus.CLEANED)
