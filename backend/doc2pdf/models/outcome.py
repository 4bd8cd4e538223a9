"""Resultado de una ejecución del motor de conversión como subproceso."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from doc2pdf.core.enums import OutcomeKind


class SubprocessOutcome(BaseModel):
    """
    Resultado etiquetado de lanzar el motor. No se persiste: el ejecutor
    lo consume inmediatamente para decidir el resultado del job.
    """

    kind: OutcomeKind
    returncode: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None  # Error del sistema operativo (CRASHED)
    pid: Optional[int] = None
    elapsed_ms: int = 0

    def diagnostics(self) -> str:
        """Texto para logs: stderr si lo hay, si no stdout o el error."""
        return (self.stderr or self.stdout or self.error or "").strip()
