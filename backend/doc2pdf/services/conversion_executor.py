from __future__ import annotations

import asyncio
import logging
import os
import signal
from pathlib import Path
from time import perf_counter
from typing import Sequence

from doc2pdf.core.enums import OutcomeKind
from doc2pdf.core.errors import (
    EngineNonZeroExit,
    EngineTimeout,
    EngineUnavailable,
    NoOutputProduced,
)
from doc2pdf.models.job import Job
from doc2pdf.models.outcome import SubprocessOutcome

logger = logging.getLogger(__name__)

# Modo batch de LibreOffice: sin interfaz, sin logo, sin asistente inicial
HEADLESS_FLAGS = (
    "--headless",
    "--nologo",
    "--nodefault",
    "--nofirststartwizard",
)


class ConversionExecutor:
    """
    Lanza el motor externo (`soffice`) como subproceso con un deadline y
    traduce lo que ocurre a un `SubprocessOutcome`. No impone ningún
    control de concurrencia: quien lo llama debe tener un slot.
    """

    def __init__(
        self,
        binary: str = "soffice",
        target_format: str = "pdf",
        extra_args: Sequence[str] = (),
    ) -> None:
        self.binary = binary
        self.target_format = target_format
        self.extra_args = tuple(extra_args)

    def build_command(self, input_path: Path, output_dir: Path) -> list[str]:
        return [
            self.binary,
            *HEADLESS_FLAGS,
            *self.extra_args,
            "--convert-to",
            self.target_format,
            "--outdir",
            str(output_dir),
            str(input_path),
        ]

    def expected_output(self, input_path: Path, output_dir: Path) -> Path:
        """El motor conserva el nombre base y cambia la extensión."""
        return output_dir / f"{input_path.stem}.{self.target_format}"

    # ---------- SUBPROCESO ----------

    async def run_engine(
        self, input_path: Path, output_dir: Path, timeout_seconds: float
    ) -> SubprocessOutcome:
        """
        Ejecuta el motor y espera como mucho `timeout_seconds`.
        Si se agota el tiempo (o se cancela la tarea) se mata todo el grupo
        de procesos y se recoge antes de volver: nunca quedan huérfanos.
        """
        cmd = self.build_command(input_path, output_dir)
        started_at = perf_counter()

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Grupo propio para poder matar también a los hijos de soffice
                start_new_session=True,
            )
        except OSError as e:
            return SubprocessOutcome(kind=OutcomeKind.CRASHED, error=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=timeout_seconds
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            return SubprocessOutcome(
                kind=OutcomeKind.TIMED_OUT,
                returncode=proc.returncode,
                pid=proc.pid,
                elapsed_ms=_elapsed_ms(started_at),
            )
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        kind = OutcomeKind.SUCCESS if proc.returncode == 0 else OutcomeKind.NON_ZERO_EXIT
        return SubprocessOutcome(
            kind=kind,
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", "replace"),
            stderr=stderr.decode("utf-8", "replace"),
            pid=proc.pid,
            elapsed_ms=_elapsed_ms(started_at),
        )

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                if hasattr(os, "killpg"):
                    os.killpg(proc.pid, signal.SIGKILL)
                else:
                    proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()

    # ---------- API USADA POR EL SERVICIO DE CONVERSIÓN ----------

    async def convert(self, job: Job) -> Path:
        """
        Convierte el archivo del job con el tiempo que le queda hasta su
        deadline. Devuelve la ruta del archivo generado o lanza el
        `ConversionError` que corresponda (sin reintentos).
        """
        outcome = await self.run_engine(
            job.input_path, job.output_dir, timeout_seconds=job.seconds_left()
        )
        job.timing_convert_ms = outcome.elapsed_ms

        if outcome.kind == OutcomeKind.CRASHED:
            logger.error("Engine %r could not be started: %s", self.binary, outcome.error)
            raise EngineUnavailable(detail=outcome.error)

        if outcome.kind == OutcomeKind.TIMED_OUT:
            logger.warning(
                "Job %s timed out after %d ms; engine process %s killed",
                job.id,
                outcome.elapsed_ms,
                outcome.pid,
            )
            raise EngineTimeout(detail=f"killed after {outcome.elapsed_ms} ms")

        if outcome.kind == OutcomeKind.NON_ZERO_EXIT:
            logger.error(
                "Engine exited with code %s for job %s: %s",
                outcome.returncode,
                job.id,
                outcome.diagnostics(),
            )
            raise EngineNonZeroExit(detail=outcome.diagnostics())

        expected = self.expected_output(job.input_path, job.output_dir)
        if not expected.exists():
            # A veces LibreOffice sale con 0 sin generar nada
            logger.error(
                "Engine exited 0 but %s was not produced for job %s: %s",
                expected,
                job.id,
                outcome.diagnostics(),
            )
            raise NoOutputProduced(detail=outcome.diagnostics())

        return expected


def _elapsed_ms(started_at: float) -> int:
    return int((perf_counter() - started_at) * 1000)
