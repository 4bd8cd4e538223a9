"""Errores de dominio de la conversión y su traducción a respuestas HTTP.

Cada error lleva un `kind` estable (ver `FailureKind`), el código HTTP que
debe ver el cliente y un mensaje legible. El detalle técnico (stderr del
motor, error del sistema operativo) va en `detail` y sólo se registra en
los logs, nunca se devuelve al cliente.
"""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse

from doc2pdf.core.enums import FailureKind


class ConversionError(Exception):
    """Fallo terminal de un job; nunca se reintenta."""

    kind: FailureKind = FailureKind.ENGINE_NON_ZERO_EXIT
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "The conversion failed."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        if message is not None:
            self.message = message
        self.detail = detail
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={"error": self.message, "kind": self.kind.value},
        )


class NoInputProvided(ConversionError):
    kind = FailureKind.NO_INPUT_PROVIDED
    status_code = status.HTTP_400_BAD_REQUEST
    message = "No file was uploaded."


class UploadTooLarge(ConversionError):
    kind = FailureKind.UPLOAD_TOO_LARGE
    status_code = 413  # Content Too Large
    message = "Uploaded file exceeds the maximum allowed size."


class EngineUnavailable(ConversionError):
    kind = FailureKind.ENGINE_UNAVAILABLE
    message = "Conversion engine is not available."


class EngineNonZeroExit(ConversionError):
    kind = FailureKind.ENGINE_NON_ZERO_EXIT
    message = "The conversion failed."


class EngineTimeout(ConversionError):
    kind = FailureKind.ENGINE_TIMEOUT
    message = "The conversion timed out."


class NoOutputProduced(ConversionError):
    """El motor salió con 0 pero no dejó el archivo esperado."""

    kind = FailureKind.NO_OUTPUT_PRODUCED
    message = "The conversion failed: no output was produced."


class DeliveryError(ConversionError):
    kind = FailureKind.DELIVERY_ERROR
    message = "Failed to send the converted file."


async def conversion_error_handler(_: Request, exc: ConversionError) -> JSONResponse:
    """Convierte cualquier `ConversionError` en un JSON `{error, kind}`."""

    return exc.to_response()
