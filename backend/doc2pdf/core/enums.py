"""Enumeraciones compartidas que describen estados de un job y sus fallos."""

from enum import Enum


class JobStatus(str, Enum):
    """Estados posibles de un trabajo de conversión."""

    CREATED = "created"
    ADMITTED = "admitted"  # Tiene un slot del limitador
    CONVERTING = "converting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    DELIVERED = "delivered"
    CLEANED = "cleaned"  # Estado terminal: archivos borrados


class OutcomeKind(str, Enum):
    """Resultado bruto de lanzar el motor como subproceso."""

    SUCCESS = "success"
    NON_ZERO_EXIT = "non_zero_exit"
    TIMED_OUT = "timed_out"
    CRASHED = "crashed"


class FailureKind(str, Enum):
    """Clasificación estable de los fallos que ve el cliente."""

    NO_INPUT_PROVIDED = "no_input_provided"
    UPLOAD_TOO_LARGE = "upload_too_large"
    ENGINE_UNAVAILABLE = "engine_unavailable"
    ENGINE_NON_ZERO_EXIT = "engine_non_zero_exit"
    ENGINE_TIMEOUT = "engine_timeout"
    NO_OUTPUT_PRODUCED = "no_output_produced"
    DELIVERY_ERROR = "delivery_error"


class OutputFormat(str, Enum):
    """Formato en el que devolvemos el documento convertido."""

    PDF = "pdf"


MEDIA_TYPES = {
    OutputFormat.PDF: "application/pdf",
}
