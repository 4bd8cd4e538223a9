"""Configuración de logging del servicio (stdlib `logging`)."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configura el logger raíz una sola vez por proceso."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
