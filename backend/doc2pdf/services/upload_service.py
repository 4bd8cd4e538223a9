from __future__ import annotations

import logging
from pathlib import Path

from fastapi import UploadFile

from doc2pdf.core.errors import UploadTooLarge

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 * 1024 * 1024  # 1 MiB


class UploadService:
    """
    Guarda el archivo subido en disco por bloques, respetando el tamaño
    máximo permitido.
    """

    def __init__(self, max_file_size: int) -> None:
        self.max_file_size = max_file_size

    async def store(self, upload: UploadFile, destination: Path) -> Path:
        """Copia la subida a `destination`; borra el parcial si se pasa de tamaño."""
        destination.parent.mkdir(parents=True, exist_ok=True)

        written = 0
        try:
            with destination.open("wb") as sink:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_file_size:
                        raise UploadTooLarge(
                            detail=f"{upload.filename}: more than {self.max_file_size} bytes"
                        )
                    sink.write(chunk)
        except BaseException:
            destination.unlink(missing_ok=True)
            raise

        logger.debug("Stored upload %s (%d bytes) at %s", upload.filename, written, destination)
        return destination
