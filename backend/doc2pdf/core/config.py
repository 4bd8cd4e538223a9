"""Carga de configuración del servicio de conversión.

Usa `pydantic-settings` para leer valores desde `.env` o variables de
entorno (`UPLOADS_DIR`, `CONVERSION_TIMEOUT_MS`, `MAX_CONCURRENCY`...).
"""

from functools import lru_cache
from pathlib import Path
import tempfile
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from doc2pdf.core.enums import OutputFormat


class Settings(BaseSettings):
    """Contenedor tipado para todas las opciones configurables."""

    app_name: str = "doc2pdf"

    # Directorio donde se guardan las subidas (en Cloud Run sólo /tmp es escribible)
    uploads_dir: Path = Path(tempfile.gettempdir()) / "uploads"
    # Si no se indica, el PDF se escribe junto al archivo subido
    output_dir: Path | None = None
    # 25 MB por defecto
    max_file_size: int = 26_214_400

    # Límite duro por conversión y número de conversiones simultáneas
    conversion_timeout_ms: int = 180_000
    max_concurrency: int = 1

    # Motor de conversión externo (LibreOffice)
    soffice_binary: str = "soffice"
    target_format: OutputFormat = OutputFormat.PDF

    # Archivos huérfanos (p. ej. tras una caída del proceso) se purgan al arrancar
    stale_file_max_age_seconds: int = 3600

    # CORS
    # `ALLOWED_ORIGINS=http://a.com,http://b.com` (lista separada por comas)
    allowed_origins: Annotated[list[str], NoDecode] = ["*"]
    allow_credentials: bool = False

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    # Le indicamos a Pydantic que lea automáticamente las variables de entorno
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str):
            return [s.strip() for s in value.split(",") if s.strip()]
        return value

    @property
    def conversion_timeout_seconds(self) -> float:
        return self.conversion_timeout_ms / 1000

    @property
    def resolved_output_dir(self) -> Path:
        """Directorio de salida efectivo para los PDF generados."""
        return self.output_dir or self.uploads_dir


@lru_cache
def get_settings() -> Settings:
    """Crea (y memoriza) la configuración de forma perezosa.

    Usamos `lru_cache` para que sólo se construya una instancia por proceso,
    evitando relecturas repetidas de `.env`.
    """
    return Settings()
