"""
Configuracion central del job de sincronizacion.
Gestiona variables de entorno (.env) y un archivo JSON opcional.

No existe ningun token "por defecto": si falta una credencial el job
falla antes de hacer cualquier llamada de red (ConfigMissingException).
"""
import json
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from audit_sync.shared.exceptions import ConfigMissingException


CHECKPOINT_POLICIES = ("today", "persistent")
WINDOW_FIELDS = ("modified", "completed")


class Settings(BaseSettings):
    """
    Clase de configuracion del job.
    Lee variables de entorno y proporciona valores por defecto.

    - SAFETYCULTURE_*: API origen (auditorias)
    - MONDAY_*: board destino y sus ids de columna
    - CHECKPOINT_*: politica de ventana incremental
    """

    # SafetyCulture
    SAFETYCULTURE_BASE_URL: str = Field(default="https://api.safetyculture.io")
    SAFETYCULTURE_API_TOKEN: str = Field(default="")
    SAFETYCULTURE_TEMPLATE_ID: str = Field(default="")

    # monday.com
    MONDAY_API_URL: str = Field(default="https://api.monday.com/v2")
    MONDAY_API_TOKEN: str = Field(default="")
    MONDAY_BOARD_ID: int = Field(default=0)
    # Columna usada para localizar el item existente ("name" = nombre del item)
    MONDAY_KEY_COLUMN: str = Field(default="name")
    MONDAY_ITEM_NAME_TEMPLATE: str = Field(default="Audit {audit_id}")

    # Ids de columna del board (ver `--list-columns`)
    MONDAY_COLUMN_CREATED: str = Field(default="date4")
    MONDAY_COLUMN_COMPLETED: str = Field(default="date_mksahg27")
    MONDAY_COLUMN_PART_NUMBER: str = Field(default="text_mksaxab")
    MONDAY_COLUMN_TRANSACTION: str = Field(default="text_mksakm5d")
    MONDAY_COLUMN_STATUS: str = Field(default="text_mksabyss")
    MONDAY_COLUMN_QUANTITY: str = Field(default="numeric_mksazv5r")
    MONDAY_COLUMN_SCORE: str = Field(default="numeric_mksscore")

    # Checkpoint / ventana incremental
    CHECKPOINT_POLICY: str = Field(default="today")
    CHECKPOINT_DATABASE_URL: str = Field(default="sqlite:///data/audit_sync.db")
    SYNC_WINDOW_FIELD: str = Field(default="modified")
    SYNC_REQUIRE_COMPLETE: bool = Field(default=False)

    # HTTP
    HTTP_TIMEOUT_S: int = Field(default=30)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/audit_sync.log")

    @field_validator("SAFETYCULTURE_API_TOKEN", "MONDAY_API_TOKEN", "SAFETYCULTURE_TEMPLATE_ID")
    @classmethod
    def _strip(cls, value: str) -> str:
        # Los tokens copiados desde el panel suelen traer espacios o saltos de linea
        return value.strip()

    @field_validator("CHECKPOINT_POLICY", "SYNC_WINDOW_FIELD")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.strip().lower()

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignorar campos extra del .env
    )


def _build_settings(**values: Any) -> Settings:
    """Settings(**values), reportando valores malformados como config invalida."""
    try:
        return Settings(**values)
    except ValidationError as e:
        names = []
        problems = []
        for error in e.errors():
            name = ".".join(str(part) for part in error["loc"])
            names.append(name)
            problems.append(f"{name}: {error['msg']}")
        raise ConfigMissingException(
            names, message=f"Configuracion invalida ({'; '.join(problems)})"
        ) from e


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Construye Settings desde entorno/.env y, si se indica, un archivo JSON.

    El JSON debe ser un objeto plano cuyas claves son los nombres de los
    settings (p.ej. {"MONDAY_BOARD_ID": 123}). Sus valores tienen prioridad
    sobre las variables de entorno.
    """
    if config_file is None:
        return _build_settings()

    path = Path(config_file)
    if not path.exists():
        raise ConfigMissingException(
            [str(path)], message=f"No existe el archivo de configuracion: {path}"
        )
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigMissingException(
            [str(path)], message=f"Archivo de configuracion invalido ({path}): {e}"
        ) from e
    if not isinstance(data, dict):
        raise ConfigMissingException(
            [str(path)], message=f"El archivo {path} debe contener un objeto JSON"
        )
    return _build_settings(**data)


def validate_required(settings: Settings) -> None:
    """
    Valida que la configuracion critica este presente.

    Reporta todos los faltantes de una vez para no obligar a corregir
    variable por variable.
    """
    missing: List[str] = []

    if not settings.SAFETYCULTURE_API_TOKEN:
        missing.append("SAFETYCULTURE_API_TOKEN")
    if not settings.SAFETYCULTURE_TEMPLATE_ID:
        missing.append("SAFETYCULTURE_TEMPLATE_ID")
    if not settings.SAFETYCULTURE_BASE_URL:
        missing.append("SAFETYCULTURE_BASE_URL")
    if not settings.MONDAY_API_TOKEN:
        missing.append("MONDAY_API_TOKEN")
    if settings.MONDAY_BOARD_ID <= 0:
        missing.append("MONDAY_BOARD_ID")
    if settings.CHECKPOINT_POLICY not in CHECKPOINT_POLICIES:
        missing.append(f"CHECKPOINT_POLICY (uno de {', '.join(CHECKPOINT_POLICIES)})")
    if settings.SYNC_WINDOW_FIELD not in WINDOW_FIELDS:
        missing.append(f"SYNC_WINDOW_FIELD (uno de {', '.join(WINDOW_FIELDS)})")
    if settings.CHECKPOINT_POLICY == "persistent" and not settings.CHECKPOINT_DATABASE_URL:
        missing.append("CHECKPOINT_DATABASE_URL")

    if missing:
        raise ConfigMissingException(missing)
