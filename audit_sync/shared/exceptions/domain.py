"""
Excepciones del pipeline de sincronización.

Taxonomia:
- ConfigMissingException: fatal, antes de cualquier llamada de red.
- SourceFetchFailedException: por registro (log + skip).
- UnparseableTimestampException: por registro (log + skip).
- TargetUpsertFailedException: por registro (log + continuar).
"""
from typing import Any, Iterable, Optional

from audit_sync.shared.exceptions.base import AppException


class ConfigMissingException(AppException):
    """Falta configuración obligatoria (o tiene un valor inválido)."""

    def __init__(self, missing: Iterable[str], message: Optional[str] = None):
        missing_list = list(missing)
        super().__init__(
            message=message or f"Falta configuración obligatoria: {', '.join(missing_list)}",
            error_code="CONFIG_MISSING",
            details={"missing": missing_list}
        )
        self.missing = missing_list


class SyncRecordException(AppException):
    """Excepción base para errores que solo afectan a un registro."""

    fatal = False

    def __init__(self, message: str, error_code: str, record_id: Any = None, details=None):
        details = dict(details or {})
        details["record_id"] = record_id
        super().__init__(message=message, error_code=error_code, details=details)
        self.record_id = record_id


class SourceFetchFailedException(SyncRecordException):
    """SafetyCulture respondió con error (o no respondió) para una auditoría."""

    def __init__(self, audit_id: Optional[str], reason: str, status_code: Optional[int] = None):
        super().__init__(
            message=f"No se pudo obtener la auditoría {audit_id}: {reason}",
            error_code="SOURCE_FETCH_FAILED",
            record_id=audit_id,
            details={"status_code": status_code, "reason": reason}
        )
        self.status_code = status_code


class UnparseableTimestampException(SyncRecordException):
    """Un campo de fecha de la auditoría no tiene formato ISO8601 válido."""

    def __init__(self, audit_id: str, field: str, raw_value: Any):
        super().__init__(
            message=f"No se pudo parsear '{field}' de la auditoría {audit_id}: {raw_value!r}",
            error_code="UNPARSEABLE_TIMESTAMP",
            record_id=audit_id,
            details={"field": field, "raw_value": str(raw_value)}
        )
        self.field = field


class TargetUpsertFailedException(SyncRecordException):
    """monday.com rechazó la creación/actualización de un item."""

    def __init__(self, natural_key: str, reason: str):
        super().__init__(
            message=f"Upsert fallido para {natural_key}: {reason}",
            error_code="TARGET_UPSERT_FAILED",
            record_id=natural_key,
            details={"reason": reason}
        )
