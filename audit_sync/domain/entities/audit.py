"""
Entidades del pipeline de auditorias.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from audit_sync.domain.entities.json_tree import JsonNode


ColumnValue = Union[date, str, int, float]


class AuditStatus(Enum):
    """Clasificacion del estado de completitud informado por SafetyCulture."""
    COMPLETE = "COMPLETE"
    INCOMPLETE = "INCOMPLETE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def classify(cls, raw: Optional[str]) -> "AuditStatus":
        if not raw:
            return cls.UNKNOWN
        normalized = raw.strip().upper()
        if normalized in ("COMPLETE", "COMPLETED"):
            return cls.COMPLETE
        if normalized in ("INCOMPLETE", "IN_PROGRESS", "IN PROGRESS"):
            return cls.INCOMPLETE
        return cls.UNKNOWN


@dataclass(frozen=True)
class AuditSummary:
    """
    Resumen devuelto por el endpoint de busqueda.

    last_modified es None cuando el valor de origen falta o no es parseable;
    raw_last_modified conserva el valor original para el log.
    """

    audit_id: str
    last_modified: Optional[datetime]
    raw_last_modified: Optional[str] = None


@dataclass(frozen=True)
class AuditDetail:
    """Auditoria completa, ya normalizada. Solo lectura."""

    audit_id: str
    created_at: Optional[datetime]
    status: str
    score_percent: Optional[float]
    completed_at: datetime
    # True si no habia completed_date ni completed_at y se usó "ahora"
    completed_at_defaulted: bool
    # Fechas calendario con el offset de origen (columnas date del board)
    completed_date: date
    created_date: Optional[date]
    tree: JsonNode
    raw: Dict[str, Any] = field(repr=False, compare=False)

    @property
    def audit_status(self) -> AuditStatus:
        return AuditStatus.classify(self.status)


@dataclass(frozen=True)
class LabeledField:
    label: str
    value: str


@dataclass
class MappedRecord:
    """
    Registro listo para upsert.

    columns: id de columna destino -> valor tipado (date, str, int, float).
    completed_at y raw_detail viajan junto al registro para avanzar el
    checkpoint una vez confirmado el upsert.
    """

    natural_key: str
    columns: Dict[str, ColumnValue]
    completed_at: datetime
    completed_at_defaulted: bool = False
    raw_detail: Dict[str, Any] = field(default_factory=dict, repr=False)
