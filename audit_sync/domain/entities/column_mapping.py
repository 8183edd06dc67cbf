"""
Mapeo explicito campo logico -> columna del board destino.

El mapeo debe ser total sobre LogicalField: no existen campos sin columna
ni tipos inferidos en tiempo de ejecucion.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Mapping, Tuple


class LogicalField(Enum):
    STATUS = "status"
    SCORE = "score"
    COMPLETED = "completed"
    CREATED = "created"
    PART_NUMBER = "part_number"
    QUANTITY = "quantity"
    TRANSACTION_TYPE = "transaction_type"


class ColumnType(Enum):
    DATE = "date"
    TEXT = "text"
    NUMBER = "number"


# Tipo esperado de cada campo logico
FIELD_TYPES: Dict[LogicalField, ColumnType] = {
    LogicalField.STATUS: ColumnType.TEXT,
    LogicalField.SCORE: ColumnType.NUMBER,
    LogicalField.COMPLETED: ColumnType.DATE,
    LogicalField.CREATED: ColumnType.DATE,
    LogicalField.PART_NUMBER: ColumnType.TEXT,
    LogicalField.QUANTITY: ColumnType.NUMBER,
    LogicalField.TRANSACTION_TYPE: ColumnType.TEXT,
}


@dataclass(frozen=True)
class ColumnDefinition:
    column_id: str
    column_type: ColumnType


class ColumnMapping:
    """
    Tabla LogicalField -> ColumnDefinition.

    Se valida al construir:
    - cubre todos los LogicalField
    - el tipo de cada columna coincide con el tipo del campo
    - no hay dos campos apuntando a la misma columna
    """

    def __init__(self, definitions: Mapping[LogicalField, ColumnDefinition]):
        missing = [f.value for f in LogicalField if f not in definitions]
        if missing:
            raise ValueError(f"Mapeo de columnas incompleto, faltan: {', '.join(missing)}")

        for logical, definition in definitions.items():
            if not definition.column_id:
                raise ValueError(f"Columna vacia para '{logical.value}'")
            expected = FIELD_TYPES[logical]
            if definition.column_type is not expected:
                raise ValueError(
                    f"'{logical.value}' requiere columna {expected.value}, "
                    f"se configuró {definition.column_type.value}"
                )

        column_ids = [d.column_id for d in definitions.values()]
        duplicated = sorted({c for c in column_ids if column_ids.count(c) > 1})
        if duplicated:
            raise ValueError(f"Columnas asignadas a mas de un campo: {', '.join(duplicated)}")

        self._definitions: Dict[LogicalField, ColumnDefinition] = dict(definitions)
        self._types_by_column = {d.column_id: d.column_type for d in definitions.values()}

    @classmethod
    def from_column_ids(cls, column_ids: Mapping[LogicalField, str]) -> "ColumnMapping":
        """Construye el mapeo usando el tipo canonico de cada campo."""
        return cls({
            logical: ColumnDefinition(column_id=column_id, column_type=FIELD_TYPES[logical])
            for logical, column_id in column_ids.items()
        })

    def column_id(self, logical: LogicalField) -> str:
        return self._definitions[logical].column_id

    def column_type(self, column_id: str) -> ColumnType:
        try:
            return self._types_by_column[column_id]
        except KeyError:
            raise KeyError(f"Columna '{column_id}' no pertenece al mapeo") from None

    def items(self) -> Iterator[Tuple[LogicalField, ColumnDefinition]]:
        return iter(self._definitions.items())
