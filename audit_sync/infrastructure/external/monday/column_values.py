"""
Serializacion de column values de monday.com segun el tipo declarado.

- DATE   -> {"date": "YYYY-MM-DD"}
- NUMBER -> numero JSON
- TEXT   -> string

No se hacen coerciones: un valor con el tipo Python equivocado es un error
de programacion en el mapeo, no algo a "arreglar" en el envio.
"""
import json
from datetime import date, datetime
from typing import Any, Dict, Mapping

from audit_sync.domain.entities.audit import ColumnValue
from audit_sync.domain.entities.column_mapping import ColumnMapping, ColumnType


def serialize_value(column_id: str, column_type: ColumnType, value: ColumnValue) -> Any:
    if column_type is ColumnType.DATE:
        if isinstance(value, datetime) or not isinstance(value, date):
            raise TypeError(f"Columna '{column_id}' (date) requiere date, recibió {type(value).__name__}")
        return {"date": value.isoformat()}

    if column_type is ColumnType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Columna '{column_id}' (number) requiere int/float, recibió {type(value).__name__}")
        return value

    if column_type is ColumnType.TEXT:
        if not isinstance(value, str):
            raise TypeError(f"Columna '{column_id}' (text) requiere str, recibió {type(value).__name__}")
        return value

    raise TypeError(f"Tipo de columna no soportado: {column_type}")


def build_column_values(columns: Mapping[str, ColumnValue], mapping: ColumnMapping) -> Dict[str, Any]:
    """Dict column_id -> valor con la forma JSON que espera monday.com."""
    return {
        column_id: serialize_value(column_id, mapping.column_type(column_id), value)
        for column_id, value in columns.items()
    }


def serialize_column_values(columns: Mapping[str, ColumnValue], mapping: ColumnMapping) -> str:
    """Blob JSON (string) para el argumento `column_values: JSON!`."""
    return json.dumps(build_column_values(columns, mapping))
