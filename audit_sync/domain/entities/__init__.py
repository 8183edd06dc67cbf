"""
Entidades del dominio.
"""
from audit_sync.domain.entities.json_tree import (
    JsonArray,
    JsonNode,
    JsonObject,
    JsonScalar,
    from_json,
    to_python,
)
from audit_sync.domain.entities.audit import (
    AuditStatus,
    AuditSummary,
    AuditDetail,
    LabeledField,
    MappedRecord,
)
from audit_sync.domain.entities.column_mapping import (
    ColumnMapping,
    ColumnDefinition,
    ColumnType,
    LogicalField,
)

__all__ = [
    "JsonArray",
    "JsonNode",
    "JsonObject",
    "JsonScalar",
    "from_json",
    "to_python",
    "AuditStatus",
    "AuditSummary",
    "AuditDetail",
    "LabeledField",
    "MappedRecord",
    "ColumnMapping",
    "ColumnDefinition",
    "ColumnType",
    "LogicalField",
]
