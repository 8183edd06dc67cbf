"""
Integracion con monday.com (API GraphQL v2).
"""
from audit_sync.infrastructure.external.monday.client import MondayApiError, MondayClient
from audit_sync.infrastructure.external.monday.column_values import serialize_column_values
from audit_sync.infrastructure.external.monday.sink import MondayUpsertSink, UpsertResult

__all__ = [
    "MondayApiError",
    "MondayClient",
    "serialize_column_values",
    "MondayUpsertSink",
    "UpsertResult",
]
