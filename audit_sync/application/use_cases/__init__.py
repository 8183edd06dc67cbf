"""
Casos de uso de la aplicacion.
"""
from .reconciliation import ReconciliationEngine, RecordOutcome, RecordState
from .audit_sync_use_cases import AuditSyncService, SyncResult, build_from_settings

__all__ = [
    "ReconciliationEngine",
    "RecordOutcome",
    "RecordState",
    "AuditSyncService",
    "SyncResult",
    "build_from_settings",
]
