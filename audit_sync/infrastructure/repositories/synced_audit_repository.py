"""
Repositorio para el ledger de auditorias (tablas synced_audits y pending_audits).
"""
import hashlib
import json
from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from audit_sync.infrastructure.database.models import PendingAuditModel, SyncedAuditModel
from audit_sync.shared.utils.datetime_utils import ensure_utc, utc_now


def payload_hash(raw_detail: Optional[Dict[str, Any]]) -> Optional[str]:
    """Hash estable del detalle (claves ordenadas) para detectar cambios."""
    if raw_detail is None:
        return None
    encoded = json.dumps(raw_detail, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class SyncedAuditRepository:
    """
    Gestiona la tabla synced_audits. El caller controla commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, audit_id: str) -> Optional[SyncedAuditModel]:
        return self.db.get(SyncedAuditModel, audit_id)

    def max_completed_at(self) -> Optional[datetime]:
        """Mayor completed_at registrado, o None si la tabla esta vacia."""
        value = self.db.execute(select(func.max(SyncedAuditModel.completed_at))).scalar_one_or_none()
        return ensure_utc(value) if value is not None else None

    def record_sync(
        self,
        audit_id: str,
        completed_at: datetime,
        raw_detail: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Crea o actualiza la fila de la auditoria.

        Returns:
            bool: True si es nueva o si el detalle cambió desde la ultima vez
        """
        new_hash = payload_hash(raw_detail)
        existing = self.get(audit_id)

        if existing is None:
            self.db.add(SyncedAuditModel(
                audit_id=audit_id,
                completed_at=ensure_utc(completed_at),
                raw_detail=raw_detail,
                payload_hash=new_hash,
                sync_count=1,
            ))
            self.db.flush()
            return True

        changed = existing.payload_hash != new_hash
        existing.completed_at = ensure_utc(completed_at)
        existing.raw_detail = raw_detail
        existing.payload_hash = new_hash
        existing.sync_count = (existing.sync_count or 0) + 1
        existing.last_synced_at = utc_now()
        self.db.flush()

        if not changed:
            logger.debug(f"Auditoria {audit_id} sin cambios desde la sincronizacion anterior")
        return changed

    # --- Fallos pendientes de reintento ---

    def pending(self) -> Dict[str, datetime]:
        """audit_id -> modified_at de las auditorias con fallo pendiente."""
        rows = self.db.execute(select(PendingAuditModel.audit_id, PendingAuditModel.modified_at)).all()
        return {audit_id: ensure_utc(modified_at) for audit_id, modified_at in rows}

    def min_pending_modified_at(self) -> Optional[datetime]:
        value = self.db.execute(select(func.min(PendingAuditModel.modified_at))).scalar_one_or_none()
        return ensure_utc(value) if value is not None else None

    def mark_pending(self, audit_id: str, modified_at: datetime, reason: Optional[str] = None) -> int:
        """
        Registra (o re-registra) un fallo.

        Conserva el menor modified_at visto para no saltarse la version fallida.

        Returns:
            int: numero de intentos fallidos acumulados
        """
        reason = (reason or "")[:1000] or None
        existing = self.db.get(PendingAuditModel, audit_id)
        if existing is None:
            self.db.add(PendingAuditModel(
                audit_id=audit_id,
                modified_at=ensure_utc(modified_at),
                reason=reason,
                attempts=1,
            ))
            self.db.flush()
            return 1

        if ensure_utc(modified_at) < ensure_utc(existing.modified_at):
            existing.modified_at = ensure_utc(modified_at)
        existing.reason = reason
        existing.attempts = (existing.attempts or 0) + 1
        existing.last_failed_at = utc_now()
        self.db.flush()
        return existing.attempts

    def clear_pending(self, audit_id: str) -> bool:
        """Elimina el fallo pendiente. Returns: True si existia."""
        existing = self.db.get(PendingAuditModel, audit_id)
        if existing is None:
            return False
        self.db.delete(existing)
        self.db.flush()
        return True
