"""
Modelos de base de datos (ORM).
"""
from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.sql import func

from audit_sync.infrastructure.database.session import Base


class SyncedAuditModel(Base):
    """
    Ledger de auditorias sincronizadas.

    - completed_at: base del checkpoint persistente (MAX(completed_at))
    - raw_detail / payload_hash: snapshot del detalle para auditar cambios
      entre corridas (no se usa para saltar upserts)
    """

    __tablename__ = "synced_audits"

    audit_id = Column(String(255), primary_key=True)
    completed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    raw_detail = Column(JSON, nullable=True)
    payload_hash = Column(String(64), nullable=True)
    sync_count = Column(Integer, nullable=False, default=1)
    first_synced_at = Column(DateTime(timezone=True), server_default=func.now())
    last_synced_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SyncedAudit(audit_id={self.audit_id}, completed_at={self.completed_at})>"


class PendingAuditModel(Base):
    """
    Auditorias cuyo ultimo intento fallo (detalle o upsert).

    Mientras haya filas aqui, el checkpoint persistente no supera el
    modified_at mas antiguo: la proxima corrida las vuelve a traer.
    """

    __tablename__ = "pending_audits"

    audit_id = Column(String(255), primary_key=True)
    modified_at = Column(DateTime(timezone=True), nullable=False, index=True)
    reason = Column(String(1000), nullable=True)
    attempts = Column(Integer, nullable=False, default=1)
    first_failed_at = Column(DateTime(timezone=True), server_default=func.now())
    last_failed_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<PendingAudit(audit_id={self.audit_id}, attempts={self.attempts})>"
