"""
Politicas de checkpoint para la ventana incremental.

- "today": sin estado. El checkpoint es siempre el inicio del dia UTC actual.
- "persistent": el checkpoint es MAX(completed_at) de las auditorias ya
  sincronizadas (tabla synced_audits). Avanza con cada upsert confirmado y
  retrocede mientras haya fallos pendientes (tabla pending_audits).
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from audit_sync.infrastructure.database.session import (
    create_db_engine,
    create_session_factory,
    init_db,
)
from audit_sync.infrastructure.repositories.synced_audit_repository import SyncedAuditRepository
from audit_sync.shared.exceptions import ConfigMissingException
from audit_sync.shared.utils.datetime_utils import EPOCH, Clock, start_of_day, utc_now


# El filtro de ventana es estricto (>): un fallo con modified_at = T entra con checkpoint T - 1us
RETRY_MARGIN = timedelta(microseconds=1)


class CheckpointStore:
    """Contrato comun de las politicas de checkpoint."""

    policy = "base"

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    def load(self) -> datetime:
        raise NotImplementedError

    def advance(
        self,
        record_timestamp: datetime,
        *,
        audit_id: Optional[str] = None,
        raw_detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        raise NotImplementedError

    def record_failure(self, audit_id: str, modified_at: datetime, reason: Optional[str] = None) -> None:
        """Registra un fallo por registro para reintentarlo en la proxima corrida."""
        raise NotImplementedError

    def clear_failure(self, audit_id: str) -> None:
        """Olvida un fallo pendiente (el registro ya se sincronizo o se descarto)."""
        raise NotImplementedError

    def pending(self) -> Dict[str, datetime]:
        """audit_id -> modified_at de los fallos pendientes de reintento."""
        raise NotImplementedError

    def reset_to_today(self) -> datetime:
        """Inicio del dia UTC actual segun el reloj inyectado."""
        return start_of_day(self._clock())


class TodayCheckpointStore(CheckpointStore):
    """Politica sin estado: solo entra lo modificado hoy (UTC)."""

    policy = "today"

    def load(self) -> datetime:
        return self.reset_to_today()

    def advance(self, record_timestamp, *, audit_id=None, raw_detail=None) -> None:
        # Sin persistencia: el checkpoint avanza solo con el cambio de fecha
        return None

    def record_failure(self, audit_id, modified_at, reason=None) -> None:
        # Sin ledger: una corrida posterior del mismo dia vuelve a traerlo
        return None

    def clear_failure(self, audit_id) -> None:
        return None

    def pending(self) -> Dict[str, datetime]:
        return {}


class PersistentCheckpointStore(CheckpointStore):
    """
    Politica con estado sobre las tablas synced_audits y pending_audits.

    load() = MAX(completed_at) de lo sincronizado, pero nunca posterior al
    modified_at del fallo pendiente mas antiguo (menos RETRY_MARGIN), para que
    la ventana vuelva a incluirlo.

    Cada escritura hace commit propio: si el job se interrumpe, lo ya
    sincronizado queda registrado.
    """

    policy = "persistent"

    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now):
        super().__init__(clock)
        self._session_factory = session_factory

    def load(self) -> datetime:
        with self._session_factory() as session:
            repo = SyncedAuditRepository(session)
            value = repo.max_completed_at() or EPOCH
            oldest_pending = repo.min_pending_modified_at()

        if oldest_pending is not None and oldest_pending - RETRY_MARGIN < value:
            value = max(oldest_pending - RETRY_MARGIN, EPOCH)
            logger.info(f"Checkpoint retrocedido a {value.isoformat()} para reintentar fallos pendientes")
        return value

    def advance(self, record_timestamp, *, audit_id=None, raw_detail=None) -> None:
        if not audit_id:
            raise ValueError("PersistentCheckpointStore.advance requiere audit_id")
        with self._session_factory() as session:
            try:
                repo = SyncedAuditRepository(session)
                changed = repo.record_sync(audit_id, record_timestamp, raw_detail)
                retried = repo.clear_pending(audit_id)
                session.commit()
            except Exception:
                session.rollback()
                raise
        if retried:
            logger.info(f"Auditoria {audit_id} reintentada con exito")
        logger.debug(
            f"Checkpoint registrado: {audit_id} completed_at={record_timestamp.isoformat()} "
            f"({'cambios' if changed else 'sin cambios'})"
        )

    def record_failure(self, audit_id, modified_at, reason=None) -> None:
        with self._session_factory() as session:
            try:
                attempts = SyncedAuditRepository(session).mark_pending(audit_id, modified_at, reason)
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.warning(f"Auditoria {audit_id} pendiente de reintento (intentos fallidos: {attempts})")

    def clear_failure(self, audit_id) -> None:
        with self._session_factory() as session:
            try:
                SyncedAuditRepository(session).clear_pending(audit_id)
                session.commit()
            except Exception:
                session.rollback()
                raise

    def pending(self) -> Dict[str, datetime]:
        with self._session_factory() as session:
            return SyncedAuditRepository(session).pending()


def build_checkpoint_store(
    policy: str,
    database_url: Optional[str] = None,
    clock: Clock = utc_now,
) -> CheckpointStore:
    """Crea el store segun la politica configurada (CHECKPOINT_POLICY)."""
    policy = (policy or "").strip().lower()
    if policy == "today":
        return TodayCheckpointStore(clock=clock)
    if policy == "persistent":
        if not database_url:
            raise ConfigMissingException(["CHECKPOINT_DATABASE_URL"])
        engine = create_db_engine(database_url)
        init_db(engine)
        return PersistentCheckpointStore(create_session_factory(engine), clock=clock)
    raise ConfigMissingException(
        ["CHECKPOINT_POLICY"], message=f"Politica de checkpoint desconocida: '{policy}'"
    )
