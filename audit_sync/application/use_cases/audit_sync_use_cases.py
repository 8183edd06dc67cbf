"""
Orquestador del job SafetyCulture -> monday.com.

Flujo de una corrida:
checkpoint -> busqueda de resumenes -> motor de reconciliacion ->
upsert en monday.com -> avance del checkpoint (solo tras upsert exitoso).

Los fallos por registro quedan pendientes en el checkpoint store y la
siguiente corrida los vuelve a intentar.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set

from loguru import logger

from audit_sync.application.services.checkpoint_store import CheckpointStore, build_checkpoint_store
from audit_sync.application.use_cases.reconciliation import ReconciliationEngine, RecordState
from audit_sync.core.config import Settings, validate_required
from audit_sync.domain.entities.column_mapping import ColumnMapping, LogicalField
from audit_sync.infrastructure.external.monday.client import MondayClient
from audit_sync.infrastructure.external.monday.column_values import serialize_column_values
from audit_sync.infrastructure.external.monday.sink import MondayUpsertSink
from audit_sync.infrastructure.external.safetyculture.client import (
    SafetyCultureClient,
    SafetyCultureCredentials,
)
from audit_sync.shared.exceptions import TargetUpsertFailedException


@dataclass
class SyncResult:
    checkpoint: datetime
    seen: int = 0
    filtered_out: int = 0
    skipped: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    dry_run: bool = False
    max_completed_at: Optional[datetime] = None
    # Registros cuyo completed_at salio del reloj (sin fecha de completado en origen)
    defaulted_completed: int = 0
    failed_ids: List[str] = field(default_factory=list)

    @property
    def upserted(self) -> int:
        return self.created + self.updated

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


class AuditSyncService:
    """
    Ejecuta corridas incrementales para una plantilla.

    Single-writer y secuencial: un registro a la vez (detalle, mapeo, upsert).
    """

    def __init__(
        self,
        *,
        source: SafetyCultureClient,
        sink: MondayUpsertSink,
        checkpoint_store: CheckpointStore,
        engine: ReconciliationEngine,
        template_id: str,
        column_mapping: Optional[ColumnMapping] = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self._checkpoint_store = checkpoint_store
        self._engine = engine
        self._template_id = template_id
        self._column_mapping = column_mapping

    @property
    def checkpoint_store(self) -> CheckpointStore:
        return self._checkpoint_store

    def run_once(
        self,
        *,
        dry_run: bool = False,
        checkpoint_override: Optional[datetime] = None,
    ) -> SyncResult:
        """
        Ejecuta una corrida completa.

        - ConfigMissing / Unauthorized / fallo al listar: se propagan (fatal).
        - Fallos por registro: se cuentan, quedan pendientes de reintento en el
          checkpoint store y se continua con el siguiente.
        """
        checkpoint = checkpoint_override or self._checkpoint_store.load()
        pending = self._checkpoint_store.pending()
        logger.info(
            f"Sync incremental: plantilla '{self._template_id}' "
            f"(policy={self._checkpoint_store.policy}, checkpoint > {checkpoint.isoformat()}, "
            f"pendientes={len(pending)})"
        )

        result = SyncResult(checkpoint=checkpoint, dry_run=dry_run)
        seen_ids = set()
        outcomes = self._engine.iter_outcomes(
            checkpoint,
            lambda: self._source.search_audits(self._template_id, modified_after=checkpoint),
            self._source.get_audit,
            retry_ids=frozenset(pending),
        )

        for outcome in outcomes:
            result.seen += 1
            seen_ids.add(outcome.audit_id)
            if outcome.state is RecordState.FILTERED_OUT:
                result.filtered_out += 1
                continue
            if outcome.state is RecordState.SKIPPED:
                result.skipped += 1
                if not dry_run and outcome.audit_id in pending:
                    # Descartado a proposito: ya no debe frenar el checkpoint
                    self._checkpoint_store.clear_failure(outcome.audit_id)
                continue
            if outcome.state is RecordState.FAILED:
                self._fail(result, outcome.audit_id, outcome.modified_at or checkpoint, outcome.reason, dry_run)
                continue

            record = outcome.record
            logger.info(f"--- Procesando auditoria {record.natural_key} ---")
            if record.completed_at_defaulted:
                result.defaulted_completed += 1

            if dry_run:
                payload = (
                    serialize_column_values(record.columns, self._column_mapping)
                    if self._column_mapping is not None
                    else record.columns
                )
                logger.info(f"[dry-run] column_values para {record.natural_key}: {payload}")
                continue

            try:
                upsert = self._sink.upsert(record)
            except TargetUpsertFailedException as e:
                logger.error(f"Auditoria {record.natural_key} no sincronizada: {e.message}")
                self._fail(result, record.natural_key, outcome.modified_at or checkpoint, e.message, dry_run)
                continue

            if upsert.action == "created":
                result.created += 1
            else:
                result.updated += 1

            # El checkpoint solo avanza tras un upsert confirmado
            self._checkpoint_store.advance(
                record.completed_at,
                audit_id=record.natural_key,
                raw_detail=record.raw_detail,
            )
            if result.max_completed_at is None or record.completed_at > result.max_completed_at:
                result.max_completed_at = record.completed_at

        if not dry_run:
            self._forget_vanished(pending, seen_ids, checkpoint)

        log = logger.warning if result.has_failures else logger.success
        log(
            f"Sync completado. vistos={result.seen}, creados={result.created}, "
            f"actualizados={result.updated}, fuera_de_ventana={result.filtered_out}, "
            f"omitidos={result.skipped}, fallidos={result.failed}, "
            f"completado_por_defecto={result.defaulted_completed}"
        )
        return result

    def _fail(
        self,
        result: SyncResult,
        audit_id: str,
        modified_at: datetime,
        reason: Optional[str],
        dry_run: bool,
    ) -> None:
        result.failed += 1
        result.failed_ids.append(audit_id)
        if not dry_run:
            self._checkpoint_store.record_failure(audit_id, modified_at, reason)

    def _forget_vanished(self, pending: Dict[str, datetime], seen_ids: Set[str], checkpoint: datetime) -> None:
        """
        Un pendiente con modified_at > checkpoint tenia que aparecer en la
        busqueda. Si no aparecio (borrado, archivado, otra plantilla) se
        descarta para no frenar el checkpoint para siempre.
        """
        for audit_id, modified_at in pending.items():
            if audit_id in seen_ids or not modified_at > checkpoint:
                continue
            logger.warning(f"Auditoria pendiente {audit_id} ya no aparece en la busqueda; se descarta el reintento")
            self._checkpoint_store.clear_failure(audit_id)


def column_mapping_from_settings(settings: Settings) -> ColumnMapping:
    return ColumnMapping.from_column_ids({
        LogicalField.STATUS: settings.MONDAY_COLUMN_STATUS,
        LogicalField.SCORE: settings.MONDAY_COLUMN_SCORE,
        LogicalField.COMPLETED: settings.MONDAY_COLUMN_COMPLETED,
        LogicalField.CREATED: settings.MONDAY_COLUMN_CREATED,
        LogicalField.PART_NUMBER: settings.MONDAY_COLUMN_PART_NUMBER,
        LogicalField.QUANTITY: settings.MONDAY_COLUMN_QUANTITY,
        LogicalField.TRANSACTION_TYPE: settings.MONDAY_COLUMN_TRANSACTION,
    })


def build_monday_client(settings: Settings) -> MondayClient:
    return MondayClient(
        settings.MONDAY_API_TOKEN,
        api_url=settings.MONDAY_API_URL,
        timeout_s=settings.HTTP_TIMEOUT_S,
    )


def build_from_settings(settings: Settings) -> AuditSyncService:
    """
    Constructor "oficial" del job a partir de Settings.

    Valida la configuracion antes de crear cualquier cliente.
    """
    validate_required(settings)

    mapping = column_mapping_from_settings(settings)
    source = SafetyCultureClient(
        SafetyCultureCredentials(token=settings.SAFETYCULTURE_API_TOKEN),
        base_url=settings.SAFETYCULTURE_BASE_URL,
        timeout_s=settings.HTTP_TIMEOUT_S,
    )
    sink = MondayUpsertSink(
        build_monday_client(settings),
        settings.MONDAY_BOARD_ID,
        mapping,
        key_column=settings.MONDAY_KEY_COLUMN,
        item_name_template=settings.MONDAY_ITEM_NAME_TEMPLATE,
    )
    engine = ReconciliationEngine(
        mapping,
        require_complete=settings.SYNC_REQUIRE_COMPLETE,
        window_field=settings.SYNC_WINDOW_FIELD,
    )
    store = build_checkpoint_store(settings.CHECKPOINT_POLICY, settings.CHECKPOINT_DATABASE_URL)

    return AuditSyncService(
        source=source,
        sink=sink,
        checkpoint_store=store,
        engine=engine,
        template_id=settings.SAFETYCULTURE_TEMPLATE_ID,
        column_mapping=mapping,
    )
