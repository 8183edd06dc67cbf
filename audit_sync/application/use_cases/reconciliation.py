"""
Motor de reconciliacion incremental.

Dado un checkpoint, decide que auditorias estan dentro de la ventana, trae
su detalle, normaliza los campos y produce MappedRecord listos para upsert.

Estados por registro:

    SUMMARY_SEEN -> FILTERED_OUT
                 -> DETAIL_FETCHED -> SKIPPED (no-status | not-complete | unparseable-date)
                                   -> FAILED  (fetch-failed)
                                   -> MAPPED

Semantica de la ventana: un resumen entra si su modified_at es
estrictamente posterior al checkpoint (>). Con window_field="completed"
ademas debe cumplirlo el completed_at resuelto del detalle. Los reintentos de
fallos anteriores (retry_ids) no pasan por ese segundo filtro.

Score: se emite como float (porcentaje 0-100), sin redondeo.

completed_at: completed_date -> completed_at -> "ahora". El ultimo
fallback depende del reloj: una auditoria sin ninguno de los dos campos
aparece siempre como "recien completada".
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Collection, Dict, Iterable, Iterator, Mapping, Optional, Sequence

from loguru import logger

from audit_sync.application.services.field_extractor import (
    DEFAULT_ALLOWED_LABELS,
    extract,
    first_values,
)
from audit_sync.domain.entities.audit import (
    AuditDetail,
    AuditStatus,
    AuditSummary,
    ColumnValue,
    MappedRecord,
)
from audit_sync.domain.entities.column_mapping import ColumnMapping, LogicalField
from audit_sync.domain.entities.json_tree import from_json
from audit_sync.shared.exceptions import SourceFetchFailedException, UnparseableTimestampException
from audit_sync.shared.utils.datetime_utils import Clock, ensure_utc, parse_source_timestamp, utc_now


FetchSummaries = Callable[[], Iterable[AuditSummary]]
FetchDetail = Callable[[str], Mapping[str, Any]]

PART_NUMBER_LABEL = "Part-Number"
QUANTITY_LABEL = "Quantity"
TRANSACTION_TYPE_LABEL = "Transaction Type"


class RecordState(Enum):
    FILTERED_OUT = "filtered_out"
    SKIPPED = "skipped"
    FAILED = "failed"
    MAPPED = "mapped"


@dataclass(frozen=True)
class RecordOutcome:
    audit_id: str
    state: RecordState
    reason: Optional[str] = None
    record: Optional[MappedRecord] = None
    # modified_at del resumen; permite reintentar el registro si falla
    modified_at: Optional[datetime] = None


def parse_quantity(raw: Optional[str]) -> Optional[int]:
    """
    "12" -> 12, "12.0" -> 12. Cualquier otro valor -> None (se descarta).
    """
    if raw is None:
        return None
    text = raw.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if number.is_integer():
        return int(number)
    return None


def _lookup(raw: Mapping[str, Any], key: str) -> Any:
    """Busca primero en `audit_data` (donde lo pone SafetyCulture) y luego en la raiz."""
    audit_data = raw.get("audit_data")
    if isinstance(audit_data, Mapping) and audit_data.get(key) not in (None, ""):
        return audit_data.get(key)
    value = raw.get(key)
    return None if value == "" else value


def _parse_score(raw: Any) -> Optional[float]:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except ValueError:
            return None
    return None


class ReconciliationEngine:
    """
    Motor parametrizado por:
    - column_mapping: tabla campo logico -> columna destino
    - allowed_labels: labels a extraer del arbol
    - require_complete: si True, solo se emiten auditorias completas
    - window_field: "modified" o "completed" (ver docstring del modulo)
    - clock: reloj inyectable (fallback de completed_at)
    """

    def __init__(
        self,
        column_mapping: ColumnMapping,
        *,
        allowed_labels: Sequence[str] = DEFAULT_ALLOWED_LABELS,
        require_complete: bool = False,
        window_field: str = "modified",
        clock: Clock = utc_now,
    ) -> None:
        if window_field not in ("modified", "completed"):
            raise ValueError(f"window_field invalido: {window_field}")
        self._mapping = column_mapping
        self._allowed_labels = tuple(allowed_labels)
        self._require_complete = require_complete
        self._window_field = window_field
        self._clock = clock

    def reconcile(
        self,
        checkpoint: datetime,
        fetch_summaries: FetchSummaries,
        fetch_detail: FetchDetail,
    ) -> Iterator[MappedRecord]:
        """Solo los registros mapeados, en el orden de los resumenes."""
        for outcome in self.iter_outcomes(checkpoint, fetch_summaries, fetch_detail):
            if outcome.state is RecordState.MAPPED:
                yield outcome.record

    def iter_outcomes(
        self,
        checkpoint: datetime,
        fetch_summaries: FetchSummaries,
        fetch_detail: FetchDetail,
        *,
        retry_ids: Collection[str] = frozenset(),
    ) -> Iterator[RecordOutcome]:
        """
        Un RecordOutcome por resumen. Un fallo al listar se propaga (fatal);
        un fallo al traer un detalle se registra y se continua.

        retry_ids: auditorias que fallaron en una corrida anterior. No se les
        aplica el filtro por completed_at (ya se intentaron y deben reentrar).
        """
        checkpoint = ensure_utc(checkpoint)

        for summary in fetch_summaries():
            audit_id = summary.audit_id

            if summary.last_modified is None:
                yield self._skip(audit_id, f"unparseable-date: modified_at={summary.raw_last_modified!r}")
                continue
            if not summary.last_modified > checkpoint:
                yield self._filter_out(audit_id, f"modified_at {summary.last_modified.isoformat()} <= checkpoint")
                continue

            try:
                raw = fetch_detail(audit_id)
            except SourceFetchFailedException as e:
                logger.error(f"Auditoria {audit_id} omitida (fetch-failed): {e.message}")
                yield RecordOutcome(
                    audit_id, RecordState.FAILED, f"fetch-failed: {e.message}", modified_at=summary.last_modified
                )
                continue

            try:
                detail = self.parse_detail(audit_id, raw)
            except UnparseableTimestampException as e:
                yield self._skip(audit_id, f"unparseable-date: {e.message}")
                continue

            if self._require_complete:
                status = detail.audit_status
                if not _lookup(raw, "completion_status"):
                    yield self._skip(audit_id, "no-status")
                    continue
                if status is not AuditStatus.COMPLETE:
                    yield self._skip(audit_id, f"not-complete: {detail.status}")
                    continue

            if (
                self._window_field == "completed"
                and audit_id not in retry_ids
                and not detail.completed_at > checkpoint
            ):
                yield self._filter_out(audit_id, f"completed_at {detail.completed_at.isoformat()} <= checkpoint")
                continue

            record = self.map_detail(detail)
            yield RecordOutcome(audit_id, RecordState.MAPPED, record=record, modified_at=summary.last_modified)

    def parse_detail(self, audit_id: str, raw: Mapping[str, Any]) -> AuditDetail:
        """
        Normaliza el JSON de detalle. Fechas invalidas -> UnparseableTimestampException.

        Los datetime quedan en UTC (ventana y checkpoint); las fechas calendario
        de las columnas se toman con el offset que trae SafetyCulture.
        """
        raw_created = _lookup(raw, "created_at")
        created_local = None
        if raw_created is not None:
            created_local = parse_source_timestamp(raw_created)
            if created_local is None:
                raise UnparseableTimestampException(audit_id, "created_at", raw_created)

        completed_field = "completed_date"
        raw_completed = _lookup(raw, completed_field)
        if raw_completed is None:
            completed_field = "completed_at"
            raw_completed = _lookup(raw, completed_field)

        defaulted = raw_completed is None
        if defaulted:
            completed_local = ensure_utc(self._clock())
            logger.warning(
                f"Auditoria {audit_id} sin completed_date/completed_at: se usa la hora actual "
                f"({completed_local.isoformat()})"
            )
        else:
            completed_local = parse_source_timestamp(raw_completed)
            if completed_local is None:
                raise UnparseableTimestampException(audit_id, completed_field, raw_completed)

        status = _lookup(raw, "completion_status")
        return AuditDetail(
            audit_id=audit_id,
            created_at=ensure_utc(created_local) if created_local is not None else None,
            status=str(status) if status else AuditStatus.UNKNOWN.value,
            score_percent=_parse_score(_lookup(raw, "score_percentage")),
            completed_at=ensure_utc(completed_local),
            completed_at_defaulted=defaulted,
            completed_date=completed_local.date(),
            created_date=created_local.date() if created_local is not None else None,
            tree=from_json(raw),
            raw=dict(raw),
        )

    def map_detail(self, detail: AuditDetail) -> MappedRecord:
        """Construye las columnas tipadas a partir del detalle normalizado."""
        labels = first_values(extract(detail.tree, self._allowed_labels), self._allowed_labels)

        fields: Dict[LogicalField, ColumnValue] = {
            LogicalField.STATUS: detail.status,
            LogicalField.COMPLETED: detail.completed_date,
        }
        if detail.score_percent is not None:
            fields[LogicalField.SCORE] = detail.score_percent
        if detail.created_date is not None:
            fields[LogicalField.CREATED] = detail.created_date

        part_number = labels.get(PART_NUMBER_LABEL)
        if part_number:
            fields[LogicalField.PART_NUMBER] = part_number

        raw_quantity = labels.get(QUANTITY_LABEL)
        quantity = parse_quantity(raw_quantity)
        if quantity is not None:
            fields[LogicalField.QUANTITY] = quantity
        elif raw_quantity is not None:
            logger.debug(f"Auditoria {detail.audit_id}: Quantity no numerica descartada ({raw_quantity!r})")

        transaction = labels.get(TRANSACTION_TYPE_LABEL)
        if transaction:
            fields[LogicalField.TRANSACTION_TYPE] = transaction

        columns = {self._mapping.column_id(logical): value for logical, value in fields.items()}
        return MappedRecord(
            natural_key=detail.audit_id,
            columns=columns,
            completed_at=detail.completed_at,
            completed_at_defaulted=detail.completed_at_defaulted,
            raw_detail=detail.raw,
        )

    @staticmethod
    def _skip(audit_id: str, reason: str) -> RecordOutcome:
        logger.warning(f"Auditoria {audit_id} omitida ({reason})")
        return RecordOutcome(audit_id, RecordState.SKIPPED, reason)

    @staticmethod
    def _filter_out(audit_id: str, reason: str) -> RecordOutcome:
        logger.debug(f"Auditoria {audit_id} fuera de ventana ({reason})")
        return RecordOutcome(audit_id, RecordState.FILTERED_OUT, reason)
