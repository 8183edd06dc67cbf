"""
Upsert de registros mapeados en un board de monday.com.

find -> create | update, por coincidencia exacta en la columna clave.

Limitacion conocida: find-then-create no es atomico. Si otro proceso crea
el mismo item entre ambas llamadas, puede quedar un duplicado. Es aceptable
porque el job es el unico escritor del board.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Mapping, Optional

import requests
from loguru import logger

from audit_sync.domain.entities.audit import ColumnValue, MappedRecord
from audit_sync.domain.entities.column_mapping import ColumnMapping
from audit_sync.infrastructure.external.monday.client import MondayApiError, MondayClient
from audit_sync.infrastructure.external.monday.column_values import build_column_values
from audit_sync.shared.exceptions import TargetUpsertFailedException


NAME_COLUMN = "name"


@dataclass(frozen=True)
class UpsertResult:
    action: str  # "created" | "updated"
    item_id: str


class MondayUpsertSink:
    """
    Sink de upsert sobre un board.

    - key_column: columna donde se busca la clave ("name" = nombre del item)
    - item_name_template: nombre del item a partir del audit id; tambien es
      el valor buscado en key_column
    """

    def __init__(
        self,
        client: MondayClient,
        board_id: int,
        column_mapping: ColumnMapping,
        *,
        key_column: str = NAME_COLUMN,
        item_name_template: str = "Audit {audit_id}",
    ) -> None:
        self._client = client
        self._board_id = board_id
        self._mapping = column_mapping
        self._key_column = key_column
        self._item_name_template = item_name_template

    def key_value(self, natural_key: str) -> str:
        return self._item_name_template.format(audit_id=natural_key)

    def find(self, natural_key: str) -> Optional[str]:
        return self._client.find_item_id(self._board_id, self._key_column, self.key_value(natural_key))

    def create(self, natural_key: str, columns: Mapping[str, ColumnValue]) -> str:
        values = build_column_values(columns, self._mapping)
        if self._key_column != NAME_COLUMN:
            # La clave vive en una columna propia: se escribe para que el
            # proximo find() la encuentre
            values[self._key_column] = self.key_value(natural_key)
        return self._client.create_item(self._board_id, self.key_value(natural_key), json.dumps(values))

    def update(self, item_id: str, columns: Mapping[str, ColumnValue]) -> str:
        values = build_column_values(columns, self._mapping)
        return self._client.change_multiple_column_values(item_id, self._board_id, json.dumps(values))

    def upsert(self, record: MappedRecord) -> UpsertResult:
        """
        Crea o actualiza el item del registro.

        Errores de la API o de red se reportan como TargetUpsertFailedException
        (por registro). UnauthorizedException se propaga sin envolver.
        """
        try:
            existing = self.find(record.natural_key)
            if existing is not None:
                logger.info(f"Actualizando item #{existing} ({record.natural_key})")
                return UpsertResult("updated", self.update(existing, record.columns))

            logger.info(f"Creando item '{self.key_value(record.natural_key)}'")
            return UpsertResult("created", self.create(record.natural_key, record.columns))
        except (MondayApiError, requests.RequestException) as e:
            raise TargetUpsertFailedException(record.natural_key, str(e)) from e
