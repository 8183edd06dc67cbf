"""
Cliente HTTP de SafetyCulture (sin SDKs externos).

Cubre:
- busqueda de auditorias por plantilla y modified_after (con continuacion)
- detalle de una auditoria

No hay reintentos automaticos: un fallo transitorio se reintenta en la
siguiente corrida programada.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote

import requests
from loguru import logger

from audit_sync.domain.entities.audit import AuditSummary
from audit_sync.shared.exceptions import SourceFetchFailedException, UnauthorizedException
from audit_sync.shared.utils.datetime_utils import isoformat_z, parse_timestamp


@dataclass(frozen=True)
class SafetyCultureCredentials:
    token: str


class SafetyCultureClient:
    """
    Expone un generator de AuditSummary y la lectura de detalle.

    - No interpreta el detalle: eso lo hace el motor de reconciliacion.
    - Sí normaliza `modified_at` del resumen a datetime UTC (None si no parsea).
    """

    SERVICE = "SafetyCulture"

    def __init__(
        self,
        credentials: SafetyCultureCredentials,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = "https://api.safetyculture.io",
        timeout_s: int = 30,
    ) -> None:
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    def search_audits(
        self,
        template_id: str,
        modified_after: Optional[datetime] = None,
    ) -> Iterator[AuditSummary]:
        """
        Itera los resumenes {audit_id, modified_at} de una plantilla.

        La API devuelve una pagina acotada con `count` y `total`. Mientras
        total > count se vuelve a consultar con modified_after = ultimo
        modified_at visto (la API ordena ascendente por modified_at).
        """
        cursor = modified_after
        seen: set = set()

        while True:
            query: List[Tuple[str, Any]] = [
                ("template", template_id),
                ("field", "audit_id"),
                ("field", "modified_at"),
            ]
            if cursor is not None:
                query.append(("modified_after", isoformat_z(cursor)))

            payload = self._request_json("GET", "/audits/search", query=query)
            audits = payload.get("audits") or []

            last_modified: Optional[datetime] = None
            new_in_page = 0
            for raw in audits:
                audit_id = raw.get("audit_id")
                if not audit_id:
                    # Caso raro; preferimos fallar temprano y visible.
                    raise SourceFetchFailedException(None, "la busqueda devolvio una auditoria sin 'audit_id'")
                if audit_id in seen:
                    continue
                seen.add(audit_id)
                new_in_page += 1

                raw_modified = raw.get("modified_at")
                summary = AuditSummary(
                    audit_id=audit_id,
                    last_modified=parse_timestamp(raw_modified),
                    raw_last_modified=raw_modified,
                )
                if summary.last_modified is not None:
                    last_modified = summary.last_modified
                yield summary

            total = payload.get("total")
            count = payload.get("count", len(audits))
            if not isinstance(total, int) or total <= count:
                break
            if new_in_page == 0 or last_modified is None or last_modified == cursor:
                logger.warning(
                    f"Busqueda de auditorias sin progreso (total={total}, count={count}); se corta la paginacion"
                )
                break
            cursor = last_modified

    def get_audit(self, audit_id: str) -> Dict[str, Any]:
        """Detalle completo de una auditoria (JSON crudo)."""
        return self._request_json("GET", f"/audits/{quote(audit_id, safe='')}", audit_id=audit_id)

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        query: Optional[List[Tuple[str, Any]]] = None,
        audit_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Request HTTP sin reintentos.

        - 401/403: UnauthorizedException (fatal)
        - otros no-2xx, error de red o cuerpo no JSON: SourceFetchFailedException
        """
        headers = {
            "Authorization": f"Bearer {self._creds.token}",
            "Accept": "application/json",
        }
        url = f"{self._base_url}{path}"

        try:
            resp = self._session.request(
                method=method,
                url=url,
                params=query,
                headers=headers,
                timeout=self._timeout_s,
            )
        except requests.RequestException as e:
            raise SourceFetchFailedException(audit_id, f"error de red: {e}") from e

        if resp.status_code in (401, 403):
            raise UnauthorizedException(self.SERVICE, resp.status_code, resp.text)

        if not 200 <= resp.status_code < 300:
            raise SourceFetchFailedException(
                audit_id,
                f"HTTP {resp.status_code}: {resp.text[:500]}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise SourceFetchFailedException(audit_id, "respuesta no es JSON", status_code=resp.status_code) from e

        if not isinstance(payload, dict):
            raise SourceFetchFailedException(audit_id, "respuesta JSON inesperada", status_code=resp.status_code)
        return payload
