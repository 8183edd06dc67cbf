"""
Cliente minimo de monday.com (GraphQL sobre POST, con requests).

Solo las cuatro operaciones que usa el job: buscar item por valor de
columna, crear item, actualizar columnas y listar columnas del board.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import requests
from loguru import logger

from audit_sync.shared.exceptions import UnauthorizedException


FIND_ITEM_QUERY = """
query($boardId: ID!, $columnId: String!, $columnValue: String!) {
  items_page_by_column_values(
    board_id: $boardId,
    columns: [{column_id: $columnId, column_values: [$columnValue]}],
    limit: 1
  ) { items { id } }
}
"""

CREATE_ITEM_MUTATION = """
mutation($boardId: ID!, $itemName: String!, $columnValues: JSON!) {
  create_item(board_id: $boardId, item_name: $itemName, column_values: $columnValues) { id }
}
"""

CHANGE_COLUMNS_MUTATION = """
mutation($itemId: ID!, $boardId: ID!, $columnValues: JSON!) {
  change_multiple_column_values(item_id: $itemId, board_id: $boardId, column_values: $columnValues) { id }
}
"""

BOARD_COLUMNS_QUERY = """
query($ids: [ID!]!) {
  boards(ids: $ids) { columns { id title type } }
}
"""


class MondayApiError(RuntimeError):
    """Error de integración con monday.com."""


class MondayClient:
    SERVICE = "monday.com"

    def __init__(
        self,
        token: str,
        *,
        session: Optional[requests.Session] = None,
        api_url: str = "https://api.monday.com/v2",
        timeout_s: int = 30,
    ) -> None:
        self._token = token
        self._api_url = api_url
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    def find_item_id(self, board_id: int, column_id: str, column_value: str) -> Optional[str]:
        """Id del primer item cuyo `column_id` coincide exactamente, o None."""
        data = self._execute(
            FIND_ITEM_QUERY,
            {"boardId": board_id, "columnId": column_id, "columnValue": column_value},
        )
        page = data.get("items_page_by_column_values") or {}
        items = page.get("items") or []
        if items:
            return str(items[0]["id"])
        return None

    def create_item(self, board_id: int, item_name: str, column_values: str) -> str:
        """
        Crea un item. `column_values` es el blob JSON ya serializado como
        string (el tipo GraphQL JSON! lo exige asi).
        """
        data = self._execute(
            CREATE_ITEM_MUTATION,
            {"boardId": board_id, "itemName": item_name, "columnValues": column_values},
        )
        return self._returned_id(data, "create_item")

    def change_multiple_column_values(self, item_id: str, board_id: int, column_values: str) -> str:
        data = self._execute(
            CHANGE_COLUMNS_MUTATION,
            {"itemId": item_id, "boardId": board_id, "columnValues": column_values},
        )
        return self._returned_id(data, "change_multiple_column_values")

    def list_board_columns(self, board_id: int) -> List[Tuple[str, str, str]]:
        """Columnas del board como (id, titulo, tipo)."""
        data = self._execute(BOARD_COLUMNS_QUERY, {"ids": [str(board_id)]})
        boards = data.get("boards") or []
        if not boards:
            raise MondayApiError(f"Board {board_id} no encontrado o sin acceso")
        return [
            (str(col.get("id")), str(col.get("title")), str(col.get("type", "")))
            for col in boards[0].get("columns") or []
        ]

    @staticmethod
    def _returned_id(data: Dict[str, Any], field: str) -> str:
        node = data.get(field) or {}
        item_id = node.get("id")
        if not item_id:
            raise MondayApiError(f"'{field}' no devolvio id")
        return str(item_id)

    def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST GraphQL y retorna `data`.

        monday.com puede responder 200 con `errors` / `error_message` en el
        cuerpo, por lo que se revisan ambos ademas del status HTTP.
        """
        headers = {
            "Authorization": self._token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        logger.debug(f"monday.com request: variables={variables}")

        try:
            resp = self._session.post(
                self._api_url,
                json={"query": query, "variables": variables},
                headers=headers,
                timeout=self._timeout_s,
            )
        except requests.RequestException as e:
            raise MondayApiError(f"error de red: {e}") from e

        if resp.status_code in (401, 403):
            raise UnauthorizedException(self.SERVICE, resp.status_code, resp.text)

        try:
            body = resp.json()
        except ValueError as e:
            raise MondayApiError(f"HTTP {resp.status_code}, respuesta no es JSON: {resp.text[:500]}") from e

        if not 200 <= resp.status_code < 300:
            raise MondayApiError(f"HTTP {resp.status_code}: {body}")

        if body.get("error_message"):
            raise MondayApiError(str(body["error_message"]))
        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise MondayApiError(messages)

        return body.get("data") or {}
