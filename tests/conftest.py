"""
Configuración de fixtures para pytest.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from audit_sync.domain.entities.column_mapping import ColumnMapping, LogicalField
from audit_sync.infrastructure.database.session import (
    create_session_factory,
    init_db,
)


# Base de datos de prueba (una sola conexion compartida para :memory:)
TEST_DATABASE_URL = "sqlite:///:memory:"

FIXED_NOW = datetime(2024, 6, 1, 15, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock():
    """Reloj determinista para los fallbacks dependientes de 'ahora'."""
    return lambda: FIXED_NOW


@pytest.fixture
def column_mapping() -> ColumnMapping:
    """Mapeo con ids de columna iguales al campo logico, para legibilidad."""
    return ColumnMapping.from_column_ids({f: f.value for f in LogicalField})


@pytest.fixture
def session_factory():
    """Session factory sobre SQLite en memoria con las tablas creadas."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeHttpSession:
    """
    Sustituto de requests.Session: devuelve respuestas en orden y registra
    cada llamada.
    """

    def __init__(self, responses: List[FakeResponse]):
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self, call: Dict[str, Any]) -> FakeResponse:
        self.calls.append(call)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method, url, params=None, headers=None, timeout=None):
        return self._next({"method": method, "url": url, "params": params, "headers": headers})

    def post(self, url, json=None, headers=None, timeout=None):
        return self._next({"method": "POST", "url": url, "json": json, "headers": headers})


class FakeMondayBoard:
    """
    Board en memoria con la misma interfaz que MondayClient.
    Los items se indexan por (columna, valor).
    """

    def __init__(self):
        self.items: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self._next_id = 100

    def find_item_id(self, board_id, column_id, column_value):
        self.calls.append(("find", column_id, column_value))
        for item_id, item in self.items.items():
            if column_id == "name" and item["name"] == column_value:
                return item_id
            if item["values"].get(column_id) == column_value:
                return item_id
        return None

    def create_item(self, board_id, item_name, column_values):
        import json

        self._next_id += 1
        item_id = str(self._next_id)
        self.items[item_id] = {"name": item_name, "values": json.loads(column_values)}
        self.calls.append(("create", item_name, column_values))
        return item_id

    def change_multiple_column_values(self, item_id, board_id, column_values):
        import json

        self.items[item_id]["values"].update(json.loads(column_values))
        self.calls.append(("update", item_id, column_values))
        return item_id


@pytest.fixture
def fake_board() -> FakeMondayBoard:
    return FakeMondayBoard()
