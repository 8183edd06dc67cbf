"""
Tests para AuditSyncService: corrida completa con fuente y board falsos.
"""
from datetime import datetime, timezone

import pytest

from audit_sync.application.services.checkpoint_store import (
    PersistentCheckpointStore,
    TodayCheckpointStore,
)
from audit_sync.application.use_cases.audit_sync_use_cases import (
    AuditSyncService,
    build_from_settings,
    column_mapping_from_settings,
)
from audit_sync.application.use_cases.reconciliation import ReconciliationEngine
from audit_sync.core.config import Settings
from audit_sync.domain.entities.audit import AuditSummary
from audit_sync.infrastructure.external.monday.client import MondayApiError
from audit_sync.infrastructure.external.monday.sink import MondayUpsertSink
from audit_sync.shared.exceptions import (
    ConfigMissingException,
    SourceFetchFailedException,
    UnauthorizedException,
)
from tests.conftest import FakeMondayBoard


class FakeSource:
    """Sustituto de SafetyCultureClient con auditorias en memoria."""

    def __init__(self, audits):
        self.audits = audits
        self.search_calls = []
        self.detail_calls = []

    def search_audits(self, template_id, modified_after=None):
        self.search_calls.append((template_id, modified_after))
        for audit_id, (modified, _) in self.audits.items():
            yield AuditSummary(
                audit_id=audit_id,
                last_modified=datetime.fromisoformat(modified.replace("Z", "+00:00")),
                raw_last_modified=modified,
            )

    def get_audit(self, audit_id):
        self.detail_calls.append(audit_id)
        detail = self.audits[audit_id][1]
        if isinstance(detail, Exception):
            raise detail
        return detail


def _detail(audit_id, completed="2024-06-01T09:00:00Z", part_number="PN-42"):
    return {
        "audit_id": audit_id,
        "created_at": "2024-05-31T08:00:00Z",
        "audit_data": {
            "completion_status": "COMPLETED",
            "score_percentage": 87.5,
            "completed_date": completed,
        },
        "header_items": [{"label": "Part-Number", "responses": {"text": part_number}}],
    }


@pytest.fixture
def checkpoint_day_clock():
    return lambda: datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)


def _service(source, board, mapping, store, clock):
    return AuditSyncService(
        source=source,
        sink=MondayUpsertSink(board, 123, mapping),
        checkpoint_store=store,
        engine=ReconciliationEngine(mapping, clock=clock),
        template_id="template_1",
        column_mapping=mapping,
    )


class TestRunOnce:
    def test_creates_item_for_new_audit(self, fake_board, column_mapping, checkpoint_day_clock):
        source = FakeSource({"a1": ("2024-06-01T10:00:00Z", _detail("a1"))})
        service = _service(source, fake_board, column_mapping, TodayCheckpointStore(checkpoint_day_clock), checkpoint_day_clock)

        result = service.run_once()

        assert (result.created, result.updated, result.failed) == (1, 0, 0)
        assert source.search_calls == [("template_1", datetime(2024, 6, 1, tzinfo=timezone.utc))]
        item = next(iter(fake_board.items.values()))
        assert item["name"] == "Audit a1"
        assert item["values"]["status"] == "COMPLETED"
        assert item["values"]["score"] == 87.5
        assert item["values"]["completed"] == {"date": "2024-06-01"}
        assert item["values"]["part_number"] == "PN-42"

    def test_second_run_updates_instead_of_duplicating(self, fake_board, column_mapping, checkpoint_day_clock):
        source = FakeSource({"a1": ("2024-06-01T10:00:00Z", _detail("a1"))})
        service = _service(source, fake_board, column_mapping, TodayCheckpointStore(checkpoint_day_clock), checkpoint_day_clock)

        first = service.run_once()
        second = service.run_once()

        assert (first.created, first.updated) == (1, 0)
        assert (second.created, second.updated) == (0, 1)
        assert len(fake_board.items) == 1

    def test_out_of_window_audits_are_not_fetched(self, fake_board, column_mapping, checkpoint_day_clock):
        source = FakeSource({
            "old": ("2024-05-31T10:00:00Z", _detail("old")),
            "new": ("2024-06-01T10:00:00Z", _detail("new")),
        })
        service = _service(source, fake_board, column_mapping, TodayCheckpointStore(checkpoint_day_clock), checkpoint_day_clock)

        result = service.run_once()

        assert result.filtered_out == 1
        assert source.detail_calls == ["new"]

    def test_per_record_failures_do_not_abort_the_batch(self, column_mapping, checkpoint_day_clock):
        class FlakyBoard:
            def __init__(self):
                self.created = []

            def find_item_id(self, board_id, column_id, value):
                if value == "Audit bad-target":
                    raise MondayApiError("Column value invalid")
                return None

            def create_item(self, board_id, item_name, column_values):
                self.created.append(item_name)
                return "1"

        source = FakeSource({
            "bad-source": ("2024-06-01T09:00:00Z", SourceFetchFailedException("bad-source", "HTTP 500", 500)),
            "bad-target": ("2024-06-01T09:30:00Z", _detail("bad-target")),
            "ok": ("2024-06-01T10:00:00Z", _detail("ok")),
        })
        board = FlakyBoard()
        service = _service(source, board, column_mapping, TodayCheckpointStore(checkpoint_day_clock), checkpoint_day_clock)

        result = service.run_once()

        assert result.failed == 2
        assert result.failed_ids == ["bad-source", "bad-target"]
        assert result.created == 1
        assert board.created == ["Audit ok"]

    def test_unauthorized_aborts_run(self, fake_board, column_mapping, checkpoint_day_clock):
        source = FakeSource({"a1": ("2024-06-01T10:00:00Z", UnauthorizedException("SafetyCulture", 401))})
        service = _service(source, fake_board, column_mapping, TodayCheckpointStore(checkpoint_day_clock), checkpoint_day_clock)

        with pytest.raises(UnauthorizedException):
            service.run_once()

    def test_counts_completion_dates_taken_from_the_clock(self, fake_board, column_mapping, checkpoint_day_clock):
        detail = _detail("a1")
        del detail["audit_data"]["completed_date"]
        source = FakeSource({"a1": ("2024-06-01T10:00:00Z", detail)})
        service = _service(source, fake_board, column_mapping, TodayCheckpointStore(checkpoint_day_clock), checkpoint_day_clock)

        result = service.run_once()

        assert result.defaulted_completed == 1
        assert result.max_completed_at == datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)

    def test_dry_run_does_not_write(self, fake_board, column_mapping, checkpoint_day_clock):
        source = FakeSource({"a1": ("2024-06-01T10:00:00Z", _detail("a1"))})
        service = _service(source, fake_board, column_mapping, TodayCheckpointStore(checkpoint_day_clock), checkpoint_day_clock)

        result = service.run_once(dry_run=True)

        assert result.dry_run is True
        assert result.upserted == 0
        assert fake_board.calls == []

    def test_custom_key_column_finds_item_created_by_previous_run(self, fake_board, column_mapping, checkpoint_day_clock):
        source = FakeSource({"a1": ("2024-06-01T10:00:00Z", _detail("a1"))})

        def run():
            # Cada corrida arma su propio sink, como el job real
            service = AuditSyncService(
                source=source,
                sink=MondayUpsertSink(
                    fake_board, 123, column_mapping,
                    key_column="text_audit_id", item_name_template="SC-{audit_id}",
                ),
                checkpoint_store=TodayCheckpointStore(checkpoint_day_clock),
                engine=ReconciliationEngine(column_mapping, clock=checkpoint_day_clock),
                template_id="template_1",
            )
            return service.run_once()

        first = run()
        second = run()

        assert (first.created, second.updated) == (1, 1)
        assert len(fake_board.items) == 1
        item = next(iter(fake_board.items.values()))
        assert item["name"] == "SC-a1"
        assert item["values"]["text_audit_id"] == "SC-a1"
        assert ("find", "text_audit_id", "SC-a1") in fake_board.calls


class TestPersistentCheckpoint:
    def test_checkpoint_advances_only_after_successful_upsert(
        self, fake_board, column_mapping, session_factory, checkpoint_day_clock
    ):
        store = PersistentCheckpointStore(session_factory, clock=checkpoint_day_clock)
        source = FakeSource({
            "a1": ("2024-06-01T10:00:00Z", _detail("a1", completed="2024-06-01T09:00:00Z")),
            "a2": ("2024-06-01T10:30:00Z", _detail("a2", completed="2024-06-01T10:30:00Z")),
        })
        service = _service(source, fake_board, column_mapping, store, checkpoint_day_clock)

        first = service.run_once()

        assert first.checkpoint == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert first.max_completed_at == datetime(2024, 6, 1, 10, 30, tzinfo=timezone.utc)
        assert store.load() == datetime(2024, 6, 1, 10, 30, tzinfo=timezone.utc)

        # Segunda corrida: solo entra lo modificado despues del nuevo checkpoint
        source.audits["a3"] = ("2024-06-01T12:00:00Z", _detail("a3", completed="2024-06-01T11:45:00Z"))
        source.detail_calls.clear()
        second = service.run_once()

        assert source.detail_calls == ["a3"]
        assert second.filtered_out == 2
        assert store.load() == datetime(2024, 6, 1, 11, 45, tzinfo=timezone.utc)

    def test_failed_upsert_does_not_advance_checkpoint(self, column_mapping, session_factory, checkpoint_day_clock):
        class BrokenBoard:
            def find_item_id(self, *args):
                raise MondayApiError("down")

        store = PersistentCheckpointStore(session_factory, clock=checkpoint_day_clock)
        source = FakeSource({"a1": ("2024-06-01T10:00:00Z", _detail("a1"))})
        service = _service(source, BrokenBoard(), column_mapping, store, checkpoint_day_clock)

        result = service.run_once()

        assert result.failed == 1
        assert store.load() == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_failed_upsert_is_retried_on_next_run(self, column_mapping, session_factory, checkpoint_day_clock):
        class TransientBoard(FakeMondayBoard):
            def __init__(self):
                super().__init__()
                self.failing = {"Audit a1"}

            def find_item_id(self, board_id, column_id, column_value):
                if column_value in self.failing:
                    raise MondayApiError("transient 500")
                return super().find_item_id(board_id, column_id, column_value)

        board = TransientBoard()
        store = PersistentCheckpointStore(session_factory, clock=checkpoint_day_clock)
        source = FakeSource({
            "a1": ("2024-06-01T09:30:00Z", _detail("a1", completed="2024-06-01T09:00:00Z")),
            "a2": ("2024-06-01T10:00:00Z", _detail("a2", completed="2024-06-01T10:00:00Z")),
        })
        service = _service(source, board, column_mapping, store, checkpoint_day_clock)

        first = service.run_once()
        assert first.failed_ids == ["a1"]
        assert store.pending() == {"a1": datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)}

        board.failing.clear()
        source.detail_calls.clear()
        second = service.run_once()

        assert "a1" in source.detail_calls
        assert second.created == 1
        assert second.failed == 0
        assert store.pending() == {}
        assert store.load() == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)

    def test_failed_detail_fetch_is_retried_on_next_run(self, fake_board, column_mapping, session_factory, checkpoint_day_clock):
        store = PersistentCheckpointStore(session_factory, clock=checkpoint_day_clock)
        source = FakeSource({
            "a1": ("2024-06-01T09:30:00Z", SourceFetchFailedException("a1", "HTTP 500", 500)),
            "a2": ("2024-06-01T10:00:00Z", _detail("a2", completed="2024-06-01T10:00:00Z")),
        })
        service = _service(source, fake_board, column_mapping, store, checkpoint_day_clock)

        service.run_once()
        source.audits["a1"] = ("2024-06-01T09:30:00Z", _detail("a1", completed="2024-06-01T09:00:00Z"))
        source.detail_calls.clear()
        second = service.run_once()

        assert source.detail_calls == ["a1", "a2"]
        assert (second.created, second.updated) == (1, 1)
        assert store.pending() == {}

    def test_pending_audit_missing_from_search_is_dropped(self, fake_board, column_mapping, session_factory, checkpoint_day_clock):
        store = PersistentCheckpointStore(session_factory, clock=checkpoint_day_clock)
        store.record_failure("gone", datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc), "HTTP 500")
        source = FakeSource({"a2": ("2024-06-01T10:00:00Z", _detail("a2", completed="2024-06-01T10:00:00Z"))})
        service = _service(source, fake_board, column_mapping, store, checkpoint_day_clock)

        service.run_once()

        assert store.pending() == {}
        assert store.load() == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)

    def test_dry_run_leaves_failure_ledger_untouched(self, column_mapping, session_factory, checkpoint_day_clock):
        store = PersistentCheckpointStore(session_factory, clock=checkpoint_day_clock)
        source = FakeSource({"a1": ("2024-06-01T09:30:00Z", SourceFetchFailedException("a1", "HTTP 500", 500))})
        service = _service(source, FakeMondayBoard(), column_mapping, store, checkpoint_day_clock)

        result = service.run_once(dry_run=True)

        assert result.failed == 1
        assert store.pending() == {}


class TestBuildFromSettings:
    def test_missing_config_fails_before_building_clients(self):
        with pytest.raises(ConfigMissingException):
            build_from_settings(Settings(_env_file=None, SAFETYCULTURE_API_TOKEN="", MONDAY_API_TOKEN=""))

    def test_builds_service_with_configured_columns(self):
        settings = Settings(
            _env_file=None,
            SAFETYCULTURE_API_TOKEN="sc",
            SAFETYCULTURE_TEMPLATE_ID="template_1",
            MONDAY_API_TOKEN="mn",
            MONDAY_BOARD_ID=123,
            CHECKPOINT_POLICY="today",
        )
        service = build_from_settings(settings)
        assert isinstance(service.checkpoint_store, TodayCheckpointStore)

        mapping = column_mapping_from_settings(settings)
        assert mapping.column_type(settings.MONDAY_COLUMN_COMPLETED).value == "date"
