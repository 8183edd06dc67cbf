"""
Tests para la configuracion del job.
"""
import json

import pytest

from audit_sync.core.config import Settings, load_settings, validate_required
from audit_sync.shared.exceptions import ConfigMissingException


def _complete(**overrides) -> Settings:
    values = dict(
        SAFETYCULTURE_API_TOKEN="sc",
        SAFETYCULTURE_TEMPLATE_ID="template_1",
        MONDAY_API_TOKEN="mn",
        MONDAY_BOARD_ID=123,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_complete_settings_pass_validation():
    validate_required(_complete())


def test_missing_values_are_all_reported():
    settings = _complete(SAFETYCULTURE_API_TOKEN="", MONDAY_BOARD_ID=0)
    with pytest.raises(ConfigMissingException) as exc:
        validate_required(settings)
    assert exc.value.missing == ["SAFETYCULTURE_API_TOKEN", "MONDAY_BOARD_ID"]


def test_tokens_are_trimmed_and_whitespace_only_counts_as_missing():
    settings = _complete(MONDAY_API_TOKEN="  \n")
    assert settings.MONDAY_API_TOKEN == ""
    with pytest.raises(ConfigMissingException):
        validate_required(settings)


def test_unknown_checkpoint_policy_is_rejected():
    with pytest.raises(ConfigMissingException):
        validate_required(_complete(CHECKPOINT_POLICY="Yesterday"))


def test_default_board_column_ids():
    settings = _complete()
    assert settings.MONDAY_COLUMN_CREATED == "date4"
    assert settings.MONDAY_COLUMN_SCORE == "numeric_mksscore"
    assert settings.MONDAY_KEY_COLUMN == "name"
    assert settings.CHECKPOINT_POLICY == "today"


def test_load_settings_from_json_file_overrides_env(tmp_path, monkeypatch):
    monkeypatch.setenv("MONDAY_BOARD_ID", "1")
    config = tmp_path / "appsettings.json"
    config.write_text(json.dumps({"MONDAY_BOARD_ID": 456, "CHECKPOINT_POLICY": "persistent"}))

    settings = load_settings(config)

    assert settings.MONDAY_BOARD_ID == 456
    assert settings.CHECKPOINT_POLICY == "persistent"


def test_load_settings_missing_file(tmp_path):
    with pytest.raises(ConfigMissingException):
        load_settings(tmp_path / "nope.json")


def test_load_settings_invalid_json(tmp_path):
    config = tmp_path / "appsettings.json"
    config.write_text("{not json")
    with pytest.raises(ConfigMissingException):
        load_settings(config)


def test_malformed_env_value_is_reported_as_config_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MONDAY_BOARD_ID", "abc")

    with pytest.raises(ConfigMissingException) as exc:
        load_settings()

    assert exc.value.missing == ["MONDAY_BOARD_ID"]
    assert "MONDAY_BOARD_ID" in exc.value.message


def test_malformed_json_value_is_reported_as_config_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = tmp_path / "appsettings.json"
    config.write_text(json.dumps({"HTTP_TIMEOUT_S": "soon", "SYNC_REQUIRE_COMPLETE": "maybe"}))

    with pytest.raises(ConfigMissingException) as exc:
        load_settings(config)

    assert sorted(exc.value.missing) == ["HTTP_TIMEOUT_S", "SYNC_REQUIRE_COMPLETE"]
