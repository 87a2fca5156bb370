from unittest.mock import patch

import pytest

from app import main
from errors import SyncError


@pytest.fixture
def loaded(base_config):
    with patch('app.load_config', return_value=base_config):
        yield base_config


@patch('app.run_sync')
def test_main_runs_once(mock_sync, loaded):
    assert main([]) == 0
    mock_sync.assert_called_once_with(loaded)


@patch('app.run_sync')
def test_main_reports_every_missing_input(mock_sync, loaded, caplog):
    loaded["trakt_username"] = ""
    loaded["imdb_cookie_at_main"] = ""

    assert main([]) == 1

    mock_sync.assert_not_called()
    assert "IMDB_COOKIE_AT_MAIN" in caplog.text
    assert "TRAKT_USERNAME" in caplog.text


@patch('app.run_sync')
def test_main_logs_failure_chain(mock_sync, loaded, caplog):
    try:
        raise ValueError("root cause")
    except ValueError as exc:
        error = SyncError("failure syncing lists")
        error.__cause__ = exc
    mock_sync.side_effect = error

    assert main([]) == 1
    assert "Sync failed" in caplog.text
    assert "root cause" in caplog.text


@patch('app.start_scheduler')
@patch('app.run_sync')
def test_main_uses_schedule(mock_sync, mock_start, loaded):
    loaded["sync_schedule"] = "0 * * * *"
    assert main([]) == 0
    mock_start.assert_called_once_with(loaded)
    mock_sync.assert_not_called()


@patch('app.start_scheduler')
@patch('app.run_sync')
def test_main_once_ignores_schedule(mock_sync, mock_start, loaded):
    loaded["sync_schedule"] = "0 * * * *"
    assert main(["--once"]) == 0
    mock_sync.assert_called_once()
    mock_start.assert_not_called()


@patch('app.load_config', side_effect=ValueError("Invalid config file"))
def test_main_bad_config_file(mock_load):
    assert main([]) == 1
