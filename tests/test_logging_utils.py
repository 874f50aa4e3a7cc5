from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from opsbot_safety import logging_utils


def _settings(log_file: str | None, level: str = "INFO") -> SimpleNamespace:
    return SimpleNamespace(
        logging=SimpleNamespace(level=level, file=log_file),
    )


@patch("opsbot_safety.logging_utils.load_settings")
@patch("opsbot_safety.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.INFO
    assert len(kwargs["handlers"]) == 1


@patch("opsbot_safety.logging_utils.load_settings")
@patch("opsbot_safety.logging_utils.logging.basicConfig")
def test_configure_logging_unknown_level_falls_back_to_info(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None, level="chatty")

    logging_utils.configure_logging()

    assert mock_basic_config.call_args.kwargs["level"] == logging.INFO


@patch("opsbot_safety.logging_utils.load_settings")
@patch("opsbot_safety.logging_utils.logging.basicConfig")
def test_configure_logging_with_file(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path: Path,
) -> None:
    log_file = tmp_path / "logs" / "opsbot.log"
    mock_load_settings.return_value = _settings(str(log_file), level="debug")

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["level"] == logging.DEBUG
    assert len(kwargs["handlers"]) == 2
    for handler in kwargs["handlers"]:
        handler.close()


@patch("opsbot_safety.logging_utils.load_settings")
@patch("opsbot_safety.logging_utils.logging.basicConfig")
@patch("opsbot_safety.logging_utils.logging.FileHandler", side_effect=OSError("permission denied"))
@patch("opsbot_safety.logging_utils._logger")
def test_configure_logging_file_handler_error(
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path: Path,
) -> None:
    mock_load_settings.return_value = _settings(str(tmp_path / "app.log"))

    logging_utils.configure_logging()

    mock_logger.warning.assert_called_once()
    assert len(mock_basic_config.call_args.kwargs["handlers"]) == 1


def test_get_logger_auto_configures(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    logger = logging_utils.get_logger("test.logger")
    logging_utils.get_logger("test.logger")
    assert logger.name == "test.logger"
    assert calls["count"] == 1


@patch("opsbot_safety.logging_utils.load_settings")
@patch("opsbot_safety.logging_utils.logging.basicConfig")
def test_configure_logging_uses_explicit_settings(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    logging_utils.configure_logging(_settings(None, level="WARNING"))

    mock_load_settings.assert_not_called()
    assert mock_basic_config.call_args.kwargs["level"] == logging.WARNING
