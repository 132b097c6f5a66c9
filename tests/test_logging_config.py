import logging

from sheetflow.core import logging_config


def test_configure_logging_sets_service_and_http_client_levels(monkeypatch):
    monkeypatch.setattr(logging_config, "_is_configured", False)

    logging_config.configure_logging("debug")

    assert logging.getLogger("sheetflow").level == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_configure_logging_runs_once(monkeypatch):
    monkeypatch.setattr(logging_config, "_is_configured", True)
    before = logging.getLogger("sheetflow").level

    logging_config.configure_logging("ERROR")

    assert logging.getLogger("sheetflow").level == before
