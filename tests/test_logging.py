"""Tests for the structured log helpers."""

import logging

from commercialx.core.logging import log_db_query, log_external_call, log_resolution


class TestLogHelpers:
    def test_db_query_includes_row_count(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="commercialx"):
            log_db_query("select", "vehicle", 12.5, rows=3)
        assert "DB select table=vehicle rows=3 duration_ms=12.50" in caplog.text

    def test_failed_external_call_is_a_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="commercialx"):
            log_external_call("nhtsa", "decode_vin", False, status_code=503)
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "http_status=503" in record.getMessage()

    def test_resolution_outcome(self, caplog):
        with caplog.at_level(logging.INFO, logger="commercialx"):
            log_resolution("vehicle", 4, 9, created=False, competing=2)
        assert "CATALOG vehicle matched id=4 config_id=9 competing=2" in caplog.text
