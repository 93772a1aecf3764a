"""Tests for the system_logs handler."""

from __future__ import annotations

import json
import logging

from scribe.db import get_recent_logs
from scribe.logs import SystemLogHandler


def test_records_are_persisted_with_details(sample_config, db_conn):
    handler = SystemLogHandler(sample_config["database"]["path"])
    log = logging.getLogger("scribe.test_component")
    log.addHandler(handler)
    try:
        log.debug("ignored below INFO")
        log.warning("Duplicate content detected", extra={"details": {"similarity": 0.85}})
        try:
            raise RuntimeError("kaput")
        except RuntimeError:
            log.exception("Run failed")
    finally:
        log.removeHandler(handler)

    error, warning = get_recent_logs(db_conn)
    assert warning["log_level"] == "warning"
    assert warning["component"] == "scribe.test_component"
    assert json.loads(warning["details"]) == {"similarity": 0.85}
    assert error["log_level"] == "error"
    assert "kaput" in json.loads(error["details"])["error"]
