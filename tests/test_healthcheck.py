"""Operational health check script — API probe and database checks, mocked."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg2
import pytest
import requests

_SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "healthcheck.py"
_spec = importlib.util.spec_from_file_location("rotaflow_healthcheck", _SCRIPT)
healthcheck = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(healthcheck)


def _response(status_code: int = 200, body=None) -> MagicMock:
    resp = MagicMock(status_code=status_code, text="<html>")
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def _connection(*rows) -> MagicMock:
    cursor = MagicMock()
    cursor.fetchone.side_effect = list(rows)
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    return conn


class TestBackendCheck:

    def test_healthy(self):
        body = {"status": "healthy", "version": "1.0.0", "environment": "staging"}
        with patch.object(healthcheck.requests, "get", return_value=_response(body=body)) as get:
            result = healthcheck.check_backend_health("http://rota.test/", timeout=3)

        get.assert_called_once_with("http://rota.test/api/v1/health", timeout=3)
        assert result.passed
        assert result.message == "Healthy (v1.0.0, staging)"

    def test_connection_refused(self):
        with patch.object(
            healthcheck.requests, "get", side_effect=requests.exceptions.ConnectionError("refused"),
        ):
            result = healthcheck.check_backend_health("http://rota.test")

        assert not result.passed
        assert result.message == "Cannot connect to backend"

    def test_timeout(self):
        with patch.object(healthcheck.requests, "get", side_effect=requests.exceptions.Timeout()):
            result = healthcheck.check_backend_health("http://rota.test", timeout=2)

        assert result.message == "Timed out after 2s"

    @pytest.mark.parametrize("resp, message", [
        (_response(503, {"status": "down"}), "HTTP 503 (expected 200)"),
        (_response(200), "Response is not JSON"),
        (_response(200, {"status": "degraded"}), "Status: degraded (expected 'healthy')"),
    ])
    def test_unhealthy_responses(self, resp, message):
        with patch.object(healthcheck.requests, "get", return_value=resp):
            result = healthcheck.check_backend_health("http://rota.test")

        assert not result.passed
        assert result.message == message


class TestDatabaseCheck:

    def test_connected_without_stale_entries(self):
        conn = _connection((1,), (0,))
        with patch.object(healthcheck.psycopg2, "connect", return_value=conn) as connect:
            results = healthcheck.check_database("postgresql://rota@db/rota")

        connect.assert_called_once_with("postgresql://rota@db/rota", connect_timeout=5)
        assert [(r.name, r.passed) for r in results] == [
            ("Database", True), ("Open Time Entries", True),
        ]
        assert results[1].message == "No stale clock-ins"
        conn.close.assert_called_once()

    def test_stale_entries_warn(self):
        with patch.object(healthcheck.psycopg2, "connect", return_value=_connection((1,), (3,))):
            results = healthcheck.check_database("postgresql://rota@db/rota", stale_hours=12)

        assert results[1].severity == "warning"
        assert results[1].message == "3 entries open for more than 12h"

    def test_cannot_connect(self):
        with patch.object(
            healthcheck.psycopg2, "connect", side_effect=psycopg2.OperationalError("no route to host"),
        ):
            results = healthcheck.check_database("postgresql://rota@db/rota")

        assert len(results) == 1
        assert not results[0].passed
        assert results[0].detail == "no route to host"

    def test_query_failure_still_closes(self):
        conn = _connection((1,))
        cursor = conn.cursor.return_value.__enter__.return_value
        cursor.execute.side_effect = [None, psycopg2.Error("relation does not exist")]
        with patch.object(healthcheck.psycopg2, "connect", return_value=conn):
            results = healthcheck.check_database("postgresql://rota@db/rota")

        assert [r.passed for r in results] == [True, False]
        conn.close.assert_called_once()


class TestRunner:

    def test_skip_db(self):
        body = {"status": "healthy", "version": "1.0.0", "environment": "test"}
        with patch.object(healthcheck.requests, "get", return_value=_response(body=body)):
            results = healthcheck.run_healthcheck("http://rota.test", skip_db=True)

        assert [r.name for r in results] == ["Backend API", "Database"]
        assert results[1].severity == "info"
        assert all(r.passed for r in results)

    def test_check_result_rendering(self):
        result = healthcheck.CheckResult("Database", False, "Cannot connect", "timeout")

        assert str(result) == "[FAIL] Database: Cannot connect\n       timeout"
        assert result.to_dict()["severity"] == "error"
