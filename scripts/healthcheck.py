#!/usr/bin/env python3
"""Rotaflow Health Check — verify the API and its database are operational.

Checks:
  1. Backend API responds on /api/v1/health (HTTP 200, valid JSON)
  2. Database accepts connections (SELECT 1 over the sync URL)
  3. No time entries left open for longer than a shift can last

Usage:
    python scripts/healthcheck.py                                # check http://localhost:8000
    python scripts/healthcheck.py --url https://rota.example.com
    python scripts/healthcheck.py --skip-db                      # API only
    python scripts/healthcheck.py --json                         # machine-readable output

Exit codes:
    0 = all checks passed
    1 = one or more checks failed
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from typing import Optional

import psycopg2
import requests

STALE_ENTRY_HOURS = 16

# ══════════════════════════════════════════════════════════════════════
# Check result model
# ══════════════════════════════════════════════════════════════════════


class CheckResult:
    """Single health check result."""

    def __init__(self, name: str, passed: bool, message: str,
                 detail: str = "", severity: str = "error"):
        self.name = name
        self.passed = passed
        self.message = message
        self.detail = detail
        self.severity = severity  # "error", "warning", "info"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "detail": self.detail,
            "severity": self.severity,
        }

    def __str__(self) -> str:
        icon = "OK " if self.passed else ("WARN" if self.severity == "warning" else "FAIL")
        s = f"[{icon}] {self.name}: {self.message}"
        if self.detail:
            s += f"\n       {self.detail}"
        return s


# ══════════════════════════════════════════════════════════════════════
# Health checks
# ══════════════════════════════════════════════════════════════════════

def check_backend_health(base_url: str, timeout: int = 10) -> CheckResult:
    """Check that the backend API /api/v1/health responds correctly."""
    health_url = f"{base_url.rstrip('/')}/api/v1/health"
    try:
        resp = requests.get(health_url, timeout=timeout)
    except requests.exceptions.ConnectionError as e:
        return CheckResult("Backend API", False, "Cannot connect to backend", str(e))
    except requests.exceptions.Timeout:
        return CheckResult("Backend API", False, f"Timed out after {timeout}s", f"URL: {health_url}")

    if resp.status_code != 200:
        return CheckResult(
            "Backend API", False,
            f"HTTP {resp.status_code} (expected 200)",
            f"URL: {health_url}",
        )
    try:
        body = resp.json()
    except ValueError:
        return CheckResult("Backend API", False, "Response is not JSON", resp.text[:200])

    if body.get("status") != "healthy":
        return CheckResult(
            "Backend API", False,
            f"Status: {body.get('status', 'missing')} (expected 'healthy')",
            f"Response: {json.dumps(body)}",
        )
    return CheckResult(
        "Backend API", True,
        f"Healthy (v{body.get('version', 'unknown')}, {body.get('environment', 'unknown')})",
        f"URL: {health_url}",
    )


def check_database(dsn: str, stale_hours: int = STALE_ENTRY_HOURS) -> list[CheckResult]:
    """Connectivity, then a count of time entries open longer than *stale_hours*."""
    try:
        conn = psycopg2.connect(dsn, connect_timeout=5)
    except psycopg2.OperationalError as e:
        return [CheckResult("Database", False, "Cannot connect to database", str(e).strip())]

    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
            cur.execute(
                "SELECT COUNT(*) FROM time_entries "
                "WHERE status IN ('in-progress', 'break') "
                "AND clock_in < NOW() - make_interval(hours => %s)",
                (stale_hours,),
            )
            (stale,) = cur.fetchone()
    except psycopg2.Error as e:
        return [
            CheckResult("Database", True, "Connected"),
            CheckResult("Open Time Entries", False, "Query failed", str(e).strip()),
        ]
    finally:
        conn.close()

    results = [CheckResult("Database", True, "Connected")]
    if stale:
        results.append(CheckResult(
            "Open Time Entries", True,
            f"{stale} entries open for more than {stale_hours}h",
            "Employees may have forgotten to clock out; review the timesheet.",
            severity="warning",
        ))
    else:
        results.append(CheckResult("Open Time Entries", True, "No stale clock-ins"))
    return results


# ══════════════════════════════════════════════════════════════════════
# Runner
# ══════════════════════════════════════════════════════════════════════

def run_healthcheck(
    url: str = "http://localhost:8000",
    dsn: Optional[str] = None,
    skip_db: bool = False,
    timeout: int = 10,
) -> list[CheckResult]:
    """Run all health checks and return results."""
    results: list[CheckResult] = [check_backend_health(url, timeout=timeout)]

    if skip_db:
        results.append(CheckResult("Database", True, "Skipped (--skip-db)", severity="info"))
    else:
        if dsn is None:
            from rotaflow.config import settings

            dsn = settings.DATABASE_URL_SYNC
        results.extend(check_database(dsn))
    return results


def main():
    parser = argparse.ArgumentParser(
        description="Rotaflow Health Check",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/healthcheck.py                                  # full check
  python scripts/healthcheck.py --url https://rota.example.com --skip-db
  python scripts/healthcheck.py --json                           # JSON output
""",
    )
    parser.add_argument("--url", type=str, default="http://localhost:8000",
                        help="Base URL to check (default: http://localhost:8000)")
    parser.add_argument("--dsn", type=str, default=None,
                        help="PostgreSQL DSN (default: DATABASE_URL_SYNC from settings)")
    parser.add_argument("--skip-db", action="store_true",
                        help="Skip database checks")
    parser.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")
    parser.add_argument("--timeout", type=int, default=10,
                        help="HTTP timeout in seconds (default: 10)")
    args = parser.parse_args()

    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    results = run_healthcheck(
        url=args.url, dsn=args.dsn, skip_db=args.skip_db, timeout=args.timeout,
    )

    if args.output_json:
        print(json.dumps({
            "timestamp": now,
            "target": args.url,
            "checks": [r.to_dict() for r in results],
            "all_passed": all(r.passed for r in results),
        }, indent=2))
    else:
        print(f"{'=' * 60}\n  ROTAFLOW HEALTH CHECK\n  Target : {args.url}\n  Time   : {now}\n{'=' * 60}")
        for result in results:
            print(result)
        failed = sum(1 for r in results if not r.passed)
        print("=" * 60)
        print(f"  {failed}/{len(results)} CHECKS FAILED" if failed else f"  ALL {len(results)} CHECKS PASSED")

    sys.exit(1 if any(not r.passed for r in results) else 0)


if __name__ == "__main__":
    main()
