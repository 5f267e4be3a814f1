#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import create_engine, text

from zeitkonto.services.entries import ADJUSTMENT_MARKER
from zeitkonto.settings import get_settings


EXPECTED_HEAD = "0001_initial"
REQUIRED_TABLES = ("time_entries", "user_settings", "reviewed_days")


def run(database_url: str | None = None) -> dict[str, Any]:
    database_url = database_url or get_settings().database_url
    engine = create_engine(database_url)
    report: dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict[str, Any]) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        missing_tables = [table for table in REQUIRED_TABLES if table not in tables]
        add("missing_tables", "fail" if missing_tables else "ok", {"tables": missing_tables})

        if "time_entries" in tables:
            # Only the earliest marker entry counts as the opening balance.
            duplicate_adjustments = conn.execute(
                text(
                    """
                    select user_id, count(*)
                    from time_entries
                    where description like :pattern
                    group by user_id
                    having count(*) > 1
                    """
                ),
                {"pattern": f"%{ADJUSTMENT_MARKER}%"},
            ).fetchall()
            add(
                "duplicate_overtime_adjustments",
                "warn" if duplicate_adjustments else "ok",
                {"rows": [list(row) for row in duplicate_adjustments]},
            )

            inverted_entries = conn.execute(
                text(
                    """
                    select id
                    from time_entries
                    where end_time < start_time or duration < 0 and type <> 'OVERTIME'
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "inverted_time_entries",
                "fail" if inverted_entries else "ok",
                {"sample_ids": [row[0] for row in inverted_entries]},
            )

        if "user_settings" in tables:
            empty_schedules = conn.execute(
                text(
                    """
                    select user_id
                    from user_settings
                    where cardinality(work_days) = 0
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "empty_work_day_schedules",
                "warn" if empty_schedules else "ok",
                {"sample_user_ids": [row[0] for row in empty_schedules]},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
