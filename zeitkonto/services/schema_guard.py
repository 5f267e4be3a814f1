from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from zeitkonto.models import EntryType


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "time_entries": {"id", "user_id", "day_date", "start_time", "end_time", "duration", "type", "description"},
    "user_settings": {"id", "user_id", "weekly_work_hours", "work_days", "timezone"},
    "reviewed_days": {"id", "user_id", "day_date", "reviewed_at"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "entry_type": {item.value for item in EntryType},
}


def _check_columns(inspector: Any) -> list[str]:
    issues: list[str] = []
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except Exception as exc:  # pragma: no cover - depends on the database driver
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        missing_columns = sorted(required_columns - column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")
    return issues


def _check_enums(inspector: Any, warnings: list[str]) -> list[str]:
    try:
        enums = inspector.get_enums() or []
    except Exception as exc:  # pragma: no cover - non-postgres inspectors
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return []

    labels_by_name = {
        str(item.get("name")): {str(label) for label in item.get("labels") or []}
        for item in enums
        if item.get("name")
    }
    issues: list[str] = []
    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        if enum_name not in labels_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing_values = sorted(required_values - labels_by_name[enum_name])
        if missing_values:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")
    return issues


def _check_alembic_version(engine: Engine) -> list[str]:
    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except Exception as exc:  # pragma: no cover - depends on the database driver
        return [f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}"]
    if not (str(row).strip() if row is not None else ""):
        return ["ALEMBIC_VERSION_EMPTY"]
    return []


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    warnings: list[str] = []
    inspector = inspect(engine)
    issues = _check_columns(inspector) + _check_enums(inspector, warnings) + _check_alembic_version(engine)
    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=datetime.now(timezone.utc),
        issues=issues,
        warnings=warnings,
    )
