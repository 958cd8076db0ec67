from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import math
import re

from app.services.maintenance_models import MaintenanceTask, RawEquipmentRecord
from app.services.maintenance_normalizer import (
    classify_priority,
    find_equipment_family_profile,
    normalize_for_matching,
    parse_duration_hours,
    parse_frequency_to_days,
)

MAX_SESSION_SIZE = 5
_UNITS_PER_SESSION_DIVISOR = 4
_PLACEHOLDER_PATTERN = re.compile(r"\b(?:no especificad[oa]|sin datos|n/?a|desconocid[oa])\b")


@dataclass(frozen=True)
class IncompleteRecord:
    code: str
    label: str
    missing_fields: list[str]
    reason: str


def build_tasks(
    records: Iterable[RawEquipmentRecord],
    *,
    id_prefix: str = "task",
    start_index: int = 0,
) -> list[MaintenanceTask]:
    """Turn raw equipment-class records into scheduling tasks.

    Every record yields exactly one task; unparseable text falls back to the
    normalizer defaults instead of dropping the equipment class. Task ids
    number records from ``start_index`` so later batches can avoid ids
    already handed out.
    """
    return [
        build_task(record, index=index, id_prefix=id_prefix)
        for index, record in enumerate(records, start=start_index)
    ]


def build_task(
    record: RawEquipmentRecord,
    *,
    index: int = 0,
    id_prefix: str = "task",
) -> MaintenanceTask:
    unit_count = max(1, int(record.unit_count or 0))
    session_size = compute_session_size(unit_count)
    profile = find_equipment_family_profile(record.label)
    label = record.label.strip() if record.label else ""
    code = record.code.strip() if record.code else ""

    return MaintenanceTask(
        id=f"{id_prefix}-{code or 'sin-codigo'}-{index}",
        code=code,
        label=label,
        frequency_days=parse_frequency_to_days(record.frequency_text),
        duration_hours=parse_duration_hours(record.duration_text),
        unit_count=unit_count,
        session_size=session_size,
        priority=classify_priority(record.maintenance_type_text),
        preferred_months=profile.preferred_months if profile else (),
        family=profile.family if profile else None,
        frequency_text=(record.frequency_text or "").strip(),
        maintenance_type_text=(record.maintenance_type_text or "").strip(),
        equipment_units=tuple(f"{label} #{position}" for position in range(1, session_size + 1)),
    )


def compute_session_size(unit_count: int) -> int:
    return min(MAX_SESSION_SIZE, max(1, math.ceil(unit_count / _UNITS_PER_SESSION_DIVISOR)))


def find_incomplete_records(records: Iterable[RawEquipmentRecord]) -> list[IncompleteRecord]:
    incomplete: list[IncompleteRecord] = []
    for record in records:
        missing_fields: list[str] = []
        if _is_missing_text(record.frequency_text):
            missing_fields.append("frequency")
        if _is_missing_text(record.maintenance_type_text):
            missing_fields.append("maintenance_type")
        if not missing_fields:
            continue
        incomplete.append(
            IncompleteRecord(
                code=record.code,
                label=record.label,
                missing_fields=missing_fields,
                reason=f"Missing data: {', '.join(missing_fields)}. Defaults applied.",
            ),
        )
    return incomplete


def _is_missing_text(value: str | None) -> bool:
    if not value or not value.strip():
        return True
    return bool(_PLACEHOLDER_PATTERN.search(normalize_for_matching(value)))
