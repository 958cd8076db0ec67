from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import math

from app.services.maintenance_models import MaintenanceTask
from app.services.maintenance_normalizer import get_equipment_family_profile, instances_per_year

MONTH_KEYS: tuple[str, ...] = (
    "ene",
    "feb",
    "mar",
    "abr",
    "may",
    "jun",
    "jul",
    "ago",
    "sep",
    "oct",
    "nov",
    "dic",
)
_MONTHS_PER_YEAR = 12
_WORKING_DAYS_PER_WEEK = 5
# Month values are computed in hundredths of an hour so they can be summed exactly.
_UNITS_PER_HOUR = 100


@dataclass(frozen=True)
class MonthlyExportRow:
    task_id: str
    code: str
    label: str
    unit_count: int
    maintenance_type_text: str
    frequency_text: str
    hours_per_maintenance: float
    annual_hours: float
    months: dict[str, float]


@dataclass(frozen=True)
class MonthlyExport:
    rows: list[MonthlyExportRow]
    monthly_totals: dict[str, float] = field(default_factory=dict)
    total_hours: float = 0.0
    annual_hours_per_technician: float = 0.0
    technicians_needed: int = 0


def annual_hours(task: MaintenanceTask) -> float:
    """Yearly workload of an equipment class when every unit is serviced."""
    return round(instances_per_year(task.frequency_days) * task.duration_hours * task.unit_count, 2)


def distribute_monthly(
    task: MaintenanceTask,
    total_annual_hours: float | None = None,
) -> dict[str, float]:
    """Split a task's annual hours into the twelve report months.

    Monthly or denser tasks get a flat split, bent by the seasonal weights of
    their equipment family. Sparser tasks land each instance entirely inside
    one month, chosen from the family's preferred months or spread over the
    year. Afterwards the values are reconciled so they add up to the annual
    total and no month of a task with hours reads zero.
    """
    total = annual_hours(task) if total_annual_hours is None else total_annual_hours
    total_units = max(0, round(total * _UNITS_PER_HOUR))
    values = [0] * _MONTHS_PER_YEAR
    if total_units == 0:
        return _to_hours(values)

    occurrences = instances_per_year(task.frequency_days)
    profile = get_equipment_family_profile(task.family)
    if occurrences >= _MONTHS_PER_YEAR:
        flat_share = total_units / _MONTHS_PER_YEAR
        for month in range(_MONTHS_PER_YEAR):
            weight = profile.seasonal_weights.get(month, 1.0) if profile else 1.0
            values[month] = round(flat_share * weight)
    else:
        target_months = profile.preferred_months if profile else tuple(range(_MONTHS_PER_YEAR))
        units_per_instance = total_units // occurrences
        for occurrence in range(occurrences):
            month = target_months[occurrence * len(target_months) // occurrences]
            values[month] += units_per_instance

    return _to_hours(_reconcile(values, total_units))


def build_monthly_export(
    tasks: Iterable[MaintenanceTask],
    *,
    hours_per_day: float = 7.0,
    working_weeks_per_year: int = 50,
) -> MonthlyExport:
    rows: list[MonthlyExportRow] = []
    monthly_total_units = [0] * _MONTHS_PER_YEAR
    for task in tasks:
        task_annual_hours = annual_hours(task)
        months = distribute_monthly(task, task_annual_hours)
        for index, month_key in enumerate(MONTH_KEYS):
            monthly_total_units[index] += round(months[month_key] * _UNITS_PER_HOUR)
        rows.append(
            MonthlyExportRow(
                task_id=task.id,
                code=task.code,
                label=task.label,
                unit_count=task.unit_count,
                maintenance_type_text=task.maintenance_type_text,
                frequency_text=task.frequency_text,
                hours_per_maintenance=task.duration_hours,
                annual_hours=task_annual_hours,
                months=months,
            ),
        )

    total_hours = sum(monthly_total_units) / _UNITS_PER_HOUR
    hours_per_technician = hours_per_day * _WORKING_DAYS_PER_WEEK * working_weeks_per_year
    technicians_needed = 0
    if total_hours > 0 and hours_per_technician > 0:
        technicians_needed = math.ceil(total_hours / hours_per_technician)

    return MonthlyExport(
        rows=rows,
        monthly_totals=_to_hours(monthly_total_units),
        total_hours=total_hours,
        annual_hours_per_technician=hours_per_technician,
        technicians_needed=technicians_needed,
    )


def _reconcile(values: list[int], total_units: int) -> list[int]:
    reconciled = list(values)
    residual = total_units - sum(reconciled)
    if residual:
        active_months = [month for month, value in enumerate(reconciled) if value > 0]
        receiving_months = active_months or list(range(_MONTHS_PER_YEAR))
        share, remainder = divmod(residual, len(receiving_months))
        for position, month in enumerate(receiving_months):
            reconciled[month] += share + (1 if position < remainder else 0)
    reconciled = [max(0, value) for value in reconciled]

    floor_units = 0
    if 0 in reconciled and total_units >= _MONTHS_PER_YEAR:
        floor_units = max(1, total_units // 24)
        reconciled = [value if value > 0 else floor_units for value in reconciled]

    excess = sum(reconciled) - total_units
    # Trim the largest months down towards the next level, never below the floor.
    while excess > 0:
        top = max(reconciled)
        tied_months = [month for month, value in enumerate(reconciled) if value == top]
        next_level = max(
            max((value for value in reconciled if value < top), default=floor_units),
            floor_units,
        )
        reducible = top - next_level
        if reducible <= 0:
            break
        cut = min(excess, reducible * len(tied_months))
        share, remainder = divmod(cut, len(tied_months))
        for position, month in enumerate(tied_months):
            reconciled[month] -= share + (1 if position < remainder else 0)
        excess -= cut
    if excess < 0:
        reconciled[reconciled.index(max(reconciled))] -= excess
    return reconciled


def _to_hours(values: list[int]) -> dict[str, float]:
    return {month_key: values[index] / _UNITS_PER_HOUR for index, month_key in enumerate(MONTH_KEYS)}
