from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any


class Priority(StrEnum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    Priority.critical: 4,
    Priority.high: 3,
    Priority.medium: 2,
    Priority.low: 1,
}


class EquipmentFamily(StrEnum):
    refrigeration = "refrigeration"
    surgical = "surgical"


class MaintenanceStatus(StrEnum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"
    pending = "pending"


class ShortfallCause(StrEnum):
    hours = "hours"
    events = "events"
    calendar = "calendar"


@dataclass(frozen=True)
class RawEquipmentRecord:
    code: str
    label: str
    unit_count: int
    frequency_text: str | None = None
    maintenance_type_text: str | None = None
    duration_text: str | None = None


@dataclass(frozen=True)
class MaintenanceTask:
    """One equipment class's recurring maintenance requirement.

    ``duration_hours`` is the time for one unit; a scheduled instance
    services ``session_size`` units at once, so it consumes
    ``duration_hours * session_size`` technician-hours on its day.
    """

    id: str
    code: str
    label: str
    frequency_days: int
    duration_hours: float
    unit_count: int
    session_size: int
    priority: Priority
    preferred_months: tuple[int, ...] = ()
    family: EquipmentFamily | None = None
    frequency_text: str = ""
    maintenance_type_text: str = ""
    equipment_units: tuple[str, ...] = ()

    @property
    def instance_hours(self) -> float:
        return self.duration_hours * self.session_size

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "label": self.label,
            "frequency_days": self.frequency_days,
            "duration_hours": self.duration_hours,
            "unit_count": self.unit_count,
            "session_size": self.session_size,
            "priority": self.priority.value,
            "preferred_months": list(self.preferred_months),
            "family": self.family.value if self.family else None,
            "frequency_text": self.frequency_text,
            "maintenance_type_text": self.maintenance_type_text,
            "equipment_units": list(self.equipment_units),
        }


@dataclass(frozen=True)
class ScheduledMaintenance:
    task: MaintenanceTask
    id: str
    scheduled_date: date
    instance_number: int
    assigned_technician: str
    status: MaintenanceStatus = MaintenanceStatus.scheduled
    notes: str | None = None

    @property
    def hours(self) -> float:
        return self.task.instance_hours

    def to_dict(self) -> dict[str, Any]:
        payload = self.task.to_dict()
        payload.update(
            {
                "id": self.id,
                "task_id": self.task.id,
                "scheduled_date": self.scheduled_date,
                "instance_number": self.instance_number,
                "assigned_technician": self.assigned_technician,
                "status": self.status.value,
                "notes": self.notes,
                "hours": self.hours,
            },
        )
        return payload


@dataclass
class WorkingConstraints:
    hours_per_day: float = 7.0
    technician_count: int = 2
    max_events_per_day: int = 3
    work_saturdays: bool = False
    emergency_reserve_hours: float = 1.0

    @property
    def usable_hours_per_day(self) -> float:
        return self.hours_per_day - self.emergency_reserve_hours

    @property
    def daily_capacity_hours(self) -> float:
        return self.usable_hours_per_day * self.technician_count


@dataclass
class DailyWorkload:
    hours_used: float = 0.0
    event_count: int = 0


@dataclass(frozen=True)
class GenerationProgress:
    current: int
    total: int
    current_task: str


ProgressCallback = Callable[[GenerationProgress], None]


@dataclass(frozen=True)
class PlacementShortfall:
    task_id: str
    label: str
    instance_number: int
    required_hours: float
    reason: str
    cause: ShortfallCause


@dataclass(frozen=True)
class MonthlyScheduleStats:
    month: str
    event_count: int
    hours: float


@dataclass(frozen=True)
class ComplianceSummary:
    required_hours: float
    placed_hours: float
    required_instances: int
    placed_instances: int
    dropped_instances: int
    technician_count_requested: int
    technician_count_used: int
    active_day_count: int
    working_day_count: int
    utilization_percent: float
    active_day_utilization_percent: float
    monthly: list[MonthlyScheduleStats] = field(default_factory=list)
    shortfalls: list[PlacementShortfall] = field(default_factory=list)

    @property
    def technicians_adjusted(self) -> bool:
        return self.technician_count_used != self.technician_count_requested


@dataclass(frozen=True)
class ScheduleResult:
    items: list[ScheduledMaintenance]
    summary: ComplianceSummary
