from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date, timedelta
import logging
import math

from app.services.maintenance_models import (
    ComplianceSummary,
    DailyWorkload,
    GenerationProgress,
    MaintenanceTask,
    MonthlyScheduleStats,
    PlacementShortfall,
    ProgressCallback,
    ScheduledMaintenance,
    ScheduleResult,
    ShortfallCause,
    WorkingConstraints,
)
from app.services.maintenance_normalizer import CANONICAL_YEARLY_INSTANCES, DAYS_PER_YEAR

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_WINDOW_DAYS = 15
_SATURDAY = 5
_SUNDAY = 6
_MONTHS_PER_YEAR = 12
_CAPACITY_TOLERANCE = 1e-9


class SchedulingConfigurationError(ValueError):
    pass


def compute_working_days(start_date: date, end_date: date, *, work_saturdays: bool) -> list[date]:
    working_days: list[date] = []
    current = start_date
    while current <= end_date:
        weekday = current.weekday()
        if weekday < _SATURDAY or (weekday == _SATURDAY and work_saturdays):
            working_days.append(current)
        current += timedelta(days=1)
    return working_days


class MaintenanceSchedulingEngine:
    """Greedy placement of recurring maintenance instances on working days.

    Each run owns its own daily workload map. Instances are spread evenly
    over the candidate days of their task, then nudged to the nearest day
    that still has technician-hours and event slots left. When the yearly
    demand cannot fit the crew, the technician count is raised before
    placement and reported back in the summary.
    """

    def __init__(
        self,
        start_date: date,
        end_date: date,
        constraints: WorkingConstraints | None = None,
        *,
        search_window_days: int = DEFAULT_SEARCH_WINDOW_DAYS,
        order_by_priority: bool = True,
    ) -> None:
        if end_date < start_date:
            raise SchedulingConfigurationError(
                f"Planning horizon ends ({end_date.isoformat()}) before it starts "
                f"({start_date.isoformat()}).",
            )
        self.start_date = start_date
        self.end_date = end_date
        self.constraints = constraints or WorkingConstraints()
        self.search_window_days = search_window_days
        self.order_by_priority = order_by_priority
        _validate_constraints(self.constraints, search_window_days=search_window_days)
        self.working_days = compute_working_days(
            start_date,
            end_date,
            work_saturdays=self.constraints.work_saturdays,
        )

    @property
    def horizon_days(self) -> int:
        return (self.end_date - self.start_date).days

    def required_instances(self, task: MaintenanceTask) -> int:
        canonical = CANONICAL_YEARLY_INSTANCES.get(task.frequency_days)
        covered_years = (self.horizon_days + 1) // DAYS_PER_YEAR
        if canonical is not None and covered_years >= 1:
            return canonical * covered_years
        return max(1, self.horizon_days // max(1, task.frequency_days))

    def generate_schedule(
        self,
        tasks: Sequence[MaintenanceTask],
        *,
        on_progress: ProgressCallback | None = None,
    ) -> ScheduleResult:
        return self._run(
            tasks,
            existing=(),
            allow_scaling=True,
            on_progress=on_progress,
        )

    def extend_schedule(
        self,
        existing: Iterable[ScheduledMaintenance],
        tasks: Sequence[MaintenanceTask],
        *,
        on_progress: ProgressCallback | None = None,
    ) -> ScheduleResult:
        """Place new tasks around an already accepted schedule.

        Existing events keep their dates and count against daily capacity;
        the crew size is not changed. Only the new events are returned.
        """
        return self._run(
            tasks,
            existing=existing,
            allow_scaling=False,
            on_progress=on_progress,
        )

    def _run(
        self,
        tasks: Sequence[MaintenanceTask],
        *,
        existing: Iterable[ScheduledMaintenance],
        allow_scaling: bool,
        on_progress: ProgressCallback | None,
    ) -> ScheduleResult:
        constraints = replace(self.constraints)
        technician_count_requested = constraints.technician_count
        demand = [(task, self.required_instances(task)) for task in self._order_tasks(tasks)]
        existing_events = list(existing)

        if allow_scaling:
            constraints.technician_count = self._required_technician_count(demand, constraints)

        items, shortfalls = self._place_all(demand, existing_events, constraints, on_progress)
        if allow_scaling:
            # Instances are never split, so hours can run out on days that
            # still have event slots. Grow the crew until only the event
            # ceiling or the calendar leaves instances unplaced.
            technician_limit = self._packing_technician_limit(demand, constraints)
            while (
                any(shortfall.cause == ShortfallCause.hours for shortfall in shortfalls)
                and constraints.technician_count < technician_limit
            ):
                constraints.technician_count += 1
                logger.debug(
                    "Re-placing with more technicians technicians=%s hours_shortfalls=%s",
                    constraints.technician_count,
                    sum(1 for shortfall in shortfalls if shortfall.cause == ShortfallCause.hours),
                )
                items, shortfalls = self._place_all(demand, existing_events, constraints, None)

            if constraints.technician_count != technician_count_requested:
                logger.warning(
                    "Technician count raised to fit demand requested=%s used=%s",
                    technician_count_requested,
                    constraints.technician_count,
                )

        if on_progress:
            on_progress(
                GenerationProgress(current=len(demand), total=len(demand), current_task=""),
            )

        items.sort(key=lambda item: item.scheduled_date)
        summary = self._build_summary(
            items=items,
            demand=demand,
            shortfalls=shortfalls,
            constraints=constraints,
            technician_count_requested=technician_count_requested,
        )
        logger.info(
            "Maintenance schedule generated tasks=%s working_days=%s technicians=%s/%s "
            "placed_instances=%s/%s",
            len(demand),
            summary.working_day_count,
            summary.technician_count_used,
            summary.technician_count_requested,
            summary.placed_instances,
            summary.required_instances,
        )
        if shortfalls:
            logger.warning(
                "Maintenance instances could not be placed dropped=%s",
                len(shortfalls),
            )
        return ScheduleResult(items=items, summary=summary)

    def _place_all(
        self,
        demand: Sequence[tuple[MaintenanceTask, int]],
        existing: Sequence[ScheduledMaintenance],
        constraints: WorkingConstraints,
        on_progress: ProgressCallback | None,
    ) -> tuple[list[ScheduledMaintenance], list[PlacementShortfall]]:
        workload = {day: DailyWorkload() for day in self.working_days}
        for event in existing:
            day_workload = workload.get(event.scheduled_date)
            if day_workload is None:
                continue
            day_workload.hours_used += event.hours
            day_workload.event_count += 1

        items: list[ScheduledMaintenance] = []
        shortfalls: list[PlacementShortfall] = []
        for position, (task, instances) in enumerate(demand):
            if on_progress:
                on_progress(
                    GenerationProgress(
                        current=position,
                        total=len(demand),
                        current_task=task.label,
                    ),
                )
            placed, missed = self._place_task(task, instances, workload, constraints)
            items.extend(placed)
            shortfalls.extend(missed)
            logger.debug(
                "Task placed task_id=%s frequency_days=%s instances=%s placed=%s",
                task.id,
                task.frequency_days,
                instances,
                len(placed),
            )
        return items, shortfalls

    def _order_tasks(self, tasks: Sequence[MaintenanceTask]) -> list[MaintenanceTask]:
        if not self.order_by_priority:
            return list(tasks)
        return sorted(tasks, key=lambda task: (-task.priority.rank, task.frequency_days))

    def _required_technician_count(
        self,
        demand: Sequence[tuple[MaintenanceTask, int]],
        constraints: WorkingConstraints,
    ) -> int:
        technician_count = constraints.technician_count
        if not demand or not self.working_days:
            return technician_count

        usable_hours = constraints.usable_hours_per_day
        required_hours = sum(task.instance_hours * instances for task, instances in demand)
        hours_per_technician = len(self.working_days) * usable_hours
        if required_hours > hours_per_technician * technician_count:
            technician_count = math.ceil(round(required_hours / hours_per_technician, 9))

        # A single instance is never split across days.
        largest_instance_hours = max(task.instance_hours for task, _ in demand)
        if largest_instance_hours > usable_hours * technician_count:
            technician_count = math.ceil(round(largest_instance_hours / usable_hours, 9))
        return technician_count

    def _packing_technician_limit(
        self,
        demand: Sequence[tuple[MaintenanceTask, int]],
        constraints: WorkingConstraints,
    ) -> int:
        """Crew size at which any day with a free event slot also has the hours for it."""
        if not demand:
            return constraints.technician_count
        largest_instance_hours = max(task.instance_hours for task, _ in demand)
        packing_hours = largest_instance_hours * constraints.max_events_per_day
        return max(
            constraints.technician_count,
            math.ceil(round(packing_hours / constraints.usable_hours_per_day, 9)),
        )

    def _place_task(
        self,
        task: MaintenanceTask,
        instances: int,
        workload: dict[date, DailyWorkload],
        constraints: WorkingConstraints,
    ) -> tuple[list[ScheduledMaintenance], list[PlacementShortfall]]:
        candidates = self._candidate_days(task, instances)
        placed: list[ScheduledMaintenance] = []
        missed: list[PlacementShortfall] = []
        if not candidates:
            for index in range(instances):
                missed.append(
                    self._shortfall(
                        task,
                        index,
                        "No working days in the planning horizon.",
                        ShortfallCause.calendar,
                    ),
                )
            return placed, missed

        for index in range(instances):
            target = min(len(candidates) - 1, round(index * len(candidates) / instances))
            day = self._search_near(candidates, target, task, workload, constraints)
            if day is None:
                day = self._first_available(candidates, task, workload, constraints)
            if day is None and candidates is not self.working_days:
                day = self._first_available(self.working_days, task, workload, constraints)
            if day is None:
                missed.append(self._capacity_shortfall(task, index, workload, constraints))
                continue

            day_workload = workload[day]
            day_workload.hours_used += task.instance_hours
            day_workload.event_count += 1
            placed.append(
                ScheduledMaintenance(
                    task=task,
                    id=f"{task.id}-{index + 1}",
                    scheduled_date=day,
                    instance_number=index + 1,
                    assigned_technician=f"Técnico {index % constraints.technician_count + 1}",
                    notes=f"Mantenimiento {index + 1}/{instances}",
                ),
            )
        return placed, missed

    def _candidate_days(self, task: MaintenanceTask, instances: int) -> list[date]:
        # Seasonal preference is soft and only shapes tasks less frequent than monthly.
        if not task.preferred_months or instances >= _MONTHS_PER_YEAR:
            return self.working_days
        preferred = set(task.preferred_months)
        seasonal_days = [day for day in self.working_days if day.month - 1 in preferred]
        if len(seasonal_days) < instances:
            return self.working_days
        return seasonal_days

    def _search_near(
        self,
        candidates: Sequence[date],
        target: int,
        task: MaintenanceTask,
        workload: dict[date, DailyWorkload],
        constraints: WorkingConstraints,
    ) -> date | None:
        if _fits(workload[candidates[target]], task, constraints):
            return candidates[target]
        for offset in range(1, self.search_window_days + 1):
            forward = target + offset
            if forward < len(candidates) and _fits(workload[candidates[forward]], task, constraints):
                return candidates[forward]
            backward = target - offset
            if backward >= 0 and _fits(workload[candidates[backward]], task, constraints):
                return candidates[backward]
        return None

    def _first_available(
        self,
        candidates: Sequence[date],
        task: MaintenanceTask,
        workload: dict[date, DailyWorkload],
        constraints: WorkingConstraints,
    ) -> date | None:
        for day in candidates:
            if _fits(workload[day], task, constraints):
                return day
        return None

    def _capacity_shortfall(
        self,
        task: MaintenanceTask,
        index: int,
        workload: dict[date, DailyWorkload],
        constraints: WorkingConstraints,
    ) -> PlacementShortfall:
        if all(
            workload[day].event_count >= constraints.max_events_per_day for day in self.working_days
        ):
            return self._shortfall(
                task,
                index,
                "Every working day has reached the daily event limit.",
                ShortfallCause.events,
            )
        return self._shortfall(
            task,
            index,
            "No working day has enough technician-hours left.",
            ShortfallCause.hours,
        )

    def _shortfall(
        self,
        task: MaintenanceTask,
        index: int,
        reason: str,
        cause: ShortfallCause,
    ) -> PlacementShortfall:
        return PlacementShortfall(
            task_id=task.id,
            label=task.label,
            instance_number=index + 1,
            required_hours=task.instance_hours,
            reason=reason,
            cause=cause,
        )

    def _build_summary(
        self,
        *,
        items: Sequence[ScheduledMaintenance],
        demand: Sequence[tuple[MaintenanceTask, int]],
        shortfalls: list[PlacementShortfall],
        constraints: WorkingConstraints,
        technician_count_requested: int,
    ) -> ComplianceSummary:
        required_hours = sum(task.instance_hours * instances for task, instances in demand)
        placed_hours = sum(item.hours for item in items)
        active_days = {item.scheduled_date for item in items}
        daily_capacity = constraints.daily_capacity_hours
        total_capacity = daily_capacity * len(self.working_days)
        active_capacity = daily_capacity * len(active_days)

        monthly_events: dict[str, int] = defaultdict(int)
        monthly_hours: dict[str, float] = defaultdict(float)
        for item in items:
            month_key = item.scheduled_date.strftime("%Y-%m")
            monthly_events[month_key] += 1
            monthly_hours[month_key] += item.hours

        return ComplianceSummary(
            required_hours=round(required_hours, 2),
            placed_hours=round(placed_hours, 2),
            required_instances=sum(instances for _, instances in demand),
            placed_instances=len(items),
            dropped_instances=len(shortfalls),
            technician_count_requested=technician_count_requested,
            technician_count_used=constraints.technician_count,
            active_day_count=len(active_days),
            working_day_count=len(self.working_days),
            utilization_percent=_percent(placed_hours, total_capacity),
            active_day_utilization_percent=_percent(placed_hours, active_capacity),
            monthly=[
                MonthlyScheduleStats(
                    month=month_key,
                    event_count=monthly_events[month_key],
                    hours=round(monthly_hours[month_key], 2),
                )
                for month_key in sorted(monthly_events)
            ],
            shortfalls=shortfalls,
        )


def _fits(day_workload: DailyWorkload, task: MaintenanceTask, constraints: WorkingConstraints) -> bool:
    return (
        day_workload.hours_used + task.instance_hours
        <= constraints.daily_capacity_hours + _CAPACITY_TOLERANCE
        and day_workload.event_count < constraints.max_events_per_day
    )


def _percent(value: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round(value / total * 100, 1)


def _validate_constraints(constraints: WorkingConstraints, *, search_window_days: int) -> None:
    if constraints.technician_count < 1:
        raise SchedulingConfigurationError("At least one technician is required.")
    if constraints.max_events_per_day < 1:
        raise SchedulingConfigurationError("At least one event per day must be allowed.")
    if constraints.emergency_reserve_hours < 0:
        raise SchedulingConfigurationError("Emergency reserve hours cannot be negative.")
    if constraints.usable_hours_per_day <= 0:
        raise SchedulingConfigurationError(
            "Hours per day must exceed the emergency reserve hours.",
        )
    if search_window_days < 0:
        raise SchedulingConfigurationError("Search window cannot be negative.")
