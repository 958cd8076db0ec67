from collections import defaultdict
from datetime import date

import pytest

from app.services.maintenance_models import (
    EquipmentFamily,
    GenerationProgress,
    MaintenanceTask,
    Priority,
    ShortfallCause,
    WorkingConstraints,
)
from app.services.maintenance_scheduling_engine import (
    MaintenanceSchedulingEngine,
    SchedulingConfigurationError,
    compute_working_days,
)

YEAR_START = date(2025, 1, 1)
YEAR_END = date(2025, 12, 31)
# Monday to Friday, 2025-01-06 .. 2025-01-10.
WEEK_START = date(2025, 1, 6)
WEEK_END = date(2025, 1, 10)


def _task(
    task_id: str = "task-A-0",
    *,
    frequency_days: int = 90,
    duration_hours: float = 2.0,
    unit_count: int = 8,
    session_size: int = 2,
    priority: Priority = Priority.medium,
    preferred_months: tuple[int, ...] = (),
    family: EquipmentFamily | None = None,
) -> MaintenanceTask:
    return MaintenanceTask(
        id=task_id,
        code=task_id.upper(),
        label=f"Equipo {task_id}",
        frequency_days=frequency_days,
        duration_hours=duration_hours,
        unit_count=unit_count,
        session_size=session_size,
        priority=priority,
        preferred_months=preferred_months,
        family=family,
    )


def _mixed_tasks() -> list[MaintenanceTask]:
    return [
        _task("weekly", frequency_days=7, duration_hours=1.5, unit_count=6, session_size=2),
        _task("monthly", frequency_days=30, duration_hours=3.0, unit_count=12, session_size=3),
        _task("quarterly", frequency_days=90, duration_hours=2.0, unit_count=8, session_size=2),
        _task(
            "critical",
            frequency_days=15,
            duration_hours=1.0,
            unit_count=3,
            session_size=1,
            priority=Priority.critical,
        ),
        _task("annual", frequency_days=365, duration_hours=4.0, unit_count=20, session_size=5),
    ]


def test_quarterly_task_is_spread_over_the_year() -> None:
    engine = MaintenanceSchedulingEngine(YEAR_START, YEAR_END)

    result = engine.generate_schedule([_task()])

    assert len(result.items) == 4
    dates = [item.scheduled_date for item in result.items]
    assert all(YEAR_START <= scheduled <= YEAR_END for scheduled in dates)
    gaps = [(later - earlier).days for earlier, later in zip(dates, dates[1:])]
    assert min(gaps) >= 60
    for item in result.items:
        assert item.task.session_size <= 5
        assert item.hours == 4.0
        assert item.status == "scheduled"
    assert [item.assigned_technician for item in result.items] == [
        "Técnico 1",
        "Técnico 2",
        "Técnico 1",
        "Técnico 2",
    ]
    assert result.items[0].notes == "Mantenimiento 1/4"
    assert result.summary.required_instances == 4
    assert result.summary.placed_instances == 4
    assert result.summary.dropped_instances == 0
    assert result.summary.placed_hours == 16.0


def test_required_instances_use_canonical_counts_for_full_years() -> None:
    engine = MaintenanceSchedulingEngine(YEAR_START, YEAR_END)

    assert engine.required_instances(_task(frequency_days=30)) == 12
    assert engine.required_instances(_task(frequency_days=90)) == 4
    assert engine.required_instances(_task(frequency_days=365)) == 1
    assert engine.required_instances(_task(frequency_days=7)) == 52
    assert engine.required_instances(_task(frequency_days=45)) == 8

    two_years = MaintenanceSchedulingEngine(YEAR_START, date(2026, 12, 31))
    assert two_years.required_instances(_task(frequency_days=90)) == 8


def test_required_instances_use_plain_arithmetic_for_short_horizons() -> None:
    engine = MaintenanceSchedulingEngine(YEAR_START, date(2025, 6, 30))

    assert engine.required_instances(_task(frequency_days=90)) == 2
    assert engine.required_instances(_task(frequency_days=365)) == 1


def test_schedule_is_deterministic() -> None:
    first = MaintenanceSchedulingEngine(YEAR_START, YEAR_END).generate_schedule(_mixed_tasks())
    second = MaintenanceSchedulingEngine(YEAR_START, YEAR_END).generate_schedule(_mixed_tasks())

    assert [
        (item.id, item.scheduled_date, item.assigned_technician) for item in first.items
    ] == [(item.id, item.scheduled_date, item.assigned_technician) for item in second.items]
    assert first.summary == second.summary


def test_schedule_respects_daily_capacity_and_event_ceiling() -> None:
    constraints = WorkingConstraints(max_events_per_day=2)
    engine = MaintenanceSchedulingEngine(YEAR_START, YEAR_END, constraints)

    result = engine.generate_schedule(_mixed_tasks())

    hours_by_day: dict[date, float] = defaultdict(float)
    events_by_day: dict[date, int] = defaultdict(int)
    for item in result.items:
        hours_by_day[item.scheduled_date] += item.hours
        events_by_day[item.scheduled_date] += 1

    capacity = constraints.usable_hours_per_day * result.summary.technician_count_used
    assert all(hours <= capacity + 1e-9 for hours in hours_by_day.values())
    assert all(count <= 2 for count in events_by_day.values())
    assert result.items == sorted(result.items, key=lambda item: item.scheduled_date)


def test_schedule_never_uses_weekends_by_default() -> None:
    result = MaintenanceSchedulingEngine(YEAR_START, YEAR_END).generate_schedule(_mixed_tasks())

    assert result.items
    assert all(item.scheduled_date.weekday() < 5 for item in result.items)


def test_schedule_never_uses_sundays_when_saturdays_are_worked() -> None:
    engine = MaintenanceSchedulingEngine(
        YEAR_START,
        YEAR_END,
        WorkingConstraints(work_saturdays=True),
    )

    result = engine.generate_schedule(_mixed_tasks())

    assert all(item.scheduled_date.weekday() != 6 for item in result.items)
    assert result.summary.working_day_count == 313


def test_compute_working_days_only_adds_saturdays_on_request() -> None:
    monday = date(2025, 1, 6)
    sunday = date(2025, 1, 12)

    weekdays = compute_working_days(monday, sunday, work_saturdays=False)
    with_saturday = compute_working_days(monday, sunday, work_saturdays=True)

    assert len(weekdays) == 5
    assert len(with_saturday) == 6
    assert with_saturday[-1] == date(2025, 1, 11)
    assert compute_working_days(sunday, sunday, work_saturdays=True) == []


def test_technicians_are_raised_when_demand_exceeds_capacity() -> None:
    # Fifteen weekly 6h tasks need 4680h against 3132h for two technicians.
    tasks = [
        _task(f"weekly-{index}", frequency_days=7, duration_hours=3.0, session_size=2)
        for index in range(15)
    ]
    engine = MaintenanceSchedulingEngine(
        YEAR_START,
        YEAR_END,
        WorkingConstraints(technician_count=2, max_events_per_day=10),
    )

    result = engine.generate_schedule(tasks)

    summary = result.summary
    assert summary.technician_count_requested == 2
    assert summary.technician_count_used == 3
    assert summary.technicians_adjusted is True
    assert summary.required_hours == 4680.0
    assert summary.placed_hours >= summary.required_hours
    assert summary.dropped_instances == 0
    assert engine.constraints.technician_count == 2


def test_technicians_are_raised_until_whole_instances_fit_each_day() -> None:
    # 10h instances leave 8h idle on an 18h day, so three technicians only
    # fit one instance per day although the event limit allows three.
    tasks = [
        _task(f"weekly-{index}", frequency_days=7, duration_hours=2.0, unit_count=20, session_size=5)
        for index in range(9)
    ]
    updates: list[GenerationProgress] = []

    result = MaintenanceSchedulingEngine(YEAR_START, YEAR_END).generate_schedule(
        tasks,
        on_progress=updates.append,
    )

    summary = result.summary
    assert summary.required_hours == 4680.0
    assert summary.placed_hours >= summary.required_hours
    assert summary.dropped_instances == 0
    assert summary.technician_count_used == 4
    assert len(updates) == 10


def test_technicians_are_raised_to_fit_the_largest_instance() -> None:
    engine = MaintenanceSchedulingEngine(YEAR_START, YEAR_END)

    result = engine.generate_schedule([_task(duration_hours=8.0, unit_count=20, session_size=5)])

    assert result.summary.technician_count_used == 7
    assert result.summary.placed_instances == 4


def test_event_ceiling_shortfall_is_reported() -> None:
    engine = MaintenanceSchedulingEngine(
        WEEK_START,
        WEEK_END,
        WorkingConstraints(max_events_per_day=1),
    )
    tasks = [
        _task("a", frequency_days=1, duration_hours=0.5, unit_count=1, session_size=1),
        _task("b", frequency_days=1, duration_hours=0.5, unit_count=1, session_size=1),
    ]

    result = engine.generate_schedule(tasks)

    summary = result.summary
    assert summary.required_instances == 8
    assert summary.placed_instances == 5
    assert summary.dropped_instances == 3
    assert summary.technician_count_used == 2
    assert [shortfall.task_id for shortfall in summary.shortfalls] == ["b", "b", "b"]
    assert [shortfall.instance_number for shortfall in summary.shortfalls] == [2, 3, 4]
    assert all(shortfall.cause == ShortfallCause.events for shortfall in summary.shortfalls)
    assert len({item.scheduled_date for item in result.items}) == 5


def test_higher_priority_tasks_claim_scarce_days_first() -> None:
    low = _task("low", frequency_days=90, priority=Priority.low)
    critical = _task("critical", frequency_days=90, priority=Priority.critical)
    constraints = WorkingConstraints(max_events_per_day=1)

    by_priority = MaintenanceSchedulingEngine(
        WEEK_START,
        WEEK_START,
        constraints,
    ).generate_schedule([low, critical])
    by_input = MaintenanceSchedulingEngine(
        WEEK_START,
        WEEK_START,
        constraints,
        order_by_priority=False,
    ).generate_schedule([low, critical])

    assert [item.task.id for item in by_priority.items] == ["critical"]
    assert [item.task.id for item in by_input.items] == ["low"]


def test_empty_task_list_returns_empty_schedule() -> None:
    result = MaintenanceSchedulingEngine(YEAR_START, YEAR_END).generate_schedule([])

    assert result.items == []
    assert result.summary.required_hours == 0
    assert result.summary.placed_instances == 0
    assert result.summary.technician_count_used == 2
    assert result.summary.utilization_percent == 0.0
    assert result.summary.monthly == []


def test_inverted_horizon_is_rejected() -> None:
    with pytest.raises(SchedulingConfigurationError, match="before it starts"):
        MaintenanceSchedulingEngine(YEAR_END, YEAR_START)


def test_invalid_constraints_are_rejected() -> None:
    with pytest.raises(SchedulingConfigurationError, match="At least one technician"):
        MaintenanceSchedulingEngine(YEAR_START, YEAR_END, WorkingConstraints(technician_count=0))

    with pytest.raises(SchedulingConfigurationError, match="exceed the emergency reserve"):
        MaintenanceSchedulingEngine(
            YEAR_START,
            YEAR_END,
            WorkingConstraints(hours_per_day=1.0, emergency_reserve_hours=1.0),
        )


def test_seasonal_tasks_land_in_preferred_months() -> None:
    engine = MaintenanceSchedulingEngine(YEAR_START, YEAR_END)
    refrigerator = _task(
        "fridge",
        preferred_months=(2, 3, 4, 8, 9, 10),
        family=EquipmentFamily.refrigeration,
    )

    result = engine.generate_schedule([refrigerator])

    assert len(result.items) == 4
    assert all(item.scheduled_date.month - 1 in (2, 3, 4, 8, 9, 10) for item in result.items)


def test_monthly_seasonal_tasks_are_not_restricted() -> None:
    engine = MaintenanceSchedulingEngine(YEAR_START, YEAR_END)
    refrigerator = _task(
        "fridge",
        frequency_days=30,
        preferred_months=(2, 3, 4, 8, 9, 10),
        family=EquipmentFamily.refrigeration,
    )

    result = engine.generate_schedule([refrigerator])

    assert len(result.items) == 12
    assert any(item.scheduled_date.month == 1 for item in result.items)


def test_seasonal_preference_is_dropped_when_horizon_misses_it() -> None:
    engine = MaintenanceSchedulingEngine(YEAR_START, date(2025, 2, 28))
    refrigerator = _task(
        "fridge",
        preferred_months=(2, 3, 4, 8, 9, 10),
        family=EquipmentFamily.refrigeration,
    )

    result = engine.generate_schedule([refrigerator])

    assert len(result.items) == 1
    assert result.items[0].scheduled_date.month in (1, 2)


def test_progress_callback_reports_each_task() -> None:
    updates: list[GenerationProgress] = []
    tasks = [_task("a"), _task("b"), _task("c")]

    MaintenanceSchedulingEngine(YEAR_START, YEAR_END).generate_schedule(
        tasks,
        on_progress=updates.append,
    )

    assert len(updates) == 4
    assert updates[0].current == 0
    assert updates[0].total == 3
    assert updates[0].current_task == "Equipo a"
    assert updates[-1].current == 3
    assert updates[-1].current_task == ""


def test_extend_schedule_avoids_days_already_full() -> None:
    engine = MaintenanceSchedulingEngine(
        WEEK_START,
        WEEK_END,
        WorkingConstraints(max_events_per_day=1),
    )
    existing = engine.generate_schedule(
        [_task("base", frequency_days=2, duration_hours=0.5, session_size=1)],
    ).items

    result = engine.extend_schedule(
        existing,
        [_task("manual", frequency_days=1, duration_hours=0.5, session_size=1)],
    )

    existing_dates = {item.scheduled_date for item in existing}
    new_dates = {item.scheduled_date for item in result.items}
    assert existing_dates == {date(2025, 1, 6), date(2025, 1, 8)}
    assert new_dates == {date(2025, 1, 7), date(2025, 1, 9), date(2025, 1, 10)}
    assert result.summary.dropped_instances == 1
    assert result.summary.technician_count_used == 2
    assert all(item.task.id == "manual" for item in result.items)
