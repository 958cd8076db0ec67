from __future__ import annotations

from dataclasses import asdict
from datetime import UTC, date, datetime
import re

from fastapi import HTTPException, status

from app.core.config import Settings, get_settings
from app.schemas.maintenance import (
    ComplianceSummaryResponse,
    EquipmentRecordPayload,
    IncompleteRecordItem,
    MaintenanceTaskItem,
    MonthlyExportResponse,
    MonthlyExportRowItem,
    NormalizedMaintenanceTextResponse,
    ScheduledMaintenanceItem,
    ScheduleExtendRequest,
    ScheduleRequest,
    ScheduleResponse,
    TaskBuildRequest,
    TaskBuildResponse,
    WorkingConstraintsItem,
    WorkingConstraintsPayload,
)
from app.services.maintenance_csv_exporter import render_monthly_export_csv
from app.services.maintenance_models import (
    MaintenanceTask,
    RawEquipmentRecord,
    ScheduledMaintenance,
    ScheduleResult,
    WorkingConstraints,
)
from app.services.maintenance_normalizer import (
    classify_priority,
    instances_per_year,
    parse_duration_hours,
    parse_frequency_to_days,
)
from app.services.maintenance_scheduling_engine import (
    MaintenanceSchedulingEngine,
    SchedulingConfigurationError,
)
from app.services.maintenance_task_builder import (
    IncompleteRecord,
    build_tasks,
    find_incomplete_records,
)
from app.services.monthly_distribution import MonthlyExport, build_monthly_export

_TASK_INDEX_PATTERN = re.compile(r"-(\d+)$")


class MaintenancePlanningService:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def normalize_text(
        self,
        *,
        frequency: str | None,
        duration: str | None,
        maintenance_type: str | None,
    ) -> NormalizedMaintenanceTextResponse:
        frequency_days = parse_frequency_to_days(frequency)
        return NormalizedMaintenanceTextResponse(
            frequency_days=frequency_days,
            yearly_instances=instances_per_year(frequency_days),
            duration_hours=parse_duration_hours(duration),
            priority=classify_priority(maintenance_type),
        )

    def build_tasks(self, payload: TaskBuildRequest) -> TaskBuildResponse:
        records = self._to_records(payload.records)
        return TaskBuildResponse(
            tasks=[self._map_task(task) for task in build_tasks(records)],
            incomplete_records=self._map_incomplete(find_incomplete_records(records)),
        )

    def generate_schedule(self, payload: ScheduleRequest) -> ScheduleResponse:
        records = self._to_records(payload.records)
        engine = self._create_engine(payload)
        result = engine.generate_schedule(build_tasks(records))
        return self._build_schedule_response(
            engine=engine,
            result=result,
            incomplete_records=find_incomplete_records(records),
        )

    def extend_schedule(self, payload: ScheduleExtendRequest) -> ScheduleResponse:
        records = self._to_records(payload.records)
        engine = self._create_engine(payload)
        existing = [self._scheduled_from_item(item) for item in payload.existing_items]
        tasks = build_tasks(
            records,
            id_prefix="manual",
            start_index=self._next_task_index(payload.existing_items),
        )
        result = engine.extend_schedule(existing, tasks)
        return self._build_schedule_response(
            engine=engine,
            result=result,
            incomplete_records=find_incomplete_records(records),
        )

    def build_monthly_distribution(self, payload: TaskBuildRequest) -> MonthlyExportResponse:
        export = self._build_export(payload)
        return MonthlyExportResponse(
            rows=[MonthlyExportRowItem(**asdict(row)) for row in export.rows],
            monthly_totals=export.monthly_totals,
            total_hours=export.total_hours,
            annual_hours_per_technician=export.annual_hours_per_technician,
            technicians_needed=export.technicians_needed,
        )

    def render_monthly_distribution_csv(self, payload: TaskBuildRequest) -> str:
        return render_monthly_export_csv(self._build_export(payload))

    def _build_export(self, payload: TaskBuildRequest) -> MonthlyExport:
        tasks = build_tasks(self._to_records(payload.records))
        return build_monthly_export(
            tasks,
            hours_per_day=self.settings.maintenance_hours_per_day,
            working_weeks_per_year=self.settings.maintenance_export_working_weeks_per_year,
        )

    def _create_engine(self, payload: ScheduleRequest) -> MaintenanceSchedulingEngine:
        start_date, end_date = self._resolve_horizon(payload.start_date, payload.end_date)
        order_by_priority = payload.order_by_priority
        if order_by_priority is None:
            order_by_priority = self.settings.maintenance_order_by_priority
        try:
            return MaintenanceSchedulingEngine(
                start_date,
                end_date,
                self._resolve_constraints(payload.constraints),
                search_window_days=self.settings.maintenance_search_window_days,
                order_by_priority=order_by_priority,
            )
        except SchedulingConfigurationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

    def _resolve_constraints(self, payload: WorkingConstraintsPayload | None) -> WorkingConstraints:
        overrides = payload.model_dump(exclude_none=True) if payload else {}
        return WorkingConstraints(
            hours_per_day=overrides.get("hours_per_day", self.settings.maintenance_hours_per_day),
            technician_count=overrides.get(
                "technician_count",
                self.settings.maintenance_technician_count,
            ),
            max_events_per_day=overrides.get(
                "max_events_per_day",
                self.settings.maintenance_max_events_per_day,
            ),
            work_saturdays=overrides.get("work_saturdays", self.settings.maintenance_work_saturdays),
            emergency_reserve_hours=overrides.get(
                "emergency_reserve_hours",
                self.settings.maintenance_emergency_reserve_hours,
            ),
        )

    def _resolve_horizon(self, start_date: date | None, end_date: date | None) -> tuple[date, date]:
        if start_date is None:
            year = end_date.year if end_date else datetime.now(UTC).year
            start_date = date(year, 1, 1)
        if end_date is None:
            end_date = date(start_date.year, 12, 31)
        return start_date, end_date

    def _build_schedule_response(
        self,
        *,
        engine: MaintenanceSchedulingEngine,
        result: ScheduleResult,
        incomplete_records: list[IncompleteRecord],
    ) -> ScheduleResponse:
        summary = result.summary
        constraints = engine.constraints
        return ScheduleResponse(
            start_date=engine.start_date,
            end_date=engine.end_date,
            constraints=WorkingConstraintsItem(
                hours_per_day=constraints.hours_per_day,
                technician_count=summary.technician_count_used,
                max_events_per_day=constraints.max_events_per_day,
                work_saturdays=constraints.work_saturdays,
                emergency_reserve_hours=constraints.emergency_reserve_hours,
            ),
            items=[ScheduledMaintenanceItem(**item.to_dict()) for item in result.items],
            summary=ComplianceSummaryResponse(
                **asdict(summary),
                technicians_adjusted=summary.technicians_adjusted,
            ),
            incomplete_records=self._map_incomplete(incomplete_records),
        )

    def _to_records(self, payloads: list[EquipmentRecordPayload]) -> list[RawEquipmentRecord]:
        return [
            RawEquipmentRecord(
                code=payload.code,
                label=payload.label,
                unit_count=payload.unit_count,
                frequency_text=payload.frequency_text,
                maintenance_type_text=payload.maintenance_type_text,
                duration_text=payload.duration_text,
            )
            for payload in payloads
        ]

    def _scheduled_from_item(self, item: ScheduledMaintenanceItem) -> ScheduledMaintenance:
        task = MaintenanceTask(
            id=item.task_id,
            code=item.code,
            label=item.label,
            frequency_days=item.frequency_days,
            duration_hours=item.duration_hours,
            unit_count=item.unit_count,
            session_size=item.session_size,
            priority=item.priority,
            preferred_months=tuple(item.preferred_months),
            family=item.family,
            frequency_text=item.frequency_text,
            maintenance_type_text=item.maintenance_type_text,
            equipment_units=tuple(item.equipment_units),
        )
        return ScheduledMaintenance(
            task=task,
            id=item.id,
            scheduled_date=item.scheduled_date,
            instance_number=item.instance_number,
            assigned_technician=item.assigned_technician,
            status=item.status,
            notes=item.notes,
        )

    def _next_task_index(self, items: list[ScheduledMaintenanceItem]) -> int:
        # Task ids end in their batch index; new batches continue after the highest one.
        next_index = 0
        for item in items:
            match = _TASK_INDEX_PATTERN.search(item.task_id)
            if match:
                next_index = max(next_index, int(match.group(1)) + 1)
        return next_index

    def _map_task(self, task: MaintenanceTask) -> MaintenanceTaskItem:
        return MaintenanceTaskItem(**task.to_dict())

    def _map_incomplete(self, records: list[IncompleteRecord]) -> list[IncompleteRecordItem]:
        return [IncompleteRecordItem(**asdict(record)) for record in records]
