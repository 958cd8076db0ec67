from datetime import date

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.services.maintenance_models import (
    EquipmentFamily,
    MaintenanceStatus,
    Priority,
    ShortfallCause,
)


class EquipmentRecordPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(default="", validation_alias=AliasChoices("code", "codigo"))
    label: str = Field(validation_alias=AliasChoices("label", "denominacion"))
    unit_count: int = Field(default=1, validation_alias=AliasChoices("unit_count", "cantidad"))
    frequency_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("frequency_text", "frecuencia"),
    )
    maintenance_type_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("maintenance_type_text", "tipoMantenimiento"),
    )
    duration_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("duration_text", "tiempo"),
    )

    @field_validator("frequency_text", "maintenance_type_text", "duration_text", mode="before")
    @classmethod
    def coerce_numeric_text(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class WorkingConstraintsPayload(BaseModel):
    hours_per_day: float | None = None
    technician_count: int | None = None
    max_events_per_day: int | None = None
    work_saturdays: bool | None = None
    emergency_reserve_hours: float | None = None


class WorkingConstraintsItem(BaseModel):
    hours_per_day: float
    technician_count: int
    max_events_per_day: int
    work_saturdays: bool
    emergency_reserve_hours: float


class MaintenanceTaskItem(BaseModel):
    id: str
    code: str
    label: str
    frequency_days: int
    duration_hours: float
    unit_count: int
    session_size: int
    priority: Priority
    preferred_months: list[int] = Field(default_factory=list)
    family: EquipmentFamily | None = None
    frequency_text: str = ""
    maintenance_type_text: str = ""
    equipment_units: list[str] = Field(default_factory=list)


class ScheduledMaintenanceItem(MaintenanceTaskItem):
    task_id: str
    scheduled_date: date
    instance_number: int
    assigned_technician: str
    status: MaintenanceStatus = MaintenanceStatus.scheduled
    notes: str | None = None
    hours: float


class IncompleteRecordItem(BaseModel):
    code: str
    label: str
    missing_fields: list[str]
    reason: str


class PlacementShortfallItem(BaseModel):
    task_id: str
    label: str
    instance_number: int
    required_hours: float
    reason: str
    cause: ShortfallCause


class MonthlyScheduleStatsItem(BaseModel):
    month: str
    event_count: int
    hours: float


class ComplianceSummaryResponse(BaseModel):
    required_hours: float
    placed_hours: float
    required_instances: int
    placed_instances: int
    dropped_instances: int
    technician_count_requested: int
    technician_count_used: int
    technicians_adjusted: bool
    active_day_count: int
    working_day_count: int
    utilization_percent: float
    active_day_utilization_percent: float
    monthly: list[MonthlyScheduleStatsItem] = Field(default_factory=list)
    shortfalls: list[PlacementShortfallItem] = Field(default_factory=list)


class TaskBuildRequest(BaseModel):
    records: list[EquipmentRecordPayload] = Field(default_factory=list)


class TaskBuildResponse(BaseModel):
    tasks: list[MaintenanceTaskItem] = Field(default_factory=list)
    incomplete_records: list[IncompleteRecordItem] = Field(default_factory=list)


class ScheduleRequest(TaskBuildRequest):
    constraints: WorkingConstraintsPayload | None = None
    start_date: date | None = None
    end_date: date | None = None
    order_by_priority: bool | None = None


class ScheduleExtendRequest(ScheduleRequest):
    existing_items: list[ScheduledMaintenanceItem] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    start_date: date
    end_date: date
    constraints: WorkingConstraintsItem
    items: list[ScheduledMaintenanceItem] = Field(default_factory=list)
    summary: ComplianceSummaryResponse
    incomplete_records: list[IncompleteRecordItem] = Field(default_factory=list)


class MonthlyExportRowItem(BaseModel):
    task_id: str
    code: str
    label: str
    unit_count: int
    maintenance_type_text: str
    frequency_text: str
    hours_per_maintenance: float
    annual_hours: float
    months: dict[str, float]


class MonthlyExportResponse(BaseModel):
    rows: list[MonthlyExportRowItem] = Field(default_factory=list)
    monthly_totals: dict[str, float] = Field(default_factory=dict)
    total_hours: float
    annual_hours_per_technician: float
    technicians_needed: int


class NormalizedMaintenanceTextResponse(BaseModel):
    frequency_days: int
    yearly_instances: int
    duration_hours: float
    priority: Priority
