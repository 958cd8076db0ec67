from fastapi import APIRouter, Response

from app.schemas.maintenance import (
    MonthlyExportResponse,
    NormalizedMaintenanceTextResponse,
    ScheduleExtendRequest,
    ScheduleRequest,
    ScheduleResponse,
    TaskBuildRequest,
    TaskBuildResponse,
)
from app.services.maintenance_planning_service import MaintenancePlanningService

router = APIRouter(prefix="/maintenance-plans", tags=["maintenance-plans"])

MONTHLY_EXPORT_FILENAME = "plan-mantenimiento-anual.csv"


@router.get("/normalize", response_model=NormalizedMaintenanceTextResponse)
def normalize_maintenance_text(
    frequency: str | None = None,
    duration: str | None = None,
    maintenance_type: str | None = None,
) -> NormalizedMaintenanceTextResponse:
    service = MaintenancePlanningService()
    return service.normalize_text(
        frequency=frequency,
        duration=duration,
        maintenance_type=maintenance_type,
    )


@router.post("/tasks", response_model=TaskBuildResponse)
def build_maintenance_tasks(payload: TaskBuildRequest) -> TaskBuildResponse:
    service = MaintenancePlanningService()
    return service.build_tasks(payload)


@router.post("/schedule", response_model=ScheduleResponse)
def generate_maintenance_schedule(payload: ScheduleRequest) -> ScheduleResponse:
    service = MaintenancePlanningService()
    return service.generate_schedule(payload)


@router.post("/schedule/extend", response_model=ScheduleResponse)
def extend_maintenance_schedule(payload: ScheduleExtendRequest) -> ScheduleResponse:
    service = MaintenancePlanningService()
    return service.extend_schedule(payload)


@router.post("/monthly-distribution", response_model=MonthlyExportResponse)
def get_monthly_distribution(payload: TaskBuildRequest) -> MonthlyExportResponse:
    service = MaintenancePlanningService()
    return service.build_monthly_distribution(payload)


@router.post("/monthly-distribution/csv")
def export_monthly_distribution_csv(payload: TaskBuildRequest) -> Response:
    service = MaintenancePlanningService()
    csv_text = service.render_monthly_distribution_csv(payload)
    # Leading BOM so spreadsheet tools detect UTF-8.
    return Response(
        content="\ufeff" + csv_text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{MONTHLY_EXPORT_FILENAME}"'},
    )
