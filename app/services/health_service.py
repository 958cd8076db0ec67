from datetime import UTC, datetime

from app.core.config import Settings
from app.schemas.health import HealthResponse, SchedulingDefaults


class HealthService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def get_status(self) -> HealthResponse:
        """Report liveness plus the crew defaults new schedules start from."""
        return HealthResponse(
            status="ok",
            service=self.settings.app_name,
            version=self.settings.app_version,
            environment=self.settings.app_env,
            timestamp=datetime.now(UTC),
            scheduling_defaults=SchedulingDefaults(
                hours_per_day=self.settings.maintenance_hours_per_day,
                technician_count=self.settings.maintenance_technician_count,
                max_events_per_day=self.settings.maintenance_max_events_per_day,
                work_saturdays=self.settings.maintenance_work_saturdays,
                emergency_reserve_hours=self.settings.maintenance_emergency_reserve_hours,
            ),
        )
