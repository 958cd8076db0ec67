from datetime import datetime

from pydantic import BaseModel


class SchedulingDefaults(BaseModel):
    hours_per_day: float
    technician_count: int
    max_events_per_day: int
    work_saturdays: bool
    emergency_reserve_hours: float


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    version: str
    environment: str
    timestamp: datetime
    scheduling_defaults: SchedulingDefaults
