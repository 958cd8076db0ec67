from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ALLOWED_ENV_FIELD_NAMES = frozenset(
    {
        "app_name",
        "app_env",
        "app_version",
        "api_prefix",
        "allowed_origins",
        "log_level",
        "maintenance_hours_per_day",
        "maintenance_technician_count",
        "maintenance_max_events_per_day",
        "maintenance_work_saturdays",
        "maintenance_emergency_reserve_hours",
        "maintenance_search_window_days",
        "maintenance_order_by_priority",
        "maintenance_export_working_weeks_per_year",
    },
)


class Settings(BaseSettings):
    app_name: str = "Maintenance Planning API"
    app_env: str = "development"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    allowed_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]
    maintenance_hours_per_day: float = 7.0
    maintenance_technician_count: int = 2
    maintenance_max_events_per_day: int = 3
    maintenance_work_saturdays: bool = False
    maintenance_emergency_reserve_hours: float = 1.0
    maintenance_search_window_days: int = 15
    maintenance_order_by_priority: bool = True
    maintenance_export_working_weeks_per_year: int = 50

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def _filter_allowed_env_fields(source):
            return {
                field_name: raw_value
                for field_name, raw_value in source().items()
                if field_name in ALLOWED_ENV_FIELD_NAMES
            }

        return (
            init_settings,
            lambda: _filter_allowed_env_fields(env_settings),
            lambda: _filter_allowed_env_fields(dotenv_settings),
            file_secret_settings,
        )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("maintenance_hours_per_day", mode="before")
    @classmethod
    def normalize_hours_per_day(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value <= 0 or parsed_value > 24:
            return 7.0
        return parsed_value

    @field_validator("maintenance_technician_count", mode="before")
    @classmethod
    def normalize_technician_count(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 2
        return parsed_value

    @field_validator("maintenance_max_events_per_day", mode="before")
    @classmethod
    def normalize_max_events_per_day(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 3
        return parsed_value

    @field_validator("maintenance_emergency_reserve_hours", mode="before")
    @classmethod
    def normalize_emergency_reserve_hours(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value < 0:
            return 1.0
        return parsed_value

    @field_validator("maintenance_search_window_days", mode="before")
    @classmethod
    def normalize_search_window_days(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value < 0:
            return 15
        return parsed_value

    @field_validator("maintenance_export_working_weeks_per_year", mode="before")
    @classmethod
    def normalize_export_working_weeks(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0 or parsed_value > 52:
            return 50
        return parsed_value


@lru_cache
def get_settings() -> Settings:
    return Settings()
