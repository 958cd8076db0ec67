import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.core.config import Settings, get_settings


logger = logging.getLogger(__name__)


def _configure_logging(level_name: str) -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _log_scheduling_defaults(settings: Settings) -> None:
    logger.info(
        "Scheduling defaults hours_per_day=%s technicians=%s max_events_per_day=%s "
        "work_saturdays=%s reserve_hours=%s search_window_days=%s",
        settings.maintenance_hours_per_day,
        settings.maintenance_technician_count,
        settings.maintenance_max_events_per_day,
        settings.maintenance_work_saturdays,
        settings.maintenance_emergency_reserve_hours,
        settings.maintenance_search_window_days,
    )


def create_application() -> FastAPI:
    settings = get_settings()
    _configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Yearly preventive maintenance planning for equipment inventories.",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)
    logger.info(
        "Application created env=%s api_prefix=%s",
        settings.app_env,
        settings.api_prefix,
    )
    _log_scheduling_defaults(settings)

    return app


app = create_application()
