from __future__ import annotations

import csv
import io

from app.services.monthly_distribution import MONTH_KEYS, MonthlyExport

MONTHLY_EXPORT_HEADERS: tuple[str, ...] = (
    "EQUIPO (DENOMINACIÓN)",
    "CÓDIGO",
    "Nº EQUIPO",
    "TIPO DE MANTENIMIENTO",
    "FRECUENCIA",
    "HORAS POR MANTENIMIENTO (H)",
    "HORAS TOTALES",
    *(month_key.upper() for month_key in MONTH_KEYS),
)


def render_monthly_export_csv(export: MonthlyExport) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(MONTHLY_EXPORT_HEADERS)
    for row in export.rows:
        writer.writerow(
            [
                row.label,
                row.code,
                row.unit_count,
                row.maintenance_type_text,
                row.frequency_text,
                _format_hours(row.hours_per_maintenance),
                _format_hours(row.annual_hours),
                *(_format_hours(row.months[month_key]) for month_key in MONTH_KEYS),
            ],
        )
    writer.writerow(
        [
            "TOTAL",
            "",
            sum(row.unit_count for row in export.rows),
            "",
            "",
            "",
            _format_hours(export.total_hours),
            *(_format_hours(export.monthly_totals.get(month_key, 0.0)) for month_key in MONTH_KEYS),
        ],
    )
    return buffer.getvalue()


def _format_hours(value: float) -> str:
    formatted = f"{value:.2f}".rstrip("0").rstrip(".")
    return formatted or "0"
