from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import math
import re
import unicodedata

from app.services.maintenance_models import EquipmentFamily, Priority

DEFAULT_FREQUENCY_DAYS = 90
DEFAULT_DURATION_HOURS = 2.0
MIN_DURATION_HOURS = 0.5
MAX_DURATION_HOURS = 8.0
MAX_FREQUENCY_DAYS = 365
DAYS_PER_YEAR = 365

# Frequencies that must produce an exact, evenly spread count per year
# regardless of how the day interval divides the horizon.
CANONICAL_YEARLY_INSTANCES: dict[int, int] = {
    30: 12,
    90: 4,
    180: 2,
    365: 1,
}

_FIXED_FREQUENCY_PATTERNS: tuple[tuple[str, int], ...] = (
    (r"\b(?:diari[oa]|a diario|daily)\b", 1),
    (r"\b(?:semanal|weekly)\b", 7),
    (r"\b(?:quincenal|biweekly)\b", 15),
    (r"\b(?:bimensual|bimestral|bimonthly)\b", 60),
    (r"\b(?:mensual|monthly)\b", 30),
    (r"\b(?:cuatrimestral)\b", 120),
    (r"\b(?:trimestral|quarterly)\b", 90),
    (r"\b(?:semestral|semianual|biannual|semiannual)\b", 180),
    (r"\b(?:anual|cada ano|yearly|annual)\b", 365),
)

_NUMERIC_FREQUENCY_PATTERNS: tuple[tuple[str, float], ...] = (
    (r"\b(?:cada|every)\s+(\d+)\s+(?:dias?|days?)\b", 1),
    (r"\b(?:cada|every)\s+(\d+)\s+(?:semanas?|weeks?)\b", 7),
    (r"\b(?:cada|every)\s+(\d+)\s+(?:mes|meses|months?)\b", 30),
    (r"\b(\d+)\s+(?:dias?|days?)\b", 1),
    (r"\b(\d+)\s+(?:semanas?|weeks?)\b", 7),
    (r"\b(\d+)\s+(?:mes|meses|months?)\b", 30),
    (r"\b(\d+)\s*(?:h|hr|hrs|horas?|hours?)\b", 1 / 24),
)

_PRIORITY_KEYWORDS: tuple[tuple[Priority, tuple[str, ...]], ...] = (
    (
        Priority.critical,
        (
            "correctiv",
            "emergencia",
            "urgente",
            "reparacion",
            "averia",
            "fallo",
            "emergency",
            "repair",
            "failure",
        ),
    ),
    (
        Priority.high,
        (
            "calibracion",
            "metrologia",
            "verificacion",
            "seguridad",
            "certificacion",
            "calibration",
            "verification",
            "safety",
            "certification",
        ),
    ),
    (
        Priority.medium,
        (
            "preventiv",
            "predictiv",
            "programado",
            "revision",
            "inspeccion",
            "inspection",
        ),
    ),
)


@dataclass(frozen=True)
class EquipmentFamilyProfile:
    family: EquipmentFamily
    pattern: str
    # 0-based month indexes where visits are preferred.
    preferred_months: tuple[int, ...]
    # Multipliers applied to a flat monthly split, keyed by 0-based month.
    seasonal_weights: dict[int, float]


EQUIPMENT_FAMILY_PROFILES: tuple[EquipmentFamilyProfile, ...] = (
    EquipmentFamilyProfile(
        family=EquipmentFamily.refrigeration,
        pattern=(
            r"\b(?:frigorif\w*|refriger\w*|congelador\w*|climatiz\w*|enfriador\w*|"
            r"frio|aire acondicionado|camara fria|hvac)"
        ),
        preferred_months=(2, 3, 4, 8, 9, 10),
        seasonal_weights={
            2: 1.15,
            3: 1.15,
            4: 1.15,
            5: 0.85,
            6: 0.85,
            7: 0.85,
            8: 1.15,
            9: 1.15,
            10: 1.15,
        },
    ),
    EquipmentFamilyProfile(
        family=EquipmentFamily.surgical,
        pattern=r"\b(?:quirofano\w*|quirurgic\w*|cirugia\w*|surgical|operating room)",
        preferred_months=(5, 6, 7),
        seasonal_weights={
            0: 0.9,
            1: 0.9,
            2: 0.9,
            5: 1.15,
            6: 1.15,
            7: 1.15,
            9: 0.9,
            10: 0.9,
        },
    ),
)


def parse_frequency_to_days(text: str | None) -> int:
    """Convert free-text maintenance frequency into a day interval.

    Rules are tried in order: fixed vocabulary ("trimestral"), numeric
    phrases ("cada 15 días", "2 meses", "500 horas") and finally a bare
    number guessed from its magnitude. Anything else is quarterly.
    """
    normalized = normalize_for_matching(text or "")
    if not normalized:
        return DEFAULT_FREQUENCY_DAYS

    for resolver in _FREQUENCY_RESOLVERS:
        resolved = resolver(normalized)
        if resolved is not None:
            return resolved
    return DEFAULT_FREQUENCY_DAYS


def parse_duration_hours(text: str | None) -> float:
    normalized = normalize_for_matching(text or "").replace(",", ".")
    if not normalized:
        return DEFAULT_DURATION_HOURS

    hours_match = re.search(r"(\d+(?:\.\d+)?)\s*(?:h|hr|hrs|horas?|hours?)\b", normalized)
    minutes_match = re.search(r"(\d+(?:\.\d+)?)\s*(?:m|min|mins|minutos?|minutes?)\b", normalized)
    if hours_match or minutes_match:
        hours = float(hours_match.group(1)) if hours_match else 0.0
        minutes = float(minutes_match.group(1)) if minutes_match else 0.0
        return _clamp_duration(hours + minutes / 60)

    number_match = re.search(r"(\d+(?:\.\d+)?)", normalized)
    if not number_match:
        return DEFAULT_DURATION_HOURS
    return _clamp_duration(float(number_match.group(1)))


def classify_priority(type_text: str | None) -> Priority:
    normalized = normalize_for_matching(type_text or "")
    for priority, keywords in _PRIORITY_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return priority
    return Priority.low


def classify_equipment_family(label: str | None) -> EquipmentFamily | None:
    profile = find_equipment_family_profile(label)
    return profile.family if profile else None


def find_equipment_family_profile(label: str | None) -> EquipmentFamilyProfile | None:
    normalized = normalize_for_matching(label or "")
    if not normalized:
        return None
    for profile in EQUIPMENT_FAMILY_PROFILES:
        if re.search(profile.pattern, normalized):
            return profile
    return None


def get_equipment_family_profile(family: EquipmentFamily | None) -> EquipmentFamilyProfile | None:
    if family is None:
        return None
    for profile in EQUIPMENT_FAMILY_PROFILES:
        if profile.family == family:
            return profile
    return None


def instances_per_year(frequency_days: int) -> int:
    canonical = CANONICAL_YEARLY_INSTANCES.get(frequency_days)
    if canonical is not None:
        return canonical
    return max(1, DAYS_PER_YEAR // max(1, frequency_days))


def normalize_for_matching(text: str) -> str:
    lowered = text.lower().strip()
    decomposed = unicodedata.normalize("NFD", lowered)
    without_accents = "".join(
        char for char in decomposed if unicodedata.category(char) != "Mn"
    )
    return re.sub(r"\s+", " ", without_accents)


def _resolve_fixed_frequency(normalized: str) -> int | None:
    for pattern, days in _FIXED_FREQUENCY_PATTERNS:
        if re.search(pattern, normalized):
            return days
    return None


def _resolve_numeric_frequency(normalized: str) -> int | None:
    for pattern, multiplier in _NUMERIC_FREQUENCY_PATTERNS:
        match = re.search(pattern, normalized)
        if not match:
            continue
        amount = int(match.group(1))
        if amount <= 0:
            continue
        return max(1, math.floor(amount * multiplier))
    return None


def _resolve_bare_number_frequency(normalized: str) -> int | None:
    match = re.search(r"\d+", normalized)
    if not match:
        return None
    amount = int(match.group(0))
    if amount <= 0:
        return None
    if amount <= 7:
        return amount
    if amount <= 52:
        return amount * 7
    return min(amount, MAX_FREQUENCY_DAYS)


_FREQUENCY_RESOLVERS: tuple[Callable[[str], int | None], ...] = (
    _resolve_fixed_frequency,
    _resolve_numeric_frequency,
    _resolve_bare_number_frequency,
)


def _clamp_duration(hours: float) -> float:
    return round(min(MAX_DURATION_HOURS, max(MIN_DURATION_HOURS, hours)), 2)
