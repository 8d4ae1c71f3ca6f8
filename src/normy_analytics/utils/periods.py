import unicodedata
from typing import List, Optional, Union

# Period 0 is the synthetic row that holds "Final Definitiva"
ANNUAL = "anual"
ANNUAL_PERIOD = 0
PERIODS = (1, 2, 3, 4)

Period = Union[int, str]

# Canonical order for grade levels
GRADE_LEVEL_ORDER = [
    "Prejardín", "Jardín", "Transición",
    "Primero", "Segundo", "Tercero", "Cuarto", "Quinto",
    "Sexto", "Séptimo", "Octavo", "Noveno", "Décimo", "Undécimo"
]

_ORDINAL_LABELS = {1: "1er Periodo", 2: "2do Periodo", 3: "3er Periodo", 4: "4to Periodo"}


def parse_period(value) -> Period:
    """
    Normalizes a period filter.

    Accepts 1..4 (int or numeric string), "anual" in any case, or None/"all"
    which both mean the whole year. Anything else raises ValueError.
    """
    if value is None:
        return ANNUAL
    if isinstance(value, str):
        text = value.strip().lower()
        if text in (ANNUAL, "all", ""):
            return ANNUAL
        if not text.isdigit():
            raise ValueError(f"Periodo inválido: {value!r}")
        value = int(text)
    if isinstance(value, bool) or not isinstance(value, int) or value not in PERIODS:
        raise ValueError(f"Periodo inválido: {value!r}")
    return value


def periods_for(period: Period) -> List[int]:
    """Expands a period filter into the concrete periods it covers."""
    return list(PERIODS) if period == ANNUAL else [period]


def period_label(period: int) -> str:
    """Label used in evolution series ("Período 1")."""
    return f"Período {period}"


def ordinal_label(period: int) -> str:
    """Label used on the grade sheet tabs ("1er Periodo"); period 0 is the annual column."""
    if period == ANNUAL_PERIOD:
        return "Final Definitiva"
    return _ORDINAL_LABELS[period]


def normalize_text(value: Optional[str]) -> str:
    """Trims, lowercases and strips accents (á -> a, ñ -> n)."""
    text = unicodedata.normalize('NFD', str(value or '').strip().lower())
    return ''.join(ch for ch in text if not unicodedata.combining(ch))


def spanish_sort_key(value: str):
    """
    Sort key for Spanish names: accented vowels and ñ compare as their base
    letter, case-insensitively. The raw value breaks exact ties so that the
    order stays deterministic.
    """
    return (normalize_text(value), value)


def sort_grade_levels(grade_levels) -> List[str]:
    """Orders grade levels by the school's canonical order; unknown ones go last, alphabetically."""
    known = {normalize_text(g): i for i, g in enumerate(GRADE_LEVEL_ORDER)}

    def key(level):
        idx = known.get(normalize_text(level))
        return (idx if idx is not None else len(GRADE_LEVEL_ORDER), spanish_sort_key(level))

    return sorted(set(grade_levels), key=key)
