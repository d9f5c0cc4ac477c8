"""
Brazilian national holidays.

Fixed-date holidays plus the movable ones derived from Easter Sunday
(Carnival Monday and Tuesday, Good Friday and Corpus Christi).
"""

from datetime import date, timedelta
from functools import lru_cache
from typing import Dict, Optional

FIXED_HOLIDAYS = {
    (1, 1): "Confraternização Universal",
    (4, 21): "Tiradentes",
    (5, 1): "Dia do Trabalho",
    (9, 7): "Independência do Brasil",
    (10, 12): "Nossa Senhora Aparecida",
    (11, 2): "Finados",
    (11, 15): "Proclamação da República",
    (11, 20): "Dia da Consciência Negra",
    (12, 25): "Natal",
}


def easter_sunday(year: int) -> date:
    # Anonymous Gregorian algorithm (Meeus/Jones/Butcher)
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


@lru_cache(maxsize=64)
def get_holidays_for_year(year: int) -> Dict[date, str]:
    holidays = {date(year, month, day): name for (month, day), name in FIXED_HOLIDAYS.items()}

    easter = easter_sunday(year)
    holidays[easter - timedelta(days=48)] = "Carnaval"
    holidays[easter - timedelta(days=47)] = "Carnaval"
    holidays[easter - timedelta(days=2)] = "Sexta-feira Santa"
    holidays[easter + timedelta(days=60)] = "Corpus Christi"
    return holidays


def is_holiday(value: date) -> bool:
    return value in get_holidays_for_year(value.year)


def get_holiday_name(value: date) -> Optional[str]:
    return get_holidays_for_year(value.year).get(value)
