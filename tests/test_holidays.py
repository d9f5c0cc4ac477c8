from datetime import date

import pytest

from cobrafacil.utils.holidays import easter_sunday, get_holiday_name, get_holidays_for_year, is_holiday


@pytest.mark.parametrize("year,expected", [(2024, date(2024, 3, 31)), (2025, date(2025, 4, 20)), (2026, date(2026, 4, 5))])
def test_easter_sunday(year, expected):
    assert easter_sunday(year) == expected


def test_movable_holidays_2024():
    holidays = get_holidays_for_year(2024)
    assert holidays[date(2024, 2, 12)] == "Carnaval"
    assert holidays[date(2024, 2, 13)] == "Carnaval"
    assert holidays[date(2024, 3, 29)] == "Sexta-feira Santa"
    assert holidays[date(2024, 5, 30)] == "Corpus Christi"


def test_fixed_holidays():
    assert is_holiday(date(2024, 12, 25))
    assert get_holiday_name(date(2025, 11, 20)) == "Dia da Consciência Negra"
    assert not is_holiday(date(2024, 12, 26))
    assert get_holiday_name(date(2024, 12, 26)) is None
