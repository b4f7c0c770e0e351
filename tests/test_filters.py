"""Normalization of raw filter input into a FilterSpec."""
from datetime import date, datetime

from core.filters import FilterSpec, describe_filters, normalize_filters


def test_wildcards_become_none():
    spec = normalize_filters({"om": "TODAS", "status": "todos", "workshop": ""})
    assert spec == FilterSpec()
    assert not spec.has_date_bounds


def test_concrete_values_and_dates():
    spec = normalize_filters(
        {
            "start_date": "2024-01-01",
            "end_date": datetime(2024, 6, 30, 12, 0),
            "om": " NAvPaFlu ",
            "status": "ORÇAR",
            "workshop": "MECÂNICA",
        }
    )
    assert spec.start_date == date(2024, 1, 1)
    assert spec.end_date == date(2024, 6, 30)
    assert spec.om == "NAvPaFlu"
    assert spec.status == "ORÇAR"
    assert spec.workshop == "MECÂNICA"
    assert spec.has_date_bounds


def test_bad_dates_are_ignored():
    spec = normalize_filters({"start_date": "not a date", "end_date": None})
    assert spec.start_date is None
    assert spec.end_date is None


def test_none_input():
    assert normalize_filters(None) == FilterSpec()


def test_describe_filters():
    assert describe_filters(FilterSpec()) == "OM: TODAS | Oficina: TODAS | Status: TODOS"
    text = describe_filters(FilterSpec(start_date=date(2024, 1, 1), om="CFlMT"))
    assert text == "OM: CFlMT | Oficina: TODAS | Status: TODOS | Período: 01/01/2024 a ..."
