from datetime import date

from fnb_assistant.tools.formatting import (
    NOT_AVAILABLE,
    bucket_key,
    cap_limit,
    format_eur,
    margin,
    pct_change,
    previous_period,
    take,
    with_truncation,
)


def test_format_eur_uses_greek_grouping():
    assert format_eur(1234.5) == "€1.234,50"
    assert format_eur(0) == "€0,00"
    assert format_eur(None) == "€0,00"
    assert format_eur(1000000) == "€1.000.000,00"


def test_pct_change_zero_base_is_sentinel():
    assert pct_change(500, 0) == NOT_AVAILABLE == "N/A"
    assert pct_change(0, 0) == "N/A"


def test_pct_change_values():
    assert pct_change(120, 100) == "20.0%"
    assert pct_change(50, 200) == "-75.0%"


def test_pct_change_signed_base_handles_negative_previous():
    assert pct_change(-50, -100, signed_base=True) == "50.0%"
    assert pct_change(380, -100, signed_base=True) == "480.0%"
    assert pct_change(10, 0, signed_base=True) == "N/A"
    # Without signed_base a negative base is not meaningful
    assert pct_change(-50, -100) == "N/A"


def test_margin():
    assert margin(380, 500) == "76.0%"
    assert margin(-10, 0) == "N/A"


def test_previous_period_mirrors_same_span():
    assert previous_period(date(2024, 1, 1), date(2024, 1, 31)) == (date(2023, 12, 1), date(2023, 12, 31))
    assert previous_period(date(2024, 3, 10), date(2024, 3, 10)) == (date(2024, 3, 9), date(2024, 3, 9))


def test_bucket_key():
    day = date(2024, 1, 18)  # Thursday
    assert bucket_key(day, "day") == "2024-01-18"
    assert bucket_key(day, "week") == "2024-01-15"
    assert bucket_key(day, "month") == "2024-01"


def test_cap_limit():
    assert cap_limit(None, 25, 100) == 25
    assert cap_limit(0, 25, 100) == 25
    assert cap_limit(10, 25, 100) == 10
    assert cap_limit(500, 25, 100) == 100


def test_take_and_truncation_note():
    rows, truncated = take([1, 2, 3], 2)
    assert rows == [1, 2] and truncated

    rows, truncated = take([1, 2], 2)
    assert rows == [1, 2] and not truncated

    assert with_truncation({"x": 1}, False, 2, "rows") == {"x": 1}
    payload = with_truncation({"x": 1}, True, 2, "rows")
    assert payload["truncated"] is True
    assert "first 2 rows" in payload["note"]
