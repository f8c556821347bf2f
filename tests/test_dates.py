from __future__ import annotations

from datetime import date

from dcgallery.dates import is_date_in_range, is_date_key, is_date_older, normalize_date, today_key

TODAY = date(2026, 10, 19)


def test_normalize_date_formats():
    assert normalize_date("14:32", TODAY) == "2026-10-19"
    assert normalize_date("03.15", TODAY) == "2026-03-15"
    assert normalize_date("2024-01-05 14:32", TODAY) == "2024-01-05"
    assert normalize_date("  2024-01-05 14:32:10 ", TODAY) == "2024-01-05"


def test_normalize_date_is_idempotent_on_canonical_keys():
    key = normalize_date("2024-01-05 14:32", TODAY)
    assert normalize_date(key, TODAY) == key


def test_normalize_date_rejects_other_text():
    for text in (None, "", "24.03.15", "yesterday", "3.15", "1:05"):
        assert normalize_date(text, TODAY) == ""


def test_today_key_uses_local_clock_by_default():
    assert today_key() == date.today().strftime("%Y-%m-%d")
    assert normalize_date("09:00") == date.today().strftime("%Y-%m-%d")


def test_is_date_in_range_with_optional_bounds():
    assert is_date_in_range("2024-03-15 10:00:00", "2024-03-15", "2024-03-20")
    assert is_date_in_range("2024-03-20", "2024-03-15", "2024-03-20")
    assert not is_date_in_range("2024-03-14", "2024-03-15", "2024-03-20")
    assert not is_date_in_range("2024-03-21", "2024-03-15", "2024-03-20")
    assert is_date_in_range("2024-03-21", "2024-03-15", None)
    assert is_date_in_range("1999-01-01", None, None)
    assert not is_date_in_range("garbage", None, None)


def test_is_date_older():
    assert is_date_older("2024-03-14", "2024-03-15")
    assert not is_date_older("2024-03-15", "2024-03-15")
    assert not is_date_older("2024-03-14", None)
    assert not is_date_older("garbage", "2024-03-15")


def test_is_date_key():
    assert is_date_key("2024-02-29")
    assert not is_date_key("2023-02-29")
    assert not is_date_key("2024-3-1")
    assert not is_date_key("2024-03-01 10:00")
