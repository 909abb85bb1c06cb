from datetime import datetime, timedelta, timezone

from shopstock.time_utils import parse_iso_datetime, to_utc_z


def test_parse_offsets_to_naive_utc():
    assert parse_iso_datetime("2026-10-16T09:30:00+02:00") == datetime(2026, 10, 16, 7, 30)
    assert parse_iso_datetime("2026-10-16T09:30:00Z") == datetime(2026, 10, 16, 9, 30)
    assert parse_iso_datetime("2026-10-16T09:30") == datetime(2026, 10, 16, 9, 30)


def test_blank_is_none():
    assert parse_iso_datetime(None) is None
    assert parse_iso_datetime("  ") is None


def test_bare_date_as_upper_bound_covers_the_day():
    assert parse_iso_datetime("2026-10-16") == datetime(2026, 10, 16)
    end = parse_iso_datetime("2026-10-16", end_of_day=True)
    assert end == datetime(2026, 10, 17) - timedelta(microseconds=1)
    # A full timestamp is taken as given
    assert parse_iso_datetime("2026-10-16T12:00", end_of_day=True) == datetime(2026, 10, 16, 12)


def test_to_utc_z():
    assert to_utc_z(None) is None
    assert to_utc_z(datetime(2026, 10, 16, 9, 30, 5, 123)) == "2026-10-16T09:30:05Z"
    aware = datetime(2026, 10, 16, 11, 30, tzinfo=timezone(timedelta(hours=2)))
    assert to_utc_z(aware) == "2026-10-16T09:30:00Z"
