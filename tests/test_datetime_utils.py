from datetime import datetime, timedelta, timezone

from datetime_utils import UTC, ensure_utc, parse_rfc3339, to_rfc3339_utc


def test_parse_rfc3339_handles_zulu_and_offsets():
    assert parse_rfc3339("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, tzinfo=UTC)
    assert parse_rfc3339("2024-03-01T12:00:00+02:00") == datetime(2024, 3, 1, 10, tzinfo=UTC)
    assert parse_rfc3339("") is None
    assert parse_rfc3339("yesterday") is None


def test_naive_datetimes_are_treated_as_utc():
    naive = datetime(2024, 3, 1, 10, 0)
    assert ensure_utc(naive).tzinfo is UTC
    shifted = datetime(2024, 3, 1, 13, 0, tzinfo=timezone(timedelta(hours=3)))
    assert ensure_utc(shifted) == datetime(2024, 3, 1, 10, 0, tzinfo=UTC)


def test_serialisation_keeps_microseconds():
    value = datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=UTC)
    text = to_rfc3339_utc(value)
    assert text == "2024-03-01T10:00:00.123456Z"
    assert parse_rfc3339(text) == value
    assert to_rfc3339_utc(None) is None
