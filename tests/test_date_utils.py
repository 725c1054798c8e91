from datetime import date, datetime, timedelta, timezone

import pytest

from pipeliner_asana.util.date_utils import to_asana_date, to_iso_timestamp


class TestToAsanaDate:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2025-06-30", "2025-06-30"),
            ("2025-06-30T14:05:09Z", "2025-06-30"),
            ("2025-06-30T23:30:00-05:00", "2025-07-01"),
            (date(2025, 1, 2), "2025-01-02"),
            (datetime(2025, 1, 2, 3, 4), "2025-01-02"),
            (None, None),
            ("", None),
            ("next tuesday", None),
            (1741078800000, "2025-03-04"),
            (1741078800000.0, "2025-03-04"),
            (10**400, None),
        ],
    )
    def test_values(self, value, expected):
        assert to_asana_date(value) == expected


class TestToIsoTimestamp:
    def test_milliseconds_and_z_suffix(self):
        moment = datetime(2025, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)
        assert to_iso_timestamp(moment) == "2025-01-02T03:04:05.123Z"

    def test_converts_to_utc(self):
        moment = datetime(2025, 1, 2, 5, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_iso_timestamp(moment) == "2025-01-02T03:00:00.000Z"

    def test_defaults_to_now(self):
        assert to_iso_timestamp().endswith("Z")
