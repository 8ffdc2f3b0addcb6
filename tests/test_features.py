"""SLA breach and peak-hour flags."""

from datetime import time, timedelta

import pandas as pd
import pytest

from ingestion.order_store import OrderStore
from processing.staging.features import derive_peak_hour_flag, derive_sla_breach_flag
from quality_framework.rejection_handler import RejectionHandler


def _store_with_durations(durations):
    df = pd.DataFrame({
        "order_id": [f"o{i}" for i in range(len(durations))],
        "delivery_duration": pd.array(durations, dtype="Int64"),
    })
    return OrderStore(df)


def _store_with_times(times):
    df = pd.DataFrame({
        "order_id": [f"o{i}" for i in range(len(times))],
        "time_ordered": pd.Series(times, dtype=object),
    })
    return OrderStore(df)


class TestSlaBreachFlag:

    def test_strictly_greater_than_threshold(self):
        store = _store_with_durations([10, 40, 41, 45])

        derive_sla_breach_flag(store)

        assert list(store.frame["sla_breach_flag"]) == [False, False, True, True]

    def test_null_duration_keeps_null_flag(self):
        store = _store_with_durations([50, None])

        result = derive_sla_breach_flag(store)

        assert store.frame.loc["o0", "sla_breach_flag"]
        assert pd.isna(store.frame.loc["o1", "sla_breach_flag"])
        assert result["rows_updated"] == 1

    def test_threshold_is_configurable(self):
        store = _store_with_durations([25, 35])

        derive_sla_breach_flag(store, threshold=30)

        assert list(store.frame["sla_breach_flag"]) == [False, True]

    def test_existing_flags_are_kept(self):
        store = _store_with_durations([10, 50])
        store.frame.loc["o0", "sla_breach_flag"] = True

        result = derive_sla_breach_flag(store)

        assert result["rows_considered"] == 1
        assert bool(store.frame.loc["o0", "sla_breach_flag"]) is True


class TestPeakHourFlag:

    @pytest.mark.parametrize("raw,expected", [
        ("19:00:00", True),
        ("20:30:00", True),
        ("21:59:00", True),
        ("18:59:59", False),
        ("22:00:00", False),
        ("08:10:00", False),
        (time(19, 5), True),
        (timedelta(hours=20, minutes=15), True),
        (timedelta(hours=7), False),
    ])
    def test_window_is_inclusive_of_both_hours(self, raw, expected):
        store = _store_with_times([raw])

        derive_peak_hour_flag(store)

        assert bool(store.frame.loc["o0", "peak_hour_flag"]) is expected

    def test_unreadable_times_are_rejected(self):
        store = _store_with_times(["19:30:00", None, "25:10"])
        rejections = RejectionHandler()

        result = derive_peak_hour_flag(store, rejections)

        flags = store.frame["peak_hour_flag"]
        assert bool(flags["o0"]) is True
        assert flags[["o1", "o2"]].isna().all()
        assert result["rows_rejected"] == 2
        assert rejections.rejected_order_ids("time_ordered") == ["o1", "o2"]

    def test_window_is_configurable(self):
        store = _store_with_times(["12:15:00", "19:30:00"])

        derive_peak_hour_flag(store, start_hour=12, end_hour=13)

        assert list(store.frame["peak_hour_flag"]) == [True, False]

    def test_fixture_orders(self, order_store):
        derive_peak_hour_flag(order_store)

        assert list(order_store.frame["peak_hour_flag"]) == [False, True, False, True, False]
