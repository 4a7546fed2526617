# tests/test_price_tracker.py
import asyncio
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from memory.price_tracker import PriceTracker


@pytest.fixture
def tracker():
    return PriceTracker(oracle=MagicMock(), max_snapshots=50)


def feed(tracker, pair, rates, step_minutes=5):
    start = datetime.now() - timedelta(minutes=step_minutes * (len(rates) - 1))
    for i, rate in enumerate(rates):
        tracker.add_snapshot(pair, rate, timestamp=start + timedelta(minutes=step_minutes * i))


class TestPriceTracker:

    def test_history_is_bounded(self):
        tracker = PriceTracker(oracle=MagicMock(), max_snapshots=3)
        feed(tracker, "CELO/cUSD", [1.0, 1.1, 1.2, 1.3])
        assert [s["rate"] for s in tracker.get_history("CELO/cUSD")] == [1.1, 1.2, 1.3]
        assert tracker.get_history("CELO/cUSD", 1)[0]["rate"] == 1.3

    def test_record_all_snapshots_reads_the_oracle(self, tracker):
        tracker.oracle.get_all_rates = AsyncMock(return_value=[
            {"pair": "CELO/cUSD", "rate": 0.62, "source": "sorted_oracles"},
            {"pair": "CELO/cEUR", "rate": 0.57},
        ])
        with patch('memory.price_tracker.log'):
            snapshots = asyncio.run(tracker.record_all_snapshots())
        assert len(snapshots) == 2
        assert sorted(tracker.tracked_pairs()) == ["CELO/cEUR", "CELO/cUSD"]

    def test_trend_needs_two_points(self, tracker):
        tracker.add_snapshot("CELO/cUSD", 1.0)
        assert tracker.analyze_trend("CELO/cUSD") is None

    def test_trend_direction_and_change(self, tracker):
        feed(tracker, "CELO/cUSD", [1.0, 1.05, 1.1], step_minutes=10)
        trend = tracker.analyze_trend("CELO/cUSD", 60)
        assert trend["direction"] == "up"
        assert trend["change_percent"] == pytest.approx(10.0)
        assert trend["snapshots"] == 3
        assert trend["period"] == "1h"

    def test_flat_trend(self, tracker):
        feed(tracker, "CELO/cEUR", [1.0, 1.00001])
        assert tracker.analyze_trend("CELO/cEUR")["direction"] == "flat"

    def test_prediction_needs_five_points(self, tracker):
        feed(tracker, "CELO/cUSD", [1.0, 1.01, 1.02, 1.03])
        assert tracker.predict_price("CELO/cUSD") is None

    def test_rising_series_predicts_up(self, tracker):
        feed(tracker, "CELO/cUSD", [1.0, 1.01, 1.02, 1.03, 1.04])
        prediction = tracker.predict_price("CELO/cUSD")
        assert prediction["predicted_direction"] == "up"
        assert prediction["predicted_rate"] > prediction["current_rate"]
        assert prediction["reasoning"].startswith("Bullish")

    def test_significant_move_alert(self, tracker):
        feed(tracker, "CELO/cUSD", [1.0, 1.06])
        feed(tracker, "CELO/cEUR", [1.0, 1.001])
        alerts = tracker.check_alerts(threshold_percent=2)
        assert len(alerts) == 1
        assert alerts[0]["pair"] == "CELO/cUSD"
        assert alerts[0]["severity"] == "critical"
        assert "+6.00%" in alerts[0]["message"]
