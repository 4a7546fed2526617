# memory/price_tracker.py

from collections import defaultdict, deque
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, List, Optional
import numpy as np
import config
from utils.logger import log
from utils.display_format import short_period_label


class PriceTracker:
    """
    In-memory price history per pair, fed from the oracle connector.
    Provides trend analysis, a momentum heuristic for the next hour and
    alert detection. History is bounded per pair and lost on restart.
    """

    def __init__(self, oracle, max_snapshots: int = config.PRICE_HISTORY_MAX_SNAPSHOTS):
        self.oracle = oracle
        self.max_snapshots = max_snapshots
        self._history: Dict[str, Deque[Dict[str, Any]]] = defaultdict(lambda: deque(maxlen=self.max_snapshots))

    def _add_snapshot(self, rate: Dict[str, Any], timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        snapshot = {
            "pair": rate["pair"],
            "rate": float(rate["rate"]),
            "inverse": float(rate.get("inverse", 0.0)),
            "timestamp": timestamp or datetime.now(),
            "source": rate.get("source", "unknown"),
        }
        self._history[snapshot["pair"]].append(snapshot)
        return snapshot

    async def record_all_snapshots(self) -> List[Dict[str, Any]]:
        rates = await self.oracle.get_all_rates()
        snapshots = [self._add_snapshot(rate) for rate in rates]
        log(f"[PriceTracker] Recorded {len(snapshots)} price snapshot(s).", level="DEBUG")
        return snapshots

    async def record_snapshot(self, stable_symbol: str) -> Dict[str, Any]:
        rate = await self.oracle.get_rate(stable_symbol)
        return self._add_snapshot(rate)

    def add_snapshot(self, pair: str, rate: float, timestamp: Optional[datetime] = None, source: str = "manual") -> Dict[str, Any]:
        """Records a snapshot without calling the oracle (backfill, tests)."""
        return self._add_snapshot({"pair": pair, "rate": rate, "inverse": (1 / rate) if rate else 0.0, "source": source}, timestamp)

    def get_history(self, pair: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        history = list(self._history.get(pair, ()))
        if limit:
            return history[-limit:]
        return history

    def tracked_pairs(self) -> List[str]:
        return [pair for pair, snapshots in self._history.items() if snapshots]

    # --- Trend analysis ---

    def analyze_trend(self, pair: str, period_minutes: int = config.DEFAULT_TREND_PERIOD_MINUTES) -> Optional[Dict[str, Any]]:
        history = self.get_history(pair)
        if len(history) < 2:
            return None

        cutoff = datetime.now() - timedelta(minutes=period_minutes)
        in_period = [s for s in history if s["timestamp"] >= cutoff]
        if len(in_period) < 2:
            # Not enough points inside the window, compare the two latest
            return self._build_trend(pair, history[-1], history[-2], 2, period_minutes)
        return self._build_trend(pair, in_period[-1], in_period[0], len(in_period), period_minutes)

    @staticmethod
    def _build_trend(pair, current, previous, count, period_minutes) -> Dict[str, Any]:
        change = current["rate"] - previous["rate"]
        change_percent = (change / previous["rate"]) * 100 if previous["rate"] else 0.0
        if abs(change_percent) < 0.01:
            direction = "flat"
        else:
            direction = "up" if change > 0 else "down"
        return {
            "pair": pair,
            "current_rate": current["rate"],
            "previous_rate": previous["rate"],
            "change": change,
            "change_percent": change_percent,
            "direction": direction,
            "period": short_period_label(period_minutes),
            "snapshots": count,
        }

    def analyze_all_trends(self, period_minutes: int = config.DEFAULT_TREND_PERIOD_MINUTES) -> List[Dict[str, Any]]:
        trends = [self.analyze_trend(pair, period_minutes) for pair in self.tracked_pairs()]
        return [t for t in trends if t]

    # --- Prediction ---

    @staticmethod
    def _ema(values: List[float], period: int) -> float:
        if not values:
            return 0.0
        k = 2 / (period + 1)
        ema = values[0]
        for value in values[1:]:
            ema = value * k + ema * (1 - k)
        return ema

    def predict_price(self, pair: str) -> Optional[Dict[str, Any]]:
        """Momentum heuristic. Needs at least five snapshots. Not financial advice."""
        rates = [s["rate"] for s in self.get_history(pair)]
        if len(rates) < 5:
            return None

        current = rates[-1]
        short_ema = self._ema(rates, min(5, len(rates)))
        long_ema = self._ema(rates, min(20, len(rates)))

        recent = rates[-5:]
        roc = (recent[-1] - recent[0]) / recent[0] * 100 if recent[0] else 0.0
        volatility_percent = float(np.std(recent)) / float(np.mean(recent)) * 100 if np.mean(recent) else 0.0

        bullish, bearish = [], []
        if short_ema > long_ema:
            bullish.append("Short EMA above long EMA")
        elif short_ema < long_ema:
            bearish.append("Short EMA below long EMA")

        if roc > 0.5:
            bullish.append(f"Positive momentum (+{roc:.2f}%)")
        elif roc < -0.5:
            bearish.append(f"Negative momentum ({roc:.2f}%)")

        if current > long_ema:
            bullish.append("Price above long-term average")
        elif current < long_ema:
            bearish.append("Price below long-term average")

        if len(bullish) > len(bearish):
            direction, reasoning = "up", "Bullish: " + ", ".join(bullish)
        elif len(bearish) > len(bullish):
            direction, reasoning = "down", "Bearish: " + ", ".join(bearish)
        else:
            direction, reasoning = "flat", "Mixed signals, no clear direction"

        strength = abs(len(bullish) - len(bearish))
        if strength >= 3 and volatility_percent < 2:
            confidence = "high"
        elif strength >= 2:
            confidence = "medium"
        else:
            confidence = "low"

        return {
            "pair": pair,
            "current_rate": current,
            "predicted_rate": current + roc / 100 * current,
            "predicted_direction": direction,
            "confidence": confidence,
            "reasoning": reasoning,
            "timeframe": "next 1h",
        }

    def predict_all(self) -> List[Dict[str, Any]]:
        predictions = [self.predict_price(pair) for pair in self.tracked_pairs()]
        return [p for p in predictions if p]

    # --- Alerts ---

    def check_alerts(self, threshold_percent: float = config.DEFAULT_ALERT_THRESHOLD_PERCENT) -> List[Dict[str, Any]]:
        alerts = []
        for pair in self.tracked_pairs():
            history = self.get_history(pair)
            if len(history) < 2:
                continue
            current, previous = history[-1], history[-2]
            change = (current["rate"] - previous["rate"]) / previous["rate"] * 100 if previous["rate"] else 0.0

            if abs(change) >= threshold_percent:
                if abs(change) >= 5:
                    severity = "critical"
                elif abs(change) >= 3:
                    severity = "warning"
                else:
                    severity = "info"
                sign = "+" if change > 0 else ""
                alerts.append({
                    "pair": pair,
                    "type": "significant_move",
                    "message": f"{pair} moved {sign}{change:.2f}% ({previous['rate']:.4f} → {current['rate']:.4f})",
                    "severity": severity,
                    "rate": current["rate"],
                    "change_percent": change,
                })

            if len(history) >= 10:
                recent_vol = float(np.std([s["rate"] for s in history[-5:]]))
                previous_vol = float(np.std([s["rate"] for s in history[-10:-5]]))
                if previous_vol > 0 and recent_vol / previous_vol > 2:
                    alerts.append({
                        "pair": pair,
                        "type": "volatility_spike",
                        "message": f"{pair} volatility spiked {recent_vol / previous_vol:.1f}x in the last period",
                        "severity": "warning",
                        "rate": current["rate"],
                        "change_percent": change,
                    })
        return alerts
