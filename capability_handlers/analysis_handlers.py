# capability_handlers/analysis_handlers.py
"""
Market analysis built on the oracle connector and the in-memory price tracker.
Every handler records fresh snapshots first so trend data stays current.
"""
from typing import List
import config
from core.capability_definitions import usage_hint
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.display_format import (
    confidence_icon, direction_icon, format_period_label, short_address, signed,
)
from utils.logger import log

# Approximate USD valuation for non-dollar stables
USD_VALUE = {"cUSD": 1.0, "cEUR": 1.08, "cREAL": 0.20}


async def _refresh_snapshots(sources: DataSources):
    """Best effort. A failed refresh leaves the existing history in place."""
    try:
        await sources.price_tracker.record_all_snapshots()
    except Exception as e:
        log(f"[AnalysisHandlers] Snapshot refresh failed, using cached history: {e}", level="DEBUG")


def _normalize_pair(pair_input: str) -> str:
    return pair_input if "/" in pair_input else f"CELO/{pair_input}"


def _trend_line(trend: dict) -> str:
    return (f"{direction_icon(trend['direction'])} **{trend['pair']}**: {signed(trend['change_percent'])}% "
            f"({trend['previous_rate']:.6f} → {trend['current_rate']:.6f}) [{trend['snapshots']} pts]")


async def execute_forex_analysis(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    pair = params[0] if params else ""
    tracker = sources.price_tracker
    await _refresh_snapshots(sources)

    try:
        if "/" in pair:
            buy = pair.split("/")[1]
            rate = await sources.oracle.get_rate(buy)
            trend = tracker.analyze_trend(rate["pair"], 60)
            prediction = tracker.predict_price(rate["pair"])
            history = tracker.get_history(rate["pair"], 10)
            reporters = rate.get("num_reporters", 0)

            lines = [
                f"📈 **Forex Analysis: {rate['pair']}**", "",
                "**Current Rate:**",
                f"• 1 CELO = {rate['rate']:.4f} {buy}",
                f"• 1 {buy} = {rate.get('inverse', 0.0):.4f} CELO", "",
                "**Oracle Status:**",
                f"• Active reporters: {reporters}",
                f"• Data fresh: {'❌ Stale' if rate.get('is_expired') else '✅ Fresh'}",
                f"• Source: {rate.get('source', 'unknown')}", "",
            ]
            if trend:
                lines += [
                    f"**Trend ({trend['period']}):**",
                    f"• Direction: {direction_icon(trend['direction'])} {trend['direction'].upper()}",
                    f"• Change: {signed(trend['change_percent'])}%",
                    f"• Previous: {trend['previous_rate']:.6f} → Current: {trend['current_rate']:.6f}",
                    f"• Data points: {trend['snapshots']}",
                ]
            else:
                lines.append("**Trend:** Not enough data yet (start price tracking first)")
            lines.append("")
            if prediction:
                lines += [
                    f"**Prediction ({prediction['timeframe']}):**",
                    f"• Direction: {direction_icon(prediction['predicted_direction'])} {prediction['predicted_direction'].upper()}",
                    f"• Predicted rate: {prediction['predicted_rate']:.6f}",
                    f"• Confidence: {confidence_icon(prediction['confidence'])} {prediction['confidence']}",
                    f"• Reasoning: {prediction['reasoning']}",
                ]
            else:
                lines.append("**Prediction:** Need ≥ 5 data points, run price tracking first")
            lines += ["", "**Analysis:**"]
            if reporters >= 3:
                lines.append(f"• Oracle has sufficient reporters ({reporters}), rate is reliable.")
            else:
                lines.append(f"• ⚠️ Low reporter count ({reporters}), rate may be less reliable.")
            if rate.get("is_expired"):
                lines.append("• ⚠️ Oracle data is expired, exercise caution with trades.")
            else:
                lines.append("• Oracle data is fresh, safe to trade at quoted rates.")
            if history:
                lines.append(f"• {len(history)} price snapshots recorded in current session.")
            return Outcome.ok("\n".join(lines), **rate)

        rates = await sources.oracle.get_all_rates()
        lines = ["📈 **Celo Forex Market Overview**", "", "**Current Rates (SortedOracles):**"]
        for r in rates:
            trend = tracker.analyze_trend(r["pair"], 60)
            icon = direction_icon(trend["direction"]) if trend else "•"
            change = f" ({signed(trend['change_percent'], 2)}%)" if trend else ""
            fresh = "⚠️" if r.get("is_expired") else "✅"
            lines.append(f"{icon} {r['pair']}: {r['rate']:.4f}{change} (reporters: {r.get('num_reporters', 0)}) {fresh}")
        lines += ["", "**Summary:**", f"• {len(rates)} active pairs monitored",
                  '• Use "swap X CELO for cUSD" to execute a Mento trade']
        return Outcome.ok("\n".join(lines), rates=rates)
    except Exception as e:
        log(f"[AnalysisHandlers] FOREX_ANALYSIS failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Analysis failed: {e}", error=str(e))


async def execute_portfolio_status(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    if not context.wallet_address:
        return Outcome.fail("⚠️ Agent wallet not initialized.", error="No wallet")

    try:
        balances = await sources.oracle.get_balances(context.wallet_address)
        celo_rate = await sources.oracle.get_rate("cUSD")
    except Exception as e:
        log(f"[AnalysisHandlers] PORTFOLIO_STATUS for {context.agent_id} failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Portfolio check failed: {e}", error=str(e))

    celo = float(balances.get("CELO", 0))
    celo_usd = celo * float(celo_rate["rate"])
    holdings = [f"• CELO: {celo:.4f} (~${celo_usd:.2f})"]
    total_usd = celo_usd
    for symbol, usd_value in USD_VALUE.items():
        amount = float(balances.get(symbol, 0))
        total_usd += amount * usd_value
        holdings.append(f"• {symbol}: {amount:.4f} (~${amount * usd_value:.2f})")

    lines = ["💼 **Agent Portfolio**", f"• Wallet: {short_address(context.wallet_address)}", "", "**Holdings:**"]
    lines += holdings
    lines += ["", f"**Total Value: ~${total_usd:.2f}**", "",
              f"_CELO/cUSD rate: {float(celo_rate['rate']):.4f} ({celo_rate.get('source', 'unknown')})_"]
    return Outcome.ok("\n".join(lines), balances=balances, total_usd=total_usd)


async def execute_price_track(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    target = (params[0] if params and params[0] else "all")
    tracker = sources.price_tracker
    try:
        if target.upper() == "ALL":
            snapshots = await tracker.record_all_snapshots()
            lines = [f"📊 **Price Snapshot Recorded** ({len(snapshots)} pairs)", ""]
            lines += [f"• {s['pair']}: {s['rate']:.6f} ({s['source']}), recorded at {s['timestamp'].isoformat()}"
                      for s in snapshots]
            changes = []
            for s in snapshots:
                recent = tracker.get_history(s["pair"], 5)
                if len(recent) > 1 and recent[0]["rate"]:
                    change = (recent[-1]["rate"] - recent[0]["rate"]) / recent[0]["rate"] * 100
                    changes.append(f"• {s['pair']}: {signed(change)}% over {len(recent)} snapshots")
            if changes:
                lines += ["", "**Recent Changes:**"] + changes
            return Outcome.ok("\n".join(lines), snapshots=len(snapshots))

        snapshot = await tracker.record_snapshot(target)
        history = tracker.get_history(snapshot["pair"], 10)
        lines = [f"📊 **Price Recorded: {snapshot['pair']}**",
                 f"• Current rate: {snapshot['rate']:.6f}", f"• Source: {snapshot['source']}"]
        if len(history) > 1:
            lines += ["", f"**Recent History ({len(history)} points):**"]
            lines += [f"  {h['timestamp'].strftime('%H:%M:%S')}: {h['rate']:.6f}" for h in history]
        return Outcome.ok("\n".join(lines), pair=snapshot["pair"], rate=snapshot["rate"])
    except Exception as e:
        log(f"[AnalysisHandlers] PRICE_TRACK {target} failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Price tracking failed: {e}", error=str(e))


async def execute_price_trend(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    pair_input = params[0] if params and params[0] else "all"
    try:
        period = int(params[1]) if len(params) > 1 and params[1] else config.DEFAULT_TREND_PERIOD_MINUTES
    except ValueError:
        period = config.DEFAULT_TREND_PERIOD_MINUTES
    await _refresh_snapshots(sources)
    tracker = sources.price_tracker

    try:
        if pair_input.upper() == "ALL":
            trends = tracker.analyze_all_trends(period)
            if not trends:
                return Outcome.ok("📈 **No trend data yet.** Run [[PRICE_TRACK|all]] a few times to build history.")
            lines = [f"📈 **Price Trends ({format_period_label(period)})**", ""] + [_trend_line(t) for t in trends]
            return Outcome.ok("\n".join(lines), trends=trends)

        pair = _normalize_pair(pair_input)
        trend = tracker.analyze_trend(pair, period)
        if not trend:
            return Outcome.ok(f"📈 **No trend data for {pair}.** Run [[PRICE_TRACK|{pair_input}]] a few times first.")
        display = "\n".join([
            f"{direction_icon(trend['direction'])} **Trend: {trend['pair']} ({trend['period']})**",
            f"• Direction: {trend['direction'].upper()}",
            f"• Change: {signed(trend['change_percent'])}%",
            f"• From: {trend['previous_rate']:.6f} → To: {trend['current_rate']:.6f}",
            f"• Data points: {trend['snapshots']}",
        ])
        return Outcome.ok(display, **trend)
    except Exception as e:
        log(f"[AnalysisHandlers] PRICE_TREND {pair_input} failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Trend analysis failed: {e}", error=str(e))


async def execute_price_predict(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    pair_input = params[0] if params and params[0] else "all"
    await _refresh_snapshots(sources)
    tracker = sources.price_tracker

    try:
        if pair_input.upper() == "ALL":
            predictions = tracker.predict_all()
            if not predictions:
                return Outcome.ok("🔮 **Not enough data for predictions.** Need at least 5 price snapshots. "
                                  "Run [[PRICE_TRACK|all]] periodically.")
            lines = ["🔮 **Price Predictions (momentum-based)**", ""]
            for p in predictions:
                lines += [
                    f"{direction_icon(p['predicted_direction'])} **{p['pair']}** ({p['timeframe']})",
                    f"  Current: {p['current_rate']:.6f} → Predicted: {p['predicted_rate']:.6f}",
                    f"  Confidence: {confidence_icon(p['confidence'])} {p['confidence']}, {p['reasoning']}",
                ]
            lines += ["", "⚠️ _This is a simple heuristic, NOT financial advice._"]
            return Outcome.ok("\n".join(lines), predictions=predictions)

        pair = _normalize_pair(pair_input)
        prediction = tracker.predict_price(pair)
        if not prediction:
            return Outcome.ok(f"🔮 **Not enough data for {pair}.** Need ≥ 5 snapshots. "
                              f"Run [[PRICE_TRACK|{pair_input}]] periodically.")
        display = "\n".join([
            f"🔮 **Prediction: {prediction['pair']}** ({prediction['timeframe']})",
            f"{direction_icon(prediction['predicted_direction'])} Direction: {prediction['predicted_direction'].upper()}",
            f"• Current: {prediction['current_rate']:.6f}",
            f"• Predicted: {prediction['predicted_rate']:.6f}",
            f"• Confidence: {confidence_icon(prediction['confidence'])} {prediction['confidence']}",
            f"• Reasoning: {prediction['reasoning']}",
            "",
            "⚠️ _Simple momentum heuristic, not financial advice._",
        ])
        return Outcome.ok(display, **prediction)
    except Exception as e:
        log(f"[AnalysisHandlers] PRICE_PREDICT {pair_input} failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Prediction failed: {e}", error=str(e))


async def execute_price_alerts(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    try:
        threshold = float(params[0]) if params and params[0] else config.DEFAULT_ALERT_THRESHOLD_PERCENT
    except ValueError:
        return Outcome.fail(usage_hint("PRICE_ALERTS"), error="Invalid threshold")
    await _refresh_snapshots(sources)

    try:
        alerts = sources.price_tracker.check_alerts(threshold)
    except Exception as e:
        log(f"[AnalysisHandlers] PRICE_ALERTS failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Alert check failed: {e}", error=str(e))

    if not alerts:
        return Outcome.ok(f"🔔 **No Price Alerts** (threshold: {threshold:g}%)\n"
                          "All Mento pairs are moving within normal ranges.", alerts=[])
    icons = {"critical": "🚨", "warning": "⚠️"}
    lines = [f"🔔 **Price Alerts** (threshold: {threshold:g}%)", ""]
    lines += [f"{icons.get(a['severity'], 'ℹ️')} **{a['type'].replace('_', ' ').upper()}**: {a['message']}" for a in alerts]
    return Outcome.ok("\n".join(lines), alerts=alerts)


HANDLERS = {
    "FOREX_ANALYSIS": execute_forex_analysis,
    "PORTFOLIO_STATUS": execute_portfolio_status,
    "PRICE_TRACK": execute_price_track,
    "PRICE_TREND": execute_price_trend,
    "PRICE_PREDICT": execute_price_predict,
    "PRICE_ALERTS": execute_price_alerts,
}
