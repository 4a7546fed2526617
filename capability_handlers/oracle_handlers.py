# capability_handlers/oracle_handlers.py
from typing import List
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.logger import log


def _iso(value) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


async def execute_query_rate(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    currency = (params[0] if params else "") or "cUSD"
    try:
        rate = await sources.oracle.get_rate(currency)
    except Exception as e:
        log(f"[OracleHandlers] QUERY_RATE for {currency} failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Failed to query {currency} rate: {e}", error=str(e))

    source = "Celo SortedOracles (on-chain)" if rate.get("source") == "sorted_oracles" else "Estimated (API fallback)"
    lines = [
        f"📊 **{rate['pair']} Exchange Rate**",
        f"• 1 CELO = {rate['rate']:.4f} {currency}",
        f"• 1 {currency} = {rate.get('inverse', 0.0):.4f} CELO",
        f"• Reporters: {rate.get('num_reporters', 0)}",
        f"• Last update: {_iso(rate.get('last_update', '-'))}",
        f"• Source: {source}",
    ]
    if rate.get("is_expired"):
        lines.append("⚠️ Warning: Oracle data may be stale")
    return Outcome.ok("\n".join(lines), **rate)


async def execute_query_all_rates(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    try:
        rates = await sources.oracle.get_all_rates()
    except Exception as e:
        log(f"[OracleHandlers] QUERY_ALL_RATES failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Failed to query rates: {e}", error=str(e))

    lines = ["📊 **Celo Exchange Rates (SortedOracles)**"]
    for r in rates:
        quote_symbol = r["pair"].split("/")[-1]
        lines.append(f"• {r['pair']}: 1 CELO = {r['rate']:.4f} {quote_symbol} ({r.get('source', 'unknown')})")
    return Outcome.ok("\n".join(lines), rates=rates)


HANDLERS = {
    "QUERY_RATE": execute_query_rate,
    "QUERY_ALL_RATES": execute_query_all_rates,
}
