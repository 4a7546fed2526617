# capability_handlers/exchange_handlers.py
from typing import List
from core.capability_definitions import usage_hint
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.logger import log


def _render_quote(quote: dict, sell: str, buy: str, amount: str, title: str, sold_label: str, bought_label: str) -> List[str]:
    sell_amount = quote.get("sell_amount", amount)
    sell_currency = quote.get("sell_currency", sell)
    buy_currency = quote.get("buy_currency", buy)
    rate = float(quote.get("rate", 0.0))
    buy_amount = float(quote.get("buy_amount", rate * float(amount)))
    return [
        f"💱 **{title}**",
        f"• {sold_label}: {sell_amount} {sell_currency}",
        f"• {bought_label}: ~{buy_amount:.4f} {buy_currency}",
        f"• Rate: 1 {sell_currency} = {rate:.4f} {buy_currency}",
        f"• Est. slippage: {quote.get('slippage', 0)}%",
    ]


async def execute_mento_quote(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    sell, buy, amount = (list(params) + ["", "", ""])[:3]
    if not sell or not buy or not amount:
        return Outcome.fail(usage_hint("MENTO_QUOTE"), error="Missing parameters")

    try:
        quote = await sources.oracle.get_quote(sell, buy, amount)
        lines = _render_quote(quote, sell, buy, amount, "Mento Swap Quote", "Sell", "Buy")
    except Exception as e:
        log(f"[ExchangeHandlers] MENTO_QUOTE {sell}->{buy} failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Failed to get quote: {e}", error=str(e))

    lines += [f"• Source: {quote.get('source', 'mento')}", "",
              f'_To execute: "swap {amount} {sell} for {buy}"_']
    return Outcome.ok("\n".join(lines), **quote)


async def execute_mento_swap(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    sell, buy, amount = (list(params) + ["", "", ""])[:3]
    if not sell or not buy or not amount:
        return Outcome.fail(usage_hint("MENTO_SWAP"), error="Missing parameters")
    if not context.wallet_address or context.derivation_index is None:
        return Outcome.fail("⚠️ Agent wallet not initialized. Cannot execute swap.", error="No wallet")

    try:
        quote = await sources.oracle.get_quote(sell, buy, amount)
        lines = _render_quote(quote, sell, buy, amount, "Mento Swap (Simulated on Testnet)", "Sold", "Bought")
    except Exception as e:
        log(f"[ExchangeHandlers] MENTO_SWAP {sell}->{buy} for agent {context.agent_id} failed: {e}", level="ERROR")
        return Outcome.fail(f"❌ Swap failed: {e}", error=str(e))

    lines += ["", "⚠️ _On testnet, Mento swaps are simulated. Real execution available on mainnet._"]
    log(f"[ExchangeHandlers] Simulated swap {amount} {sell}->{buy} for agent {context.agent_id}.", level="INFO")
    return Outcome.ok("\n".join(lines), simulated=True, **quote)


HANDLERS = {
    "MENTO_QUOTE": execute_mento_quote,
    "MENTO_SWAP": execute_mento_swap,
}
