# capability_handlers/data_handlers.py
from typing import List
from core.capability_definitions import usage_hint
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.display_format import is_address, short_address
from utils.logger import log

BALANCE_SYMBOLS = ("CELO", "cUSD", "cEUR", "cREAL")


async def execute_check_balance(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    """Balances for the given address, or for the agent's own wallet when none is given."""
    address = params[0] if params else ""
    if not address and context.wallet_address:
        address = context.wallet_address
    if not is_address(address):
        return Outcome.fail(usage_hint("CHECK_BALANCE", "a valid 0x address"), error="Invalid address")

    try:
        balances = await sources.oracle.get_balances(address)
    except Exception as e:
        log(f"[DataHandlers] CHECK_BALANCE for {address} failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Failed to check balance: {e}", error=str(e))

    lines = [f"💰 **Balance for {short_address(address)}**"]
    lines += [f"• {symbol}: {float(balances.get(symbol, 0)):.4f}" for symbol in BALANCE_SYMBOLS]
    return Outcome.ok("\n".join(lines), address=address, balances=balances)


async def execute_gas_price(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    try:
        gas = await sources.oracle.get_gas_price()
    except Exception as e:
        log(f"[DataHandlers] GAS_PRICE failed: {e}", level="WARN")
        return Outcome.fail(f"❌ Failed to get gas price: {e}", error=str(e))

    display = "\n".join([
        "⛽ **Celo Gas Price**",
        f"• Base fee: {float(gas.get('base_fee', 0)):.2f} gwei",
        f"• Suggested tip: {gas.get('suggested_tip', '-')} gwei",
        f"• Simple transfer cost: ~{float(gas.get('estimated_cost', 0)):.6f} CELO",
    ])
    return Outcome.ok(display, **gas)


HANDLERS = {
    "CHECK_BALANCE": execute_check_balance,
    "GAS_PRICE": execute_gas_price,
}
