# capability_handlers/identity_handlers.py
from typing import List
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.logger import log


async def execute_register_wallet(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    """Registers the agent wallet with SelfClaw. Prerequisite for deploy and sponsorship."""
    if not context.wallet_address:
        return Outcome.fail("⚠️ Agent wallet not initialized. Initialize the agent wallet first, then retry.",
                            error="No wallet")
    try:
        result = await sources.token_economy.register_wallet(context.agent_id)
    except Exception as e:
        log(f"[IdentityHandlers] Wallet registration for {context.agent_id} failed: {e}", level="ERROR")
        return Outcome.fail(f"Failed to register wallet: {e}", error=str(e))

    if not result.get("success"):
        error = result.get("error") or "Unknown error"
        return Outcome.fail(f"Registration Failed: {error}", error=error)

    wallet = result.get("wallet_address")
    status = f"Wallet {wallet[:10]}...{wallet[-8:]} is now registered." if wallet else "Registration complete."
    log(f"[IdentityHandlers] Agent {context.agent_id} wallet registered.", level="INFO")
    return Outcome.ok("\n".join(["Wallet Registered with SelfClaw", "", status, "",
                                 "You can now deploy a token and request sponsorship."]),
                      wallet_address=wallet)


HANDLERS = {
    "SELFCLAW_REGISTER_WALLET": execute_register_wallet,
}
