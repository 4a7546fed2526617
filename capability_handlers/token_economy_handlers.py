# capability_handlers/token_economy_handlers.py
"""Agent token lifecycle on SelfClaw: deploy, sponsorship, revenue and cost bookkeeping."""
from typing import List
from core.capability_definitions import usage_hint
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.logger import log

WEI_PER_TOKEN = 10 ** 18


def _pool_line(pool: dict) -> str:
    price = pool.get("price")
    market_cap = pool.get("market_cap")
    price_str = f"${price:.4f}" if price is not None else "-"
    cap_str = f"${market_cap:,.0f}" if market_cap is not None else "-"
    return f"{pool.get('agent_name') or 'Pool'}: {price_str} | MCap: {cap_str}"


async def execute_agent_tokens(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    try:
        info = await sources.token_economy.get_agent_token_info(context.agent_id)
    except Exception as e:
        log(f"[TokenEconomyHandlers] AGENT_TOKENS for {context.agent_id} failed: {e}", level="WARN")
        return Outcome.fail(f"Failed to get token info: {e}", error=str(e))
    if info.get("error"):
        return Outcome.fail(f"Agent Tokens: {info['error']}", error=info["error"])

    lines = ["Agent Token Info (SelfClaw)", ""]
    deployed = info.get("deployed_tokens") or []
    if deployed:
        lines.append("Deployed tokens (tracked):")
        lines += [f"  {t.get('name')} ({t.get('symbol')}): {t.get('address')}" for t in deployed]
        lines.append("")
    if info.get("token_address"):
        lines.append(f"Primary token: {info['token_address']}")
    elif not deployed:
        lines.append("Token: Not deployed yet. Deploy via [[SELFCLAW_DEPLOY_TOKEN|name|symbol|supply]]")
    if info.get("wallet_address"):
        wallet = info["wallet_address"]
        lines.append(f"Wallet: {wallet[:10]}...{wallet[-8:]}")

    economics = info.get("economics")
    if economics:
        lines += ["", "Economics:",
                  f"Revenue: ${economics.get('total_revenue', 0)}",
                  f"Costs: ${economics.get('total_costs', 0)}",
                  f"P&L: ${economics.get('profit_loss', 0)}"]
        runway = economics.get("runway")
        if runway:
            lines.append(f"Runway: {runway.get('months')} months ({runway.get('status')})")

    pools = info.get("pools") or []
    if pools:
        lines += ["", "Liquidity Pools:"] + [_pool_line(p) for p in pools]
    elif info.get("token_address"):
        lines += ["", "Pools: None yet. Use [[REQUEST_SELFCLAW_SPONSORSHIP]] to request sponsorship."]
    return Outcome.ok("\n".join(lines), **info)


async def execute_request_sponsorship(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    """
    Requests a sponsored SELFCLAW pool. When the sponsor wallet first needs agent
    tokens, the failure rendering carries the exact transfer directive and tells the
    model to ask the user before retrying.
    """
    token_override = params[0].strip() if params and params[0] else ""
    if token_override and not token_override.startswith("0x"):
        return Outcome.fail(usage_hint("REQUEST_SELFCLAW_SPONSORSHIP", "token address must start with 0x"),
                            error="Invalid token address")
    if not context.wallet_address:
        return Outcome.fail("⚠️ Agent wallet not initialized. Register a wallet before requesting sponsorship.",
                            error="No wallet")

    try:
        info = await sources.token_economy.get_agent_token_info(context.agent_id)
        pools = info.get("pools") or []
        if pools:
            lines = ["Already Sponsored", "",
                     "Your token already has SELFCLAW liquidity sponsorship. You have a pool paired with SELFCLAW.", ""]
            lines += [f"• {_pool_line(p)}" for p in pools]
            return Outcome.ok("\n".join(lines), already_sponsored=True)

        result = await sources.token_economy.request_sponsorship(context.agent_id, token_override or None)
    except Exception as e:
        log(f"[TokenEconomyHandlers] Sponsorship request for {context.agent_id} failed: {e}", level="ERROR")
        return Outcome.fail(f"Failed to request sponsorship: {e}", error=str(e))

    if result.get("success"):
        log(f"[TokenEconomyHandlers] Sponsorship requested for agent {context.agent_id}.", level="INFO")
        return Outcome.ok("\n".join([
            "SELFCLAW Sponsorship Requested", "",
            "Your liquidity pool request was submitted successfully. SelfClaw will create a trading pool "
            "pairing your token with SELFCLAW.", "",
            "What happens next:",
            "• Pool creation may take a few minutes",
            "• One sponsorship per human (sybil protection)",
        ]), sponsorship_requested=True)

    error = result.get("error") or "Unknown error"
    lines = [f"Sponsorship Request Failed: {error}"]
    token_address = result.get("token_address") or token_override
    sponsor_wallet = result.get("sponsor_wallet")
    amount_needed = result.get("amount_needed")
    if sponsor_wallet and amount_needed and token_address:
        tokens = int(float(amount_needed) / WEI_PER_TOKEN)
        lines += [
            "",
            "RECOVERY: The sponsor wallet needs your agent tokens. To fix:",
            f"1. Send {tokens:,} of your agent token to {sponsor_wallet}",
            f"   Use: [[SEND_AGENT_TOKEN|{token_address}|{sponsor_wallet}|{tokens}]]",
            "2. After transfer confirms, retry: [[REQUEST_SELFCLAW_SPONSORSHIP]]",
            "",
            "Ask the user: 'Should I send the tokens to the sponsor wallet and retry sponsorship?'",
        ]
    return Outcome.fail("\n".join(lines), error=error, sponsor_wallet=sponsor_wallet, amount_needed=amount_needed)


async def execute_deploy_token(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    name = params[0].strip() if len(params) > 0 else ""
    symbol = params[1].strip().upper() if len(params) > 1 else ""
    supply = ((params[2].strip() if len(params) > 2 else "") or "1000000").replace(",", "")
    if not name or not symbol:
        return Outcome.fail(usage_hint("SELFCLAW_DEPLOY_TOKEN"), error="Missing params")
    if not context.wallet_address:
        return Outcome.fail("⚠️ Agent wallet not initialized. Cannot deploy a token.", error="No wallet")

    try:
        result = await sources.token_economy.deploy_token(context.agent_id, name, symbol, supply)
    except Exception as e:
        log(f"[TokenEconomyHandlers] Token deploy for {context.agent_id} failed: {e}", level="ERROR")
        return Outcome.fail(f"Failed to deploy token: {e}", error=str(e))

    if result.get("success") and result.get("token_address"):
        lines = ["Token Deployed", "", f"{name} ({symbol}) deployed successfully.",
                 f"Token address: {result['token_address']}"]
        if result.get("tx_hash"):
            lines.append(f"Tx: {result['tx_hash']}")
        lines.append("Registered with SelfClaw. You can now request sponsorship.")
        log(f"[TokenEconomyHandlers] Agent {context.agent_id} deployed {symbol} at {result['token_address']}.", level="INFO")
        return Outcome.ok("\n".join(lines), token_address=result["token_address"], tx_hash=result.get("tx_hash"))
    error = result.get("error") or "Unknown error"
    return Outcome.fail(f"Deploy Failed: {error}", error=error)


def _valid_amount(value: str) -> bool:
    try:
        float(value)
        return True
    except (TypeError, ValueError):
        return False


async def execute_log_revenue(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    amount = params[0].strip() if len(params) > 0 else ""
    source = (params[1].strip() if len(params) > 1 else "") or "api_fees"
    description = (params[2].strip() if len(params) > 2 else "") or None
    if not _valid_amount(amount):
        return Outcome.fail(usage_hint("SELFCLAW_LOG_REVENUE"), error="Missing amount")
    try:
        result = await sources.token_economy.log_revenue(context.agent_id, amount, source, "USD", description)
    except Exception as e:
        log(f"[TokenEconomyHandlers] Revenue log for {context.agent_id} failed: {e}", level="WARN")
        return Outcome.fail(f"Failed to log revenue: {e}", error=str(e))

    if result.get("success"):
        suffix = f" ({description})" if description else ""
        return Outcome.ok(f"Revenue Logged: ${amount} from {source}{suffix}", amount=amount, source=source)
    error = result.get("error") or "Unknown error"
    return Outcome.fail(f"Log Failed: {error}", error=error)


async def execute_log_cost(params: List[str], context: ExecutionContext, sources: DataSources) -> Outcome:
    amount = params[0].strip() if len(params) > 0 else ""
    category = (params[1].strip() if len(params) > 1 else "") or "other"
    description = (params[2].strip() if len(params) > 2 else "") or None
    if not _valid_amount(amount):
        categories = ", ".join(getattr(sources.token_economy, "cost_categories", None) or ["other"])
        return Outcome.fail(usage_hint("SELFCLAW_LOG_COST", f"categories: {categories}"), error="Missing amount")
    try:
        result = await sources.token_economy.log_cost(context.agent_id, amount, category, "USD", description)
    except Exception as e:
        log(f"[TokenEconomyHandlers] Cost log for {context.agent_id} failed: {e}", level="WARN")
        return Outcome.fail(f"Failed to log cost: {e}", error=str(e))

    if result.get("success"):
        suffix = f", {description}" if description else ""
        return Outcome.ok(f"Cost Logged: ${amount} ({category}){suffix}", amount=amount, category=category)
    error = result.get("error") or "Unknown error"
    return Outcome.fail(f"Log Failed: {error}", error=error)


HANDLERS = {
    "AGENT_TOKENS": execute_agent_tokens,
    "REQUEST_SELFCLAW_SPONSORSHIP": execute_request_sponsorship,
    "SELFCLAW_DEPLOY_TOKEN": execute_deploy_token,
    "SELFCLAW_LOG_REVENUE": execute_log_revenue,
    "SELFCLAW_LOG_COST": execute_log_cost,
}
