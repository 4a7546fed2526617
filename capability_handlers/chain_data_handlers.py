# capability_handlers/chain_data_handlers.py
"""Read-only chain queries. All of these go through sources.chain."""
from typing import List
from core.capability_definitions import usage_hint
from core.capability_types import ExecutionContext, Outcome
from connectors.data_sources import DataSources
from utils.display_format import is_address
from utils.logger import log

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_LATEST_BLOCKS = 100


def _arg(params: List[str], index: int) -> str:
    return params[index].strip() if len(params) > index and params[index] else ""


def _int_arg(params: List[str], index: int, default: int) -> int:
    try:
        return int(_arg(params, index)) or default
    except ValueError:
        return default


def _failed(tag: str, e: Exception, prefix: str = "Failed") -> Outcome:
    log(f"[ChainDataHandlers] {tag} failed: {e}", level="WARN")
    return Outcome.fail(f"{prefix}: {e}", error=str(e))


def _iso(value) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


async def execute_get_network_status(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    try:
        status = await sources.chain.get_network_status()
    except Exception as e:
        return _failed("GET_NETWORK_STATUS", e, "Failed to get network status")
    display = "\n".join([
        "Network Status", "",
        f"Network: {status.get('network_name')} (Chain ID: {status.get('chain_id')})",
        f"Latest Block: {status.get('latest_block')}",
        f"Gas Price: {status.get('gas_price')}",
        f"RPC: {status.get('rpc_url')}",
        f"Explorer: {status.get('block_explorer_url')}",
    ])
    return Outcome.ok(display, **status)


async def execute_get_block(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    block_id = _arg(params, 0) or "latest"
    try:
        block = await sources.chain.get_block(block_id)
    except Exception as e:
        return _failed("GET_BLOCK", e, "Failed to get block")
    if not block:
        return Outcome.fail(f"Block {block_id} not found.", error="Block not found")

    lines = [
        f"Block #{block.get('number')}", "",
        f"Hash: {block.get('hash')}",
        f"Timestamp: {_iso(block.get('timestamp'))}",
        f"Gas Used: {block.get('gas_used')}",
        f"Gas Limit: {block.get('gas_limit')}",
    ]
    if block.get("base_fee_per_gas"):
        lines.append(f"Base Fee: {block['base_fee_per_gas']}")
    lines.append(f"Transactions: {block.get('transactions_count', 0)}")
    return Outcome.ok("\n".join(lines), **block)


async def execute_get_latest_blocks(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    count = max(1, min(_int_arg(params, 0, 10), MAX_LATEST_BLOCKS))
    try:
        blocks = await sources.chain.get_latest_blocks(count)
    except Exception as e:
        return _failed("GET_LATEST_BLOCKS", e, "Failed to get blocks")
    lines = ["Latest Blocks", ""]
    lines += [f"#{b.get('number')} | {_iso(b.get('timestamp'))} | {b.get('transactions_count', 0)} txs | gas: {b.get('gas_used')}"
              for b in blocks]
    return Outcome.ok("\n".join(lines), blocks=blocks)


async def execute_get_transaction(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    tx_hash = _arg(params, 0)
    if not tx_hash.startswith("0x"):
        return Outcome.fail(usage_hint("GET_TRANSACTION"), error="Invalid tx hash")
    try:
        tx = await sources.chain.get_transaction(tx_hash)
    except Exception as e:
        return _failed("GET_TRANSACTION", e, "Failed to get transaction")
    if not tx:
        return Outcome.fail(f"Transaction {tx_hash[:16]}... not found.", error="Transaction not found")

    full_hash = tx.get("hash", tx_hash)
    lines = [
        f"Transaction {full_hash[:10]}...{full_hash[-8:]}", "",
        f"From: {tx.get('from')}",
        f"To: {tx.get('to') or 'contract creation'}",
        f"Value: {tx.get('value')} CELO",
        f"Status: {tx.get('status')}",
        f"Block: {tx.get('block_number')}",
    ]
    if tx.get("timestamp"):
        lines.append(f"Time: {_iso(tx['timestamp'])}")
    lines += [f"Gas Used: {tx.get('gas_used')}", f"Gas Price: {tx.get('gas_price')}"]
    return Outcome.ok("\n".join(lines), **tx)


async def execute_get_token_info(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    address = _arg(params, 0)
    if not is_address(address):
        return Outcome.fail(usage_hint("GET_TOKEN_INFO"), error="Invalid address")
    try:
        info = await sources.chain.get_token_info(address)
    except Exception as e:
        return _failed("GET_TOKEN_INFO", e)
    if not info:
        return Outcome.fail("Contract is not a valid ERC20 token.", error="Not an ERC20")
    display = "\n".join([
        f"Token: {info.get('name')} ({info.get('symbol')})", "",
        f"Address: {info.get('address', address)}",
        f"Decimals: {info.get('decimals')}",
        f"Total Supply: {info.get('total_supply')}",
    ])
    return Outcome.ok(display, **info)


async def execute_get_token_balance(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    token, owner = _arg(params, 0), _arg(params, 1)
    if not is_address(token) or not is_address(owner):
        return Outcome.fail(usage_hint("GET_TOKEN_BALANCE"), error="Invalid params")
    try:
        balance = await sources.chain.get_token_balance(token, owner)
    except Exception as e:
        return _failed("GET_TOKEN_BALANCE", e)
    display = "\n".join(["Token Balance", "", f"Address: {owner[:10]}...{owner[-8:]}", f"Balance: {balance}"])
    return Outcome.ok(display, balance=balance)


async def execute_get_nft_info(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    contract, token_id = _arg(params, 0), _arg(params, 1) or None
    if not is_address(contract):
        return Outcome.fail(usage_hint("GET_NFT_INFO"), error="Invalid address")
    try:
        info = await sources.chain.get_nft_info(contract, token_id)
    except Exception as e:
        return _failed("GET_NFT_INFO", e)
    if not info:
        return Outcome.fail("Contract is not a valid ERC721/ERC1155 NFT.", error="Not an NFT")
    lines = [f"NFT: {info.get('name')} ({info.get('type')})", "", f"Address: {info.get('address', contract)}"]
    if info.get("symbol"):
        lines.append(f"Symbol: {info['symbol']}")
    if info.get("token_uri"):
        lines.append(f"Token URI: {info['token_uri']}")
    return Outcome.ok("\n".join(lines), **info)


async def execute_get_nft_balance(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    contract, owner, token_id = _arg(params, 0), _arg(params, 1), _arg(params, 2) or None
    if not is_address(contract) or not is_address(owner):
        return Outcome.fail(usage_hint("GET_NFT_BALANCE"), error="Invalid params")
    try:
        balance = await sources.chain.get_nft_balance(contract, owner, token_id)
    except Exception as e:
        return _failed("GET_NFT_BALANCE", e)
    display = "\n".join(["NFT Balance", "", f"Owner: {owner[:10]}...{owner[-8:]}", f"Balance: {balance}"])
    return Outcome.ok(display, balance=balance)


async def execute_estimate_gas(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    contract, function_name, raw_args = _arg(params, 0), _arg(params, 1), _arg(params, 2)
    if not is_address(contract) or not function_name:
        return Outcome.fail(usage_hint("ESTIMATE_GAS"), error="Invalid params")
    call_args = [a.strip() for a in raw_args.split(",")] if raw_args else []
    account = context.wallet_address or ZERO_ADDRESS
    try:
        result = await sources.chain.estimate_contract_gas(contract, function_name, call_args, account)
    except Exception as e:
        return _failed("ESTIMATE_GAS", e)
    if result.get("error"):
        return Outcome.fail(f"Gas estimation failed: {result['error']}", error=result["error"])
    return Outcome.ok(f"Estimated gas: {result.get('gas_estimate')} units", gas_estimate=result.get("gas_estimate"))


async def execute_get_gas_fee_data(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    try:
        data = await sources.chain.get_gas_fee_data()
    except Exception as e:
        return _failed("GET_GAS_FEE_DATA", e)
    display = "\n".join([
        "Gas Fee Data (EIP-1559)", "",
        f"Base Fee: {data.get('base_fee_per_gas')}",
        f"Max Fee: {data.get('max_fee_per_gas')}",
        f"Priority Fee: {data.get('max_priority_fee_per_gas')}",
        f"Est. Simple Transfer: {data.get('estimated_cost_celo')}",
    ])
    return Outcome.ok(display, **data)


async def execute_get_governance_proposals(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    limit = _int_arg(params, 0, 10)
    try:
        result = await sources.chain.get_governance_proposals(limit)
    except Exception as e:
        return _failed("GET_GOVERNANCE_PROPOSALS", e)
    if result.get("error"):
        return Outcome.fail(f"Governance: {result['error']}", error=result["error"])

    proposals = result.get("proposals") or []
    if not proposals:
        return Outcome.ok("No governance proposals found.", proposals=[])
    lines = ["Governance Proposals", ""]
    for p in proposals[:limit]:
        title = (p.get("title") or f"Proposal {p.get('id')}")[:50]
        votes = p.get("votes")
        yes = f" | Yes: {(votes.get('yes') or {}).get('percentage', 0)}%" if votes else ""
        lines.append(f"#{p.get('id')} {title}{yes}")
    return Outcome.ok("\n".join(lines), proposals=proposals)


async def execute_get_proposal_details(params, context: ExecutionContext, sources: DataSources) -> Outcome:
    proposal_id = _int_arg(params, 0, 0)
    if not proposal_id:
        return Outcome.fail(usage_hint("GET_PROPOSAL_DETAILS"), error="Invalid ID")
    try:
        result = await sources.chain.get_proposal_details(proposal_id)
    except Exception as e:
        return _failed("GET_PROPOSAL_DETAILS", e)
    if result.get("error"):
        return Outcome.fail(f"Governance: {result['error']}", error=result["error"])

    proposal = result.get("proposal")
    if not proposal:
        return Outcome.ok(f"Proposal {proposal_id} not found.")
    lines = [
        f"Proposal #{proposal.get('id', proposal_id)}", "",
        f"Title: {proposal.get('title') or '-'}",
        f"Stage: {proposal.get('stage_name') or proposal.get('stage') or '-'}",
        f"Active: {proposal.get('is_active')}",
    ]
    votes = proposal.get("votes")
    if votes:
        lines.append(f"Votes: {votes.get('total_formatted', '-')} | Yes: {(votes.get('yes') or {}).get('percentage', 0)}%")
    urls = proposal.get("urls") or {}
    if urls.get("discussion"):
        lines.append(f"Discussion: {urls['discussion']}")
    return Outcome.ok("\n".join(lines), proposal=proposal)


HANDLERS = {
    "GET_NETWORK_STATUS": execute_get_network_status,
    "GET_BLOCK": execute_get_block,
    "GET_LATEST_BLOCKS": execute_get_latest_blocks,
    "GET_TRANSACTION": execute_get_transaction,
    "GET_TOKEN_INFO": execute_get_token_info,
    "GET_TOKEN_BALANCE": execute_get_token_balance,
    "GET_NFT_INFO": execute_get_nft_info,
    "GET_NFT_BALANCE": execute_get_nft_balance,
    "ESTIMATE_GAS": execute_estimate_gas,
    "GET_GAS_FEE_DATA": execute_get_gas_fee_data,
    "GET_GOVERNANCE_PROPOSALS": execute_get_governance_proposals,
    "GET_PROPOSAL_DETAILS": execute_get_proposal_details,
}
