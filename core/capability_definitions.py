# core/capability_definitions.py

"""
Static catalog of every capability the engine knows about, plus the per-template
allow-lists. Built once at import; the registry binds handlers to these entries.
"""
from core.capability_types import CapabilityCategory as Cat, CapabilityDefinition, Parameter as P, UsageExample as Ex

# Value transfer is executed by a separate, privileged path. These tags stay in
# the catalog for documentation but are never registered, parsed or advertised.
TRANSFER_TAGS = frozenset({"SEND_CELO", "SEND_TOKEN"})

_ADDR = "0xABC...123"

CAPABILITY_DEFINITIONS = (
    # --- Transfer ---
    CapabilityDefinition(
        id="send_celo", name="Send CELO", description="Send native CELO to an address",
        category=Cat.TRANSFER, tag="SEND_CELO",
        params=(P("to", "Recipient 0x address", True, _ADDR), P("amount", "Amount in CELO", True, "1.5")),
        examples=(Ex("send 2 CELO to 0xABC...123", "[[SEND_CELO|0xABC...123|2]]"),),
        requires_wallet=True, mutates_external_state=True),
    CapabilityDefinition(
        id="send_token", name="Send Token", description="Send ERC-20 stable tokens (cUSD, cEUR, cREAL)",
        category=Cat.TRANSFER, tag="SEND_TOKEN",
        params=(P("currency", "Token symbol (cUSD, cEUR, cREAL)", True, "cUSD"),
                P("to", "Recipient 0x address", True, "0xDEF...456"), P("amount", "Amount", True, "10")),
        examples=(Ex("send 5 cUSD to 0xDEF...456", "[[SEND_TOKEN|cUSD|0xDEF...456|5]]"),),
        requires_wallet=True, mutates_external_state=True),

    # --- Oracle ---
    CapabilityDefinition(
        id="query_rate", name="Query Exchange Rate",
        description="Get the current CELO exchange rate for a stablecoin from SortedOracles",
        category=Cat.ORACLE, tag="QUERY_RATE",
        params=(P("currency", "Stable token symbol (cUSD, cEUR, cREAL)", True, "cUSD"),),
        examples=(Ex("what's the CELO/cUSD rate?", "[[QUERY_RATE|cUSD]]"),
                  Ex("check cEUR price", "[[QUERY_RATE|cEUR]]"))),
    CapabilityDefinition(
        id="query_all_rates", name="Query All Rates",
        description="Get all available CELO exchange rates from SortedOracles",
        category=Cat.ORACLE, tag="QUERY_ALL_RATES",
        examples=(Ex("show me all exchange rates", "[[QUERY_ALL_RATES]]"),)),

    # --- Exchange ---
    CapabilityDefinition(
        id="mento_quote", name="Mento Swap Quote",
        description="Get a swap quote from Mento Protocol (CELO ↔ stablecoins)",
        category=Cat.EXCHANGE, tag="MENTO_QUOTE",
        params=(P("sell_currency", "Currency to sell (CELO, cUSD, cEUR, cREAL)", True, "CELO"),
                P("buy_currency", "Currency to buy", True, "cUSD"), P("amount", "Amount to sell", True, "10")),
        examples=(Ex("how much cUSD for 10 CELO?", "[[MENTO_QUOTE|CELO|cUSD|10]]"),
                  Ex("quote 50 cUSD to CELO", "[[MENTO_QUOTE|cUSD|CELO|50]]"))),
    CapabilityDefinition(
        id="mento_swap", name="Mento Swap Execute",
        description="Execute a swap on Mento Protocol (CELO ↔ stablecoins)",
        category=Cat.EXCHANGE, tag="MENTO_SWAP",
        params=(P("sell_currency", "Currency to sell", True, "CELO"),
                P("buy_currency", "Currency to buy", True, "cUSD"), P("amount", "Amount to sell", True, "10")),
        examples=(Ex("swap 5 CELO for cUSD", "[[MENTO_SWAP|CELO|cUSD|5]]"),),
        requires_wallet=True, mutates_external_state=True),

    # --- Data ---
    CapabilityDefinition(
        id="check_balance", name="Check Balance", description="Check CELO and stablecoin balances for any address",
        category=Cat.DATA, tag="CHECK_BALANCE",
        params=(P("address", "0x address to check", True, _ADDR),),
        examples=(Ex("check balance of 0xABC...123", "[[CHECK_BALANCE|0xABC...123]]"),
                  Ex("what's my balance?", "[[CHECK_BALANCE|<agent_wallet_address>]]"))),
    CapabilityDefinition(
        id="gas_price", name="Gas Price", description="Get current gas price on Celo network",
        category=Cat.DATA, tag="GAS_PRICE",
        examples=(Ex("what's the current gas price?", "[[GAS_PRICE]]"),)),
    CapabilityDefinition(
        id="network_status", name="Network Status", description="Chain id, latest block and RPC details",
        category=Cat.DATA, tag="GET_NETWORK_STATUS",
        examples=(Ex("is the network healthy?", "[[GET_NETWORK_STATUS]]"),)),
    CapabilityDefinition(
        id="get_block", name="Get Block", description="Block details by number, hash or 'latest'",
        category=Cat.DATA, tag="GET_BLOCK",
        params=(P("block", "Block number, hash or 'latest'", False, "latest"),),
        examples=(Ex("show me the latest block", "[[GET_BLOCK|latest]]"),)),
    CapabilityDefinition(
        id="latest_blocks", name="Latest Blocks", description="Summary of the most recent blocks (max 100)",
        category=Cat.DATA, tag="GET_LATEST_BLOCKS",
        params=(P("count", "How many blocks (default 10)", False, "5"),),
        examples=(Ex("list the last 5 blocks", "[[GET_LATEST_BLOCKS|5]]"),)),
    CapabilityDefinition(
        id="get_transaction", name="Get Transaction", description="Transaction details by hash",
        category=Cat.DATA, tag="GET_TRANSACTION",
        params=(P("tx_hash", "0x transaction hash", True, "0x5f2e..."),),
        examples=(Ex("look up tx 0x5f2e...", "[[GET_TRANSACTION|0x5f2e...]]"),)),
    CapabilityDefinition(
        id="token_info", name="Token Info", description="ERC-20 name, symbol, decimals and supply",
        category=Cat.DATA, tag="GET_TOKEN_INFO",
        params=(P("token_address", "ERC-20 contract address", True, _ADDR),),
        examples=(Ex("what token is 0xABC...123?", "[[GET_TOKEN_INFO|0xABC...123]]"),)),
    CapabilityDefinition(
        id="token_balance", name="Token Balance", description="ERC-20 balance of an owner",
        category=Cat.DATA, tag="GET_TOKEN_BALANCE",
        params=(P("token_address", "ERC-20 contract address", True, _ADDR),
                P("owner_address", "Holder address", True, "0xDEF...456")),
        examples=(Ex("how many of token 0xABC...123 does 0xDEF...456 hold?",
                     "[[GET_TOKEN_BALANCE|0xABC...123|0xDEF...456]]"),)),
    CapabilityDefinition(
        id="nft_info", name="NFT Info", description="ERC-721/ERC-1155 collection details",
        category=Cat.DATA, tag="GET_NFT_INFO",
        params=(P("contract_address", "NFT contract address", True, _ADDR),
                P("token_id", "Token id", False, "1")),
        examples=(Ex("what is NFT 0xABC...123 #1?", "[[GET_NFT_INFO|0xABC...123|1]]"),)),
    CapabilityDefinition(
        id="nft_balance", name="NFT Balance", description="NFT balance of an owner",
        category=Cat.DATA, tag="GET_NFT_BALANCE",
        params=(P("contract_address", "NFT contract address", True, _ADDR),
                P("owner_address", "Holder address", True, "0xDEF...456"),
                P("token_id", "Token id (ERC-1155)", False, "1")),
        examples=(Ex("how many NFTs from 0xABC...123 does 0xDEF...456 own?",
                     "[[GET_NFT_BALANCE|0xABC...123|0xDEF...456]]"),)),
    CapabilityDefinition(
        id="estimate_gas", name="Estimate Gas", description="Estimate gas for a contract call",
        category=Cat.DATA, tag="ESTIMATE_GAS",
        params=(P("contract_address", "Contract address", True, _ADDR),
                P("function_name", "Function to call", True, "transfer"),
                P("args", "Comma-separated arguments", False, "0xDEF...456,100")),
        examples=(Ex("how much gas to call transfer on 0xABC...123?",
                     "[[ESTIMATE_GAS|0xABC...123|transfer|0xDEF...456,100]]"),)),
    CapabilityDefinition(
        id="gas_fee_data", name="Gas Fee Data", description="EIP-1559 base, max and priority fees",
        category=Cat.DATA, tag="GET_GAS_FEE_DATA",
        examples=(Ex("show EIP-1559 fee data", "[[GET_GAS_FEE_DATA]]"),)),
    CapabilityDefinition(
        id="governance_proposals", name="Governance Proposals", description="Recent Celo governance proposals",
        category=Cat.DATA, tag="GET_GOVERNANCE_PROPOSALS",
        params=(P("limit", "How many proposals (default 10)", False, "5"),),
        examples=(Ex("what's up for a vote?", "[[GET_GOVERNANCE_PROPOSALS|5]]"),)),
    CapabilityDefinition(
        id="proposal_details", name="Proposal Details", description="Details and votes for one proposal",
        category=Cat.DATA, tag="GET_PROPOSAL_DETAILS",
        params=(P("proposal_id", "Proposal number", True, "210"),),
        examples=(Ex("tell me about proposal 210", "[[GET_PROPOSAL_DETAILS|210]]"),)),
    CapabilityDefinition(
        id="generate_qr", name="Generate QR Code", description="Encode text or a URL as a QR code image",
        category=Cat.DATA, tag="GENERATE_QR",
        params=(P("content", "Text or URL to encode", True, "https://example.com"),),
        examples=(Ex("make a QR code for https://example.com", "[[GENERATE_QR|https://example.com]]"),)),
    CapabilityDefinition(
        id="qr_history", name="QR History", description="List recently generated QR codes",
        category=Cat.DATA, tag="LIST_QR_HISTORY",
        params=(P("limit", "How many entries (default 10, max 50)", False, "10"),),
        examples=(Ex("which QR codes did you make?", "[[LIST_QR_HISTORY|10]]"),)),

    # --- Analysis ---
    CapabilityDefinition(
        id="forex_analysis", name="Forex Analysis",
        description="Analyze current Mento stablecoin rates and provide trading signals",
        category=Cat.ANALYSIS, tag="FOREX_ANALYSIS",
        params=(P("pair", "Trading pair (e.g. CELO/cUSD, cUSD/cEUR)", False, "CELO/cUSD"),),
        examples=(Ex("analyze CELO/cUSD", "[[FOREX_ANALYSIS|CELO/cUSD]]"),
                  Ex("give me a market overview", "[[FOREX_ANALYSIS]]"))),
    CapabilityDefinition(
        id="portfolio_status", name="Portfolio Status", description="Show agent portfolio with balances valued in USD",
        category=Cat.ANALYSIS, tag="PORTFOLIO_STATUS",
        examples=(Ex("show my portfolio", "[[PORTFOLIO_STATUS]]"),
                  Ex("what are my holdings worth?", "[[PORTFOLIO_STATUS]]")),
        requires_wallet=True),
    CapabilityDefinition(
        id="price_track", name="Record & Show Prices",
        description="Record current Mento asset prices and show recent price history",
        category=Cat.ANALYSIS, tag="PRICE_TRACK",
        params=(P("pair", "Pair to track (e.g. cUSD) or 'all'", False, "all"),),
        examples=(Ex("track all prices", "[[PRICE_TRACK|all]]"), Ex("record cUSD price", "[[PRICE_TRACK|cUSD]]"))),
    CapabilityDefinition(
        id="price_trend", name="Price Trend Analysis",
        description="Analyze price trends for Mento assets: direction, change %, momentum",
        category=Cat.ANALYSIS, tag="PRICE_TREND",
        params=(P("pair", "Pair to analyze (e.g. CELO/cUSD) or 'all'", False, "CELO/cUSD"),
                P("period", "Period in minutes (default 60)", False, "60")),
        examples=(Ex("what's the cUSD trend?", "[[PRICE_TREND|CELO/cUSD|60]]"),
                  Ex("show all trends for the last hour", "[[PRICE_TREND|all|60]]"))),
    CapabilityDefinition(
        id="price_predict", name="Price Prediction",
        description="Momentum-based price prediction for Mento assets with confidence levels",
        category=Cat.ANALYSIS, tag="PRICE_PREDICT",
        params=(P("pair", "Pair to predict (e.g. CELO/cUSD) or 'all'", False, "CELO/cUSD"),),
        examples=(Ex("predict CELO/cUSD price", "[[PRICE_PREDICT|CELO/cUSD]]"),
                  Ex("give me predictions for all pairs", "[[PRICE_PREDICT|all]]"))),
    CapabilityDefinition(
        id="price_alerts", name="Price Alerts",
        description="Check for significant price movements, volatility spikes, and crossovers",
        category=Cat.ANALYSIS, tag="PRICE_ALERTS",
        params=(P("threshold", "Minimum % change to alert (default 2)", False, "2"),),
        examples=(Ex("any price alerts?", "[[PRICE_ALERTS|2]]"), Ex("check for big moves", "[[PRICE_ALERTS|1]]"))),

    # --- Identity ---
    CapabilityDefinition(
        id="selfclaw_register_wallet", name="Register Wallet with SelfClaw",
        description="Register the agent wallet with SelfClaw so it can deploy a token",
        category=Cat.IDENTITY, tag="SELFCLAW_REGISTER_WALLET",
        examples=(Ex("register my wallet with SelfClaw", "[[SELFCLAW_REGISTER_WALLET]]"),),
        requires_wallet=True, mutates_external_state=True),

    # --- Token economy ---
    CapabilityDefinition(
        id="agent_tokens", name="Agent Token Info",
        description="Show the agent's deployed tokens, economics and liquidity pools",
        category=Cat.TOKEN_ECONOMY, tag="AGENT_TOKENS",
        examples=(Ex("how is my token doing?", "[[AGENT_TOKENS]]"),)),
    CapabilityDefinition(
        id="selfclaw_deploy_token", name="Deploy Agent Token", description="Deploy an ERC-20 token for this agent",
        category=Cat.TOKEN_ECONOMY, tag="SELFCLAW_DEPLOY_TOKEN",
        params=(P("name", "Token name", True, "MyAgent"), P("symbol", "Token symbol", True, "MAT"),
                P("supply", "Total supply (default 1000000)", False, "1000000")),
        examples=(Ex("launch a token called MyAgent with symbol MAT",
                     "[[SELFCLAW_DEPLOY_TOKEN|MyAgent|MAT|1000000]]"),),
        requires_wallet=True, mutates_external_state=True),
    CapabilityDefinition(
        id="selfclaw_sponsorship", name="Request SELFCLAW Sponsorship",
        description="Request a sponsored liquidity pool pairing the agent token with SELFCLAW",
        category=Cat.TOKEN_ECONOMY, tag="REQUEST_SELFCLAW_SPONSORSHIP",
        params=(P("token_address", "Token address (defaults to the deployed token)", False, _ADDR),),
        examples=(Ex("get liquidity for my token", "[[REQUEST_SELFCLAW_SPONSORSHIP]]"),),
        requires_wallet=True, mutates_external_state=True),
    CapabilityDefinition(
        id="selfclaw_log_revenue", name="Log Revenue", description="Record revenue earned by the agent",
        category=Cat.TOKEN_ECONOMY, tag="SELFCLAW_LOG_REVENUE",
        params=(P("amount", "Amount in USD", True, "50"), P("source", "Revenue source (default api_fees)", False, "api_fees"),
                P("description", "Free-form note", False, "API revenue")),
        examples=(Ex("we earned $50 in API fees", "[[SELFCLAW_LOG_REVENUE|50|api_fees|API revenue]]"),),
        mutates_external_state=True),
    CapabilityDefinition(
        id="selfclaw_log_cost", name="Log Cost", description="Record an operating cost for the agent",
        category=Cat.TOKEN_ECONOMY, tag="SELFCLAW_LOG_COST",
        params=(P("amount", "Amount in USD", True, "12"), P("category", "Cost category (default other)", False, "compute"),
                P("description", "Free-form note", False, "GPU hours")),
        examples=(Ex("log $12 of compute costs", "[[SELFCLAW_LOG_COST|12|compute|GPU hours]]"),),
        mutates_external_state=True),
)

_TRANSFERS = ["send_celo", "send_token"]
_CHAIN_DATA = [
    "network_status", "get_block", "latest_blocks", "get_transaction", "token_info", "token_balance",
    "nft_info", "nft_balance", "estimate_gas", "gas_fee_data", "governance_proposals", "proposal_details",
]
_ANALYSIS = ["forex_analysis", "portfolio_status", "price_track", "price_trend", "price_predict", "price_alerts"]
_TOKEN_ECONOMY = [
    "agent_tokens", "selfclaw_deploy_token", "selfclaw_sponsorship", "selfclaw_log_revenue", "selfclaw_log_cost",
]
_TRADING = (_TRANSFERS + ["check_balance", "query_rate", "query_all_rates", "mento_quote", "mento_swap", "gas_price"]
            + _ANALYSIS + _CHAIN_DATA)

# Template id -> capability ids. Validated against the catalog when the registry is built.
TEMPLATE_CAPABILITIES = {
    "payment": _TRANSFERS + ["check_balance", "query_rate", "gas_price", "generate_qr", "qr_history"],
    "trading": _TRADING,
    "forex": _TRADING,
    "social": _TRANSFERS + ["check_balance", "generate_qr"],
    "selfclaw": _TRANSFERS + ["check_balance", "gas_price", "selfclaw_register_wallet"] + _TOKEN_ECONOMY,
    "custom": (_TRANSFERS + ["check_balance", "query_rate", "query_all_rates", "mento_quote", "gas_price"]
               + _CHAIN_DATA + _TOKEN_ECONOMY),
}

_BY_TAG = {definition.tag: definition for definition in CAPABILITY_DEFINITIONS}


def usage_hint(tag: str, note: str = "") -> str:
    """Usage line a handler returns for missing or invalid arguments, built from the catalog entry."""
    hint = _BY_TAG[tag].usage_hint()
    return f"{hint} ({note})" if note else hint
