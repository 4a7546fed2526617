# connectors/data_sources.py
"""
Interfaces for the external clients consumed by capability handlers.

Concrete implementations (on-chain oracle reads, RPC, the SelfClaw API, QR
rendering) live outside this project; handlers only depend on these
signatures. Every method is a coroutine and returns plain dicts/lists so test
doubles can be built from AsyncMock.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from core.errors import ConnectorNotConfiguredError

if TYPE_CHECKING:
    from memory.price_tracker import PriceTracker
    from memory.activity_log import ActivityLog


class BaseOracleConnector(ABC):
    """Stablecoin oracle, exchange quotes and native balances."""

    @abstractmethod
    async def get_rate(self, currency: str) -> Dict[str, Any]:
        """
        Returns {"pair", "rate", "inverse", "num_reporters", "last_update" (datetime),
        "source", "is_expired"} for CELO/<currency>.
        """

    @abstractmethod
    async def get_all_rates(self) -> List[Dict[str, Any]]:
        """Same shape as get_rate, one entry per supported pair."""

    @abstractmethod
    async def get_quote(self, sell_currency: str, buy_currency: str, amount: str) -> Dict[str, Any]:
        """
        Returns {"sell_currency", "buy_currency", "sell_amount", "buy_amount",
        "rate", "slippage", "source"}.
        """

    @abstractmethod
    async def get_balances(self, address: str) -> Dict[str, str]:
        """Returns decimal strings keyed by "CELO", "cUSD", "cEUR", "cREAL"."""

    @abstractmethod
    async def get_gas_price(self) -> Dict[str, Any]:
        """Returns {"base_fee", "suggested_tip", "estimated_cost"}."""


class BaseChainDataConnector(ABC):
    """Read-only chain explorer style queries."""

    @abstractmethod
    async def get_network_status(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_block(self, block_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_latest_blocks(self, count: int) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_token_info(self, token_address: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_token_balance(self, token_address: str, owner_address: str) -> str:
        pass

    @abstractmethod
    async def get_nft_info(self, contract_address: str, token_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_nft_balance(self, contract_address: str, owner_address: str,
                              token_id: Optional[str] = None) -> str:
        pass

    @abstractmethod
    async def estimate_contract_gas(self, contract_address: str, function_name: str,
                                    args: List[str], account: str) -> Dict[str, Any]:
        """Returns {"gas_estimate": ...} or {"error": "..."}."""

    @abstractmethod
    async def get_gas_fee_data(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_governance_proposals(self, limit: int) -> Dict[str, Any]:
        """Returns {"proposals": [...]} or {"error": "..."}."""

    @abstractmethod
    async def get_proposal_details(self, proposal_id: int) -> Dict[str, Any]:
        """Returns {"proposal": {...} | None} or {"error": "..."}."""


class BaseTokenEconomyConnector(ABC):
    """Agent identity registration and token economy (SelfClaw)."""

    cost_categories: List[str] = ["infrastructure", "compute", "ai_credits", "bandwidth", "storage", "other"]

    @abstractmethod
    async def get_agent_token_info(self, agent_id: str) -> Dict[str, Any]:
        """
        Returns {"token_address", "deployed_tokens", "wallet_address", "economics",
        "pools"} or {"error": "..."}.
        """

    @abstractmethod
    async def request_sponsorship(self, agent_id: str, token_address: Optional[str] = None) -> Dict[str, Any]:
        """
        Returns {"success": bool, "error", "token_address", "sponsor_wallet",
        "amount_needed" (wei string)}.
        """

    @abstractmethod
    async def register_wallet(self, agent_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def deploy_token(self, agent_id: str, name: str, symbol: str, supply: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def log_revenue(self, agent_id: str, amount: str, source: str, currency: str,
                          description: Optional[str] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def log_cost(self, agent_id: str, amount: str, category: str, currency: str,
                       description: Optional[str] = None) -> Dict[str, Any]:
        pass


class BaseQrConnector(ABC):

    @abstractmethod
    async def generate_data_url(self, content: str) -> str:
        """Returns a data: URL (PNG) encoding `content`."""


class UnconfiguredConnector:
    """
    Placeholder for a client that was not supplied. Any coroutine called on it
    raises ConnectorNotConfiguredError, which the handler turns into a failed Outcome.
    """

    def __init__(self, name: str):
        self._name = name

    def __getattr__(self, attribute: str):
        if attribute.startswith("__"):
            raise AttributeError(attribute)

        async def _not_configured(*args, **kwargs):
            raise ConnectorNotConfiguredError(f"{self._name} client is not configured")
        return _not_configured

    def __repr__(self):
        return f"UnconfiguredConnector({self._name!r})"


@dataclass
class DataSources:
    """Everything a handler may call out to. Bound into handlers by the registry."""
    oracle: Any
    chain: Any
    token_economy: Any
    qr: Any
    price_tracker: "PriceTracker"
    activity_log: "ActivityLog"
