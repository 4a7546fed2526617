# tests/test_capability_handlers.py

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch
import os
import sys

# Ensure the handler modules can be imported
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from capability_handlers.data_handlers import execute_check_balance, execute_gas_price
from capability_handlers.exchange_handlers import execute_mento_quote, execute_mento_swap
from capability_handlers.identity_handlers import execute_register_wallet
from capability_handlers.oracle_handlers import execute_query_all_rates, execute_query_rate
from capability_handlers.qr_handlers import QR_ACTIVITY_MESSAGE, execute_generate_qr, execute_list_qr_history
from capability_handlers.token_economy_handlers import (
    execute_deploy_token, execute_log_cost, execute_log_revenue, execute_request_sponsorship,
)
from core.capability_definitions import CAPABILITY_DEFINITIONS, usage_hint
from core.capability_types import ExecutionContext

WALLET = "0x" + "ab" * 20


def run(coro):
    return asyncio.run(coro)


class HandlerTestCase(unittest.TestCase):

    def setUp(self):
        self.sources = MagicMock()
        self.with_wallet = ExecutionContext(agent_id="agent-1", wallet_address=WALLET, derivation_index=0)
        self.no_wallet = ExecutionContext(agent_id="agent-1")


class TestOracleHandlers(HandlerTestCase):

    def test_query_rate_renders_rate_block(self):
        self.sources.oracle.get_rate = AsyncMock(return_value={
            "pair": "CELO/cEUR", "rate": 0.5, "inverse": 2.0, "num_reporters": 7,
            "last_update": "2026-10-17T10:00:00", "source": "sorted_oracles", "is_expired": True,
        })
        outcome = run(execute_query_rate(["cEUR"], self.no_wallet, self.sources))
        self.assertTrue(outcome.success)
        self.assertIn("📊 **CELO/cEUR Exchange Rate**", outcome.display)
        self.assertIn("• 1 CELO = 0.5000 cEUR", outcome.display)
        self.assertIn("• Source: Celo SortedOracles (on-chain)", outcome.display)
        self.assertIn("⚠️ Warning: Oracle data may be stale", outcome.display)

    def test_query_rate_defaults_to_cusd(self):
        self.sources.oracle.get_rate = AsyncMock(return_value={"pair": "CELO/cUSD", "rate": 1.0})
        run(execute_query_rate([], self.no_wallet, self.sources))
        self.sources.oracle.get_rate.assert_awaited_once_with("cUSD")

    @patch('capability_handlers.oracle_handlers.log')
    def test_query_rate_failure_is_an_outcome(self, mock_log):
        self.sources.oracle.get_rate = AsyncMock(side_effect=RuntimeError("rpc down"))
        outcome = run(execute_query_rate(["cUSD"], self.no_wallet, self.sources))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, "rpc down")
        self.assertIn("Failed to query cUSD rate", outcome.display)

    def test_query_all_rates(self):
        self.sources.oracle.get_all_rates = AsyncMock(return_value=[
            {"pair": "CELO/cUSD", "rate": 0.62, "source": "sorted_oracles"},
            {"pair": "CELO/cEUR", "rate": 0.57, "source": "fallback"},
        ])
        outcome = run(execute_query_all_rates([], self.no_wallet, self.sources))
        self.assertIn("• CELO/cUSD: 1 CELO = 0.6200 cUSD (sorted_oracles)", outcome.display)
        self.assertIn("• CELO/cEUR: 1 CELO = 0.5700 cEUR (fallback)", outcome.display)


class TestExchangeHandlers(HandlerTestCase):

    def test_quote_requires_three_parameters(self):
        outcome = run(execute_mento_quote(["CELO", "cUSD"], self.no_wallet, self.sources))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.display, "❌ Usage: [[MENTO_QUOTE|sell_currency|buy_currency|amount]]")

    def test_swap_without_wallet_never_reaches_the_oracle(self):
        self.sources.oracle.get_quote = AsyncMock()
        outcome = run(execute_mento_swap(["CELO", "cUSD", "5"], self.no_wallet, self.sources))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, "No wallet")
        self.sources.oracle.get_quote.assert_not_awaited()

    @patch('capability_handlers.exchange_handlers.log')
    def test_swap_with_wallet_is_simulated(self, mock_log):
        self.sources.oracle.get_quote = AsyncMock(return_value={"rate": 2.0, "buy_amount": 10.0})
        outcome = run(execute_mento_swap(["CELO", "cUSD", "5"], self.with_wallet, self.sources))
        self.assertTrue(outcome.success)
        self.assertTrue(outcome.data["simulated"])
        self.assertIn("• Bought: ~10.0000 cUSD", outcome.display)


class TestDataHandlers(HandlerTestCase):

    def test_check_balance_falls_back_to_agent_wallet(self):
        self.sources.oracle.get_balances = AsyncMock(return_value={"CELO": 1.5, "cUSD": "2"})
        outcome = run(execute_check_balance([], self.with_wallet, self.sources))
        self.assertTrue(outcome.success)
        self.sources.oracle.get_balances.assert_awaited_once_with(WALLET)
        self.assertIn("• CELO: 1.5000", outcome.display)
        self.assertIn("• cEUR: 0.0000", outcome.display)

    def test_check_balance_rejects_invalid_address(self):
        outcome = run(execute_check_balance(["not-an-address"], self.with_wallet, self.sources))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, "Invalid address")

    def test_check_balance_without_any_address(self):
        outcome = run(execute_check_balance([], self.no_wallet, self.sources))
        self.assertFalse(outcome.success)

    def test_gas_price(self):
        self.sources.oracle.get_gas_price = AsyncMock(return_value={
            "base_fee": 5, "suggested_tip": 2, "estimated_cost": 0.000105,
        })
        outcome = run(execute_gas_price([], self.no_wallet, self.sources))
        self.assertIn("• Base fee: 5.00 gwei", outcome.display)
        self.assertIn("~0.000105 CELO", outcome.display)


class TestQrHandlers(HandlerTestCase):

    def test_generate_qr_embeds_image_and_records_activity(self):
        self.sources.qr.generate_data_url = AsyncMock(return_value="data:image/png;base64,AAAA")
        outcome = run(execute_generate_qr(["https://example.com"], self.no_wallet, self.sources))
        self.assertTrue(outcome.success)
        self.assertIn("![QR Code](data:image/png;base64,AAAA)", outcome.display)
        agent_id, entry_type, message, metadata = self.sources.activity_log.record.call_args[0]
        self.assertEqual((agent_id, entry_type, message), ("agent-1", "info", QR_ACTIVITY_MESSAGE))
        self.assertEqual(metadata["content_length"], len("https://example.com"))

    def test_generate_qr_requires_content(self):
        outcome = run(execute_generate_qr([" "], self.no_wallet, self.sources))
        self.assertFalse(outcome.success)
        self.sources.activity_log.record.assert_not_called()

    def test_history_lists_recorded_entries(self):
        self.sources.activity_log.list_entries.return_value = [
            {"metadata": {"content_preview": "https://a.example"}, "created_at": "2026-10-17 09:00:00"},
            {"metadata": {}, "created_at": "2026-10-16 09:00:00"},
        ]
        outcome = run(execute_list_qr_history(["500"], self.no_wallet, self.sources))
        self.assertEqual(outcome.data["count"], 2)
        self.assertIn("1. https://a.example (2026-10-17 09:00:00)", outcome.display)
        self.assertIn("2. (unknown)", outcome.display)
        self.sources.activity_log.list_entries.assert_called_once_with(
            "agent-1", entry_type="info", message=QR_ACTIVITY_MESSAGE, limit=50)

    def test_empty_history(self):
        self.sources.activity_log.list_entries.return_value = []
        outcome = run(execute_list_qr_history([], self.no_wallet, self.sources))
        self.assertTrue(outcome.success)
        self.assertIn("No QR codes generated yet", outcome.display)


class TestTokenEconomyHandlers(HandlerTestCase):

    @patch('capability_handlers.token_economy_handlers.log')
    def test_deploy_token_normalizes_inputs(self, mock_log):
        self.sources.token_economy.deploy_token = AsyncMock(return_value={
            "success": True, "token_address": "0x" + "c" * 40, "tx_hash": "0xfeed",
        })
        outcome = run(execute_deploy_token(["MyAgent", "mat", "1,000"], self.with_wallet, self.sources))
        self.assertTrue(outcome.success)
        self.sources.token_economy.deploy_token.assert_awaited_once_with("agent-1", "MyAgent", "MAT", "1000")
        self.assertIn("Tx: 0xfeed", outcome.display)

    def test_deploy_token_requires_wallet(self):
        outcome = run(execute_deploy_token(["MyAgent", "MAT"], self.no_wallet, self.sources))
        self.assertEqual(outcome.error, "No wallet")

    def test_sponsorship_failure_carries_recovery_directive(self):
        sponsor = "0x" + "d" * 40
        token = "0x" + "e" * 40
        self.sources.token_economy.get_agent_token_info = AsyncMock(return_value={"pools": []})
        self.sources.token_economy.request_sponsorship = AsyncMock(return_value={
            "success": False, "error": "Sponsor wallet lacks tokens",
            "sponsor_wallet": sponsor, "token_address": token, "amount_needed": str(5000 * 10 ** 18),
        })
        outcome = run(execute_request_sponsorship([], self.with_wallet, self.sources))
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, "Sponsor wallet lacks tokens")
        self.assertIn(f"[[SEND_AGENT_TOKEN|{token}|{sponsor}|5000]]", outcome.display)
        self.assertIn("Ask the user", outcome.display)

    def test_already_sponsored(self):
        self.sources.token_economy.get_agent_token_info = AsyncMock(return_value={
            "pools": [{"agent_name": "MyAgent", "price": 0.5, "market_cap": 12000}],
        })
        self.sources.token_economy.request_sponsorship = AsyncMock()
        outcome = run(execute_request_sponsorship([], self.with_wallet, self.sources))
        self.assertTrue(outcome.data["already_sponsored"])
        self.assertIn("• MyAgent: $0.5000 | MCap: $12,000", outcome.display)
        self.sources.token_economy.request_sponsorship.assert_not_awaited()

    def test_sponsorship_rejects_bad_token_override(self):
        outcome = run(execute_request_sponsorship(["abc"], self.with_wallet, self.sources))
        self.assertEqual(outcome.error, "Invalid token address")


@patch('capability_handlers.identity_handlers.log')
class TestIdentityHandlers(HandlerTestCase):

    def test_register_wallet_requires_wallet(self, mock_log):
        outcome = run(execute_register_wallet([], self.no_wallet, self.sources))
        self.assertEqual(outcome.error, "No wallet")

    def test_register_wallet(self, mock_log):
        self.sources.token_economy.register_wallet = AsyncMock(return_value={"success": True, "wallet_address": WALLET})
        outcome = run(execute_register_wallet([], self.with_wallet, self.sources))
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.data["wallet_address"], WALLET)
        self.sources.token_economy.register_wallet.assert_awaited_once_with("agent-1")

    def test_register_wallet_rejected(self, mock_log):
        self.sources.token_economy.register_wallet = AsyncMock(return_value={"success": False, "error": "Already registered"})
        outcome = run(execute_register_wallet([], self.with_wallet, self.sources))
        self.assertEqual(outcome.display, "Registration Failed: Already registered")


class TestUsageHints(HandlerTestCase):

    def test_usage_line_comes_from_catalog(self):
        for definition in CAPABILITY_DEFINITIONS:
            self.assertEqual(usage_hint(definition.tag), definition.usage_hint())
        self.assertEqual(usage_hint("SELFCLAW_DEPLOY_TOKEN"), "❌ Usage: [[SELFCLAW_DEPLOY_TOKEN|name|symbol|supply?]]")

    def test_handlers_return_catalog_usage(self):
        cases = [
            (execute_generate_qr, "GENERATE_QR"),
            (execute_deploy_token, "SELFCLAW_DEPLOY_TOKEN"),
            (execute_log_revenue, "SELFCLAW_LOG_REVENUE"),
            (execute_mento_quote, "MENTO_QUOTE"),
            (execute_mento_swap, "MENTO_SWAP"),
        ]
        for handler, tag in cases:
            with self.subTest(tag=tag):
                outcome = run(handler([], self.with_wallet, self.sources))
                self.assertFalse(outcome.success)
                self.assertEqual(outcome.display, usage_hint(tag))

    def test_usage_line_with_note(self):
        self.sources.token_economy.cost_categories = ["compute", "other"]
        outcome = run(execute_log_cost(["lots"], self.with_wallet, self.sources))
        self.assertEqual(outcome.display,
                         "❌ Usage: [[SELFCLAW_LOG_COST|amount|category?|description?]] (categories: compute, other)")


if __name__ == '__main__':
    unittest.main()
