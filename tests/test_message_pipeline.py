# tests/test_message_pipeline.py

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch
import os
import sys

# Ensure the engine modules can be imported
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import config
from connectors.agent_directory import AgentRecord, InMemoryAgentDirectory
from core.capability_registry import CapabilityRegistry
from core.capability_types import Outcome
from core.errors import AgentNotFoundError
from core.prompt_generator import HEADER, WALLET_WARNING
from engine.message_pipeline import TRANSFER_DENIED_MESSAGE, MessagePipeline, render_wallet_block

WALLET = "0x" + "12" * 20


class TestMessagePipeline(unittest.TestCase):

    def setUp(self):
        self.directory = InMemoryAgentDirectory([
            AgentRecord(id="agent-1", name="Ada", template_id="custom", system_prompt="You are Ada.",
                        wallet_address=WALLET, derivation_index=4),
            AgentRecord(id="agent-2", name="Bare", template_id="custom"),
        ])
        self.registry = CapabilityRegistry(template_capabilities={"custom": ["query_rate", "mento_swap"]})
        self.rate_handler = AsyncMock(return_value=Outcome.ok("RATE BLOCK"))
        self.swap_handler = AsyncMock(return_value=Outcome.ok("SWAP BLOCK"))
        self.registry.register(self.registry.definition_for_tag("QUERY_RATE"), self.rate_handler)
        self.registry.register(self.registry.definition_for_tag("MENTO_SWAP"), self.swap_handler)
        self.generator = MagicMock()
        self.generator.generate = AsyncMock(return_value="Here: [[QUERY_RATE|cUSD]]")
        self.activity_log = MagicMock()
        self.pipeline = MessagePipeline(self.directory, self.generator, self.registry, activity_log=self.activity_log)
        patcher = patch('engine.message_pipeline.log')
        patcher.start()
        self.addCleanup(patcher.stop)

    def sent_messages(self):
        return self.generator.generate.await_args[0][0]

    def test_reply_has_directives_executed(self):
        with patch('core.capability_executor.log'):
            reply = asyncio.run(self.pipeline.process_message("agent-1", "rate?"))
        self.assertEqual(reply, "Here: \nRATE BLOCK\n")
        messages = [call[0][2] for call in self.activity_log.record.call_args_list]
        self.assertEqual(messages, ["Processed message", "Executed 1 skill(s): custom template"])

    def test_prompt_layout_and_history(self):
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "system", "content": "ignored"},
        ]
        with patch('core.capability_executor.log'):
            asyncio.run(self.pipeline.process_message("agent-1", "rate?", history))
        messages = self.sent_messages()
        self.assertEqual([m["role"] for m in messages], ["system", "user", "assistant", "user"])
        self.assertEqual(messages[-1]["content"], "rate?")
        system = messages[0]["content"]
        self.assertTrue(system.startswith("You are Ada."))
        self.assertIn("[TRANSACTION EXECUTION", system)
        self.assertIn(HEADER, system)
        self.assertNotIn(WALLET_WARNING, system)

    def test_default_system_prompt_without_wallet(self):
        self.generator.generate.return_value = "plain answer"
        reply = asyncio.run(self.pipeline.process_message("agent-2", "hi"))
        self.assertEqual(reply, "plain answer")
        system = self.sent_messages()[0]["content"]
        self.assertTrue(system.startswith(config.DEFAULT_SYSTEM_PROMPT))
        self.assertIn("[WALLET CONTEXT]", system)
        self.assertIn(WALLET_WARNING, system)

    def test_external_user_gets_no_wallet(self):
        self.generator.generate.return_value = "[[MENTO_SWAP|CELO|cUSD|5]]"
        with patch('core.capability_executor.log'):
            asyncio.run(self.pipeline.process_message("agent-1", "swap", can_use_agent_wallet=False))
        context = self.swap_handler.await_args[0][1]
        self.assertIsNone(context.wallet_address)
        self.assertIsNone(context.derivation_index)
        system = self.sent_messages()[0]["content"]
        self.assertIn("[TRANSACTION CONTEXT", system)
        self.assertIn(WALLET_WARNING, system)

    def test_transfer_executor_runs_after_directives(self):
        executor = MagicMock()
        executor.execute_transfers = AsyncMock(return_value="final")
        pipeline = MessagePipeline(self.directory, self.generator, self.registry, transfer_executor=executor)
        with patch('core.capability_executor.log'):
            reply = asyncio.run(pipeline.process_message("agent-1", "rate?", can_use_agent_wallet=False))
        self.assertEqual(reply, "final")
        executor.execute_transfers.assert_awaited_once_with("Here: \nRATE BLOCK\n", "agent-1", None,
                                                           TRANSFER_DENIED_MESSAGE)

    def test_unknown_agent(self):
        with self.assertRaises(AgentNotFoundError):
            asyncio.run(self.pipeline.process_message("nobody", "hi"))
        self.generator.generate.assert_not_awaited()

    def test_wallet_blocks(self):
        self.assertIn(WALLET, render_wallet_block(WALLET, True))
        self.assertNotIn(WALLET, render_wallet_block(WALLET, False))
        self.assertIn("[WALLET CONTEXT]", render_wallet_block(None, True))


if __name__ == '__main__':
    unittest.main()
