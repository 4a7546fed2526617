# engine/message_pipeline.py

from typing import Dict, List, Optional
import config
from core.capability_executor import execute_directives
from core.capability_types import ExecutionContext
from core.errors import AgentNotFoundError
from core.prompt_generator import render_capability_block
from utils.display_format import truncate
from utils.logger import log

TRANSFER_DENIED_MESSAGE = (
    "Transaction execution requires the agent owner to be connected. Only the agent owner can sign "
    "transactions from this agent's wallet. You can prepare the transaction and sign it with your own wallet instead."
)


def render_wallet_block(wallet_address: Optional[str], can_use_agent_wallet: bool) -> str:
    if wallet_address and can_use_agent_wallet:
        return "\n".join([
            "",
            "",
            "[TRANSACTION EXECUTION — CRITICAL INSTRUCTIONS]",
            f"Your wallet address: {wallet_address}",
            "",
            "Use these command tags to execute REAL on-chain transfers. Never fabricate transaction hashes or receipts.",
            "  [[SEND_CELO|<recipient_0x_address>|<amount>]]",
            "  [[SEND_TOKEN|<currency>|<recipient_0x_address>|<amount>]]",
            "  [[SEND_AGENT_TOKEN|<token_0x_address>|<recipient_0x_address>|<amount>]]",
            "",
            "RULES:",
            "- The recipient MUST be a valid 0x address (42 hex characters).",
            "- Always ask the user to confirm before including a transfer tag for amounts over 10.",
            "- Never reveal private keys.",
        ])
    if wallet_address:
        return "\n".join([
            "",
            "",
            "[TRANSACTION CONTEXT — EXTERNAL USER]",
            "The connected user is NOT the agent owner. You CANNOT execute transactions from the agent's wallet.",
            "- Do NOT use [[SEND_CELO]], [[SEND_TOKEN]], or [[SEND_AGENT_TOKEN]]; they will not execute.",
            "- Prepare transaction details and tell the user they can sign with their own wallet.",
            "- You can still provide quotes, check public data, and advise.",
        ])
    return ("\n\n[WALLET CONTEXT] This agent does not have a wallet initialized yet. You CANNOT execute any "
            "transactions. Tell the user to initialize the wallet on the agent dashboard first.")


class MessagePipeline:
    """
    One message unit: prompt assembly, text generation, directive execution,
    then the privileged transfer path when one is configured.
    """

    def __init__(self, agent_directory, text_generator, registry, activity_log=None, transfer_executor=None):
        self.directory = agent_directory
        self.text_generator = text_generator
        self.registry = registry
        self.activity_log = activity_log
        self.transfer_executor = transfer_executor

    def build_system_prompt(self, agent, can_use_agent_wallet: bool = True) -> str:
        prompt = agent.system_prompt or config.DEFAULT_SYSTEM_PROMPT
        prompt += render_wallet_block(agent.wallet_address, can_use_agent_wallet)
        effective_wallet = agent.wallet_address if can_use_agent_wallet else None
        prompt += render_capability_block(self.registry, agent.template_id or config.DEFAULT_TEMPLATE, effective_wallet)
        return prompt

    async def process_message(self, agent_id: str, text: str,
                              history: Optional[List[Dict[str, str]]] = None,
                              can_use_agent_wallet: bool = True) -> str:
        agent = self.directory.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent {agent_id} not found")

        messages = [{"role": "system", "content": self.build_system_prompt(agent, can_use_agent_wallet)}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history or []
                        if m.get("role") in ("user", "assistant"))
        messages.append({"role": "user", "content": text})

        log(f"[MessagePipeline] Agent {agent_id}: generating reply ({len(messages) - 2} history message(s)).",
            level="DEBUG")
        generated = await self.text_generator.generate(messages)
        self._record(agent_id, "Processed message", {
            "user_message": truncate(text, 100),
            "response_length": len(generated),
        })

        context = ExecutionContext(
            agent_id=agent_id,
            wallet_address=agent.wallet_address if can_use_agent_wallet else None,
            derivation_index=agent.derivation_index if can_use_agent_wallet else None,
        )
        result = await execute_directives(generated, context, self.registry)
        if result.executed_count > 0:
            self._record(agent_id, f"Executed {result.executed_count} skill(s): {agent.template_id} template")

        final_text = result.text
        if self.transfer_executor is not None:
            final_text = await self.transfer_executor.execute_transfers(
                final_text, agent_id, context.derivation_index,
                None if can_use_agent_wallet else TRANSFER_DENIED_MESSAGE,
            )
        return final_text

    def _record(self, agent_id: str, message: str, metadata=None) -> None:
        if self.activity_log is not None:
            self.activity_log.record(agent_id, "action", message, metadata)
