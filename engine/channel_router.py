# engine/channel_router.py

"""
Channel Router

Decides which agent handles a message arriving on a channel. Three binding modes:

  direct     the caller names the agent (web chat); no stored binding is read
  dedicated  the receiving bot credential belongs to one agent
  pairing    a shared bot; the sender must submit a pairing code first

Resolution order for channel messages: dedicated credential, existing active
binding (with /pair and /unpair commands), pairing code in the text, and
finally "unknown_sender", which is an answer and not an error.
"""
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional
import config
from engine.pairing import extract_pairing_code
from memory.binding_store import SHARED_CREDENTIAL
from utils.logger import log

DIRECT_CHANNELS = frozenset({"web"})

MODE_DIRECT = "direct"
MODE_DEDICATED = "dedicated"
MODE_PAIRING = "pairing"

REPAIR_COMMAND = re.compile(r"^/pair\s+(.+)$", re.IGNORECASE)
UNPAIR_COMMANDS = ("/unpair", "/disconnect")

WELCOME_REPLY = "\n".join([
    "👋 Welcome!",
    "",
    "To connect to an AI agent, send your **pairing code** (e.g. `AF7X2K`).",
    "",
    "You can get a pairing code from your agent's dashboard.",
    "",
    "Commands:",
    "• Send a code to pair → `AF7X2K`",
    "• Switch agent → `/pair NEWCODE`",
    "• Disconnect → `/unpair`",
])
UNAVAILABLE_REPLY = "⚠️ This agent is not available right now."


@dataclass
class SenderContext:
    channel_type: str
    sender_id: str
    text: str = ""
    sender_name: Optional[str] = None
    chat_id: Optional[str] = None
    credential_id: Optional[str] = None # receiving bot, for dedicated bots
    agent_id: Optional[str] = None      # explicit agent, for direct mode


@dataclass
class RouteResult:
    action: str                          # chat | paired | unpaired | unknown_sender
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    mode: Optional[str] = None
    binding: Optional[Dict[str, Any]] = None
    reply: Optional[str] = None          # system reply; set when no model call is needed

    @property
    def routed(self) -> bool:
        return self.action == "chat" and self.agent_id is not None


def extract_repair_command(text: str) -> Optional[str]:
    match = REPAIR_COMMAND.match((text or "").strip())
    return extract_pairing_code(match.group(1)) if match else None


def is_unpair_command(text: str) -> bool:
    return (text or "").strip().lower() in UNPAIR_COMMANDS


class ChannelRouter:
    def __init__(self, binding_store, agent_directory, pairing_service, activity_log=None):
        self.store = binding_store
        self.directory = agent_directory
        self.pairing = pairing_service
        self.activity_log = activity_log
        self._locks = tuple(threading.Lock() for _ in range(max(1, config.ROUTER_LOCK_STRIPES)))

    def _sender_lock(self, key: tuple) -> threading.Lock:
        """Lock shared by every sender key hashing to the same stripe. Never held across two keys."""
        return self._locks[hash(key) % len(self._locks)]

    # --- Read-only resolution ---

    def resolve(self, channel_type: str, sender_id: str, credential_id: Optional[str] = None,
                agent_id: Optional[str] = None) -> Optional[str]:
        """Agent id the sender resolves to, or None when unbound."""
        if channel_type in DIRECT_CHANNELS:
            agent = self.directory.get_active_agent(agent_id) if agent_id else None
            return agent.id if agent else None
        if credential_id:
            agent = self.directory.get_active_agent(credential_id)
            return agent.id if agent else None
        binding = self.store.find_active(channel_type, sender_id)
        if binding and self.directory.get_active_agent(binding["agent_id"]):
            return binding["agent_id"]
        return None

    # --- Full routing with pairing commands ---

    def route_message(self, sender: SenderContext) -> RouteResult:
        if sender.channel_type in DIRECT_CHANNELS:
            return self._route_direct(sender)
        if sender.credential_id:
            return self._route_dedicated(sender)

        key = (sender.channel_type, SHARED_CREDENTIAL, sender.sender_id)
        with self._sender_lock(key):
            return self._route_shared(sender)

    def _route_direct(self, sender: SenderContext) -> RouteResult:
        agent = self.directory.get_active_agent(sender.agent_id) if sender.agent_id else None
        if agent is None:
            return RouteResult(action="unknown_sender", mode=MODE_DIRECT, reply=UNAVAILABLE_REPLY)
        return RouteResult(action="chat", agent_id=agent.id, agent_name=agent.name, mode=MODE_DIRECT)

    def _route_dedicated(self, sender: SenderContext) -> RouteResult:
        agent = self.directory.get_active_agent(sender.credential_id)
        if agent is None:
            log(f"[ChannelRouter] Dedicated credential {sender.credential_id} has no active agent.", level="WARN")
            return RouteResult(action="unknown_sender", mode=MODE_DEDICATED, reply=UNAVAILABLE_REPLY)

        key = (sender.channel_type, sender.credential_id, sender.sender_id)
        with self._sender_lock(key):
            binding = self.store.find_active(sender.channel_type, sender.sender_id, sender.credential_id)
            if binding and binding["agent_id"] == agent.id:
                self.store.touch(binding["id"], sender.sender_name)
            else:
                binding = self.store.bind(sender.channel_type, sender.sender_id, agent.id, MODE_DEDICATED,
                                          credential_id=sender.credential_id, sender_name=sender.sender_name,
                                          chat_id=sender.chat_id)
        return RouteResult(action="chat", agent_id=agent.id, agent_name=agent.name, mode=MODE_DEDICATED,
                           binding=binding)

    def _route_shared(self, sender: SenderContext) -> RouteResult:
        binding = self.store.find_active(sender.channel_type, sender.sender_id)
        agent = self.directory.get_active_agent(binding["agent_id"]) if binding else None

        if binding and agent:
            self.store.touch(binding["id"], sender.sender_name)

            repair_code = extract_repair_command(sender.text)
            if repair_code:
                return self._pair(repair_code, sender)

            if is_unpair_command(sender.text):
                self.store.deactivate(binding["id"])
                log(f"[ChannelRouter] {sender.channel_type}:{sender.sender_id} unpaired from agent {agent.id}.",
                    level="INFO")
                self._record_activity(agent.id, f"🔓 Unpaired via {sender.channel_type}: "
                                                f"{sender.sender_name or sender.sender_id}", sender)
                return RouteResult(
                    action="unpaired", mode=MODE_PAIRING,
                    reply=f"🔓 Disconnected from **{agent.name}**. Send a new pairing code to connect to another agent.",
                )

            return RouteResult(action="chat", agent_id=agent.id, agent_name=agent.name, mode=MODE_PAIRING,
                               binding=binding)

        code = extract_pairing_code(sender.text)
        if code:
            return self._pair(code, sender)

        return RouteResult(action="unknown_sender", mode=MODE_PAIRING, reply=WELCOME_REPLY)

    def _pair(self, code: str, sender: SenderContext) -> RouteResult:
        agent = self.pairing.resolve(code)
        if agent is None:
            log(f"[ChannelRouter] Rejected pairing code {code} from {sender.channel_type}:{sender.sender_id}.",
                level="INFO")
            return RouteResult(
                action="unknown_sender", mode=MODE_PAIRING,
                reply=(f"❌ Invalid or expired pairing code: `{code}`\n\n"
                       "Please check the code on your agent dashboard and try again. Codes expire after 24 hours."),
            )

        binding = self.store.bind(sender.channel_type, sender.sender_id, agent.id, MODE_PAIRING,
                                  sender_name=sender.sender_name, chat_id=sender.chat_id,
                                  metadata={"pairing_code": code})
        self._record_activity(agent.id, f"🔗 Paired via {sender.channel_type}: "
                                        f"{sender.sender_name or sender.sender_id} (code: {code})",
                              sender, binding_id=binding["id"])
        reply = "\n".join([
            f"✅ **Paired with {agent.name}!**",
            "",
            f"You're now connected to your {agent.template_id} agent.",
            "Send any message to start chatting.",
            "",
            "• Switch agent → `/pair NEWCODE`",
            "• Disconnect → `/unpair`",
        ])
        return RouteResult(action="paired", agent_id=agent.id, agent_name=agent.name, mode=MODE_PAIRING,
                           binding=binding, reply=reply)

    def _record_activity(self, agent_id: str, message: str, sender: SenderContext, **extra) -> None:
        if self.activity_log is None:
            return
        self.activity_log.record(agent_id, "action", message, {
            "channel": sender.channel_type,
            "sender_id": sender.sender_id,
            "sender_name": sender.sender_name,
            **extra,
        })
