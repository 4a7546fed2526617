# engine/channel_gateway.py

"""
Entry point for one inbound channel message: validate, route, run the
message pipeline for bound senders, persist the exchange, build the reply.
"""
import asyncio
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
import config
from core.errors import StoreError
from engine.channel_router import SenderContext
from utils.display_format import truncate
from utils.logger import log

IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(((?:data:image/|https?://)[^)\s]+)\)")

TIMEOUT_REPLY = "⏱️ Sorry, that took too long to process. Please try again."
ERROR_REPLY = "Sorry, I encountered an error processing your message. Please try again."


@dataclass
class InboundMessage:
    channel_type: str
    sender_id: str
    text: str
    chat_id: str
    sender_name: Optional[str] = None
    sender_username: Optional[str] = None
    sender_phone: Optional[str] = None
    is_group: bool = False
    group_title: Optional[str] = None
    message_id: Optional[Any] = None
    timestamp: Optional[str] = None
    media: List[Dict[str, Any]] = field(default_factory=list)
    session_id: Optional[str] = None
    bot_id: Optional[str] = None     # receiving bot, dedicated mode
    agent_id: Optional[str] = None   # explicit agent, direct mode


@dataclass
class OutboundReply:
    reply: str
    action: str
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    media: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _require_mapping(value, name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be an object")
    return value


def parse_inbound(payload: Dict[str, Any]) -> InboundMessage:
    """
    Validates the inbound payload:

        {"channel": "telegram",
         "sender": {"id": "...", "name": "...", "phone": "...", "username": "..."},
         "chat": {"id": "...", "is_group": false, "title": "..."},
         "message": {"id": "...", "text": "...", "timestamp": "...", "media": [...]},
         "routing": {"session_id": "...", "bot_id": "...", "agent_id": "..."}}

    Raises ValueError describing the first problem found.
    """
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")

    channel_type = payload.get("channel")
    if not channel_type or not isinstance(channel_type, str):
        raise ValueError("'channel' is required")

    sender = _require_mapping(payload.get("sender"), "sender")
    chat = _require_mapping(payload.get("chat"), "chat")
    message = _require_mapping(payload.get("message"), "message")
    routing = _require_mapping(payload.get("routing"), "routing")

    sender_id = sender.get("id")
    if sender_id is None or str(sender_id).strip() == "":
        raise ValueError("'sender.id' is required")
    text = message.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValueError("'message.text' is required")
    media = message.get("media") or []
    if not isinstance(media, list):
        raise ValueError("'message.media' must be a list")

    return InboundMessage(
        channel_type=channel_type.lower(),
        sender_id=str(sender_id),
        text=text,
        chat_id=str(chat.get("id") or sender_id),
        sender_name=sender.get("name"),
        sender_username=sender.get("username"),
        sender_phone=sender.get("phone"),
        is_group=bool(chat.get("is_group", False)),
        group_title=chat.get("title"),
        message_id=message.get("id"),
        timestamp=message.get("timestamp"),
        media=media,
        session_id=routing.get("session_id"),
        bot_id=routing.get("bot_id"),
        agent_id=routing.get("agent_id"),
    )


def extract_media(text: str) -> List[Dict[str, Any]]:
    return [{"type": "image", "url": url, "caption": caption or None}
            for caption, url in IMAGE_PATTERN.findall(text or "")]


class ChannelGateway:
    def __init__(self, router, pipeline, binding_store, activity_log=None,
                 unit_timeout: Optional[float] = None):
        self.router = router
        self.pipeline = pipeline
        self.store = binding_store
        self.activity_log = activity_log
        self.unit_timeout = config.MESSAGE_UNIT_TIMEOUT_SECONDS if unit_timeout is None else unit_timeout

    async def handle_inbound(self, payload: Dict[str, Any], can_use_agent_wallet: bool = True) -> OutboundReply:
        """
        Raises ValueError for a malformed payload and StoreError when the
        binding or session update cannot be persisted. Everything else comes
        back as an OutboundReply with action "error".
        """
        inbound = parse_inbound(payload)
        try:
            return await asyncio.wait_for(self._handle(inbound, can_use_agent_wallet), self.unit_timeout)
        except asyncio.TimeoutError:
            log(f"[ChannelGateway] {inbound.channel_type}:{inbound.sender_id} timed out after {self.unit_timeout:g}s.",
                level="ERROR")
            return OutboundReply(reply=TIMEOUT_REPLY, action="error", agent_id=inbound.agent_id)
        except StoreError:
            raise
        except Exception as e:
            log(f"[ChannelGateway] Processing failed for {inbound.channel_type}:{inbound.sender_id}: {e}",
                level="ERROR", exc_info=True)
            return OutboundReply(reply=ERROR_REPLY, action="error", agent_id=inbound.agent_id)

    async def _handle(self, inbound: InboundMessage, can_use_agent_wallet: bool) -> OutboundReply:
        sender = SenderContext(
            channel_type=inbound.channel_type,
            sender_id=inbound.sender_id,
            text=inbound.text,
            sender_name=inbound.sender_name,
            chat_id=inbound.chat_id,
            credential_id=inbound.bot_id,
            agent_id=inbound.agent_id,
        )
        route = await asyncio.to_thread(self.router.route_message, sender)
        if not route.routed:
            log(f"[ChannelGateway] {inbound.channel_type}:{inbound.sender_id} -> {route.action}.", level="INFO")
            return OutboundReply(reply=route.reply or "", action=route.action,
                                 agent_id=route.agent_id, agent_name=route.agent_name)

        binding = route.binding
        history = self.store.load_session_history(binding["id"]) if binding else []
        reply_text = await self.pipeline.process_message(route.agent_id, inbound.text, history, can_use_agent_wallet)

        if binding:
            self.store.append_session_messages(binding["id"], [("user", inbound.text), ("assistant", reply_text)])
        if self.activity_log is not None:
            self.activity_log.record(
                route.agent_id, "action",
                f"Channel message from {inbound.channel_type}/{inbound.sender_name or inbound.sender_id}",
                {
                    "channel": inbound.channel_type,
                    "sender_id": inbound.sender_id,
                    "mode": route.mode,
                    "user_message": truncate(inbound.text, 200),
                    "response_length": len(reply_text),
                },
            )
        return OutboundReply(reply=reply_text, action="chat", agent_id=route.agent_id,
                             agent_name=route.agent_name, media=extract_media(reply_text))
