# connectors/channel_adapters.py

"""
One adapter per channel type behind a common interface. The router and the
HTTP layer pick the adapter with get_adapter(channel_type).
"""
import hmac
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import requests
import config
from core.errors import ChannelApiError
from utils.logger import log


@dataclass
class ChannelReply:
    text: str
    chat_id: str
    reply_to_message_id: Optional[Any] = None
    media: List[Dict[str, Any]] = field(default_factory=list)


class ChannelAdapter(ABC):
    channel_type: str = ""

    @abstractmethod
    def connect(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        """Provision the channel for an agent. Returns {"success": bool, ...}."""
        pass

    @abstractmethod
    def disconnect(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def send_message(self, credential: Optional[str], reply: ChannelReply) -> Dict[str, Any]:
        pass

    @abstractmethod
    def verify_webhook(self, headers, secret: Optional[str]) -> bool:
        pass


def split_message(text: str, max_length: int) -> List[str]:
    """Chunks of at most `max_length`, preferring newline then space boundaries."""
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text
    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, max_length)
        if split_at < max_length * 0.5:
            split_at = remaining.rfind(" ", 0, max_length)
        if split_at < max_length * 0.3:
            split_at = max_length
        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:].lstrip()
    return chunks


class TelegramAdapter(ChannelAdapter):
    channel_type = "telegram"
    SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

    def __init__(self, api_base: Optional[str] = None, timeout: Optional[float] = None,
                 max_message_length: Optional[int] = None):
        self.api_base = (api_base or config.TELEGRAM_API_BASE).rstrip("/")
        self.timeout = timeout or config.TELEGRAM_REQUEST_TIMEOUT
        self.max_message_length = max_message_length or config.TELEGRAM_MAX_MESSAGE_LENGTH

    def call(self, bot_token: str, method: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.api_base}/bot{bot_token}/{method}"
        try:
            response = requests.post(url, json=body or {}, timeout=self.timeout)
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise ChannelApiError(f"Telegram API error [{method}]: {e}") from e
        if not data.get("ok"):
            raise ChannelApiError(f"Telegram API error [{method}]: {data.get('description') or data}")
        return data.get("result")

    def verify_bot_token(self, bot_token: str) -> Dict[str, Any]:
        try:
            me = self.call(bot_token, "getMe")
        except ChannelApiError as e:
            return {"valid": False, "error": str(e)}
        username = me.get("username")
        return {"valid": True, "bot_username": f"@{username}" if username else None, "bot_name": me.get("first_name")}

    def connect(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        bot_token = settings.get("bot_token")
        if not bot_token:
            return {"success": False, "error": "bot_token is required"}

        verified = self.verify_bot_token(bot_token)
        if not verified["valid"]:
            return {"success": False, "error": verified["error"]}

        secret = settings.get("webhook_secret") or secrets.token_hex(32)
        base_url = (settings.get("base_url") or config.PUBLIC_BASE_URL).rstrip("/")
        try:
            self.call(bot_token, "setWebhook", {
                "url": f"{base_url}/channels/telegram/{agent_id}",
                "secret_token": secret,
                "allowed_updates": ["message", "edited_message"],
                "max_connections": 40,
            })
        except ChannelApiError as e:
            log(f"[TelegramAdapter] setWebhook failed for agent {agent_id}: {e}", level="ERROR")
            return {"success": False, "error": str(e)}

        log(f"[TelegramAdapter] Connected agent {agent_id} to {verified['bot_username']}.", level="INFO")
        return {"success": True, "bot_username": verified["bot_username"], "webhook_secret": secret}

    def disconnect(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        bot_token = settings.get("bot_token")
        if not bot_token:
            return {"success": True}
        try:
            self.call(bot_token, "deleteWebhook", {"drop_pending_updates": True})
        except ChannelApiError as e:
            log(f"[TelegramAdapter] deleteWebhook failed for agent {agent_id}: {e}", level="WARN")
            return {"success": False, "error": str(e)}
        log(f"[TelegramAdapter] Disconnected agent {agent_id}.", level="INFO")
        return {"success": True}

    def send_message(self, credential: Optional[str], reply: ChannelReply) -> Dict[str, Any]:
        chunks = split_message(reply.text, self.max_message_length)
        for index, chunk in enumerate(chunks):
            body = {
                "chat_id": reply.chat_id,
                "text": chunk,
                "disable_web_page_preview": True,
            }
            if index == 0 and reply.reply_to_message_id is not None:
                body["reply_to_message_id"] = reply.reply_to_message_id
            try:
                self.call(credential, "sendMessage", {**body, "parse_mode": "Markdown"})
            except ChannelApiError as e:
                # Model output is not always valid Markdown
                log(f"[TelegramAdapter] Markdown send failed, retrying as plain text: {e}", level="DEBUG")
                try:
                    self.call(credential, "sendMessage", body)
                except ChannelApiError as plain_error:
                    log(f"[TelegramAdapter] sendMessage failed: {plain_error}", level="ERROR")
                    return {"success": False, "error": str(plain_error), "sent_chunks": index}
        return {"success": True, "sent_chunks": len(chunks)}

    def send_typing(self, credential: str, chat_id: str) -> None:
        try:
            self.call(credential, "sendChatAction", {"chat_id": chat_id, "action": "typing"})
        except ChannelApiError as e:
            log(f"[TelegramAdapter] Typing indicator failed: {e}", level="DEBUG")

    def verify_webhook(self, headers, secret: Optional[str]) -> bool:
        if not secret:
            return True
        received = headers.get(self.SECRET_HEADER) or ""
        return hmac.compare_digest(received, secret)

    @staticmethod
    def parse_update(update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Inbound payload for a text message update, or None for anything else."""
        message = (update or {}).get("message") or (update or {}).get("edited_message")
        if not message or not message.get("text"):
            return None

        sender = message.get("from") or {}
        chat = message.get("chat") or {}
        sender_name = " ".join(p for p in (sender.get("first_name"), sender.get("last_name")) if p) or None
        timestamp = message.get("date")
        return {
            "channel": "telegram",
            "sender": {
                "id": str(sender.get("id", "unknown")),
                "name": sender_name,
                "username": sender.get("username"),
            },
            "chat": {
                "id": str(chat.get("id", "")),
                "is_group": chat.get("type") in ("group", "supergroup"),
                "title": chat.get("title"),
            },
            "message": {
                "id": message.get("message_id"),
                "text": message["text"],
                "timestamp": datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat() if timestamp else None,
            },
        }


class WebChatAdapter(ChannelAdapter):
    """Direct mode. Replies go back in the HTTP response, so there is nothing to deliver."""
    channel_type = "web"

    def connect(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": True}

    def disconnect(self, agent_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": True}

    def send_message(self, credential: Optional[str], reply: ChannelReply) -> Dict[str, Any]:
        return {"success": True, "inline": True}

    def verify_webhook(self, headers, secret: Optional[str]) -> bool:
        if not secret:
            return True
        return hmac.compare_digest(headers.get("Authorization") or "", f"Bearer {secret}")


_ADAPTERS = {
    TelegramAdapter.channel_type: TelegramAdapter,
    WebChatAdapter.channel_type: WebChatAdapter,
}


def get_adapter(channel_type: str) -> ChannelAdapter:
    adapter_class = _ADAPTERS.get(channel_type)
    if adapter_class is None:
        raise ValueError(f"No adapter for channel type '{channel_type}'")
    return adapter_class()
