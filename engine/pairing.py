# engine/pairing.py

"""
Pairing codes bind a sender on a shared bot to one agent.

A code is the prefix "AF" followed by four characters drawn from an alphabet
without I and O, e.g. "AF7X2K". Codes are unique across agents and expire
after PAIRING_CODE_EXPIRY_HOURS; an agent holds at most one code at a time.
"""
import re
import secrets
import time
from typing import Any, Dict, Optional
import config
from core.errors import AgentNotFoundError, PairingCodeGenerationError
from utils.logger import log

# Matches AF7X2K, af7x2k, AF-7X2K, af 7x2k and /pair AF7X2K
PAIRING_CODE_PATTERN = re.compile(r"\b(?:/pair\s+)?(?:AF[\s-]?)([0-9A-HJ-NP-Z]{4})\b", re.IGNORECASE)


def generate_code() -> str:
    suffix = "".join(secrets.choice(config.PAIRING_CODE_ALPHABET) for _ in range(config.PAIRING_CODE_LENGTH))
    return config.PAIRING_CODE_PREFIX + suffix


def extract_pairing_code(text: str) -> Optional[str]:
    """Normalized code found in free text, or None."""
    match = PAIRING_CODE_PATTERN.search((text or "").strip())
    if not match:
        return None
    return config.PAIRING_CODE_PREFIX + match.group(1).upper()


def normalize_code(code: str) -> str:
    return re.sub(r"[\s-]", "", code or "").upper()


class PairingService:
    def __init__(self, binding_store, agent_directory):
        self.store = binding_store
        self.directory = agent_directory

    def get_or_create(self, agent_id: str, now: Optional[float] = None) -> Dict[str, Any]:
        """
        Returns {"code", "expires_at", "is_new"}. A still-valid code is reused.
        Raises AgentNotFoundError for unknown agents and ValueError for inactive ones.
        """
        now = time.time() if now is None else now
        agent = self.directory.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent {agent_id} not found")
        if not agent.is_active:
            raise ValueError("Agent must be active to generate a pairing code. Deploy it first.")

        existing = self.store.get_pairing_code(agent_id)
        if existing and existing["expires_at"] > now:
            return {"code": existing["code"], "expires_at": existing["expires_at"], "is_new": False}

        expires_at = now + config.PAIRING_CODE_EXPIRY_HOURS * 3600
        for attempt in range(1, config.PAIRING_CODE_MAX_ATTEMPTS + 1):
            code = generate_code()
            if self.store.save_pairing_code(agent_id, code, expires_at):
                log(f"[Pairing] Issued code {code} for agent {agent_id} (attempt {attempt}).", level="INFO")
                return {"code": code, "expires_at": expires_at, "is_new": True}
            log(f"[Pairing] Code collision on {code}, retrying.", level="DEBUG")

        log(f"[Pairing] Could not issue a unique code for agent {agent_id}.", level="ERROR")
        raise PairingCodeGenerationError("Failed to generate a unique pairing code. Try again.")

    def revoke(self, agent_id: str) -> None:
        self.store.delete_pairing_code(agent_id)
        log(f"[Pairing] Revoked pairing code for agent {agent_id}.", level="INFO")

    def resolve(self, code: str, now: Optional[float] = None):
        """The active agent holding an unexpired `code`, or None."""
        agent_id = self.store.find_agent_by_code(normalize_code(code), now)
        if agent_id is None:
            return None
        return self.directory.get_active_agent(agent_id)
