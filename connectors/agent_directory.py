# connectors/agent_directory.py

import json
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, List, Optional
from core.errors import AgentNotFoundError
from utils.logger import log


@dataclass
class AgentRecord:
    """What the engine needs to know about an agent. Ownership and wallets live elsewhere."""
    id: str
    name: str
    status: str = "active"
    template_id: str = "custom"
    system_prompt: str = ""
    wallet_address: Optional[str] = None
    derivation_index: Optional[int] = None
    owner_id: Optional[str] = None
    # Dedicated Telegram bot, when one is connected
    telegram_bot_token: Optional[str] = None
    telegram_webhook_secret: Optional[str] = None
    telegram_bot_username: Optional[str] = None
    channels: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def public_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("telegram_bot_token", None)
        data.pop("telegram_webhook_secret", None)
        return data


class BaseAgentDirectory(ABC):
    """Read/write access to agent records."""

    @abstractmethod
    def get_agent(self, agent_id: str) -> Optional[AgentRecord]:
        pass

    @abstractmethod
    def list_agents(self, active_only: bool = False) -> List[AgentRecord]:
        pass

    @abstractmethod
    def update_agent(self, agent_id: str, **changes) -> AgentRecord:
        """Raises AgentNotFoundError for an unknown id."""
        pass

    def get_active_agent(self, agent_id: str) -> Optional[AgentRecord]:
        agent = self.get_agent(agent_id)
        return agent if agent and agent.is_active else None


class InMemoryAgentDirectory(BaseAgentDirectory):
    def __init__(self, agents: Optional[List[AgentRecord]] = None):
        self._agents: Dict[str, AgentRecord] = {}
        self._lock = threading.Lock()
        for agent in agents or []:
            self.add_agent(agent)

    @classmethod
    def from_file(cls, path: str) -> "InMemoryAgentDirectory":
        """Loads a JSON list of agent objects. A missing file gives an empty directory."""
        if not os.path.exists(path):
            log(f"[AgentDirectory] No agents file at {path}. Starting with an empty directory.", level="WARN")
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            raw_agents = json.load(f)
        known = {f.name for f in fields(AgentRecord)}
        agents = [AgentRecord(**{k: v for k, v in raw.items() if k in known}) for raw in raw_agents]
        log(f"[AgentDirectory] Loaded {len(agents)} agent(s) from {path}.", level="INFO")
        return cls(agents)

    def add_agent(self, agent: AgentRecord) -> None:
        with self._lock:
            self._agents[agent.id] = agent

    def get_agent(self, agent_id: str) -> Optional[AgentRecord]:
        with self._lock:
            return self._agents.get(agent_id)

    def list_agents(self, active_only: bool = False) -> List[AgentRecord]:
        with self._lock:
            agents = list(self._agents.values())
        return [a for a in agents if a.is_active] if active_only else agents

    def update_agent(self, agent_id: str, **changes) -> AgentRecord:
        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise AgentNotFoundError(f"Agent {agent_id} not found")
            updated = replace(agent, **changes)
            self._agents[agent_id] = updated
        return updated
