# connectors/base_llm_connector.py
from abc import ABC, abstractmethod
from typing import List, Dict, Optional


class BaseTextGenerator(ABC):
    """
    Abstract Base Class for text-generation connectors.
    The engine hands over the full message list (system prompt first) and
    gets back the raw model text, directives included.
    """

    @abstractmethod
    async def generate(self, messages: List[Dict[str, str]], model_name: Optional[str] = None) -> str:
        """
        Returns the generated text. Raises on provider failure; the message
        pipeline decides how that surfaces to the sender.
        """
        pass


class BaseTransferExecutor(ABC):
    """
    Privileged path for the reserved value-transfer directives. It receives the
    text after capability execution and returns it with transfer tags resolved.
    """

    @abstractmethod
    async def execute_transfers(self, text: str, agent_id: str, derivation_index: Optional[int],
                                denial_message: Optional[str] = None) -> str:
        pass
