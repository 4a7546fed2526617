# core/capability_types.py

"""
Value types shared by the capability catalog, registry, parser and executor.
All of them are immutable; a handler receives them read-only.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


class CapabilityCategory:
    TRANSFER = "transfer"
    ORACLE = "oracle"
    EXCHANGE = "exchange"
    DATA = "data"
    ANALYSIS = "analysis"
    IDENTITY = "identity"
    TOKEN_ECONOMY = "token-economy"

    ALL = frozenset({TRANSFER, ORACLE, EXCHANGE, DATA, ANALYSIS, IDENTITY, TOKEN_ECONOMY})


@dataclass(frozen=True)
class Parameter:
    name: str
    description: str
    required: bool = True
    example: str = ""


@dataclass(frozen=True)
class UsageExample:
    user_input: str
    directive: str


@dataclass(frozen=True)
class CapabilityDefinition:
    id: str
    name: str
    description: str
    category: str
    tag: str
    params: Tuple[Parameter, ...] = ()
    examples: Tuple[UsageExample, ...] = ()
    requires_wallet: bool = False
    mutates_external_state: bool = False

    def placeholder_syntax(self) -> str:
        """`[[TAG|<p1>|<p2>]]`, or `[[TAG]]` for a capability without parameters."""
        if not self.params:
            return f"[[{self.tag}]]"
        placeholders = "|".join(f"<{p.name}>" for p in self.params)
        return f"[[{self.tag}|{placeholders}]]"

    def usage_hint(self) -> str:
        """Usage line returned by handlers when arguments are missing or invalid."""
        if not self.params:
            return f"❌ Usage: [[{self.tag}]]"
        names = "|".join(p.name if p.required else f"{p.name}?" for p in self.params)
        return f"❌ Usage: [[{self.tag}|{names}]]"


@dataclass(frozen=True)
class ParsedDirective:
    """One directive occurrence. `start`/`end` index `raw` inside the parsed text."""
    capability_id: str
    tag: str
    args: Tuple[str, ...]
    raw: str
    start: int
    end: int


@dataclass(frozen=True)
class ExecutionContext:
    agent_id: str
    wallet_address: Optional[str] = None
    derivation_index: Optional[int] = None


@dataclass(frozen=True)
class Outcome:
    success: bool
    display: str
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def ok(cls, display: str, **data) -> "Outcome":
        return cls(success=True, display=display, data=data)

    @classmethod
    def fail(cls, display: str, error: Optional[str] = None, **data) -> "Outcome":
        return cls(success=False, display=display, data=data, error=error or display)
