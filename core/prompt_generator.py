# core/prompt_generator.py

from typing import Optional
from core.capability_types import CapabilityCategory

HEADER = "[AVAILABLE SKILLS — Use these command tags to query data and execute actions]"
WALLET_WARNING = "  ⚠️ Requires wallet (not initialized)"
RULES = [
    "RULES:",
    "- Include the command tag in your response exactly as shown.",
    "- The system will execute the skill and replace the tag with real data.",
    "- DO NOT fabricate data — always use the command tags to get real information.",
    "- You can use multiple skill tags in one response.",
]


def render_capability_block(registry, template_id: Optional[str], wallet_address: Optional[str] = None) -> str:
    """
    Instruction block advertising the template's capabilities to the text model.
    Transfer capabilities have their own instructions and are never listed here.
    Returns "" when nothing is left to advertise.
    """
    capabilities = [d for d in registry.list_for_template(template_id)
                    if d.category != CapabilityCategory.TRANSFER and registry.lookup(d.tag) is not None]
    if not capabilities:
        return ""

    lines = ["", HEADER, ""]
    for definition in capabilities:
        lines.append(f"**{definition.name}**: {definition.description}")
        lines.append(f"  Tag: {definition.placeholder_syntax()}")
        for example in definition.examples:
            lines.append(f"  Example — user says \"{example.user_input}\":")
            lines.append(f"    Your response includes: {example.directive}")
        if definition.requires_wallet and not wallet_address:
            lines.append(WALLET_WARNING)
        lines.append("")
    lines.extend(RULES)
    return "\n".join(lines)
