# utils/display_format.py
"""Markdown helpers shared by capability handlers so chat output looks uniform."""
import re

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value) -> bool:
    return bool(value) and bool(ADDRESS_PATTERN.match(value))


def fmt_addr(address: str, prefix_len: int = 6, suffix_len: int = 4) -> str:
    """`0x1234...abcd` in backticks."""
    if not address or len(address) < prefix_len + suffix_len:
        return address
    return f"`{address[:prefix_len]}...{address[-suffix_len:]}`"


def short_address(address: str, prefix_len: int = 6, suffix_len: int = 4) -> str:
    if not address or len(address) < prefix_len + suffix_len:
        return address
    return f"{address[:prefix_len]}...{address[-suffix_len:]}"


def fmt_hash(value: str) -> str:
    return f"`{value}`" if value else value


def fmt_header(title: str, emoji: str = None) -> str:
    return f"## {emoji} {title}" if emoji else f"## {title}"


def fmt_section(label: str) -> str:
    return f"**{label}**"


def fmt_bullet(text: str) -> str:
    return f"• {text}"


def fmt_meta(text: str) -> str:
    return f"_{text}_"


def fmt_code(text: str) -> str:
    return f"`{text}`"


def signed(value: float, digits: int = 3) -> str:
    """Formats a percentage change with an explicit + for gains."""
    return f"{'+' if value > 0 else ''}{value:.{digits}f}"


def direction_icon(direction: str) -> str:
    return {"up": "📈", "down": "📉"}.get(direction, "➡️")


def confidence_icon(confidence: str) -> str:
    return {"high": "🟢", "medium": "🟡"}.get(confidence, "🔴")


def format_period_label(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} minutes"
    if minutes < 1440:
        return f"{round(minutes / 60)} hour(s)"
    return f"{round(minutes / 1440)} day(s)"


def short_period_label(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    if minutes < 1440:
        return f"{round(minutes / 60)}h"
    return f"{round(minutes / 1440)}d"


def truncate(text: str, limit: int, ellipsis: str = "…") -> str:
    if text is None:
        return ""
    return text if len(text) <= limit else text[:limit] + ellipsis
