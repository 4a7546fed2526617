# core/directive_parser.py

"""
Extracts `[[TAG]]` / `[[TAG|arg1|arg2]]` directives from generated text.

Arguments are literal: there is no escaping, so an argument can never contain
`|` or `]`. Transfer tags and tags without a registered handler are dropped
from the result and stay untouched in the text.
"""
import re
from typing import List
from core.capability_definitions import TRANSFER_TAGS
from core.capability_types import ParsedDirective

DIRECTIVE_PATTERN = re.compile(r"\[\[([A-Z_]+?)(?:\|([^\]]*))?\]\]")


def split_arguments(raw_args) -> tuple:
    if not raw_args:
        return ()
    return tuple(arg.strip() for arg in raw_args.split("|"))


def parse_directives(text: str, registry) -> List[ParsedDirective]:
    """Resolved directives in left-to-right order of their first character. Pure."""
    if not text:
        return []

    directives = []
    for match in DIRECTIVE_PATTERN.finditer(text):
        tag = match.group(1)
        if tag in TRANSFER_TAGS:
            continue
        entry = registry.lookup(tag)
        if entry is None:
            continue
        directives.append(ParsedDirective(
            capability_id=entry.definition.id,
            tag=tag,
            args=split_arguments(match.group(2)),
            raw=match.group(0),
            start=match.start(),
            end=match.end(),
        ))
    return directives
