# core/capability_executor.py

"""
Capability Executor

Runs the directives found in generated text against the registry and splices
each rendered outcome back in place of its own directive.

Directives run strictly one after another in text order: a later directive may
rely on the side effects of an earlier one (register wallet, then request
sponsorship). Every invocation is isolated, so an exception, a timeout or a
failed outcome only affects its own directive.
"""
import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import config
from core.capability_types import CapabilityDefinition, ExecutionContext, Outcome, ParsedDirective
from core.directive_parser import parse_directives
from utils.logger import log


@dataclass
class ExecutionResult:
    text: str
    executed_count: int = 0
    outcomes: List[Tuple[ParsedDirective, Outcome]] = field(default_factory=list)


def is_retryable(definition: CapabilityDefinition) -> bool:
    """Only idempotent reads in a retryable category are ever retried."""
    return (not definition.mutates_external_state
            and definition.category in config.RETRYABLE_CATEGORIES)


def render_failure(tag: str, error: str) -> str:
    return f"❌ Skill `{tag}` failed: {error}"


async def invoke_capability(entry, args, context: ExecutionContext,
                            timeout: Optional[float] = None,
                            retries: Optional[int] = None,
                            retry_delay: Optional[float] = None) -> Outcome:
    """
    Calls one registered handler under a deadline. Never raises for handler
    errors; they come back as a failed Outcome.
    """
    definition = entry.definition
    timeout = config.HANDLER_TIMEOUT_SECONDS if timeout is None else timeout
    retries = config.READ_ONLY_RETRY_ATTEMPTS if retries is None else retries
    retry_delay = config.READ_ONLY_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
    attempts = 1 + (retries if is_retryable(definition) else 0)

    error = "unknown error"
    for attempt in range(1, attempts + 1):
        try:
            outcome = await asyncio.wait_for(entry.handler(list(args), context), timeout)
        except asyncio.TimeoutError:
            error = f"timed out after {timeout:g}s"
            log(f"[CapabilityExecutor] {definition.tag} {error} (attempt {attempt}/{attempts}).", level="WARN")
        except Exception as e:
            error = str(e) or type(e).__name__
            log(f"[CapabilityExecutor] {definition.tag} raised (attempt {attempt}/{attempts}): {error}",
                level="ERROR", exc_info=True)
        else:
            if not isinstance(outcome, Outcome):
                error = "handler returned no outcome"
                log(f"[CapabilityExecutor] {definition.tag} returned {type(outcome).__name__}, expected Outcome.",
                    level="ERROR")
                break
            # Handlers report connector failures as failed outcomes; those count as a failed attempt.
            if outcome.success or attempt == attempts:
                return outcome
            log(f"[CapabilityExecutor] {definition.tag} failed (attempt {attempt}/{attempts}): {outcome.error}",
                level="WARN")

        if attempt < attempts:
            await asyncio.sleep(retry_delay)

    return Outcome.fail(render_failure(definition.tag, error), error=error)


async def execute_directives(text: str, context: ExecutionContext, registry,
                             timeout: Optional[float] = None,
                             retries: Optional[int] = None,
                             retry_delay: Optional[float] = None) -> ExecutionResult:
    """
    Returns the text with every resolved directive replaced by "\\n<rendering>\\n"
    and the number of directives that succeeded. Unknown and transfer tags are
    left verbatim. Replacement is by position, so identical directives each get
    their own outcome.
    """
    directives = parse_directives(text, registry)
    if not directives:
        return ExecutionResult(text=text)

    log(f"[CapabilityExecutor] Agent {context.agent_id}: executing {len(directives)} directive(s).", level="INFO")
    result = ExecutionResult(text=text)
    pieces = []
    cursor = 0
    for directive in directives:
        entry = registry.lookup(directive.tag)
        outcome = await invoke_capability(entry, directive.args, context, timeout, retries, retry_delay)
        result.outcomes.append((directive, outcome))

        if outcome.success:
            result.executed_count += 1
            log(f"[CapabilityExecutor] {directive.tag} succeeded.", level="DEBUG")
        else:
            log(f"[CapabilityExecutor] {directive.tag} failed: {outcome.error}", level="WARN")

        pieces.append(text[cursor:directive.start])
        pieces.append(f"\n{outcome.display}\n")
        cursor = directive.end

    pieces.append(text[cursor:])
    result.text = "".join(pieces)
    log(f"[CapabilityExecutor] Agent {context.agent_id}: {result.executed_count}/{len(directives)} directive(s) succeeded.",
        level="INFO")
    return result
