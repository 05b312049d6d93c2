"""
Error Recovery Patterns

Failure-kind patterns with recovery strategies.
When a capability fails, the agent appends this guidance to the tool
result so the model picks a different next action instead of repeating.
"""

from dataclasses import dataclass

from pagepilot.errors import ErrorKind
from pagepilot.outcome import Outcome


@dataclass
class RecoveryStrategy:
    """Strategy for recovering from a capability failure."""
    guidance: str  # Human-readable explanation
    retry_tool: str | None = None  # Suggested capability to try next
    give_up: bool = False  # If True, retrying the same step is pointless


# ═══════════════════════════════════════════════════════════════════════════
# PATTERNS (first match wins; empty indicators = fallback for the kind)
# ═══════════════════════════════════════════════════════════════════════════

ELEMENT_PATTERNS = [
    {
        "indicators": ["did not appear"],
        "strategy": RecoveryStrategy(
            guidance=(
                "The selector never matched. Take a screenshot to check the page state, then try "
                "a different selector (id, name, placeholder, or text=...) or scroll to reveal it."
            ),
            retry_tool="take_screenshot",
        ),
    },
    {
        "indicators": [],
        "strategy": RecoveryStrategy(
            guidance="The element could not be used. Verify it with find_element before acting on it.",
            retry_tool="find_element",
        ),
    },
]

NAVIGATION_PATTERNS = [
    {
        "indicators": ["networkidle", "timeout"],
        "strategy": RecoveryStrategy(
            guidance=(
                "Navigation timed out waiting for the network to go idle. The page may still have "
                "loaded; take a screenshot before retrying."
            ),
            retry_tool="take_screenshot",
        ),
    },
    {
        "indicators": [],
        "strategy": RecoveryStrategy(
            guidance="Navigation did not finish. Take a screenshot to see what loaded.",
            retry_tool="take_screenshot",
        ),
    },
]

DRIVER_PATTERNS = [
    {
        "indicators": ["err_name_not_resolved", "err_connection_refused", "err_internet_disconnected"],
        "strategy": RecoveryStrategy(
            guidance="The site is unreachable. Check the URL spelling; retrying the same URL will fail again.",
            give_up=True,
        ),
    },
    {
        "indicators": ["is not a valid selector", "unexpected token"],
        "strategy": RecoveryStrategy(
            guidance="The selector syntax was rejected by the browser. Use a plain CSS selector.",
            retry_tool="find_element",
        ),
    },
    {
        "indicators": ["target closed", "browser has been closed", "target page, context or browser has been closed"],
        "strategy": RecoveryStrategy(
            guidance="The browser page is gone. Stop and report the task as incomplete.",
            give_up=True,
        ),
    },
    {
        "indicators": [],
        "strategy": RecoveryStrategy(
            guidance="The browser rejected the action. Take a screenshot and try an alternative approach.",
            retry_tool="take_screenshot",
        ),
    },
]

INVALID_ARGUMENT_PATTERNS = [
    {
        "indicators": ["either selector or both x and y"],
        "strategy": RecoveryStrategy(
            guidance="click_screen needs a selector, or both x and y. Use find_element to get coordinates.",
            retry_tool="find_element",
        ),
    },
    {
        "indicators": [],
        "strategy": RecoveryStrategy(
            guidance="Arguments did not match the tool schema. Fix the named field and call again.",
        ),
    },
]

SESSION_PATTERNS = [
    {
        "indicators": [],
        "strategy": RecoveryStrategy(
            guidance="No browser session is running. The run cannot continue.",
            give_up=True,
        ),
    },
]

UNKNOWN_PATTERNS = [
    {
        "indicators": [],
        "strategy": RecoveryStrategy(
            guidance="That tool does not exist. Only use the tools listed in your tool schema.",
        ),
    },
]

# ═══════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════

ERROR_PATTERNS: dict[ErrorKind, list[dict]] = {
    ErrorKind.ELEMENT_NOT_FOUND: ELEMENT_PATTERNS,
    ErrorKind.NAVIGATION_TIMEOUT: NAVIGATION_PATTERNS,
    ErrorKind.DRIVER_FAILURE: DRIVER_PATTERNS,
    ErrorKind.INVALID_ARGUMENTS: INVALID_ARGUMENT_PATTERNS,
    ErrorKind.SESSION_NOT_READY: SESSION_PATTERNS,
    ErrorKind.UNKNOWN_CAPABILITY: UNKNOWN_PATTERNS,
}


def get_recovery_strategy(outcome: Outcome) -> RecoveryStrategy | None:
    """
    Match a failure Outcome against known patterns.

    Returns:
        RecoveryStrategy if pattern matched, None for successful outcomes
    """
    if outcome.ok:
        return None

    message = outcome.message.lower()
    for pattern in ERROR_PATTERNS.get(outcome.kind, []):
        indicators = pattern["indicators"]
        if not indicators or any(ind in message for ind in indicators):
            return pattern["strategy"]
    return None


def inject_recovery_guidance(outcome: Outcome) -> str:
    """
    Recovery guidance text appended after a failed capability.

    Returns:
        Formatted guidance, or "" for successful outcomes
    """
    if outcome.ok:
        return ""

    strategy = get_recovery_strategy(outcome)
    header = f"Tool '{outcome.capability}' failed: {outcome.message[:160]}"

    if not strategy:
        return (
            f"{header}\n\nAnalyze the error message, then retry with different arguments "
            "or try a different tool."
        )

    guidance = f"{header}\n\n**Recovery Guidance**: {strategy.guidance}"
    if strategy.give_up:
        return guidance + "\n\nDo not repeat this step."

    if strategy.retry_tool:
        guidance += f"\n\n**Suggested Next Step**: {strategy.retry_tool}"
    return guidance
