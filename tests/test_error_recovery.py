"""
Tests for error recovery guidance.
"""

from pagepilot.error_recovery import ERROR_PATTERNS, get_recovery_strategy, inject_recovery_guidance
from pagepilot.errors import ErrorKind
from pagepilot.outcome import Outcome


def _fail(kind, message, capability="click_screen"):
    return Outcome.failure(capability, kind, message)


class TestGetRecoveryStrategy:
    def test_success_has_no_strategy(self):
        assert get_recovery_strategy(Outcome.success("scroll")) is None

    def test_missing_selector_suggests_screenshot(self):
        outcome = _fail(ErrorKind.ELEMENT_NOT_FOUND, "Click failed: selector '#a' did not appear within 10000ms")
        strategy = get_recovery_strategy(outcome)
        assert strategy.retry_tool == "take_screenshot"
        assert not strategy.give_up

    def test_unreachable_host_gives_up(self):
        outcome = _fail(
            ErrorKind.DRIVER_FAILURE,
            "Failed to open URL https://nope.invalid: net::ERR_NAME_NOT_RESOLVED",
            capability="open_url",
        )
        assert get_recovery_strategy(outcome).give_up

    def test_fallback_per_kind(self):
        outcome = _fail(ErrorKind.DRIVER_FAILURE, "something odd happened")
        assert get_recovery_strategy(outcome) is ERROR_PATTERNS[ErrorKind.DRIVER_FAILURE][-1]["strategy"]

    def test_every_kind_has_a_fallback(self):
        for kind in ErrorKind:
            assert ERROR_PATTERNS[kind][-1]["indicators"] == []

    def test_invalid_selector_syntax(self):
        outcome = _fail(ErrorKind.DRIVER_FAILURE, "Click failed on '##a': '##a' is not a valid selector.")
        assert get_recovery_strategy(outcome).retry_tool == "find_element"

    def test_url_containing_selector_word_uses_fallback(self):
        outcome = _fail(
            ErrorKind.DRIVER_FAILURE,
            "Failed to open URL https://x.test/selector-demo: net::ERR_ABORTED",
            capability="open_url",
        )
        strategy = get_recovery_strategy(outcome)
        assert strategy is ERROR_PATTERNS[ErrorKind.DRIVER_FAILURE][-1]["strategy"]
        assert strategy.retry_tool == "take_screenshot"


class TestInjectRecoveryGuidance:
    def test_success_is_empty(self):
        assert inject_recovery_guidance(Outcome.success("scroll")) == ""

    def test_includes_header_and_next_step(self):
        outcome = _fail(ErrorKind.NAVIGATION_TIMEOUT, "Failed to open URL https://x.test: Timeout 30000ms exceeded.",
                        capability="open_url")
        text = inject_recovery_guidance(outcome)
        assert text.startswith("Tool 'open_url' failed: Failed to open URL https://x.test")
        assert "**Recovery Guidance**" in text
        assert "**Suggested Next Step**: take_screenshot" in text

    def test_give_up_has_no_next_step(self):
        outcome = _fail(ErrorKind.SESSION_NOT_READY, "Browser session not started.")
        text = inject_recovery_guidance(outcome)
        assert text.endswith("Do not repeat this step.")
        assert "Suggested Next Step" not in text

    def test_long_message_truncated(self):
        outcome = _fail(ErrorKind.DRIVER_FAILURE, "x" * 500)
        header = inject_recovery_guidance(outcome).splitlines()[0]
        assert header == "Tool 'click_screen' failed: " + "x" * 160
