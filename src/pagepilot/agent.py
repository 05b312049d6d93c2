"""
PagePilot - Agent

The control loop: the model picks a capability, the registry runs it
against the browser session, the Outcome goes back to the model.

Architecture:
1. Acquire the browser session (released on every exit path)
2. Call LLM with the capability schemas
3. Execute requested tool calls through the registry
4. Append recovery guidance to failed outcomes
5. Attach the latest screenshot as an image message (older ones are dropped)
6. Loop detection + circuit breaker on repeated failures
7. Stop when the model answers without a tool call or max iterations
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import deque
from pathlib import Path
from typing import AsyncGenerator, Callable

from pagepilot.config import BrowserSettings
from pagepilot.error_recovery import inject_recovery_guidance
from pagepilot.errors import ErrorKind, LaunchError
from pagepilot.outcome import Outcome
from pagepilot.router import LLMRouter, ToolCall
from pagepilot.session import BrowserSession
from pagepilot.tools import CapabilityRegistry, create_capability_registry

logger = logging.getLogger("pagepilot.agent")

# Read-only or naturally repeated capabilities; never flagged as loops
_LOOP_EXEMPT = frozenset({"take_screenshot", "find_element", "scroll"})

_STALE_SCREENSHOT_NOTE = "[Earlier screenshot omitted; only the latest one is kept]"


# ═══════════════════════════════════════════════════════════════════════════
# Agent Events (for CLI rendering)
# ═══════════════════════════════════════════════════════════════════════════


class AgentEvent:
    """Event emitted by agent during execution."""

    def __init__(self, type: str, **data):
        self.type = type
        self.data = data

    @property
    def content(self) -> str:
        return self.data.get("content", "")

    @property
    def tool_name(self) -> str:
        return self.data.get("tool_name", "")

    @property
    def tool_result(self) -> str:
        return self.data.get("tool_result", "")

    @property
    def outcome(self) -> Outcome | None:
        return self.data.get("outcome")

    @property
    def message(self) -> str:
        return self.data.get("message", "")


# ═══════════════════════════════════════════════════════════════════════════
# The Agent
# ═══════════════════════════════════════════════════════════════════════════


class Agent:
    """Drives one browser session with an LLM until the task is done."""

    def __init__(
        self,
        router: LLMRouter | None = None,
        settings: BrowserSettings | None = None,
        max_iterations: int = 30,
        session_factory: Callable[[BrowserSettings], BrowserSession] = BrowserSession,
    ):
        self.router = router or LLMRouter()
        self.settings = settings or BrowserSettings()
        self.max_iterations = max_iterations
        self.session_factory = session_factory

        self.messages: list[dict] = []
        self.is_running = False

        # Circuit breaker: track repeated failures
        self.error_counter: dict[str, int] = {}
        self.max_repeated_errors = 3

        # Loop detection: track recent tool calls
        self._recent_tool_hashes: deque[str] = deque(maxlen=10)
        self._loop_threshold = 2  # Block after 2 identical calls

        self._system_prompt = self._load_system_prompt()

    def _load_system_prompt(self) -> str:
        """Load base system prompt from file."""
        prompt_file = Path(__file__).parent / "prompts" / "system.md"
        if prompt_file.exists():
            return prompt_file.read_text(encoding="utf-8")
        return "You are a web automation agent. Use the browser tools to complete the task."

    def _compute_tool_hash(self, name: str, args: dict) -> str:
        key = json.dumps({"name": name, "args": args}, sort_keys=True, default=str)
        return hashlib.md5(key.encode()).hexdigest()[:12]

    def _detect_loop(self, name: str, args: dict) -> bool:
        """True if the same mutating call was made recently."""
        if name in _LOOP_EXEMPT:
            return False
        tool_hash = self._compute_tool_hash(name, args)
        count = sum(1 for h in self._recent_tool_hashes if h == tool_hash)
        self._recent_tool_hashes.append(tool_hash)
        return count >= self._loop_threshold

    def _record_failure(self, outcome: Outcome) -> bool:
        """Count a failure; True once the same failure hit the breaker limit."""
        key = f"{outcome.capability}:{outcome.message}"
        self.error_counter[key] = self.error_counter.get(key, 0) + 1
        return self.error_counter[key] >= self.max_repeated_errors

    async def _execute_tool_call(self, registry: CapabilityRegistry, tc: ToolCall) -> Outcome:
        if tc.arguments_error:
            return Outcome.failure(tc.name, ErrorKind.INVALID_ARGUMENTS, tc.arguments_error)
        return await registry.invoke(tc.name, tc.arguments)

    @staticmethod
    def _assistant_message(content: str | None, tool_calls: list[ToolCall]) -> dict:
        message: dict = {
            "role": "assistant",
            "tool_calls": [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in tool_calls
            ],
        }
        if content:
            message["content"] = content
        return message

    @staticmethod
    def _image_message(image: str) -> dict:
        return {
            "role": "user",
            "content": [
                {"type": "text", "text": "Screenshot of the current page:"},
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image}"}},
            ],
        }

    def _attach_screenshot(self, image: str):
        """Keep only the latest screenshot in the history; older ones become a text note."""
        for i, message in enumerate(self.messages):
            if message["role"] == "user" and isinstance(message.get("content"), list):
                self.messages[i] = {"role": "user", "content": _STALE_SCREENSHOT_NOTE}
        self.messages.append(self._image_message(image))

    async def run(self, task: str) -> AsyncGenerator[AgentEvent, None]:
        """
        Run the control loop for one task.
        Yields AgentEvent objects for the CLI to render.
        """
        self.is_running = True
        self.messages.append({"role": "user", "content": task})
        session = self.session_factory(self.settings)

        try:
            try:
                await session.acquire()
            except LaunchError as e:
                logger.error(f"Cannot start browser: {e}")
                yield AgentEvent("error", message=str(e))
                return

            registry = create_capability_registry(session)
            yield AgentEvent("session_ready", tools=registry.names())

            for iteration in range(self.max_iterations):
                if not self.is_running:
                    yield AgentEvent("paused")
                    return

                try:
                    response = await self.router.complete(
                        messages=self.messages,
                        tools=registry.get_schemas(),
                        system=self._system_prompt,
                    )
                except RuntimeError as e:
                    error_msg = str(e)
                    logger.error(f"LLM error: {error_msg}")
                    self.error_counter[error_msg] = self.error_counter.get(error_msg, 0) + 1
                    if self.error_counter[error_msg] >= self.max_repeated_errors:
                        logger.error(f"Circuit breaker triggered: same LLM error {self.max_repeated_errors} times")
                        yield AgentEvent("error", message=f"STOPPING: Repeated LLM error.\n\nError: {error_msg}")
                        return
                    yield AgentEvent("error", message=f"LLM API error: {error_msg}")
                    continue

                if response.input_tokens or response.output_tokens:
                    yield AgentEvent("usage", input_tokens=response.input_tokens, output_tokens=response.output_tokens)

                if response.content:
                    yield AgentEvent("text", content=response.content)

                # No tool calls: the model considers the task finished
                if not response.tool_calls:
                    self.messages.append({"role": "assistant", "content": response.content or ""})
                    yield AgentEvent("done", content=response.content or "", iterations=iteration + 1)
                    return

                self.messages.append(self._assistant_message(response.content, response.tool_calls))

                latest_image: str | None = None
                tripped: Outcome | None = None
                for tc in response.tool_calls:
                    yield AgentEvent("tool_start", tool_name=tc.name, arguments=tc.arguments)

                    if self._detect_loop(tc.name, tc.arguments):
                        loop_msg = (
                            f"LOOP DETECTED: '{tc.name}' with the same arguments was called recently. "
                            "Try a DIFFERENT selector, tool, or approach."
                        )
                        yield AgentEvent("tool_end", tool_name=tc.name, tool_result=loop_msg)
                        self.messages.append({"role": "tool", "tool_call_id": tc.id, "content": loop_msg})
                        continue

                    outcome = await self._execute_tool_call(registry, tc)
                    content = outcome.to_tool_content()

                    if not outcome.ok:
                        content = f"{content}\n\n{inject_recovery_guidance(outcome)}"
                        if self._record_failure(outcome) and tripped is None:
                            tripped = outcome
                    elif outcome.image:
                        latest_image = outcome.image

                    yield AgentEvent("tool_end", tool_name=tc.name, tool_result=content, outcome=outcome)
                    self.messages.append({"role": "tool", "tool_call_id": tc.id, "content": content})

                if tripped is not None:
                    logger.error(f"Circuit breaker triggered: {tripped.capability} failed {self.max_repeated_errors} times")
                    yield AgentEvent(
                        "error",
                        message=f"STOPPING: '{tripped.capability}' failed {self.max_repeated_errors} times: {tripped.message}",
                    )
                    return

                if latest_image:
                    self._attach_screenshot(latest_image)

            yield AgentEvent("error", message=f"Stopped after {self.max_iterations} iterations without finishing")

        finally:
            self.is_running = False
            await session.release()

    def pause(self):
        self.is_running = False

    def reset(self):
        """Forget the conversation and counters."""
        self.messages = []
        self._recent_tool_hashes.clear()
        self.error_counter.clear()
