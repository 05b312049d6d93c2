"""
PagePilot - CLI

Renders agent events to the terminal as they happen.
Screenshots can optionally be written to a directory for later review.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import replace
from pathlib import Path

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.markup import escape

from pagepilot.agent import Agent, AgentEvent
from pagepilot.config import Config
from pagepilot.router import LLMRouter, Provider
from pagepilot.theme import PAGEPILOT_THEME, TOOL_ICONS

logger = logging.getLogger("pagepilot.cli")


class PagePilotCLI:
    """Runs one task through the agent and prints progress."""

    def __init__(
        self,
        config: Config,
        provider: Provider = Provider.GEMINI,
        headless: bool | None = None,
        max_iterations: int | None = None,
        screenshot_dir: Path | None = None,
        console: Console | None = None,
    ):
        self.config = config
        self.console = console or Console(theme=PAGEPILOT_THEME)
        self.screenshot_dir = screenshot_dir
        self._screenshot_count = 0

        settings = config.browser_settings()
        if headless is not None:
            settings = replace(settings, headless=headless)

        # Router reads keys from the environment
        for key, value in config.get_api_keys().items():
            os.environ.setdefault(key, value)

        self.agent = Agent(
            router=LLMRouter(primary=provider, model=config.model()),
            settings=settings,
            max_iterations=max_iterations or config.max_iterations(),
        )

    async def prompt_task(self) -> str:
        session = PromptSession()
        return (await session.prompt_async("task> ")).strip()

    async def run(self, task: str) -> bool:
        """Run the task. Returns True when the agent finished normally."""
        self.console.print(f"[info]PagePilot[/] [dim]{escape(task)}[/]\n")
        finished = False
        try:
            async for event in self.agent.run(task):
                self.render(event)
                if event.type == "done":
                    finished = True
        finally:
            await self.agent.router.close()
        return finished

    # ── Rendering ──

    def render(self, event: AgentEvent):
        if event.type == "session_ready":
            self.console.print(f"[dim]Browser ready ({len(event.data.get('tools', []))} tools)[/]")
        elif event.type == "text":
            self.console.print(f"[agent]{escape(event.content)}[/]")
        elif event.type == "tool_start":
            icon = TOOL_ICONS.get(event.tool_name, "[?]")
            args = json.dumps(event.data.get("arguments") or {}, ensure_ascii=False)
            self.console.print(f"[tool]{escape(icon)} {event.tool_name}[/] [dim]{escape(args)}[/]")
        elif event.type == "tool_end":
            self._render_tool_end(event)
        elif event.type == "usage":
            logger.debug(f"Tokens in={event.data.get('input_tokens')} out={event.data.get('output_tokens')}")
        elif event.type == "error":
            self.console.print(f"[error]{escape(event.message)}[/]")
        elif event.type == "paused":
            self.console.print("[warning]Paused[/]")
        elif event.type == "done":
            self.console.print(f"\n[success]Done[/] [dim]after {event.data.get('iterations', 0)} steps[/]")

    def _render_tool_end(self, event: AgentEvent):
        outcome = event.outcome
        if outcome is None:
            self.console.print(f"  [warning]{escape(event.tool_result)}[/]")
            return
        if not outcome.ok:
            self.console.print(f"  [error]x {escape(outcome.message)}[/]")
            return
        if outcome.image:
            saved = self._save_screenshot(outcome.image)
            where = f" -> {saved}" if saved else ""
            self.console.print(f"  [success]ok[/] [dim]screenshot {len(outcome.image)} chars{escape(where)}[/]")
            return
        if outcome.capability == "find_element" and not outcome.payload.get("found"):
            self.console.print("  [muted]not found[/]")
            return
        self.console.print(f"  [success]ok[/] [dim]{escape(outcome.message)}[/]")

    def _save_screenshot(self, image: str) -> Path | None:
        if self.screenshot_dir is None:
            return None
        self._screenshot_count += 1
        path = self.screenshot_dir / f"step-{self._screenshot_count:03d}.png"
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(base64.b64decode(image))
        except OSError as e:
            logger.warning(f"Could not save screenshot to {path}: {e}")
            return None
        return path
