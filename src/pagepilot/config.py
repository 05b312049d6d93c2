"""
PagePilot Config Management

Unified configuration loading from multiple sources:
1. ~/.pagepilot/config.yaml (persistent, recommended)
2. .env file (project-local)
3. Environment variables (override)

Priority: ENV > .env > config.yaml
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

logger = logging.getLogger("pagepilot.config")

# ═══════════════════════════════════════════════════════════════════════════
# Config Paths
# ═══════════════════════════════════════════════════════════════════════════

PAGEPILOT_HOME = Path.home() / ".pagepilot"
CONFIG_FILE = PAGEPILOT_HOME / "config.yaml"

API_KEY_NAMES = ["GEMINI_API_KEY", "OPENAI_API_KEY", "DEEPSEEK_API_KEY"]

SETTING_NAMES = [
    "PAGEPILOT_PROVIDER",
    "PAGEPILOT_MODEL",
    "PAGEPILOT_HEADLESS",
    "PAGEPILOT_SELECTOR_TIMEOUT_MS",
    "PAGEPILOT_SETTLE_DELAY_MS",
    "PAGEPILOT_NAVIGATION_TIMEOUT_MS",
    "PAGEPILOT_MAX_ITERATIONS",
]


# ═══════════════════════════════════════════════════════════════════════════
# Browser Settings
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class BrowserSettings:
    """Launch options and wait budgets for the browser session."""
    headless: bool = False
    selector_timeout_ms: int = 10_000
    settle_delay_ms: int = 2_000
    navigation_timeout_ms: int = 30_000
    launch_args: tuple[str, ...] = ("--disable-extensions", "--disable-file-system")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_int(key: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        result = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer {key}={value!r}, using {default}")
        return default
    if result < 0:
        logger.warning(f"Ignoring negative {key}={value!r}, using {default}")
        return default
    return result


# ═══════════════════════════════════════════════════════════════════════════
# Config Loader
# ═══════════════════════════════════════════════════════════════════════════


class Config:
    """Unified configuration management."""

    def __init__(self, config_file: Path | None = None, cwd: Path | None = None):
        self.config_file = config_file or CONFIG_FILE
        self.cwd = cwd or Path.cwd()
        self.data: dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load config from all sources (priority: ENV > .env > config.yaml)."""
        # 1. Load from ~/.pagepilot/config.yaml
        if self.config_file.exists():
            with open(self.config_file) as f:
                self.data = yaml.safe_load(f) or {}

        # 2. Load from .env file (project-local)
        self._load_dotenv()

        # 3. Environment variables override everything
        self._apply_env_overrides()

    def _load_dotenv(self):
        """Load .env file from cwd or parent directories."""
        check = self.cwd
        for _ in range(5):  # Check up to 5 parent directories
            env_file = check / ".env"
            if env_file.exists():
                for key, value in dotenv_values(env_file).items():
                    if value is not None and key not in os.environ:
                        self.data[key] = value
                return
            check = check.parent

    def _apply_env_overrides(self):
        """Environment variables override config file."""
        for key in API_KEY_NAMES + SETTING_NAMES:
            if key in os.environ:
                self.data[key] = os.environ[key]

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value."""
        return self.data.get(key, default)

    def set(self, key: str, value: Any):
        """Set config value (in-memory only)."""
        self.data[key] = value

    def save(self):
        """Save config to ~/.pagepilot/config.yaml."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.dump(self.data, f, default_flow_style=False)
        except (OSError, PermissionError) as e:
            # Config stays in-memory for this session
            print(f"[!] Warning: Could not save config to {self.config_file}: {e}", file=sys.stderr)
            print("[i] To persist, set environment variables or use .env file.", file=sys.stderr)

    def has_api_key(self) -> bool:
        """Check if at least one API key is configured."""
        return any(self.get(key) for key in API_KEY_NAMES)

    def get_api_keys(self) -> dict[str, str]:
        """Get all configured API keys."""
        return {key: self.get(key) for key in API_KEY_NAMES if self.get(key)}

    def browser_settings(self) -> BrowserSettings:
        defaults = BrowserSettings()
        return BrowserSettings(
            headless=_as_bool(self.get("PAGEPILOT_HEADLESS", defaults.headless)),
            selector_timeout_ms=_as_int(
                "PAGEPILOT_SELECTOR_TIMEOUT_MS",
                self.get("PAGEPILOT_SELECTOR_TIMEOUT_MS"),
                defaults.selector_timeout_ms,
            ),
            settle_delay_ms=_as_int(
                "PAGEPILOT_SETTLE_DELAY_MS",
                self.get("PAGEPILOT_SETTLE_DELAY_MS"),
                defaults.settle_delay_ms,
            ),
            navigation_timeout_ms=_as_int(
                "PAGEPILOT_NAVIGATION_TIMEOUT_MS",
                self.get("PAGEPILOT_NAVIGATION_TIMEOUT_MS"),
                defaults.navigation_timeout_ms,
            ),
        )

    def max_iterations(self, default: int = 30) -> int:
        return _as_int("PAGEPILOT_MAX_ITERATIONS", self.get("PAGEPILOT_MAX_ITERATIONS"), default)

    def model(self) -> str | None:
        """Model name override for the selected provider, None for its default."""
        value = self.get("PAGEPILOT_MODEL")
        if value is None:
            return None
        return str(value).strip() or None


# ═══════════════════════════════════════════════════════════════════════════
# Interactive Setup
# ═══════════════════════════════════════════════════════════════════════════


def interactive_setup(config: Config | None = None) -> Config:
    """Interactive first-time setup."""
    from rich.console import Console
    from rich.prompt import Prompt

    console = Console()
    config = config or Config()

    console.print("\n[bold cyan]PagePilot Configuration[/]")
    console.print("The agent needs one LLM API key.\n")

    console.print("[bold green]Google Gemini[/] (default provider)")
    console.print("Get key: https://aistudio.google.com/apikey\n")
    gemini_key = Prompt.ask("Gemini API Key", default=config.get("GEMINI_API_KEY", ""), password=True)
    if gemini_key:
        config.set("GEMINI_API_KEY", gemini_key)

    console.print("\n[bold blue]OpenAI[/] (optional)")
    openai_key = Prompt.ask("OpenAI API Key (optional)", default=config.get("OPENAI_API_KEY", ""), password=True)
    if openai_key:
        config.set("OPENAI_API_KEY", openai_key)

    if not config.has_api_key():
        console.print("\n[bold red][!] No API keys configured![/]")
        return config

    config.save()
    if config.config_file.exists():
        console.print(f"\n[bold green][+] Config saved to:[/] {config.config_file}\n")
    return config


# ═══════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════


def load_config() -> Config:
    """Load config from all sources."""
    return Config()


def ensure_config() -> Config:
    """Ensure an API key exists, run interactive setup if we can prompt."""
    config = load_config()
    if config.has_api_key() or not sys.stdin.isatty():
        return config
    return interactive_setup(config)
