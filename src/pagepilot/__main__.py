"""
PagePilot — Entry Point

Usage:
    pagepilot "open https://example.com and click More information"
    pagepilot                      # Prompt for the task
    pagepilot --list-tools         # Print the capability schemas
    pagepilot --headless --verbose "..."
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pagepilot import __version__


def _suppress_shutdown_noise(loop: asyncio.AbstractEventLoop):
    """Suppress 'Future exception was never retrieved' from Playwright during shutdown."""
    original_handler = loop.get_exception_handler()

    def handler(loop, context):
        msg = context.get("message", "")
        exc = context.get("exception")
        if exc and "Connection closed while reading from the driver" in str(exc):
            return
        if "Future exception was never retrieved" in msg:
            if exc and "driver" in str(exc).lower():
                return
        if original_handler:
            original_handler(loop, context)
        else:
            loop.default_exception_handler(context)

    loop.set_exception_handler(handler)


def build_parser() -> argparse.ArgumentParser:
    from pagepilot.router import Provider

    parser = argparse.ArgumentParser(
        prog="pagepilot",
        description="PagePilot — let an LLM drive a real browser page",
        epilog="Examples:\n"
               "  pagepilot \"go to https://example.com and take a screenshot\"\n"
               "  pagepilot --provider openai --save-screenshots ./shots \"...\"\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("task", nargs="?", help="What the agent should do in the browser")
    parser.add_argument("--version", action="version", version=f"pagepilot {__version__}")
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        default=None,
        help="LLM provider (default: gemini, or PAGEPILOT_PROVIDER)",
    )
    parser.add_argument("--headless", action="store_true", default=None, help="Run the browser without a window")
    parser.add_argument("--max-iterations", type=int, default=None, help="Stop after N model turns")
    parser.add_argument("--save-screenshots", metavar="DIR", type=Path, help="Write every screenshot to DIR")
    parser.add_argument("--list-tools", action="store_true", help="Print capability schemas and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def list_tools() -> None:
    from pagepilot.session import BrowserSession
    from pagepilot.tools import create_capability_registry

    registry = create_capability_registry(BrowserSession())
    print(json.dumps(registry.get_schemas(), indent=2))


async def async_main(argv: list[str] | None = None) -> int:
    """Async main entry point."""
    _suppress_shutdown_noise(asyncio.get_running_loop())

    args = build_parser().parse_args(argv)

    if args.list_tools:
        list_tools()
        return 0

    from pagepilot.logging_config import setup_logging
    logger = setup_logging(verbose=args.verbose)
    logger.info("PagePilot starting", extra={"provider": args.provider or "default"})

    from pagepilot.cli import PagePilotCLI
    from pagepilot.config import ensure_config
    from pagepilot.router import Provider

    config = ensure_config()
    if not config.has_api_key() and (args.provider or config.get("PAGEPILOT_PROVIDER")) != Provider.LOCAL.value:
        print("[!] No API key configured. Set GEMINI_API_KEY (or OPENAI_API_KEY / DEEPSEEK_API_KEY).")
        return 2

    try:
        provider = Provider(args.provider or config.get("PAGEPILOT_PROVIDER") or Provider.GEMINI.value)
    except ValueError:
        print(f"[!] Unknown provider: {config.get('PAGEPILOT_PROVIDER')}")
        return 2

    cli = PagePilotCLI(
        config,
        provider=provider,
        headless=args.headless,
        max_iterations=args.max_iterations,
        screenshot_dir=args.save_screenshots,
    )

    task = args.task or await cli.prompt_task()
    if not task:
        print("No task given.")
        return 2

    try:
        finished = await cli.run(task)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\n[!] Fatal error: {e}")
        return 1
    return 0 if finished else 1


def main():
    """Sync entry point for console_scripts (pyproject.toml)."""
    try:
        sys.exit(asyncio.run(async_main()))
    except KeyboardInterrupt:
        print("\n\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
