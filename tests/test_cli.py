"""
Tests for the CLI renderer and entry point.
"""

import base64
import io
import json
import logging
import logging.handlers

import pytest
from rich.console import Console
from rich.logging import RichHandler

from pagepilot.__main__ import async_main, build_parser
from pagepilot.agent import AgentEvent
from pagepilot.cli import PagePilotCLI
from pagepilot.config import API_KEY_NAMES, SETTING_NAMES, Config
from pagepilot.errors import ErrorKind
from pagepilot.logging_config import JSONFormatter, setup_logging
from pagepilot.outcome import Outcome

from conftest import PNG_BYTES


@pytest.fixture
def cli(tmp_path, monkeypatch):
    for key in API_KEY_NAMES + SETTING_NAMES:
        monkeypatch.delenv(key, raising=False)
    config = Config(config_file=tmp_path / "missing.yaml", cwd=tmp_path)
    output = io.StringIO()
    console = Console(file=output, width=120, no_color=True)
    instance = PagePilotCLI(config, headless=True, screenshot_dir=tmp_path / "shots", console=console)
    instance.output = output
    return instance


class TestPagePilotCLI:
    def test_headless_override(self, cli):
        assert cli.agent.settings.headless is True
        assert cli.agent.max_iterations == 30

    def test_render_failure(self, cli):
        outcome = Outcome.failure("send_keys", ErrorKind.ELEMENT_NOT_FOUND, "selector '#email' did not appear")
        cli.render(AgentEvent("tool_end", tool_name="send_keys", tool_result="", outcome=outcome))
        assert "#email" in cli.output.getvalue()

    def test_screenshot_saved(self, cli, tmp_path):
        image = base64.b64encode(PNG_BYTES).decode()
        outcome = Outcome.success("take_screenshot", image=image, mime_type="image/png")
        cli.render(AgentEvent("tool_end", tool_name="take_screenshot", tool_result="", outcome=outcome))
        saved = tmp_path / "shots" / "step-001.png"
        assert saved.read_bytes() == PNG_BYTES
        assert "step-001.png" in cli.output.getvalue()

    def test_render_done(self, cli):
        cli.render(AgentEvent("done", content="ok", iterations=4))
        assert "Done" in cli.output.getvalue()
        assert "4 steps" in cli.output.getvalue()


class TestEntryPoint:
    def test_parser_defaults(self):
        args = build_parser().parse_args(["open example.com"])
        assert args.task == "open example.com"
        assert args.headless is None
        assert args.provider is None

    def test_parser_flags(self, tmp_path):
        args = build_parser().parse_args(
            ["--provider", "openai", "--headless", "--max-iterations", "5", "--save-screenshots", str(tmp_path), "go"]
        )
        assert args.provider == "openai"
        assert args.headless is True
        assert args.max_iterations == 5
        assert args.save_screenshots == tmp_path

    @pytest.mark.asyncio
    async def test_list_tools(self, capsys):
        assert await async_main(["--list-tools"]) == 0
        schemas = json.loads(capsys.readouterr().out)
        assert [s["function"]["name"] for s in schemas][:2] == ["take_screenshot", "open_browser"]


class TestLogging:
    def test_json_formatter_extras(self):
        record = logging.LogRecord("pagepilot.tools", logging.INFO, __file__, 1, "click failed", None, None)
        record.capability = "click_screen"
        record.outcome_kind = "element_not_found"
        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "click failed"
        assert data["capability"] == "click_screen"
        assert data["outcome_kind"] == "element_not_found"
        assert "provider" not in data

    def test_setup_logging_writes_file(self, tmp_path):
        logger = setup_logging(log_dir=tmp_path)
        try:
            logger.info("hello", extra={"capability": "scroll"})
            for handler in logger.handlers:
                handler.flush()
            lines = (tmp_path / "pagepilot.log").read_text().splitlines()
            assert json.loads(lines[-1])["capability"] == "scroll"
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_json_formatter_redacts_keys(self):
        record = logging.LogRecord(
            "pagepilot.router", logging.WARNING, __file__, 1, "auth failed for %s", ("sk-abcdefghijklmnopqrstuvwxyz",), None
        )
        data = json.loads(JSONFormatter().format(record))
        assert "abcdefghijklmnopqrstuvwxyz" not in data["message"]
        assert "sk-***REDACTED***" in data["message"]

    def test_unwritable_log_dir_falls_back_to_console(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        logger = setup_logging(log_dir=blocker / "logs")
        try:
            assert len(logger.handlers) == 1
            assert isinstance(logger.handlers[0], RichHandler)
            assert logger.level == logging.WARNING
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_verbose_adds_console(self, tmp_path):
        logger = setup_logging(verbose=True, log_dir=tmp_path)
        try:
            kinds = {type(h) for h in logger.handlers}
            assert kinds == {logging.handlers.RotatingFileHandler, RichHandler}
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)


class TestModelSetting:
    def test_default_model(self, cli):
        assert cli.agent.router.model is None

    def test_model_from_config(self, tmp_path, monkeypatch):
        for key in API_KEY_NAMES + SETTING_NAMES:
            monkeypatch.delenv(key, raising=False)
        monkeypatch.setenv("PAGEPILOT_MODEL", "gemini-2.5-pro")
        config = Config(config_file=tmp_path / "missing.yaml", cwd=tmp_path)
        instance = PagePilotCLI(config, headless=True, console=Console(file=io.StringIO()))
        assert instance.agent.router.model == "gemini-2.5-pro"
