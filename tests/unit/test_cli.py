"""
Unit tests for rin.cli - Command-Line Interface.

Tests argument parsing, the console transport and the tools listing
(not the interactive chat loop).
"""

import io
from pathlib import Path

import pytest
from rich.console import Console

from rin.capabilities.google import GoogleAccountClient
from rin.chat import Transport
from rin.cli import ConsoleTransport, _build_account, _tools, build_parser
from rin.settings import RinSettings


def test_parser_builds_successfully():
    """Test parser can be built without errors."""
    parser = build_parser()
    assert parser is not None


def test_parser_chat_command():
    """Test parsing chat command."""
    args = build_parser().parse_args(["chat", "--user-id", "5", "--admin", "--memory"])
    assert args.command == "chat"
    assert args.user_id == 5
    assert args.admin is True
    assert args.memory is True


def test_parser_chat_defaults():
    """Test chat defaults to caller 1 and the database store."""
    args = build_parser().parse_args(["chat"])
    assert args.user_id == 1
    assert args.admin is False
    assert args.memory is False
    assert args.log_level is None


def test_parser_tools_command():
    """Test parsing tools command."""
    args = build_parser().parse_args(["--log-level", "DEBUG", "tools", "--linked"])
    assert args.command == "tools"
    assert args.linked is True
    assert args.admin is False
    assert args.log_level == "DEBUG"


def test_parser_invalid_user_id_raises():
    """Test parser rejects non-numeric caller ids."""
    with pytest.raises(SystemExit):
        build_parser().parse_args(["chat", "--user-id", "abc"])


@pytest.mark.asyncio
async def test_tools_lists_visible_declarations(capsys):
    """Test the tools table follows the capability gate."""
    await _tools(build_parser().parse_args(["tools"]))
    regular = capsys.readouterr().out

    await _tools(build_parser().parse_args(["tools", "--admin", "--linked"]))
    privileged = capsys.readouterr().out

    assert "set_reminder" in regular
    assert "run_command" not in regular
    assert "gmail_send" not in regular
    assert "run_command" in privileged
    assert "gmail_send" in privileged


class TestConsoleTransport:
    def _transport(self):
        buffer = io.StringIO()
        return ConsoleTransport(Console(file=buffer, width=80)), buffer

    def test_is_a_transport(self):
        assert isinstance(ConsoleTransport(), Transport)

    @pytest.mark.asyncio
    async def test_send_text(self):
        transport, buffer = self._transport()

        await transport.send_text(1, "Hello there")
        await transport.send_typing(1)

        output = buffer.getvalue()
        assert "rin" in output
        assert "Hello there" in output

    @pytest.mark.asyncio
    async def test_send_file(self):
        transport, buffer = self._transport()

        await transport.send_file(1, Path("uploads/1/report.pdf"), "Monthly report")

        assert "[file] uploads/1/report.pdf  Monthly report" in buffer.getvalue()


def test_account_client_only_with_tokens_file(tmp_path):
    """Test account tools are wired only when a tokens file is configured."""
    assert _build_account(RinSettings(_env_file=None)) is None

    settings = RinSettings(_env_file=None, google_tokens_file=str(tmp_path / "tokens.json"))
    assert isinstance(_build_account(settings), GoogleAccountClient)
