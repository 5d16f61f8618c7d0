"""Unit tests for process execution helpers.

These spawn real `sh` processes, so they only run on POSIX systems.
"""

import asyncio
import os
import sys
import time
from pathlib import Path

import pytest

from rubyactivate.runtime.errors import CommandExecutionError, CommandNotFoundError
from rubyactivate.runtime.execution import (
    command_exists,
    quote_path,
    run_command,
    run_with_input,
    select_shell,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")


class TestRunCommand:
    """Test running shell command lines."""

    @pytest.mark.asyncio
    async def test_captures_output(self, temp_workspace: Path):
        result = await run_command("echo out; echo err >&2", cwd=temp_workspace)

        assert result.stdout == "out\n"
        assert result.stderr == "err\n"
        assert result.returncode == 0

    @pytest.mark.asyncio
    async def test_runs_in_cwd_with_env(self, temp_workspace: Path):
        env = {"PATH": os.environ.get("PATH", "/usr/bin:/bin"), "GREETING": "hello"}
        result = await run_command('echo "$GREETING"; pwd', cwd=temp_workspace, env=env)

        assert result.stdout.splitlines() == ["hello", str(temp_workspace)]

    @pytest.mark.asyncio
    async def test_missing_program(self, temp_workspace: Path):
        with pytest.raises(CommandNotFoundError) as exc_info:
            await run_command("definitely-not-a-real-program-7f3a", cwd=temp_workspace)

        assert exc_info.value.error_code == "COMMAND_NOT_FOUND"
        assert exc_info.value.command == "definitely-not-a-real-program-7f3a"
        assert exc_info.value.searched_paths == ["definitely-not-a-real-program-7f3a on PATH"]

    @pytest.mark.asyncio
    async def test_missing_program_after_assignments(self, temp_workspace: Path):
        with pytest.raises(CommandNotFoundError) as exc_info:
            await run_command("LANG=C definitely-not-a-real-program-7f3a --version", cwd=temp_workspace)

        assert exc_info.value.tool == "definitely-not-a-real-program-7f3a"
        assert exc_info.value.searched_paths == ["definitely-not-a-real-program-7f3a on PATH"]

    @pytest.mark.asyncio
    async def test_exit_status_127(self, temp_workspace: Path):
        with pytest.raises(CommandNotFoundError):
            await run_command("exit 127", cwd=temp_workspace)

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, temp_workspace: Path):
        with pytest.raises(CommandExecutionError) as exc_info:
            await run_command("echo broken >&2; exit 3", cwd=temp_workspace)

        assert exc_info.value.returncode == 3
        assert exc_info.value.stderr == "broken\n"
        assert "exited with status 3" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, temp_workspace: Path):
        started = time.monotonic()
        with pytest.raises(CommandExecutionError) as exc_info:
            await run_command("exec sleep 5", cwd=temp_workspace, timeout=0.2)

        assert exc_info.value.returncode is None
        assert "timed out" in str(exc_info.value)
        assert time.monotonic() - started < 4


class TestRunWithInput:
    """Test feeding scripts to a program on stdin."""

    @pytest.mark.asyncio
    async def test_waits_for_exit(self, temp_workspace: Path):
        result = await run_with_input(["cat"], "puts 1\n", cwd=temp_workspace)

        assert result.stdout == "puts 1\n"
        assert result.returncode == 0

    @pytest.mark.asyncio
    async def test_resolves_on_end_marker(self, temp_workspace: Path):
        started = time.monotonic()
        result = await run_with_input(
            ["sh", "-c", "cat; echo END_MARKER; sleep 3"],
            "payload\n",
            cwd=temp_workspace,
            end_marker="END_MARKER",
            wait_for_exit=False,
        )

        assert result.stdout == "payload\n"
        assert time.monotonic() - started < 2.5

    @pytest.mark.asyncio
    async def test_end_marker_terminates_lingering_process(self, temp_workspace: Path):
        result = await run_with_input(
            ["sh", "-c", "cat; echo END_MARKER; sleep 3"],
            "payload\n",
            cwd=temp_workspace,
            end_marker="END_MARKER",
            wait_for_exit=False,
        )

        pending = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
        assert pending == []
        assert result.returncode is not None

    @pytest.mark.asyncio
    async def test_failure_after_marker_is_reported(self, temp_workspace: Path):
        with pytest.raises(CommandExecutionError) as exc_info:
            await run_with_input(
                ["sh", "-c", "cat; echo END_MARKER; echo boom >&2; exit 5"],
                "payload\n",
                cwd=temp_workspace,
                end_marker="END_MARKER",
                wait_for_exit=False,
            )

        assert exc_info.value.returncode == 5

    @pytest.mark.asyncio
    async def test_marker_stripped_after_exit(self, temp_workspace: Path):
        result = await run_with_input(
            ["sh", "-c", "cat; echo END_MARKER; echo trailing"],
            "payload\n",
            cwd=temp_workspace,
            end_marker="END_MARKER",
        )

        assert result.stdout == "payload\n"

    @pytest.mark.asyncio
    async def test_failure_before_marker(self, temp_workspace: Path):
        with pytest.raises(CommandExecutionError) as exc_info:
            await run_with_input(
                ["sh", "-c", "echo nope >&2; exit 4"],
                "",
                cwd=temp_workspace,
                end_marker="END_MARKER",
                wait_for_exit=False,
            )

        assert exc_info.value.returncode == 4

    @pytest.mark.asyncio
    async def test_missing_program(self, temp_workspace: Path):
        with pytest.raises(CommandNotFoundError) as exc_info:
            await run_with_input(["definitely-not-a-real-program-7f3a"], "", cwd=temp_workspace)

        assert exc_info.value.tool == "definitely-not-a-real-program-7f3a"


class TestHelpers:
    """Test shell selection, quoting and tool probing."""

    def test_select_shell(self):
        assert select_shell("/bin/zsh", "linux") == "/bin/zsh"
        assert select_shell("", "darwin") is None
        assert select_shell("C:\\Program Files\\Git\\bin\\bash.exe", "win32") is None

    def test_quote_path(self):
        assert quote_path("/opt/rubies/3.3.0/bin/ruby", "linux") == "/opt/rubies/3.3.0/bin/ruby"
        assert quote_path("/Users/me/My Rubies/ruby", "darwin") == "'/Users/me/My Rubies/ruby'"
        assert quote_path("C:\\Program Files\\Ruby\\ruby.exe", "win32") == '"C:\\Program Files\\Ruby\\ruby.exe"'
        assert quote_path("C:\\Ruby33-x64\\bin\\ruby", "win32") == "C:\\Ruby33-x64\\bin\\ruby"

    @pytest.mark.asyncio
    async def test_command_exists(self, temp_workspace: Path):
        assert await command_exists("true", temp_workspace) is True
        assert await command_exists("definitely-not-a-real-program-7f3a", temp_workspace) is False
