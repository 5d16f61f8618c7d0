"""Unit tests for the rubyactivate command line."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from rubyactivate.cli import build_parser, main
from rubyactivate.runtime.errors import CommandNotFoundError

RUN_COMMAND = "rubyactivate.runtime.managers.base.run_command"


class TestCli:
    """Test argument parsing and command output."""

    def test_manager_choices(self):
        parser = build_parser()

        args = parser.parse_args(["activate", "--manager", "rbenv", "/ws"])
        assert args.manager == "rbenv"
        assert args.workspace == "/ws"

        with pytest.raises(SystemExit):
            parser.parse_args(["activate", "--manager", "rbfu"])

    def test_detect(self, temp_workspace: Path, capsys):
        with patch("rubyactivate.runtime.activation.DETECTION_ORDER", []):
            assert main(["detect", str(temp_workspace)]) == 0

        assert capsys.readouterr().out.strip() == "none"

    def test_activate_prints_json(self, temp_workspace: Path, probe_output, capsys):
        run_command = AsyncMock(return_value=probe_output(env={"GEM_HOME": "/gems"}))

        with patch(RUN_COMMAND, run_command):
            code = main(["activate", "--manager", "none", str(temp_workspace)])

        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["manager"] == "none"
        assert payload["version"] == "3.3.0"
        assert payload["yjit"] is True
        assert payload["env"]["GEM_HOME"] == "/gems"

    def test_activation_error(self, temp_workspace: Path, capsys):
        run_command = AsyncMock(side_effect=CommandNotFoundError("ruby", "sh: ruby: not found"))

        with patch(RUN_COMMAND, run_command):
            code = main(["activate", "--manager", "none", str(temp_workspace)])

        assert code == 1
        assert "Error [COMMAND_NOT_FOUND]" in capsys.readouterr().err

    def test_invalid_config(self, temp_workspace: Path, capsys):
        (temp_workspace / ".rubyactivate.toml").write_text('[version_manager]\nidentifier = "rbfu"\n')

        assert main(["detect", str(temp_workspace)]) == 2
        assert "not supported" in capsys.readouterr().err
