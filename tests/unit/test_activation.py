"""Unit tests for per-workspace activation."""

import logging
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from rubyactivate.config import ActivationConfig
from rubyactivate.runtime import RubyRuntime, WorkspaceLogger
from rubyactivate.runtime.errors import (
    BundleGemfileNotFoundError,
    UnsupportedRubyVersionError,
    UntrustedWorkspaceError,
)
from rubyactivate.runtime.managers import ShadowenvManager
from rubyactivate.runtime.types import ActivationResult

RUN_COMMAND = "rubyactivate.runtime.managers.base.run_command"


@pytest.fixture
def make_runtime(temp_workspace: Path, base_env: dict):
    """Factory for a RubyRuntime using the `none` strategy unless told otherwise."""

    def factory(identifier: str = "none", prompter=None, **activation) -> RubyRuntime:
        config = ActivationConfig(workspace_root=temp_workspace)
        config.version_manager.identifier = identifier
        for key, value in activation.items():
            setattr(config.activation, key, value)
        return RubyRuntime(temp_workspace, config=config, prompter=prompter, env=base_env)

    return factory


class TestRubyRuntime:
    """Test activation results and their post-processing."""

    def test_initial_state(self, make_runtime):
        runtime = make_runtime()

        assert runtime.result is None
        assert runtime.error is False
        assert runtime.env == {}
        assert runtime.ruby_version is None
        assert runtime.yjit_enabled is False
        assert runtime.gem_path == ()

    @pytest.mark.asyncio
    async def test_activate_exposes_result(self, make_runtime, probe_output):
        runtime = make_runtime()
        run_command = AsyncMock(return_value=probe_output(gem_path=["/gems/a", "/gems/b"]))

        with patch(RUN_COMMAND, run_command):
            result = await runtime.activate()

        assert runtime.result is result
        assert runtime.ruby_version == "3.3.0"
        assert runtime.yjit_enabled is True
        assert runtime.gem_path == ("/gems/a", "/gems/b")
        assert runtime.manager_identifier == "none"
        assert "RUBYOPT" not in result.env

    @pytest.mark.asyncio
    async def test_ruby_32_gets_yjit_flag(self, make_runtime, probe_output):
        runtime = make_runtime()
        run_command = AsyncMock(return_value=probe_output(version="3.2.2", env={}))

        with patch(RUN_COMMAND, run_command):
            result = await runtime.activate()

        assert result.env["RUBYOPT"] == "--yjit"
        assert result.yjit is True

    @pytest.mark.asyncio
    async def test_ruby_32_appends_to_rubyopt(self, make_runtime, probe_output):
        runtime = make_runtime()
        probe = probe_output(version="3.2.0", env={"RUBYOPT": "-rbundler/setup"})

        with patch(RUN_COMMAND, AsyncMock(return_value=probe)):
            result = await runtime.activate()

        assert result.env["RUBYOPT"] == "-rbundler/setup --yjit"

    @pytest.mark.asyncio
    async def test_ruby_31_never_reports_yjit(self, make_runtime, probe_output):
        runtime = make_runtime()

        with patch(RUN_COMMAND, AsyncMock(return_value=probe_output(version="3.1.4", yjit=True))):
            result = await runtime.activate()

        assert result.yjit is False
        assert "RUBYOPT" not in result.env

    @pytest.mark.asyncio
    async def test_ruby_without_yjit(self, make_runtime, probe_output):
        runtime = make_runtime()

        with patch(RUN_COMMAND, AsyncMock(return_value=probe_output(version="3.2.2", yjit=False))):
            result = await runtime.activate()

        assert result.yjit is False
        assert "RUBYOPT" not in result.env

    @pytest.mark.asyncio
    async def test_unsupported_ruby(self, make_runtime, probe_output):
        runtime = make_runtime()

        with patch(RUN_COMMAND, AsyncMock(return_value=probe_output(version="2.7.8"))):
            with pytest.raises(UnsupportedRubyVersionError) as exc_info:
                await runtime.activate()

        assert exc_info.value.version == "2.7.8"
        assert runtime.error is True
        assert runtime.result is None

    @pytest.mark.asyncio
    async def test_configured_minimum_version(self, make_runtime, probe_output):
        runtime = make_runtime(minimum_ruby_version="3.3.0")

        with patch(RUN_COMMAND, AsyncMock(return_value=probe_output(version="3.2.2"))):
            with pytest.raises(UnsupportedRubyVersionError, match="Ruby 3.3.0 or newer is required"):
                await runtime.activate()

    @pytest.mark.asyncio
    async def test_error_flag_resets_after_success(self, make_runtime, probe_output):
        runtime = make_runtime()
        run_command = AsyncMock(side_effect=[probe_output(version="2.7.8"), probe_output()])

        with patch(RUN_COMMAND, run_command):
            with pytest.raises(UnsupportedRubyVersionError):
                await runtime.activate()
            await runtime.activate()

        assert runtime.error is False
        assert runtime.ruby_version == "3.3.0"

    @pytest.mark.asyncio
    async def test_denylisted_variables_removed(self, make_runtime, probe_output):
        runtime = make_runtime()
        probe = probe_output(env={"RUBY_GC_HEAP_GROWTH_FACTOR": "1.1", "DEBUG": "1", "GEM_HOME": "/gems"})

        with patch(RUN_COMMAND, AsyncMock(return_value=probe)):
            result = await runtime.activate()

        assert "RUBY_GC_HEAP_GROWTH_FACTOR" not in result.env
        assert "DEBUG" not in result.env
        assert result.env["GEM_HOME"] == "/gems"


class TestCustomGemfile:
    """Test activation with a custom BUNDLE_GEMFILE."""

    @pytest.mark.asyncio
    async def test_gemfile_sets_bundle_root_and_env(self, make_runtime, probe_output, temp_workspace):
        gemfile = temp_workspace / "tools" / "Gemfile"
        gemfile.parent.mkdir()
        gemfile.touch()
        runtime = make_runtime(bundle_gemfile="tools/Gemfile")
        run_command = AsyncMock(return_value=probe_output())

        with patch(RUN_COMMAND, run_command):
            result = await runtime.activate()

        assert runtime.bundle_root == gemfile.parent
        assert run_command.await_args.kwargs["cwd"] == gemfile.parent
        assert result.env["BUNDLE_GEMFILE"] == str(gemfile)

    @pytest.mark.asyncio
    async def test_missing_gemfile(self, make_runtime, probe_output, temp_workspace):
        runtime = make_runtime(bundle_gemfile="Gemfile.next")

        with patch(RUN_COMMAND, AsyncMock(return_value=probe_output())):
            with pytest.raises(BundleGemfileNotFoundError):
                await runtime.activate()

        assert runtime.error is True


class TestDetection:
    """Test picking a version manager in auto mode."""

    @pytest.mark.asyncio
    async def test_detects_shadowenv(self, make_runtime, temp_workspace):
        (temp_workspace / ".shadowenv.d").mkdir()
        runtime = make_runtime("auto")

        assert await runtime.detect_version_manager() == "shadowenv"

    @pytest.mark.asyncio
    async def test_nothing_detected_uses_path_ruby(self, make_runtime, probe_output):
        runtime = make_runtime("auto")
        run_command = AsyncMock(return_value=probe_output())

        with patch("rubyactivate.runtime.activation.DETECTION_ORDER", []):
            with patch(RUN_COMMAND, run_command):
                await runtime.activate()

        assert runtime.manager_identifier == "none"
        assert run_command.await_args.args[0].startswith("ruby -W0")


class TestTrust:
    """Test the untrusted workspace retry."""

    RESULT = ActivationResult(env={"PATH": "/usr/bin"}, yjit=False, version="3.3.0")

    @pytest.mark.asyncio
    async def test_trust_and_retry_once(self, make_runtime, temp_workspace):
        prompter = AsyncMock()
        prompter.confirm_trust.return_value = True
        runtime = make_runtime("shadowenv", prompter=prompter)
        activate = AsyncMock(side_effect=[UntrustedWorkspaceError("shadowenv", temp_workspace), self.RESULT])
        trust = AsyncMock()

        with patch.object(ShadowenvManager, "activate", activate), patch.object(ShadowenvManager, "trust", trust):
            result = await runtime.activate()

        assert result.version == "3.3.0"
        assert activate.await_count == 2
        trust.assert_awaited_once()
        prompter.confirm_trust.assert_awaited_once_with(temp_workspace)

    @pytest.mark.asyncio
    async def test_declined_trust_propagates(self, make_runtime, temp_workspace):
        runtime = make_runtime("shadowenv")
        activate = AsyncMock(side_effect=UntrustedWorkspaceError("shadowenv", temp_workspace))
        trust = AsyncMock()

        with patch.object(ShadowenvManager, "activate", activate), patch.object(ShadowenvManager, "trust", trust):
            with pytest.raises(UntrustedWorkspaceError):
                await runtime.activate()

        trust.assert_not_awaited()
        assert runtime.error is True

    @pytest.mark.asyncio
    async def test_second_refusal_propagates(self, make_runtime, temp_workspace):
        prompter = AsyncMock()
        prompter.confirm_trust.return_value = True
        runtime = make_runtime("shadowenv", prompter=prompter)
        activate = AsyncMock(side_effect=UntrustedWorkspaceError("shadowenv", temp_workspace))
        trust = AsyncMock()

        with patch.object(ShadowenvManager, "activate", activate), patch.object(ShadowenvManager, "trust", trust):
            with pytest.raises(UntrustedWorkspaceError):
                await runtime.activate()

        assert activate.await_count == 2
        trust.assert_awaited_once()


class TestMergeEnvironment:
    """Test folding later environment changes into the result."""

    def test_requires_activation(self, make_runtime):
        with pytest.raises(RuntimeError):
            make_runtime().merge_environment({"A": "1"})

    @pytest.mark.asyncio
    async def test_merge_is_idempotent(self, make_runtime, probe_output):
        runtime = make_runtime()
        with patch(RUN_COMMAND, AsyncMock(return_value=probe_output())):
            await runtime.activate()

        first = runtime.merge_environment({"BUNDLE_PATH": "vendor/bundle", "LANG": "en_US.UTF-8"})
        second = runtime.merge_environment({"BUNDLE_PATH": "vendor/bundle", "LANG": "en_US.UTF-8"})

        assert first.env == second.env
        assert runtime.env["BUNDLE_PATH"] == "vendor/bundle"
        assert runtime.env["LANG"] == "en_US.UTF-8"


class TestWorkspaceLogger:
    """Test the workspace prefix on log records."""

    def test_prefixes_messages(self, caplog):
        log = WorkspaceLogger(logging.getLogger("rubyactivate.tests"), "my-app")

        with caplog.at_level(logging.INFO, logger="rubyactivate.tests"):
            log.info("Activated %s", "ruby")

        assert caplog.messages == ["(my-app) Activated ruby"]
