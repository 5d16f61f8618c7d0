"""Docker Compose: run Ruby inside one of the project's compose services.

The probe is piped to `ruby` in a throwaway container. The activated
environment stays the local one; what matters to callers is the path
converter and the command wrapper that route the language server into the
container.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from ..containers import ComposeCommandWrapper, build_path_converter, parse_command
from ..errors import ActivationError, MissingConfigurationError
from ..execution import run_with_input
from ..normalizer import merge_environment
from ..probe import PROBE_SCRIPT, parse_probe_output
from ..types import ActivationResult
from .base import ManagerContext, VersionManager

DEFAULT_COMPOSE_COMMAND = "docker --log-level=error compose --progress=quiet"

# Printed on stdout once the Ruby code is done; `compose run` may linger after that
END_OF_OUTPUT_MARKER = "END_OF_RUBY_CODE_OUTPUT"


def wrap_ruby_code(code: str) -> str:
    """Wrap Ruby code so the end marker is printed even if the code raises."""
    lines = [f"  {line}" for line in code.split("\n")]
    return "\n".join(["begin", *lines, "ensure", f'  puts "{END_OF_OUTPUT_MARKER}"', "end"])


class ComposeManager(VersionManager):
    identifier = "compose"

    def __init__(self, context: ManagerContext):
        super().__init__(context)
        self.service = context.config.version_manager.compose_service
        self.compose_config: Dict[str, Any] = {"services": {}}

    def compose_command(self) -> str:
        return self.config.version_manager.compose_custom_command or DEFAULT_COMPOSE_COMMAND

    def compose_run_command(self) -> str:
        """Prefix that runs a command in a fresh container of the selected service."""
        return f"{self.compose_command()} run --rm -i {self.service_name()}"

    def service_name(self) -> str:
        if not self.service:
            raise MissingConfigurationError(self.identifier, "version_manager.compose_service")
        return self.service

    async def activate(self) -> ActivationResult:
        await self.ensure_configured()

        ruby = parse_command(f"{self.compose_run_command()} ruby -W0 -rjson")
        script = wrap_ruby_code(PROBE_SCRIPT)
        self.log.info("Running Ruby code in %s:\n%s", self.service, script)

        result = await run_with_input(
            [ruby.command, *ruby.args],
            script,
            cwd=self.bundle_root,
            env=merge_environment(self.context.env, ruby.env),
            shell=self.context.shell,
            end_marker=END_OF_OUTPUT_MARKER,
            wait_for_exit=False,
            log=self.log,
        )
        self.log.debug("Activation output: %s", result.stderr)

        probe = parse_probe_output(result.stderr)
        converter = await build_path_converter(
            self.compose_config, self.service_name(), self.context.workspace_root, self.log
        )

        # The container's BUNDLE_GEMFILE points inside the container
        return self.finish(
            probe,
            remove=["BUNDLE_GEMFILE"],
            path_converter=converter,
            wrap_command=ComposeCommandWrapper(self.compose_run_command()),
            include_probe_env=False,
        )

    async def ensure_configured(self) -> None:
        """Load the compose configuration and make sure a valid service is selected.

        Raises:
            MissingConfigurationError: If no service is configured and the human picks none
        """
        self.compose_config = await self.fetch_compose_config()
        services = self.compose_config.get("services") or {}

        if self.service and self.service in services:
            return

        if self.service:
            self.log.warning("Compose service %s is not defined", self.service)

        answer = await self.context.prompter.pick_compose_service(list(services))
        if not answer:
            raise MissingConfigurationError(self.identifier, "version_manager.compose_service")
        self.service = answer

    async def fetch_compose_config(self) -> Dict[str, Any]:
        result = await self.run_script(f"{self.compose_command()} config --format=json")
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ActivationError(
                f"Failed to read docker compose configuration: {e}", self.identifier
            ) from e
