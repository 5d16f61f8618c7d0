"""Time-boxed fallback offered when no `.ruby-version` file can be found.

The human gets a cancellable notice. If they let it run out, activation
proceeds with the newest installed Ruby. If they cancel, they may persist a
fallback `.ruby-version` in a parent directory or pick a Ruby for this tool
only; both ask the caller to run discovery again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, Union

from .errors import ActivationCancelledError, RubyVersionFileNotFoundError
from .prompts import CancellationToken, FallbackScope, Prompter
from .version_file import Installation, gemfile_pins_ruby, list_installations, write_version_file

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_TIMEOUT = 10.0

FALLBACK_TITLE = "No .ruby-version file found. Trying to fall back to latest installed Ruby in {seconds:g} seconds"
FALLBACK_MESSAGE = "You can create a .ruby-version file in a parent directory to configure a fallback"

ManualSelection = Callable[[], Awaitable[Optional[Path]]]


@dataclass(frozen=True)
class RetryActivation:
    """The human configured an alternative; activation should start over.

    Attributes:
        reason: "persisted_fallback" or "manual_selection"
        ruby: Ruby executable chosen manually, when reason is "manual_selection"
    """

    reason: str
    ruby: Optional[Path] = None


async def wait_for_timeout_or_cancel(seconds: float, token: CancellationToken) -> bool:
    """Wait `seconds`, returning early when the token is cancelled.

    Returns:
        True if cancelled, False if the timeout elapsed
    """
    try:
        await asyncio.wait_for(token.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return token.is_cancelled
    return True


class FallbackOrchestrator:
    """Runs the fallback offer for directory-marker version managers."""

    def __init__(
        self,
        manager: str,
        bundle_root: Path,
        installation_dirs: Sequence[Path],
        prompter: Prompter,
        manually_select_ruby: Optional[ManualSelection] = None,
        timeout: float = DEFAULT_FALLBACK_TIMEOUT,
        log: Optional[logging.LoggerAdapter] = None,
    ):
        self.manager = manager
        self.bundle_root = bundle_root
        self.installation_dirs = list(installation_dirs)
        self.prompter = prompter
        self.manually_select_ruby = manually_select_ruby
        self.timeout = timeout
        self.log = log or logger

    async def run(
        self,
        fallback: Callable[[], Awaitable[Installation]],
    ) -> Union[Installation, RetryActivation]:
        """Offer the fallback and return its result or a request to retry.

        Raises:
            RubyVersionFileNotFoundError: If the Gemfile pins a Ruby version
            ActivationCancelledError: If the human cancels without an alternative
        """
        # Falling back is likely to pick the wrong Ruby when the Gemfile pins one
        if await gemfile_pins_ruby(self.bundle_root):
            raise self.not_found_error()

        token = CancellationToken()
        self.prompter.show_fallback_offer(
            FALLBACK_TITLE.format(seconds=self.timeout), FALLBACK_MESSAGE, token
        )

        if not await wait_for_timeout_or_cancel(self.timeout, token):
            installation = await fallback()
            self.log.info(
                "Falling back to Ruby %s at %s", installation.version, installation.ruby
            )
            return installation

        return await self._handle_cancellation()

    def not_found_error(self) -> RubyVersionFileNotFoundError:
        return RubyVersionFileNotFoundError(self.manager, self.bundle_root)

    async def _handle_cancellation(self) -> RetryActivation:
        scope = await self.prompter.choose_fallback_scope()

        if scope == FallbackScope.SYSTEM:
            marker = await self._persist_fallback()
            if marker is not None:
                self.log.info("Created fallback Ruby version file %s", marker)
                return RetryActivation("persisted_fallback")
        elif scope == FallbackScope.TOOL_ONLY and self.manually_select_ruby is not None:
            ruby = await self.manually_select_ruby()
            if ruby is not None:
                self.log.info("Manually selected Ruby at %s", ruby)
                return RetryActivation("manual_selection", ruby=ruby)

        raise ActivationCancelledError(
            self.manager,
            "No Ruby version configured: the fallback was cancelled. Create a .ruby-version "
            f"file in {self.bundle_root} or in a parent directory",
        )

    async def _persist_fallback(self) -> Optional[Path]:
        installations = await list_installations(self.installation_dirs, self.log)
        options = [installation.ruby.parent.parent.name for installation in installations]

        version = await self.prompter.pick_ruby_version(options)
        if not version:
            return None

        directory = await self.prompter.pick_fallback_directory()
        if directory is None:
            return None

        return await write_version_file(directory, version)
