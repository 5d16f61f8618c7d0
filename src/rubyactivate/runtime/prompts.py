"""Human interaction points used during activation.

The editor integration implements `Prompter`; activation only ever talks to a
human through it. `NonInteractivePrompter` is used for headless runs (CLI,
tests): it never cancels a fallback offer and declines every question.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class FallbackScope(str, Enum):
    """Where a fallback Ruby should apply after the human cancels the offer."""

    SYSTEM = "system"  # write a .ruby-version in a parent directory
    TOOL_ONLY = "tool_only"  # select a Ruby for this tool only


class CancellationToken:
    """One-shot cancellation signal shared between a prompt and its waiter."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation; wakes every waiter immediately."""
        if self._event.is_set():
            return
        self._event.set()
        for callback in self._callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        if self.is_cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        await self._event.wait()


class Prompter(Protocol):
    """Questions activation may need to ask a human."""

    def show_fallback_offer(self, title: str, message: str, token: CancellationToken) -> None:
        """Display a cancellable notice; call `token.cancel()` if the human dismisses it."""
        ...

    async def choose_fallback_scope(self) -> Optional[FallbackScope]: ...

    async def pick_ruby_version(self, options: Sequence[str]) -> Optional[str]: ...

    async def pick_fallback_directory(self) -> Optional[Path]: ...

    async def confirm_trust(self, workspace: Path) -> bool: ...

    async def pick_compose_service(self, services: Sequence[str]) -> Optional[str]: ...


class NonInteractivePrompter:
    """Prompter for runs without a human in the loop."""

    def show_fallback_offer(self, title: str, message: str, token: CancellationToken) -> None:
        logger.info("%s. %s", title, message)

    async def choose_fallback_scope(self) -> Optional[FallbackScope]:
        return None

    async def pick_ruby_version(self, options: Sequence[str]) -> Optional[str]:
        return None

    async def pick_fallback_directory(self) -> Optional[Path]:
        return None

    async def confirm_trust(self, workspace: Path) -> bool:
        logger.info("Not trusting %s without confirmation", workspace)
        return False

    async def pick_compose_service(self, services: Sequence[str]) -> Optional[str]:
        return None
