"""Process execution helpers used by every version manager.

Commands run through asyncio subprocesses. A completely missing program is
reported as CommandNotFoundError so callers can point the user at installation
instructions; any other non-zero exit becomes CommandExecutionError carrying
the captured stderr.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
import re
import shlex
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from .errors import CommandExecutionError, CommandNotFoundError
from .types import CommandResult

logger = logging.getLogger(__name__)

# POSIX shells exit with 127 when the program does not exist
COMMAND_NOT_FOUND_STATUS = 127

_NOT_FOUND_OUTPUT = re.compile(
    r"command not found|not recognized as an internal or external command",
    re.IGNORECASE,
)

# Grace period for stderr and exit after an early resolution on the end marker
_EXIT_GRACE_SECONDS = 0.5


def select_shell(preferred: Optional[str], platform: Optional[str] = None) -> Optional[str]:
    """Pick the shell used to run activation commands.

    The user's interactive shell is preferred because version managers are
    usually initialized from that shell's rc files. On Windows we never pick a
    shell so commands run through the default command processor and avoid
    PowerShell quoting issues.
    """
    platform = platform or sys.platform
    if platform == "win32":
        return None
    return preferred or None


def quote_path(path: Union[str, Path], platform: Optional[str] = None) -> str:
    """Quote a filesystem path for inclusion in a command line."""
    platform = platform or sys.platform
    text = str(path)
    if platform == "win32":
        return f'"{text}"' if " " in text else text
    return shlex.quote(text)


async def run_command(
    command: str,
    cwd: Union[str, Path],
    env: Optional[Mapping[str, str]] = None,
    shell: Optional[str] = None,
    timeout: Optional[float] = None,
    log: Optional[logging.LoggerAdapter] = None,
) -> CommandResult:
    """Run a command line and wait for it to exit.

    Args:
        command: Command line, interpreted by `shell` (or the system shell)
        cwd: Working directory
        env: Complete environment for the child (inherits ours when None)
        shell: Shell executable to interpret the command with
        timeout: Seconds before the process is killed

    Returns:
        CommandResult with decoded stdout and stderr

    Raises:
        CommandNotFoundError: If the program (or the shell) does not exist
        CommandExecutionError: On a non-zero exit status or timeout
    """
    sink = log or logger
    sink.info("Running command: `%s` in %s using shell: %s", command, cwd, shell)
    if env is not None:
        sink.debug("Environment used for command: %s", json.dumps(dict(env)))

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
            env=dict(env) if env is not None else None,
            executable=shell,
        )
    except FileNotFoundError as e:
        raise CommandNotFoundError(command, str(e)) from e

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise CommandExecutionError(command, None) from None

    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    _check_status(command, process.returncode, stdout, stderr)
    return CommandResult(stdout=stdout, stderr=stderr, returncode=process.returncode)


async def run_with_input(
    argv: Sequence[str],
    input_text: str,
    cwd: Union[str, Path],
    env: Optional[Mapping[str, str]] = None,
    shell: Optional[str] = None,
    end_marker: Optional[str] = None,
    wait_for_exit: bool = True,
    log: Optional[logging.LoggerAdapter] = None,
) -> CommandResult:
    """Spawn a program, feed it `input_text` on stdin and collect its output.

    With `wait_for_exit` the call returns once the process exits. Otherwise it
    resolves as soon as `end_marker` shows up on stdout, which lets callers
    stop waiting on wrappers (such as `docker compose run`) that linger after
    the Ruby code finished. The marker and anything after it are stripped from
    stdout.
    """
    sink = log or logger
    sink.info("Spawning `%s` in %s using shell: %s", shlex.join(argv), cwd, shell)

    try:
        if shell:
            process = await asyncio.create_subprocess_shell(
                shlex.join(argv),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd),
                env=dict(env) if env is not None else None,
                executable=shell,
            )
        else:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd),
                env=dict(env) if env is not None else None,
            )
    except FileNotFoundError as e:
        raise CommandNotFoundError(shlex.join(argv), str(e), tool=argv[0]) from e

    command = shlex.join(argv)
    stdout_chunks: List[str] = []
    stderr_chunks: List[str] = []
    marker_seen = asyncio.Event()

    async def pump(stream: asyncio.StreamReader, chunks: List[str], watch: bool) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(4096)
            if not data:
                break
            chunks.append(decoder.decode(data))
            if watch and end_marker and end_marker in "".join(chunks):
                marker_seen.set()
        chunks.append(decoder.decode(b"", final=True))

    stdout_task = asyncio.create_task(pump(process.stdout, stdout_chunks, True))
    stderr_task = asyncio.create_task(pump(process.stderr, stderr_chunks, False))

    try:
        process.stdin.write(input_text.encode("utf-8"))
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The process already died; its exit status tells the story below
        sink.debug("Process `%s` closed stdin early", command)
    finally:
        process.stdin.close()

    if wait_for_exit or not end_marker:
        await asyncio.gather(stdout_task, stderr_task)
        returncode = await process.wait()
    else:
        marker_task = asyncio.create_task(marker_seen.wait())
        exit_task = asyncio.create_task(process.wait())
        await asyncio.wait({marker_task, exit_task}, return_when=asyncio.FIRST_COMPLETED)

        if marker_seen.is_set():
            await asyncio.wait({stderr_task, exit_task}, timeout=_EXIT_GRACE_SECONDS)

            exited = exit_task.done()
            if not exited:
                sink.debug("Resolved `%s` on end marker before exit, terminating it", command)
                try:
                    process.kill()
                except ProcessLookupError:
                    # Exited between the check and the kill
                    exited = True
            returncode = await exit_task

            # Grandchildren may keep the pipes open after the process is gone
            for task in (marker_task, stdout_task, stderr_task):
                task.cancel()
            await asyncio.gather(marker_task, stdout_task, stderr_task, return_exceptions=True)

            stdout = "".join(stdout_chunks)
            stdout = stdout[: stdout.index(end_marker)]
            stderr = "".join(stderr_chunks)
            if exited:
                _check_status(command, returncode, stdout, stderr)
            return CommandResult(stdout=stdout, stderr=stderr, returncode=returncode)

        marker_task.cancel()
        await asyncio.gather(stdout_task, stderr_task)
        returncode = exit_task.result()

    stdout = "".join(stdout_chunks)
    if end_marker and end_marker in stdout:
        stdout = stdout[: stdout.index(end_marker)]
    stderr = "".join(stderr_chunks)
    _check_status(command, returncode, stdout, stderr)
    return CommandResult(stdout=stdout, stderr=stderr, returncode=returncode)


async def command_exists(
    tool: str,
    cwd: Union[str, Path],
    env: Optional[Mapping[str, str]] = None,
    shell: Optional[str] = None,
    log: Optional[logging.LoggerAdapter] = None,
) -> bool:
    """Check whether `tool --version` runs successfully within a second."""
    sink = log or logger
    sink.info("Checking if %s is available on the path", tool)
    try:
        await run_command(f"{tool} --version", cwd=cwd, env=env, shell=shell, timeout=1.0, log=sink)
    except (CommandNotFoundError, CommandExecutionError):
        return False
    return True


def _check_status(command: str, returncode: Optional[int], stdout: str, stderr: str) -> None:
    if returncode == 0:
        return
    if returncode == COMMAND_NOT_FOUND_STATUS or _NOT_FOUND_OUTPUT.search(stderr):
        raise CommandNotFoundError(command, stderr)
    raise CommandExecutionError(command, returncode, stdout, stderr)
