"""Error types raised while activating a Ruby environment.

Every error carries the version manager it came from and a stable error code,
so callers can branch on the failure kind without parsing messages:

    NotFound family      EXECUTABLE_NOT_FOUND, COMMAND_NOT_FOUND, RUBY_NOT_FOUND,
                         VERSION_FILE_NOT_FOUND, MANAGER_DIR_NOT_FOUND
    MISSING_CONFIGURATION
    UNTRUSTED_WORKSPACE  recoverable: trust the workspace and activate again
    PARSE_FAILURE        the probe ran but its payload could not be decoded
    CANCELLED            the human dismissed a fallback without an alternative
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Optional, Sequence, Union

PathLike = Union[str, Path]


def _join_paths(paths: Sequence[PathLike]) -> str:
    return ", ".join(str(path) for path in paths)


def program_name(command: str) -> Optional[str]:
    """First word of a command line that is not a `NAME=value` assignment."""
    try:
        words = shlex.split(command)
    except ValueError:
        # Unbalanced quotes
        words = command.split()
    for word in words:
        if "=" not in word:
            return word
    return None


class ActivationError(Exception):
    """Base class for all activation failures."""

    error_code = "ACTIVATION_ERROR"

    def __init__(self, message: str, manager: str = "unknown"):
        super().__init__(message)
        self.manager = manager


class NotFoundError(ActivationError):
    """Something that activation needs does not exist where it was searched for."""

    error_code = "NOT_FOUND"

    def __init__(self, message: str, manager: str, searched_paths: Sequence[PathLike] = ()):
        super().__init__(message, manager)
        self.searched_paths = [str(path) for path in searched_paths]


class ExecutableNotFoundError(NotFoundError):
    """A version manager executable is missing.

    When the user configured an explicit path, only that path is reported.
    """

    error_code = "EXECUTABLE_NOT_FOUND"

    def __init__(
        self,
        manager: str,
        searched_paths: Sequence[PathLike] = (),
        configured_path: Optional[PathLike] = None,
    ):
        if configured_path is not None:
            searched_paths = [configured_path]
            message = f"{manager} executable configured as {configured_path}, but that file doesn't exist"
        else:
            message = f"Cannot find {manager} installation. Searched in {_join_paths(searched_paths)}"
        super().__init__(message, manager, searched_paths)
        self.configured_path = str(configured_path) if configured_path is not None else None


class CommandNotFoundError(NotFoundError):
    """The shell could not find the program a command line tried to run."""

    error_code = "COMMAND_NOT_FOUND"

    def __init__(
        self,
        command: str,
        stderr: str = "",
        manager: str = "unknown",
        tool: Optional[str] = None,
    ):
        tool = tool or program_name(command)
        super().__init__(
            f"Command not found while running `{command}`: {stderr.strip() or 'no output'}",
            manager,
            [f"{tool} on PATH"] if tool else [],
        )
        self.command = command
        self.stderr = stderr
        self.tool = tool


class RubyInstallationNotFoundError(NotFoundError):
    """No Ruby installation matches the requested version."""

    error_code = "RUBY_NOT_FOUND"

    def __init__(
        self,
        manager: str,
        requested_version: Optional[str] = None,
        searched_paths: Sequence[PathLike] = (),
    ):
        if requested_version:
            message = f"Cannot find Ruby installation for version {requested_version}"
        else:
            message = "Cannot find any Ruby installations"
        if searched_paths:
            message += f". Searched in {_join_paths(searched_paths)}"
        super().__init__(message, manager, searched_paths)
        self.requested_version = requested_version


class RubyVersionFileNotFoundError(NotFoundError):
    """No `.ruby-version` file exists in the bundle root or any parent."""

    error_code = "VERSION_FILE_NOT_FOUND"

    def __init__(self, manager: str, searched_path: PathLike):
        super().__init__(
            "Cannot find .ruby-version file. Please specify the Ruby version in a "
            f".ruby-version either in {searched_path} or in a parent directory",
            manager,
            [searched_path],
        )
        self.searched_path = str(searched_path)


class VersionManagerDirectoryNotFoundError(NotFoundError):
    """A directory the version manager requires is absent from the workspace."""

    error_code = "MANAGER_DIR_NOT_FOUND"

    def __init__(self, manager: str, directory: PathLike):
        super().__init__(
            f"The version manager is configured to be {manager}, but no "
            f"{Path(directory).name} directory was found in {Path(directory).parent}",
            manager,
            [directory],
        )
        self.directory = str(directory)


class BundleGemfileNotFoundError(NotFoundError):
    """The configured custom Gemfile does not exist."""

    error_code = "BUNDLE_GEMFILE_NOT_FOUND"

    def __init__(self, manager: str, gemfile: PathLike):
        super().__init__(
            f"The configured bundle gemfile {gemfile} does not exist", manager, [gemfile]
        )


class MissingConfigurationError(ActivationError):
    """A setting required by the selected version manager was never set."""

    error_code = "MISSING_CONFIGURATION"

    def __init__(self, manager: str, config_key: str):
        super().__init__(
            f"The {config_key} configuration must be set when '{manager}' "
            "is selected as the version manager",
            manager,
        )
        self.config_key = config_key


class RubyVersionFileError(ActivationError):
    """A `.ruby-version` file exists but is empty or unparsable."""

    error_code = "VERSION_FILE_ERROR"

    def __init__(self, file_path: PathLike, issue: str, content: Optional[str] = None, manager: str = "chruby"):
        if issue == "empty":
            message = f"Ruby version file {file_path} is empty"
        else:
            message = (
                f"Ruby version file {file_path} contains invalid format. "
                f"Expected (engine-)?version, got {content}"
            )
        super().__init__(message, manager)
        self.file_path = str(file_path)
        self.issue = issue
        self.content = content


class UntrustedWorkspaceError(ActivationError):
    """The version manager refuses to run until the workspace is trusted."""

    error_code = "UNTRUSTED_WORKSPACE"

    def __init__(self, manager: str = "shadowenv", workspace: Optional[PathLike] = None):
        location = f" {workspace}" if workspace else ""
        super().__init__(f"Cannot activate Ruby environment in untrusted workspace{location}", manager)
        self.workspace = str(workspace) if workspace else None


class ActivationCancelledError(ActivationError):
    """The human cancelled a fallback offer without configuring an alternative."""

    error_code = "CANCELLED"

    def __init__(self, manager: str, reason: str = "Ruby activation was cancelled by user"):
        super().__init__(reason, manager)


class ProbeParseError(ActivationError):
    """The probe ran but its output could not be decoded."""

    error_code = "PARSE_FAILURE"

    def __init__(self, reason: str, output: str, manager: str = "unknown"):
        super().__init__(f"Failed to parse activation output: {reason}", manager)
        self.reason = reason
        self.output = output


class CommandExecutionError(ActivationError):
    """A command exited with a non-zero status or timed out."""

    error_code = "COMMAND_FAILED"

    def __init__(
        self,
        command: str,
        returncode: Optional[int],
        stdout: str = "",
        stderr: str = "",
        manager: str = "unknown",
    ):
        status = "timed out" if returncode is None else f"exited with status {returncode}"
        super().__init__(f"Command `{command}` {status}: {stderr.strip()}", manager)
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class UnsupportedRubyVersionError(ActivationError):
    """The activated Ruby is older than the minimum the language server supports."""

    error_code = "UNSUPPORTED_RUBY"

    def __init__(self, manager: str, version: str, minimum: str):
        super().__init__(
            f"Ruby {minimum} or newer is required. This project is using {version}", manager
        )
        self.version = version
        self.minimum = minimum
