"""Environment probe executed inside the activated Ruby.

The probe prints a single payload on stderr, wrapped between two occurrences of
ACTIVATION_SEPARATOR so that it can be located inside shell init noise, Ruby
warnings or banners printed by the version manager.

The canonical payload is a JSON object with the keys `env`, `yjit`, `version`
and `gemPath`. Older probes emitted a field-delimited string instead:

    version FS gem,path,list FS yjit FS KEY VS value FS KEY VS value ...

Both encodings are decoded by `parse_probe_output`. Changing any separator
requires changing the Ruby scripts below in the same commit.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Tuple

from .errors import ProbeParseError
from .types import ProbeResult

ACTIVATION_SEPARATOR = "RUBY_LSP_ACTIVATION_SEPARATOR"
FIELD_SEPARATOR = "RUBY_LSP_FS"
VALUE_SEPARATOR = "RUBY_LSP_VS"

_PAYLOAD_PATTERN = re.compile(
    rf"{re.escape(ACTIVATION_SEPARATOR)}(.*?){re.escape(ACTIVATION_SEPARATOR)}",
    re.DOTALL,
)

# The scripts are one-liners on purpose: some terminals cannot pass line breaks
# through `-e`. They must not contain single quotes since the command line wraps
# them in single quotes.
PROBE_SCRIPT = (
    f'STDERR.print("{ACTIVATION_SEPARATOR}" + JSON.dump({{'
    "env: ENV.to_h, yjit: !!defined?(RubyVM::YJIT), version: RUBY_VERSION, gemPath: Gem.path"
    f'}}) + "{ACTIVATION_SEPARATOR}")'
)

# Used when we run a Ruby binary directly (chruby, RubyInstaller). Gem paths are
# reported as [default_dir, user_dir, *other paths] so the caller can work out
# which directory is the real GEM_HOME.
INSTALLATION_PROBE_SCRIPT = (
    "defaults = [Gem.default_dir, Gem.user_dir]; "
    f'STDERR.print("{ACTIVATION_SEPARATOR}" + JSON.dump({{'
    "env: ENV.to_h, yjit: !!defined?(RubyVM::YJIT), version: RUBY_VERSION, "
    "gemPath: defaults + (Gem.path - defaults)"
    f'}}) + "{ACTIVATION_SEPARATOR}")'
)


def build_probe_command(ruby_prefix: str, script: str = PROBE_SCRIPT) -> str:
    """Build the command line that runs the probe through a Ruby invocation prefix.

    Args:
        ruby_prefix: Everything needed to run the right Ruby, e.g. "rbenv exec ruby"

    Returns:
        Shell command line
    """
    return f"{ruby_prefix} -W0 -rjson -e '{script}'"


def wrap_payload(payload: str) -> str:
    """Wrap a payload the same way the probe does."""
    return f"{ACTIVATION_SEPARATOR}{payload}{ACTIVATION_SEPARATOR}"


def extract_payload(output: str) -> str:
    """Return the text between the first pair of activation separators.

    Raises:
        ProbeParseError: If the output holds no delimited payload
    """
    match = _PAYLOAD_PATTERN.search(output)
    if match is None:
        raise ProbeParseError("activation separator not found", output)
    return match.group(1)


def parse_probe_output(output: str) -> ProbeResult:
    """Locate and decode the probe payload inside raw process output."""
    payload = extract_payload(output)
    if payload.lstrip().startswith("{"):
        return _decode_json(payload)
    return _decode_fields(payload)


def _decode_json(payload: str) -> ProbeResult:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProbeParseError(f"invalid JSON ({e.msg})", payload) from e

    if not isinstance(data, dict):
        raise ProbeParseError("payload is not a JSON object", payload)

    env = data.get("env")
    if not isinstance(env, dict):
        raise ProbeParseError("missing or malformed 'env' field", payload)

    version = data.get("version")
    if not isinstance(version, str) or not version:
        raise ProbeParseError("missing or empty 'version' field", payload)

    gem_path = data.get("gemPath", data.get("gem_path", []))
    if isinstance(gem_path, str):
        gem_path = [entry for entry in gem_path.split(",") if entry]
    if not isinstance(gem_path, list):
        raise ProbeParseError("malformed 'gemPath' field", payload)

    return ProbeResult(
        env=_stringify(env),
        yjit=_truthy(data.get("yjit")),
        version=version,
        gem_path=tuple(str(entry) for entry in gem_path),
    )


def _decode_fields(payload: str) -> ProbeResult:
    fields = payload.split(FIELD_SEPARATOR)
    if len(fields) < 3:
        raise ProbeParseError(
            f"expected at least 3 fields separated by {FIELD_SEPARATOR}, got {len(fields)}",
            payload,
        )

    version, gem_path, yjit, *entries = fields
    if not version:
        raise ProbeParseError("empty version field", payload)

    env: Dict[str, str] = {}
    for entry in entries:
        key, value = _split_entry(entry, payload)
        env[key] = value

    return ProbeResult(
        env=env,
        yjit=yjit == "true",
        version=version,
        gem_path=tuple(path for path in gem_path.split(",") if path),
    )


def _split_entry(entry: str, payload: str) -> Tuple[str, str]:
    parts: List[str] = entry.split(VALUE_SEPARATOR)
    if len(parts) != 2 or not parts[0]:
        raise ProbeParseError(f"malformed environment entry {entry!r}", payload)
    return parts[0], parts[1]


def _stringify(env: Dict[str, Any]) -> Dict[str, str]:
    return {str(key): "" if value is None else str(value) for key, value in env.items()}


def _truthy(value: Any) -> bool:
    # Older probes dumped `defined?(RubyVM::YJIT)`, which is "constant" or nil
    if isinstance(value, str):
        return value in ("true", "constant")
    return bool(value)
