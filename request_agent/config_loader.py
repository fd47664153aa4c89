"""Config Loader - Loads agent options and validates them.

Handles loading YAML option files with environment variable substitution,
cross-field validation of the raw (un-interpolated) options, and building
the immutable ``AgentOptions`` model used by the dispatcher.

Validation inspects option shapes only. Templates are not resolved here, so
values that are template expressions are skipped by the checks that would
need their resolved value.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from request_agent.errors import ConfigError
from request_agent.models import (
    EVENT_HEADERS_STYLES,
    OUTPUT_MODES,
    SUPPORTED_METHODS,
    AgentOptions,
)


# A content_type that is itself a MIME type (e.g. "text/plain") rather than
# one of the logical tags json/xml/form.
MIME_RE = re.compile(r"\A\w+/.+\Z", re.DOTALL)

_BOOLEAN_OPTIONS = ("emit_events", "log_requests", "no_merge", "disable_ssl_verification")
_BODY_METHODS = ("post", "put", "patch")
_QUERY_METHODS = ("get", "delete")


def load_options(config_path: Path) -> AgentOptions:
    """Load, validate and build agent options from a YAML file."""
    return build_options(load_raw_options(config_path))


def load_raw_options(config_path: Path) -> dict[str, Any]:
    """Load the raw option mapping from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_options = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_options, dict):
        raise ConfigError("Config file must be a YAML mapping")

    return _substitute_env_vars(raw_options)


def build_options(raw_options: Mapping[str, Any]) -> AgentOptions:
    """Validate raw options and build the immutable AgentOptions model.

    Raises:
        ConfigError: If any validation rule fails (the error carries the full
            report) or the options do not fit the model.
    """
    result = validate_options(raw_options)
    if not result.is_valid:
        raise ConfigError(format_validation_report(result), result)

    # A null option means "use the default", as an absent one does.
    cleaned = {key: value for key, value in raw_options.items() if value is not None}
    try:
        return AgentOptions.model_validate(cleaned)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid options structure: {e}") from e


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return pattern.sub(replacer, s)


# =============================================================================
# Value helpers
# =============================================================================


def parse_boolish(value: Any) -> bool:
    """Coerce a boolean option given as a native bool or "true"/"false".

    Raises:
        ValueError: If the value is neither.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value.strip() == "true":
            return True
        if value.strip() == "false":
            return False
    raise ValueError(f"expected true or false, got {value!r}")


def is_blank(value: Any) -> bool:
    """True for None, whitespace-only strings, and empty maps or lists."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (Mapping, list, tuple)):
        return len(value) == 0
    return False


def is_template(value: Any) -> bool:
    """True if value is a string containing a template expression."""
    return isinstance(value, str) and ("{{" in value or "{%" in value)


def is_mime_type(value: Any) -> bool:
    """True if value looks like a full MIME type (``type/subtype``)."""
    return isinstance(value, str) and MIME_RE.match(value) is not None


def split_event_headers(value: Any) -> list[str] | None:
    """Normalize event_headers to a list of names.

    Accepts a list of strings or a comma-separated string; blank means no
    filtering.

    Raises:
        ValueError: For any other shape.
    """
    if is_blank(value):
        return None
    if isinstance(value, str):
        return [name.strip() for name in value.split(",") if name.strip()]
    if isinstance(value, list) and all(isinstance(name, str) for name in value):
        return list(value)
    raise ValueError(
        "if provided, event_headers must be an array of strings or a comma-separated string"
    )


def parse_basic_auth(value: Any) -> tuple[str, str] | None:
    """Split basic_auth into (username, password).

    Raises:
        ValueError: If value is neither "user:pass" nor a two-element list.
    """
    if is_blank(value):
        return None
    if isinstance(value, str) and ":" in value:
        username, password = value.split(":", 1)
        return username, password
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return str(value[0]), str(value[1])
    raise ValueError(f"bad value for basic_auth: {value!r}")


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found in the options, tagged with the option it concerns."""

    category: str
    message: str

    def __str__(self) -> str:
        return f"[{self.category}] {self.message}"


class ValidationWarning(ValidationIssue):
    """Non-fatal: the options work, but something is probably not intended."""


class ValidationError(ValidationIssue):
    """Fatal: the agent must not run with these options."""


@dataclass
class ValidationResult:
    """Every issue found by one validation pass, in rule order."""

    warnings: list[ValidationWarning] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)

    def add_warning(self, category: str, message: str) -> None:
        self.warnings.append(ValidationWarning(category, message))

    def add_error(self, category: str, message: str) -> None:
        self.errors.append(ValidationError(category, message))

    @property
    def is_valid(self) -> bool:
        return not self.errors


def format_validation_report(result: ValidationResult) -> str:
    """Render errors then warnings, one per line."""
    lines = [f"Invalid options ({len(result.errors)} error(s)):"] if result.errors else []
    lines.extend(f"  error: {error}" for error in result.errors)
    lines.extend(f"  warning: {warning}" for warning in result.warnings)
    return "\n".join(lines)


def validate_options(options: Mapping[str, Any]) -> ValidationResult:
    """Check raw options for cross-field consistency.

    Every rule runs independently and every failure is reported, so a single
    pass shows the user all problems with their options.
    """
    result = ValidationResult()

    raw_method = options.get("method")
    method_is_template = is_template(raw_method)
    method = "post" if is_blank(raw_method) else str(raw_method).lower()

    payload = options.get("payload")
    content_type = options.get("content_type")
    payload_present = not is_blank(payload)
    payload_is_structured = isinstance(payload, (Mapping, list))

    if is_blank(options.get("endpoint")):
        result.add_error("endpoint", "endpoint is a required field")

    if not method_is_template:
        if payload_present and method in _QUERY_METHODS and not payload_is_structured:
            result.add_error("payload", "if provided, payload must be a hash or an array")

        if payload_present and method in _BODY_METHODS:
            if not payload_is_structured and not is_mime_type(content_type):
                result.add_error("payload", "if provided, payload must be a hash or an array")

        if method not in SUPPORTED_METHODS:
            result.add_error(
                "method", "method must be 'post', 'get', 'put', 'delete', or 'patch'"
            )

        if (
            method in _QUERY_METHODS
            and not is_blank(content_type)
            and not is_template(content_type)
            and not (method == "get" and content_type == "json")
        ):
            result.add_warning(
                "content_type",
                f"content_type '{content_type}' has no effect on {method} requests",
            )

    if is_mime_type(content_type) and isinstance(payload, str):
        if not _is_true(options.get("no_merge")):
            result.add_error(
                "no_merge", "when the payload is a string, `no_merge` has to be set to `true`"
            )

    if content_type == "form" and payload_present and isinstance(payload, list):
        result.add_error(
            "payload", "when content_type is a form, if provided, payload must be a hash"
        )

    for name in _BOOLEAN_OPTIONS:
        if name in options and not is_template(options[name]):
            value = options[name]
            # An explicit null or empty string means "default"
            if is_blank(value):
                continue
            try:
                parse_boolish(value)
            except ValueError:
                result.add_error(name, f"if provided, {name} must be true or false")

    output_mode = options.get("output_mode")
    if not is_blank(output_mode) and not is_template(output_mode):
        if str(output_mode) not in OUTPUT_MODES:
            result.add_error("output_mode", "if provided, output_mode must be 'clean' or 'merge'")

    headers = options.get("headers")
    if not is_blank(headers) and not isinstance(headers, Mapping):
        result.add_error("headers", "if provided, headers must be a hash")

    _validate_event_headers_options(options, result)
    _validate_web_request_options(options, result)

    return result


def _is_true(value: Any) -> bool:
    try:
        return parse_boolish(value)
    except ValueError:
        return False


def _validate_event_headers_options(options: Mapping[str, Any], result: ValidationResult) -> None:
    """Check the response-header filtering and key-style options."""
    try:
        split_event_headers(options.get("event_headers"))
    except ValueError as e:
        result.add_error("event_headers", str(e))

    style = options.get("event_headers_style")
    if not is_blank(style) and not is_template(style) and style not in EVENT_HEADERS_STYLES:
        result.add_error(
            "event_headers_style",
            "if provided, event_headers_style must be 'capitalized', 'downcased', "
            "'snakecased' or 'raw'",
        )

    key = options.get("event_headers_key")
    if key is not None and not isinstance(key, str):
        result.add_error("event_headers_key", "if provided, event_headers_key must be a string")


def _validate_web_request_options(options: Mapping[str, Any], result: ValidationResult) -> None:
    """Check the connection-level options handed to the transport."""
    user_agent = options.get("user_agent")
    if not is_blank(user_agent) and not isinstance(user_agent, str):
        result.add_error("user_agent", "user_agent must be a string")

    basic_auth = options.get("basic_auth")
    if not is_template(basic_auth):
        try:
            parse_basic_auth(basic_auth)
        except ValueError as e:
            result.add_error("basic_auth", str(e))

    for name in ("timeout", "open_timeout"):
        value = options.get(name)
        if is_blank(value) or is_template(value):
            continue
        if isinstance(value, bool) or not _is_non_negative_int(value):
            result.add_error(name, f"if provided, {name} must be a non-negative integer")


def _is_non_negative_int(value: Any) -> bool:
    if isinstance(value, int):
        return value >= 0
    if isinstance(value, str):
        return value.strip().isdigit()
    return False
