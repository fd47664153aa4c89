"""Exception hierarchy for request-agent.

Configuration errors are fatal and raised before any request is sent.
Everything else is scoped to a single handling cycle: the dispatcher logs
it (and optionally emits it) and moves on to the next triggering input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from request_agent.config_loader import ValidationResult


class RequestAgentError(Exception):
    """Base class for request-agent errors."""


class ConfigError(RequestAgentError):
    """Raised when options cannot be loaded or fail validation.

    Carries the full validation report when the failure came from the
    cross-field validator, so callers can print every problem at once.
    """

    def __init__(self, message: str, result: ValidationResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class UnsupportedMethodError(RequestAgentError):
    """Raised when a resolved method is not one of the supported verbs."""

    def __init__(self, method: str) -> None:
        super().__init__(f"Invalid method '{method}'")
        self.method = method


class EncodingError(RequestAgentError):
    """Raised when request data cannot be encoded for the wire."""


class TemplateRenderError(RequestAgentError):
    """Raised when an option template fails to render."""


class TransportError(RequestAgentError):
    """Raised when the HTTP exchange fails.

    ``response_status`` is set when the failure carries an HTTP status
    (e.g. a non-2xx response on a transport that raises on status).
    """

    def __init__(self, message: str, response_status: int | None = None) -> None:
        super().__init__(message)
        self.response_status = response_status
