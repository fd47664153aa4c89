"""Response/Error Mapper - Uniform output-event payloads.

Both outcomes start from the same base: a copy of the triggering event's
payload in ``merge`` output mode, an empty map in ``clean`` mode. Outcome
keys are applied last, so they win over carried-over event fields.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from request_agent.errors import RequestAgentError, TransportError
from request_agent.headers import normalize_response_headers
from request_agent.models import Event
from request_agent.transport import TransportResponse


DEFAULT_ERROR_STATUS = 500


def output_base(output_mode: str, event: Event | None) -> dict[str, Any]:
    """Starting payload for an output event."""
    if output_mode == "merge" and event is not None:
        return dict(event.payload)
    return {}


def map_response(
    response: TransportResponse,
    base: dict[str, Any],
    headers_style: str | None = "capitalized",
    event_headers: Iterable[str] | None = None,
    headers_key: str | None = "headers",
) -> dict[str, Any]:
    """Build the success payload: base, then body and status, then headers.

    A falsy ``headers_key`` leaves the response headers out of the event.
    """
    payload = dict(base)
    payload.update(body=response.body, status=response.status)
    if headers_key:
        payload[headers_key] = normalize_response_headers(
            response.headers, headers_style, event_headers
        )
    return payload


def error_status(error: BaseException) -> int:
    """HTTP status carried by the error, or 500."""
    if isinstance(error, TransportError) and error.response_status is not None:
        return error.response_status
    return DEFAULT_ERROR_STATUS


def error_record(error: Exception, endpoint: str, payload_options: Any) -> dict[str, Any]:
    """Log record for a failed cycle.

    ``payload_options`` must be the raw payload option, not its interpolated
    value: templates are shown instead of the secrets they may resolve to.
    """
    return {
        "error_message": str(error),
        "status_code": error_status(error),
        "endpoint": endpoint,
        "payload_options": payload_options,
    }


def map_error(
    error: RequestAgentError,
    base: dict[str, Any],
    endpoint: str,
    payload_options: Any,
) -> dict[str, Any]:
    """Build the failure payload: base, then status, message, endpoint and raw payload."""
    payload = dict(base)
    payload.update(
        status=error_status(error),
        error_message=str(error),
        endpoint=endpoint,
        payload_options=payload_options,
    )
    return payload
