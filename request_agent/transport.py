"""Transport - Sends outgoing requests over HTTP and captures responses.

The dispatcher only depends on the ``Transport`` protocol. ``HttpxTransport``
is the default implementation on top of ``httpx.Client``: connection
pooling, TLS and timeouts are its concern, and every failure it sees is
reported as a ``TransportError``.

Usage:
    with HttpxTransport(user_agent="my-agent") as transport:
        response = transport.run("get", "https://example.com", None, {})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from request_agent.errors import EncodingError, TransportError
from request_agent.files import UploadFile
from request_agent.request_builder import QueryParams, encode_params


@dataclass
class TransportResponse:
    """One HTTP response.

    Header keys keep the casing the server sent; repeated headers are joined
    with ", ". The body is the decoded text, never parsed.
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


class Transport(Protocol):
    """Executes a single HTTP request."""

    def run(
        self,
        method: str,
        url: str,
        body: Any,
        headers: Mapping[str, str],
        *,
        params: QueryParams | None = None,
        timeout: int | None = None,
        open_timeout: int | None = None,
    ) -> TransportResponse:
        ...


class HttpxTransport:
    """Transport backed by a shared ``httpx.Client``."""

    def __init__(
        self,
        basic_auth: tuple[str, str] | None = None,
        verify_ssl: bool = True,
        user_agent: str | None = None,
        raise_for_status: bool = False,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            basic_auth: (username, password) attached to every request.
            verify_ssl: Verify TLS certificates.
            user_agent: User-Agent header sent unless a request sets its own.
            raise_for_status: Treat non-2xx responses as TransportError.
            client: Pre-built client (for tests); the other connection
                options are ignored when given.
        """
        self._raise_for_status = raise_for_status
        if client is not None:
            self._client = client
            return

        kwargs: dict[str, Any] = {"verify": verify_ssl}
        if basic_auth is not None:
            kwargs["auth"] = httpx.BasicAuth(*basic_auth)
        if user_agent:
            kwargs["headers"] = {"User-Agent": user_agent}
        self._client = httpx.Client(**kwargs)

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def run(
        self,
        method: str,
        url: str,
        body: Any,
        headers: Mapping[str, str],
        *,
        params: QueryParams | None = None,
        timeout: int | None = None,
        open_timeout: int | None = None,
    ) -> TransportResponse:
        """Send one request.

        Raises:
            TransportError: On timeout, connection or TLS failure, invalid
                URL, or (with raise_for_status) a non-2xx response.
            EncodingError: If the body has a shape that cannot be sent.
        """
        try:
            request_kwargs = _body_kwargs(body)
            response = self._client.request(
                method=method.upper(),
                url=url,
                params=params if params else None,
                headers=dict(headers) if headers else None,
                timeout=_build_timeout(timeout, open_timeout),
                **request_kwargs,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"request timeout: {e}") from e
        except httpx.ConnectError as e:
            raise TransportError(f"connection error: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"request error: {e}") from e
        except httpx.InvalidURL as e:
            raise TransportError(f"invalid URL: {e}") from e
        except UnicodeEncodeError as e:
            raise TransportError(
                f"encoding error: non-ASCII characters in request "
                f"(header, query param, or path). Character: {e.object[e.start:e.end]!r}"
            ) from e

        if self._raise_for_status and not response.is_success:
            raise TransportError(
                f"the server responded with status {response.status_code}",
                response_status=response.status_code,
            )

        return _convert_response(response)


def _build_timeout(timeout: int | None, open_timeout: int | None) -> Any:
    """Per-request timeout: read/write/pool from *timeout*, connect from *open_timeout*."""
    if timeout is None and open_timeout is None:
        return httpx.USE_CLIENT_DEFAULT
    default = httpx.Timeout(5.0)
    overall = float(timeout) if timeout is not None else default.read
    connect = float(open_timeout) if open_timeout is not None else overall
    return httpx.Timeout(overall, connect=connect)


def _body_kwargs(body: Any) -> dict[str, Any]:
    """Map an OutgoingRequest body to httpx request arguments.

    Strings and bytes are sent as-is; mappings are form-encoded, or sent as
    multipart when they contain UploadFile values.
    """
    if body is None:
        return {}
    if isinstance(body, str):
        try:
            return {"content": body.encode("utf-8")}
        except UnicodeEncodeError as e:
            raise EncodingError(
                f"Body is not valid UTF-8 text. Character: {e.object[e.start:e.end]!r}"
            ) from e
    if isinstance(body, bytes):
        return {"content": body}
    if isinstance(body, Mapping):
        files = {
            key: (value.filename, value.stream, value.content_type)
            for key, value in body.items()
            if isinstance(value, UploadFile)
        }
        fields = {key: value for key, value in body.items() if not isinstance(value, UploadFile)}
        data: dict[str, list[str]] = {}
        for name, value in encode_params(fields):
            data.setdefault(name, []).append(value)
        kwargs: dict[str, Any] = {"data": data} if data else {}
        if files:
            kwargs["files"] = files
        return kwargs
    raise EncodingError(f"Cannot send a body of type {type(body).__name__}")


def _convert_response(response: httpx.Response) -> TransportResponse:
    """Convert an httpx Response, keeping the server's header casing."""
    headers: dict[str, str] = {}
    for raw_key, raw_value in response.headers.raw:
        key = raw_key.decode("latin-1")
        value = raw_value.decode("latin-1")
        headers[key] = f"{headers[key]}, {value}" if key in headers else value

    return TransportResponse(
        status=response.status_code,
        headers=headers,
        body=response.text,
    )
