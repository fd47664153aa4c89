"""Request Builder - Turns resolved options and data into an outgoing request.

Chooses the encoding strategy from the method and the declared content type:

    get      json → data folded into the URL query string, JSON Content-Type
             other → data sent as query params
    delete   data sent as query params (content type ignored)
    post/put/patch
             file pointer → multipart, file under upload_key (content type ignored)
             json → JSON text
             xml  → XML document rooted at xml_root
             MIME literal → str(data) with that Content-Type
             other (incl. form) → data form-encoded by the transport

A configured Content-Type header always wins over the derived default.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from request_agent.config_loader import is_mime_type
from request_agent.errors import EncodingError, UnsupportedMethodError
from request_agent.files import FileProvider, UploadFile
from request_agent.headers import set_default_header
from request_agent.models import Event, ResolvedOptions
from request_agent.xml_body import to_xml


JSON_CONTENT_TYPE = "application/json; charset=utf-8"
XML_CONTENT_TYPE = "text/xml; charset=utf-8"

QueryParams = list[tuple[str, str]]


class ContentKind(str, Enum):
    """How a request body is encoded."""

    JSON = "json"
    XML = "xml"
    MIME = "mime"  # content_type is itself a MIME type; body sent as a string
    FORM_OR_OTHER = "form_or_other"


@dataclass(frozen=True)
class ContentType:
    """A content_type option classified once per cycle."""

    kind: ContentKind
    literal: str | None = None

    @classmethod
    def classify(cls, value: str | None) -> "ContentType":
        """Resolve in fixed order: json, xml, MIME pattern, form/fallback."""
        if value == "json":
            return cls(ContentKind.JSON)
        if value == "xml":
            return cls(ContentKind.XML)
        if is_mime_type(value):
            return cls(ContentKind.MIME, value)
        return cls(ContentKind.FORM_OR_OTHER)


@dataclass
class OutgoingRequest:
    """One request ready for the transport.

    ``body`` is a string for JSON/XML/MIME encodings, a mapping for form and
    multipart encodings (UploadFile values mark file fields), or None.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: QueryParams | None = None
    body: Any = None

    @property
    def uploads(self) -> list[UploadFile]:
        if not isinstance(self.body, Mapping):
            return []
        return [value for value in self.body.values() if isinstance(value, UploadFile)]

    def close(self) -> None:
        """Close any upload streams attached to the body."""
        for upload in self.uploads:
            upload.close()


def build_request(
    method: str,
    data: Any,
    options: ResolvedOptions,
    headers: Mapping[str, str],
    event: Event | None = None,
    file_provider: FileProvider | None = None,
) -> OutgoingRequest:
    """Build the outgoing request for one handling cycle.

    Args:
        method: Resolved, lowercase HTTP verb.
        data: Working payload (resolved payload, possibly merged with the event).
        options: Options resolved against the triggering input.
        headers: Outbound headers built from the ``headers`` option.
        event: Triggering event, None for scheduled runs.
        file_provider: Opens the file referenced by the event's file pointer.

    Raises:
        UnsupportedMethodError: If *method* is not a supported verb.
        EncodingError: If *data* cannot be encoded for the chosen strategy.
    """
    url = options.endpoint
    request_headers = dict(headers)

    if method == "get":
        content = ContentType.classify(options.content_type)
        if content.kind is ContentKind.JSON:
            # Data still travels in the query string; only the header says JSON.
            set_default_header(request_headers, "Content-Type", JSON_CONTENT_TYPE)
            return OutgoingRequest(
                method, build_url(url, encode_params(_compact(data))), request_headers
            )
        return OutgoingRequest(method, url, request_headers, params=encode_params(data))

    if method == "delete":
        return OutgoingRequest(method, url, request_headers, params=encode_params(data))

    if method in ("post", "put", "patch"):
        if event is not None and event.file_pointer is not None:
            return OutgoingRequest(
                method,
                url,
                request_headers,
                body=_attach_upload(data, event, options.upload_key, file_provider),
            )

        content = ContentType.classify(options.content_type)
        if content.kind is ContentKind.JSON:
            set_default_header(request_headers, "Content-Type", JSON_CONTENT_TYPE)
            body: Any = _to_json(data)
        elif content.kind is ContentKind.XML:
            set_default_header(request_headers, "Content-Type", XML_CONTENT_TYPE)
            try:
                body = to_xml(data, root=options.xml_root or "post")
            except ValueError as e:
                raise EncodingError(str(e)) from e
        elif content.kind is ContentKind.MIME:
            set_default_header(request_headers, "Content-Type", content.literal)
            body = data if isinstance(data, str) else str(data)
        else:
            body = data
        return OutgoingRequest(method, url, request_headers, body=body)

    raise UnsupportedMethodError(method)


def _attach_upload(
    data: Any,
    event: Event,
    upload_key: str,
    file_provider: FileProvider | None,
) -> dict[str, Any]:
    if file_provider is None:
        raise EncodingError("Event carries a file pointer but no file provider is configured")
    if not isinstance(data, Mapping):
        raise EncodingError("File uploads require a hash payload")
    try:
        upload = file_provider.open_upload(event)
    except (OSError, ValueError) as e:
        raise EncodingError(f"Cannot open file for upload: {e}") from e
    body = dict(data)
    body[upload_key or "file"] = upload
    return body


def _to_json(data: Any) -> str:
    try:
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Payload is not JSON serializable: {e}") from e


def _compact(data: Any) -> Any:
    """Drop entries whose value is None or an empty string."""
    if isinstance(data, Mapping):
        return {key: value for key, value in data.items() if value is not None and value != ""}
    return data


def build_url(url: str, params: QueryParams) -> str:
    """Merge params into the query string of url (new params win)."""
    if not params:
        return url
    try:
        return str(httpx.URL(url).copy_merge_params(params))
    except httpx.InvalidURL as e:
        raise EncodingError(f"Invalid endpoint URL '{url}': {e}") from e


def encode_params(data: Any) -> QueryParams:
    """Flatten data into (name, value) pairs using bracket notation.

    ``{"a": {"b": 1}, "tags": ["x", "y"]}`` becomes
    ``[("a[b]", "1"), ("tags[]", "x"), ("tags[]", "y")]``. A list is
    accepted only as a list of (name, value) pairs.

    Raises:
        EncodingError: For any other shape.
    """
    if data is None:
        return []
    if isinstance(data, Mapping):
        pairs: QueryParams = []
        for key, value in data.items():
            _flatten(str(key), value, pairs)
        return pairs
    if isinstance(data, list) and all(
        isinstance(item, (list, tuple)) and len(item) == 2 for item in data
    ):
        pairs = []
        for key, value in data:
            _flatten(str(key), value, pairs)
        return pairs
    raise EncodingError(
        f"Parameters must be a hash or a list of pairs, got {type(data).__name__}"
    )


def _flatten(prefix: str, value: Any, pairs: QueryParams) -> None:
    if isinstance(value, Mapping):
        for key, child in value.items():
            _flatten(f"{prefix}[{key}]", child, pairs)
    elif isinstance(value, list):
        for item in value:
            _flatten(f"{prefix}[]", item, pairs)
    elif value is None:
        pairs.append((prefix, ""))
    elif isinstance(value, bool):
        pairs.append((prefix, "true" if value else "false"))
    else:
        pairs.append((prefix, str(value)))
