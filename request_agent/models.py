"""Internal data models for request-agent.

All models use Pydantic v2. ``AgentOptions`` holds the raw, template-bearing
options exactly as configured; ``ResolvedOptions`` is the per-cycle result of
interpolating them against one triggering input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


SUPPORTED_METHODS = ("get", "post", "put", "patch", "delete")
OUTPUT_MODES = ("clean", "merge")
EVENT_HEADERS_STYLES = ("capitalized", "downcased", "snakecased", "raw")


# =============================================================================
# Configuration Models
# =============================================================================


class AgentOptions(BaseModel):
    """User-supplied options, validated once before any request is sent.

    String-or-bool fields keep the raw value because they may be template
    expressions; they are coerced per cycle by ``parse_boolish``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    endpoint: str = Field(description="Target URL (template)")
    method: str = Field(default="post", description="HTTP verb (template)")
    content_type: str | None = Field(
        default=None, description="json, xml, form, or a literal MIME type"
    )
    payload: Any = Field(default=None, description="Map, list or string (template-bearing)")
    headers: dict[str, Any] = Field(
        default_factory=dict, description="Request headers (template-bearing values)"
    )
    basic_auth: str | list[str] | None = Field(
        default=None, description="'username:password' or [username, password]"
    )
    disable_ssl_verification: bool | str = Field(
        default=False, description="Skip TLS certificate verification"
    )
    user_agent: str | None = Field(default=None, description="Custom User-Agent header")
    no_merge: bool | str = Field(
        default=False, description="Send the payload without merging in the event"
    )
    output_mode: str = Field(default="clean", description="clean or merge")
    emit_events: bool | str = Field(default=False, description="Emit response events")
    log_requests: bool | str = Field(default=False, description="Log each outgoing request")
    upload_key: str = Field(default="file", description="Multipart field for file uploads")
    xml_root: str = Field(default="post", description="Root element name for XML bodies")
    timeout: int | str | None = Field(default=None, description="Read timeout in seconds")
    open_timeout: int | str | None = Field(
        default=None, description="Connection open timeout in seconds"
    )
    event_headers: list[str] | str | None = Field(
        default=None, description="Response headers to keep (list or comma-separated)"
    )
    event_headers_style: str = Field(
        default="capitalized", description="Key style for emitted response headers"
    )
    event_headers_key: str = Field(
        default="headers", description="Key under which response headers are emitted"
    )


class ResolvedOptions(BaseModel):
    """Options after interpolation against one triggering input."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    endpoint: str
    method: str
    content_type: str | None = None
    payload: Any = None
    headers: Any = None
    no_merge: bool = False
    output_mode: str = "clean"
    emit_events: bool = False
    log_requests: bool = False
    upload_key: str = "file"
    xml_root: str = "post"
    timeout: int | None = None
    open_timeout: int | None = None
    event_headers_style: str = "capitalized"


# =============================================================================
# Event Models
# =============================================================================


class FilePointer(BaseModel):
    """Reference to a file produced by an upstream agent."""

    model_config = ConfigDict(extra="allow", frozen=True)

    file: str = Field(description="Path of the file, relative to the provider's root")
    agent_id: int | str | None = Field(default=None, description="Producing agent")


class Event(BaseModel):
    """A triggering input. Read-only to the dispatcher."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    payload: dict[str, Any] = Field(default_factory=dict, description="Event fields")

    @property
    def file_pointer(self) -> FilePointer | None:
        """The file pointer carried in ``payload['file_pointer']``, if any."""
        pointer = self.payload.get("file_pointer")
        if isinstance(pointer, dict) and pointer.get("file"):
            return FilePointer.model_validate(pointer)
        return None
