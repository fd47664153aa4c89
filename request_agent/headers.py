"""Header building for outgoing requests and key normalization for responses."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Callable

from request_agent.config_loader import is_blank


def build_headers(resolved_headers: Any) -> dict[str, str]:
    """Build the outbound header map from the interpolated ``headers`` option.

    Blank resolves to no headers. Values are stringified; content-type
    defaults are layered on later by the request builder and never override
    what is set here.
    """
    if is_blank(resolved_headers):
        return {}
    if not isinstance(resolved_headers, Mapping):
        raise TypeError(f"headers must be a mapping, got {type(resolved_headers).__name__}")
    return {str(name): "" if value is None else str(value) for name, value in resolved_headers.items()}


def has_header(headers: Mapping[str, str], name: str) -> bool:
    """Case-insensitive header presence check."""
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def set_default_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header only if it is not already present (case-insensitive)."""
    if not has_header(headers, name):
        headers[name] = value


def _capitalize(name: str) -> str:
    # Capitalize each dash-separated segment: "content-TYPE" -> "Content-Type"
    return "-".join(segment.capitalize() for segment in name.split("-"))


def _downcase(name: str) -> str:
    return name.lower()


def _snakecase(name: str) -> str:
    return name.lower().replace("-", "_")


def _raw(name: str) -> str:
    return name


_NORMALIZERS: dict[str, Callable[[str], str]] = {
    "capitalized": _capitalize,
    "downcased": _downcase,
    "snakecased": _snakecase,
    "raw": _raw,
}


def header_normalizer(style: str | None) -> Callable[[str], str]:
    """Return the key normalizer for an event_headers_style value.

    Raises:
        ValueError: For an unknown style.
    """
    if not style:
        return _capitalize
    try:
        return _NORMALIZERS[style]
    except KeyError:
        raise ValueError(
            "if provided, event_headers_style must be 'capitalized', 'downcased', "
            "'snakecased' or 'raw'"
        ) from None


def normalize_response_headers(
    raw_headers: Mapping[str, str],
    style: str | None = "capitalized",
    allowlist: Iterable[str] | None = None,
) -> dict[str, str]:
    """Filter response headers to an allowlist and rewrite their keys.

    Args:
        raw_headers: Headers as returned by the transport.
        style: One of capitalized (default), downcased, snakecased, raw.
        allowlist: Header names to keep, matched case-insensitively. None
            keeps everything.

    Returns:
        New dict with normalized keys. Applying the same style twice yields
        the same result as applying it once.
    """
    normalize = header_normalizer(style)
    wanted = {name.lower() for name in allowlist} if allowlist is not None else None

    result: dict[str, str] = {}
    for name, value in raw_headers.items():
        if wanted is not None and name.lower() not in wanted:
            continue
        result[normalize(name)] = value
    return result
