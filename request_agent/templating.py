"""Template interpolation of agent options.

Option values may contain Jinja2 expressions (``{{ somekey }}``) that are
rendered against the triggering event. Missing variables, and lookups
through them such as ``{{ user.name }}``, render as empty strings so a
partially populated event still produces a request.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from jinja2 import ChainableUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

from request_agent.config_loader import is_blank, parse_boolish
from request_agent.errors import TemplateRenderError
from request_agent.models import EVENT_HEADERS_STYLES, AgentOptions, ResolvedOptions


class TemplateResolver(Protocol):
    """Resolves a template-bearing value against a context."""

    def interpolate(self, value: Any, context: Mapping[str, Any]) -> Any:
        ...


class JinjaTemplateResolver:
    """Renders strings with a sandboxed Jinja2 environment.

    Maps and lists are walked recursively; non-string scalars pass through
    untouched. Autoescaping is off because the output is URLs, headers and
    request bodies, not HTML.
    """

    def __init__(self) -> None:
        self._env = SandboxedEnvironment(autoescape=False, undefined=ChainableUndefined)

    def render(self, template_str: str, context: Mapping[str, Any]) -> str:
        # No template markers: nothing to render
        if "{{" not in template_str and "{%" not in template_str:
            return template_str

        try:
            template = self._env.from_string(template_str)
            return template.render(dict(context))
        except TemplateError as e:
            raise TemplateRenderError(f"Failed to render template '{template_str}': {e}") from e

    def interpolate(self, value: Any, context: Mapping[str, Any]) -> Any:
        if isinstance(value, str):
            return self.render(value, context)
        elif isinstance(value, Mapping):
            return {k: self.interpolate(v, context) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.interpolate(item, context) for item in value]
        return value


def resolve_options(
    options: AgentOptions,
    context: Mapping[str, Any],
    resolver: TemplateResolver,
) -> ResolvedOptions:
    """Interpolate every templated option against one triggering input.

    Booleans and timeouts are coerced after rendering, so ``"{{ flag }}"``
    may resolve to ``"true"``. A boolean that renders blank falls back to
    false.

    Raises:
        TemplateRenderError: If a template fails to render or a rendered
            value has the wrong shape.
    """

    def resolve(value: Any) -> Any:
        return resolver.interpolate(value, context)

    method = resolve(options.method)
    return ResolvedOptions(
        endpoint=str(resolve(options.endpoint)),
        method="post" if is_blank(method) else str(method).strip().lower(),
        content_type=_optional_str(resolve(options.content_type)),
        payload=resolve(options.payload),
        headers=resolve(options.headers),
        no_merge=_resolve_bool("no_merge", resolve(options.no_merge)),
        output_mode=str(resolve(options.output_mode)).strip(),
        emit_events=_resolve_bool("emit_events", resolve(options.emit_events)),
        log_requests=_resolve_bool("log_requests", resolve(options.log_requests)),
        upload_key=_optional_str(resolve(options.upload_key)) or "file",
        xml_root=_optional_str(resolve(options.xml_root)) or "post",
        timeout=_resolve_int("timeout", resolve(options.timeout)),
        open_timeout=_resolve_int("open_timeout", resolve(options.open_timeout)),
        event_headers_style=_resolve_style(resolve(options.event_headers_style)),
    )


def _resolve_style(value: Any) -> str:
    style = _optional_str(value) or "capitalized"
    if style not in EVENT_HEADERS_STYLES:
        raise TemplateRenderError(
            f"event_headers_style must be one of {', '.join(EVENT_HEADERS_STYLES)}, got {style!r}"
        )
    return style


def _optional_str(value: Any) -> str | None:
    if is_blank(value):
        return None
    return str(value).strip()


def _resolve_bool(name: str, value: Any) -> bool:
    if is_blank(value):
        return False
    try:
        return parse_boolish(value)
    except ValueError as e:
        raise TemplateRenderError(f"{name} must be true or false: {e}") from e


def _resolve_int(name: str, value: Any) -> int | None:
    if is_blank(value):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise TemplateRenderError(f"{name} must be an integer, got {value!r}") from e
