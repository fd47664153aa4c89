"""Dispatcher - Runs one handling cycle per triggering input.

A cycle resolves the templated options against the input, builds the
headers and the outgoing request, sends it through the transport and maps
the outcome into an output event. Inputs are processed one at a time in the
order given. A failed cycle is logged (and emitted as an error event when
emission is enabled) and never stops the rest of the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable

from request_agent.config_loader import is_blank, split_event_headers
from request_agent.errors import (
    EncodingError,
    TemplateRenderError,
    TransportError,
    UnsupportedMethodError,
)
from request_agent.files import FileProvider
from request_agent.headers import build_headers
from request_agent.logging_config import LoggingSink
from request_agent.models import AgentOptions, Event, ResolvedOptions
from request_agent.request_builder import build_request
from request_agent.response_mapper import error_record, map_error, map_response, output_base
from request_agent.templating import JinjaTemplateResolver, TemplateResolver, resolve_options
from request_agent.transport import Transport

__all__ = ["Dispatcher"]

logger = logging.getLogger(__name__)

EmitFn = Callable[[dict[str, Any]], None]
LogFn = Callable[[dict[str, Any]], None]


class Dispatcher:
    """Sends one HTTP request per triggering input.

    Usage:
        with HttpxTransport() as transport:
            dispatcher = Dispatcher(options, transport, emit=events.append)
            dispatcher.on_events(incoming)   # upstream events
            dispatcher.on_schedule()         # periodic check, no event
    """

    def __init__(
        self,
        options: AgentOptions,
        transport: Transport,
        emit: EmitFn,
        log: LogFn | None = None,
        resolver: TemplateResolver | None = None,
        file_provider: FileProvider | None = None,
        template_globals: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            options: Validated agent options.
            transport: Executes the HTTP requests.
            emit: Receives each output event payload.
            log: Receives request diagnostics and failure records.
            resolver: Interpolates templated options (Jinja2 by default).
            file_provider: Opens files referenced by event file pointers.
            template_globals: Variables available to every template; event
                fields shadow them.
        """
        self._options = options
        self._transport = transport
        self._emit = emit
        self._log = log or LoggingSink()
        self._resolver = resolver or JinjaTemplateResolver()
        self._file_provider = file_provider
        self._template_globals = dict(template_globals or {})
        self._event_headers = split_event_headers(options.event_headers)

    def on_events(self, events: Iterable[Event]) -> None:
        """Handle received events, strictly in order."""
        for event in events:
            self._run_cycle(event)

    def on_schedule(self) -> None:
        """Handle a scheduled check: one cycle with no triggering event."""
        self._run_cycle(None)

    def _context_for(self, event: Event | None) -> dict[str, Any]:
        context = dict(self._template_globals)
        if event is not None:
            context.update(event.payload)
        return context

    def _run_cycle(self, event: Event | None) -> None:
        try:
            resolved = resolve_options(self._options, self._context_for(event), self._resolver)
        except TemplateRenderError as e:
            # Without resolved options there is no endpoint or emit flag to act on.
            logger.error(f"Cannot resolve options: {e}")
            self._log(error_record(e, self._options.endpoint, self._options.payload))
            return
        except Exception as e:  # noqa: BLE001
            self._log_unexpected(e, self._options.endpoint)
            return

        try:
            self._handle(resolved, event)
        except Exception as e:  # noqa: BLE001
            self._log_unexpected(e, resolved.endpoint)

    def _log_unexpected(self, error: Exception, endpoint: str) -> None:
        # Failures with no mapping of their own stay inside their cycle.
        logger.error(f"Unexpected error in handling cycle: {error}", exc_info=True)
        self._log(error_record(error, endpoint, self._options.payload))

    def _working_data(self, resolved: ResolvedOptions, event: Event | None) -> Any:
        """Payload to send: resolved payload, overlaid on the event unless no_merge."""
        payload = {} if is_blank(resolved.payload) else resolved.payload
        if event is None or resolved.no_merge:
            return payload
        if not isinstance(payload, Mapping):
            raise EncodingError(
                "payload must be a hash to be merged with the incoming event; "
                "set no_merge to true to send it as-is"
            )
        return {**event.payload, **payload}

    def _handle(self, resolved: ResolvedOptions, event: Event | None) -> None:
        endpoint = resolved.endpoint
        base = output_base(resolved.output_mode, event)

        try:
            data = self._working_data(resolved, event)
            try:
                headers = build_headers(resolved.headers)
            except TypeError as e:
                raise EncodingError(str(e)) from e
            request = build_request(
                resolved.method, data, resolved, headers, event, self._file_provider
            )
        except UnsupportedMethodError as e:
            logger.error(f"Skipping cycle: {e}")
            self._log(error_record(e, endpoint, self._options.payload))
            return
        except EncodingError as e:
            self._handle_error(e, base, endpoint, resolved)
            return

        if resolved.log_requests:
            self._log({
                "method": request.method,
                "url": request.url,
                "body": request.body,
                "headers": request.headers,
            })

        try:
            response = self._transport.run(
                request.method,
                request.url,
                request.body,
                request.headers,
                params=request.params,
                timeout=resolved.timeout,
                open_timeout=resolved.open_timeout,
            )
        except (TransportError, EncodingError) as e:
            # The built URL, query string included, identifies the failed request.
            self._handle_error(e, base, request.url, resolved)
            return
        finally:
            request.close()

        logger.debug(f"{request.method.upper()} {request.url} -> {response.status}")

        if resolved.emit_events:
            self._emit(map_response(
                response,
                base,
                headers_style=resolved.event_headers_style,
                event_headers=self._event_headers,
                headers_key=self._options.event_headers_key,
            ))

    def _handle_error(
        self,
        error: TransportError | EncodingError,
        base: dict[str, Any],
        endpoint: str,
        resolved: ResolvedOptions,
    ) -> None:
        # The raw payload option is reported, never its interpolated value.
        payload_options = self._options.payload
        self._log(error_record(error, endpoint, payload_options))

        if resolved.emit_events:
            self._emit(map_error(error, base, endpoint, payload_options))
