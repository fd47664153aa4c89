"""Tests for success and failure output-event mapping."""

from request_agent.errors import EncodingError, TransportError
from request_agent.response_mapper import (
    DEFAULT_ERROR_STATUS,
    error_record,
    error_status,
    map_error,
    map_response,
    output_base,
)
from request_agent.transport import TransportResponse
from tests.conftest import make_event


HTML_RESPONSE = TransportResponse(
    status=200,
    headers={"Content-Type": "text/html"},
    body="<html></html>",
)


class TestOutputBase:
    def test_clean_starts_empty(self) -> None:
        assert output_base("clean", make_event(a=1)) == {}

    def test_merge_copies_event(self) -> None:
        event = make_event(a=1)
        base = output_base("merge", event)
        assert base == {"a": 1}
        base["a"] = 2
        assert event.payload == {"a": 1}

    def test_merge_without_event(self) -> None:
        assert output_base("merge", None) == {}


class TestMapResponse:
    def test_clean_round_trip(self) -> None:
        assert map_response(HTML_RESPONSE, {}) == {
            "status": 200,
            "headers": {"Content-Type": "text/html"},
            "body": "<html></html>",
        }

    def test_outcome_keys_win_over_base(self) -> None:
        base = {"status": "stale", "body": "old", "other": "kept"}

        payload = map_response(HTML_RESPONSE, base)

        assert payload["status"] == 200
        assert payload["body"] == "<html></html>"
        assert payload["other"] == "kept"
        assert base == {"status": "stale", "body": "old", "other": "kept"}

    def test_headers_style_allowlist_and_key(self) -> None:
        response = TransportResponse(
            status=200, headers={"Content-Type": "text/html", "X-Trace": "t"}, body=""
        )

        payload = map_response(
            response,
            {},
            headers_style="snakecased",
            event_headers=["x-trace"],
            headers_key="response_headers",
        )

        assert payload == {"status": 200, "body": "", "response_headers": {"x_trace": "t"}}


class TestErrorMapping:
    def test_status_defaults_to_500(self) -> None:
        assert error_status(TransportError("boom")) == DEFAULT_ERROR_STATUS == 500
        assert error_status(EncodingError("bad")) == 500

    def test_status_from_error(self) -> None:
        assert error_status(TransportError("gone", response_status=410)) == 410

    def test_error_record(self) -> None:
        record = error_record(TransportError("boom"), "http://x", {"token": "{{ secret }}"})
        assert record == {
            "error_message": "boom",
            "status_code": 500,
            "endpoint": "http://x",
            "payload_options": {"token": "{{ secret }}"},
        }

    def test_map_error_merges_base(self) -> None:
        payload = map_error(
            TransportError("timed out"),
            {"incoming": True, "status": 200},
            "http://x",
            "{{ body }}",
        )
        assert payload == {
            "incoming": True,
            "status": 500,
            "error_message": "timed out",
            "endpoint": "http://x",
            "payload_options": "{{ body }}",
        }
