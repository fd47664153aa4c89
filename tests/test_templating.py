"""Tests for template interpolation and per-cycle option resolution."""

import pytest

from request_agent.errors import TemplateRenderError
from request_agent.templating import JinjaTemplateResolver, resolve_options
from tests.conftest import make_options


@pytest.fixture
def resolver() -> JinjaTemplateResolver:
    return JinjaTemplateResolver()


class TestJinjaTemplateResolver:
    def test_plain_string_untouched(self, resolver) -> None:
        assert resolver.render("no templates here", {}) == "no templates here"

    def test_renders_expression(self, resolver) -> None:
        assert resolver.render("the event contained {{ somekey }}", {"somekey": "x"}) == (
            "the event contained x"
        )

    def test_missing_variable_renders_empty(self, resolver) -> None:
        assert resolver.render("id={{ missing }}", {}) == "id="

    def test_missing_nested_variable_renders_empty(self, resolver) -> None:
        assert resolver.render("name={{ user.name }}", {"other": 1}) == "name="
        assert resolver.render("{{ user['address'].city }}", {}) == ""

    def test_context_key_named_self(self, resolver) -> None:
        context = {"path": "a", "self": "me"}
        assert resolver.render("http://x/{{ path }}/{{ self }}", context) == "http://x/a/me"

    def test_html_not_escaped(self, resolver) -> None:
        assert resolver.render("{{ v }}", {"v": "<a&b>"}) == "<a&b>"

    def test_syntax_error(self, resolver) -> None:
        with pytest.raises(TemplateRenderError, match="Failed to render"):
            resolver.render("{{ unclosed", {})

    def test_sandbox_hides_unsafe_attributes(self, resolver) -> None:
        assert resolver.render("{{ ''.__class__ }}", {}) == ""

    def test_runtime_type_error_is_not_a_render_error(self, resolver) -> None:
        with pytest.raises(TypeError):
            resolver.render("{{ a + 1 }}", {"a": "x"})

    def test_interpolate_walks_structures(self, resolver) -> None:
        value = {"a": "{{ x }}", "b": ["{{ x }}!", 3, None], "c": {"d": True}}
        assert resolver.interpolate(value, {"x": "y"}) == {
            "a": "y",
            "b": ["y!", 3, None],
            "c": {"d": True},
        }


class TestResolveOptions:
    def test_resolves_templated_fields(self, resolver) -> None:
        options = make_options(
            endpoint="http://example.com/{{ path }}",
            method="{{ verb }}",
            content_type="json",
            payload={"key": "{{ value }}"},
            headers={"X-Id": "{{ id }}"},
            emit_events="{{ emit }}",
            timeout="{{ t }}",
        )
        context = {"path": "items", "verb": "PUT", "value": "v", "id": 9, "emit": "true", "t": "5"}

        resolved = resolve_options(options, context, resolver)

        assert resolved.endpoint == "http://example.com/items"
        assert resolved.method == "put"
        assert resolved.payload == {"key": "v"}
        assert resolved.headers == {"X-Id": "9"}
        assert resolved.emit_events is True
        assert resolved.timeout == 5
        assert resolved.open_timeout is None

    def test_defaults(self, resolver) -> None:
        resolved = resolve_options(make_options(), {}, resolver)

        assert resolved.method == "post"
        assert resolved.emit_events is False
        assert resolved.no_merge is False
        assert resolved.log_requests is False
        assert resolved.output_mode == "clean"
        assert resolved.upload_key == "file"
        assert resolved.xml_root == "post"
        assert resolved.event_headers_style == "capitalized"

    def test_blank_method_means_post(self, resolver) -> None:
        resolved = resolve_options(make_options(method="{{ verb }}"), {}, resolver)
        assert resolved.method == "post"

    def test_blank_boolean_means_false(self, resolver) -> None:
        resolved = resolve_options(make_options(no_merge="{{ flag }}"), {}, resolver)
        assert resolved.no_merge is False

    def test_bad_boolean_after_render(self, resolver) -> None:
        options = make_options(log_requests="{{ flag }}")
        with pytest.raises(TemplateRenderError, match="log_requests"):
            resolve_options(options, {"flag": "maybe"}, resolver)

    def test_bad_timeout_after_render(self, resolver) -> None:
        options = make_options(open_timeout="{{ t }}")
        with pytest.raises(TemplateRenderError, match="open_timeout"):
            resolve_options(options, {"t": "soon"}, resolver)

    def test_bad_style_after_render(self, resolver) -> None:
        options = make_options(event_headers_style="{{ style }}")
        with pytest.raises(TemplateRenderError, match="event_headers_style"):
            resolve_options(options, {"style": "loud"}, resolver)

    def test_unsupported_method_passes_through(self, resolver) -> None:
        resolved = resolve_options(make_options(method="{{ verb }}"), {"verb": "HEAD"}, resolver)
        assert resolved.method == "head"
