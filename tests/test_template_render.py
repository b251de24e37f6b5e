"""Tests for the Go-style template renderer."""

import pytest

from errors import TemplateError
from templating import render

CTX = {
    "Version": "v1.2.3",
    "Provider": {
        "Scheme": "github",
        "Host": "cluttrdev",
        "Path": "prebuilt",
        "Query": {"asset": "prebuilt_{{ .Version }}_linux-amd64.tar.gz"},
    },
}


class TestFields:
    """Field chains and literal text."""

    def test_plain_text_is_unchanged(self):
        assert render("https://example.com/x", CTX) == "https://example.com/x"

    def test_empty_template(self):
        assert render("", CTX) == ""

    def test_field_chain(self):
        assert render("{{ .Provider.Host }}/{{ .Provider.Path }}", CTX) == "cluttrdev/prebuilt"

    def test_root_variable(self):
        assert render("{{ $.Version }}", CTX) == "v1.2.3"

    def test_missing_key_is_an_error(self):
        with pytest.raises(TemplateError) as exc_info:
            render("{{ .Nope }}", CTX)
        assert 'no entry for key "Nope"' in str(exc_info.value)
        assert exc_info.value.template == "{{ .Nope }}"

    def test_attribute_access_on_objects(self):
        class Data:
            Version = "1.0.0"

        assert render("{{ .Version }}", Data()) == "1.0.0"


class TestTrimming:
    """Whitespace trimming markers and comments."""

    def test_trim_markers(self):
        assert render("a  {{- .Version -}}  b", CTX) == "av1.2.3b"

    def test_comment_is_dropped(self):
        assert render("a{{/* note */}}b", CTX) == "ab"

    def test_trimmed_comment(self):
        assert render("a {{- /* note */ -}} b", CTX) == "ab"


class TestFunctions:
    """Built-in functions, literals and pipelines."""

    def test_tpl_renders_nested_template(self):
        out = render("{{ tpl .Provider.Query.asset . }}", CTX)
        assert out == "prebuilt_v1.2.3_linux-amd64.tar.gz"

    def test_trim_prefix(self):
        assert render('{{ trimPrefix "v" .Version }}', CTX) == "1.2.3"

    def test_trim_prefix_in_pipeline(self):
        assert render('{{ .Version | trimPrefix "v" }}', CTX) == "1.2.3"

    def test_trim_prefix_without_match(self):
        assert render('{{ trimPrefix "x" .Version }}', CTX) == "v1.2.3"

    def test_urlquery_with_sub_pipeline(self):
        out = render('{{ urlquery (print .Provider.Host "/" .Provider.Path) }}', CTX)
        assert out == "cluttrdev%2Fprebuilt"

    def test_print_separates_non_string_operands(self):
        assert render("{{ print 1 2 }}", CTX) == "1 2"
        assert render('{{ print "a" "b" }}', CTX) == "ab"

    def test_raw_string_and_literals(self):
        assert render("{{ `raw` }}-{{ true }}-{{ 42 }}", CTX) == "raw-true-42"

    def test_unknown_function(self):
        with pytest.raises(TemplateError, match="not defined"):
            render("{{ upper .Version }}", CTX)

    def test_wrong_arity(self):
        with pytest.raises(TemplateError, match="wrong number of args"):
            render('{{ trimPrefix "v" }}', CTX)

    def test_nested_tpl_error_keeps_inner_template(self):
        ctx = {"Provider": {"Query": {"asset": "{{ .Missing }}"}}}
        with pytest.raises(TemplateError) as exc_info:
            render("{{ tpl .Provider.Query.asset . }}", ctx)
        assert exc_info.value.template == "{{ .Missing }}"


class TestParseErrors:
    """Malformed templates."""

    @pytest.mark.parametrize("template", [
        "{{ .Version",
        "{{ }}",
        "{{ if .Version }}x{{ end }}",
        '{{ "unterminated }}',
        "{{ (print .Version }}",
        "{{ .Version | }}",
    ])
    def test_rejected(self, template):
        with pytest.raises(TemplateError) as exc_info:
            render(template, CTX)
        assert exc_info.value.template == template
