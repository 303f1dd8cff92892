"""Tests for utils/jsonparse.py and utils/sanitize.py."""

from __future__ import annotations

from recursapp.utils.jsonparse import strip_code_fences, try_parse_json_object
from recursapp.utils.sanitize import sanitize_error


class TestTryParseJsonObject:
    def test_plain_object(self):
        assert try_parse_json_object('{"organism": "DGT"}') == {"organism": "DGT"}

    def test_fenced_object(self):
        raw = '```json\n{"organism": "DGT", "legislation": ["Art. 48 RGC"]}\n```'
        assert try_parse_json_object(raw) == {"organism": "DGT", "legislation": ["Art. 48 RGC"]}

    def test_prose_around_object(self):
        raw = 'Aquí tienes los datos:\n{"fineAmount": "200 €"}\nEspero que sirva.'
        assert try_parse_json_object(raw) == {"fineAmount": "200 €"}

    def test_braces_inside_strings(self):
        raw = '{"rawSummary": "texto con } y { dentro", "organism": "X"}'
        assert try_parse_json_object(raw)["organism"] == "X"

    def test_escaped_quote_inside_string(self):
        raw = '{"rawSummary": "dijo \\"no\\" }", "organism": "Y"}'
        assert try_parse_json_object(raw)["organism"] == "Y"

    def test_first_object_wins(self):
        assert try_parse_json_object('{"a": 1} {"b": 2}') == {"a": 1}

    def test_array_is_not_an_object(self):
        assert try_parse_json_object("[1, 2, 3]") is None

    def test_garbage(self):
        assert try_parse_json_object("no json here") is None
        assert try_parse_json_object("{not: valid}") is None
        assert try_parse_json_object("") is None
        assert try_parse_json_object(None) is None

    def test_truncated_object(self):
        assert try_parse_json_object('{"organism": "DGT", "legis') is None

    def test_strip_code_fences(self):
        assert strip_code_fences("```\nhola\n```") == "hola"


class TestSanitizeError:
    def test_query_key_redacted(self):
        message = "GET https://x/models/m:generateContent?key=AIza123&alt=json failed"
        assert "AIza123" not in sanitize_error(message)
        assert "alt=json" in sanitize_error(message)

    def test_bearer_redacted(self):
        assert "secret" not in sanitize_error("Authorization: Bearer secret-token")

    def test_openrouter_key_redacted(self):
        assert sanitize_error("bad key sk-or-v1-abcdef0123") == "bad key [REDACTED_KEY]"

    def test_truncated(self):
        assert len(sanitize_error("x" * 1000)) == 303

    def test_empty(self):
        assert sanitize_error("") == ""
