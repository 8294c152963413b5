"""Tests for RequestFile: naming, loading, rendering and execution."""

from unittest.mock import MagicMock

import pytest

from reqq.core import EnvConfig
from reqq.errors import FormatError, IoError, TemplateError, TransportError, UrlError
from reqq.request import RequestFile, StructuredRequest, find_request, list_requests
from tests.conftest import make_request_result, write_request

ENV_TEXT = '{"headerVal": "lolwat", "shwat": 5 }'


def _request(text):
    return RequestFile(".reqq/nested/example-request.reqq", text=text)


# ── Naming ───────────────────────────────────────────────────────────────


class TestName:
    def test_nested(self):
        req = RequestFile(".reqq/nested/example-request.reqq")
        assert req.name(".reqq") == "nested/example-request"

    def test_base_dir_with_trailing_slash(self):
        req = RequestFile(".reqq/users/list.reqq")
        assert req.name(".reqq/") == "users/list"

    def test_absolute(self, tmp_path):
        req = RequestFile(tmp_path / ".reqq" / "health.reqq")
        assert req.name(tmp_path / ".reqq") == "health"

    def test_base_not_a_prefix(self):
        req = RequestFile("other/health.reqq")
        assert req.name(".reqq") == "other/health"


# ── Loading ──────────────────────────────────────────────────────────────


class TestText:
    def test_reads_once(self, tmp_path):
        path = write_request(tmp_path, "health", "GET https://example.com")
        req = RequestFile(path)
        first = req.text()
        path.unlink()
        assert req.text() == first == "GET https://example.com"

    def test_missing_file(self, tmp_path):
        req = RequestFile(tmp_path / "missing.reqq")
        with pytest.raises(IoError) as exc:
            req.prepare()
        assert exc.value.stage == "loading request file"


# ── Rendering + parsing ──────────────────────────────────────────────────


class TestPrepare:
    def test_with_env(self):
        req = _request(
            "POST https://example.com\n"
            "x-example-header: {{ headerVal }}\n"
            "\n"
            "request {{ shwat }} content",
        )
        parsed = req.prepare(EnvConfig("", text=ENV_TEXT), {})
        assert parsed.method == "POST"
        assert parsed.url == "https://example.com/"
        assert parsed.headers == (("x-example-header", "lolwat"),)
        assert parsed.body == "\nrequest 5 content"
        assert req.parsed == parsed

    def test_with_env_and_extra_args(self):
        req = _request(
            "POST https://example.com\n"
            "x-example-header: {{ headerVal }}\n"
            "\n"
            "request {{ shwat }} {{ asdf }} content",
        )
        parsed = req.prepare(EnvConfig("", text=ENV_TEXT), {"asdf": "thing"})
        assert parsed.headers == (("x-example-header", "lolwat"),)
        assert parsed.body == "\nrequest 5 thing content"

    def test_with_only_extra_args(self):
        req = _request(
            "POST https://example.com\nx-example-header: lolwat\n\nrequest {{ asdf }} content",
        )
        parsed = req.prepare(None, {"asdf": "thing"})
        assert parsed.headers == (("x-example-header", "lolwat"),)
        assert parsed.body == "\nrequest thing content"

    def test_extra_arg_overrides_env(self):
        req = _request("GET https://example.com/{{ shwat }}")
        parsed = req.prepare(EnvConfig("", text=ENV_TEXT), {"shwat": "override"})
        assert parsed.url == "https://example.com/override"

    def test_rendering_does_not_touch_source(self):
        req = _request("GET https://example.com/{{ id }}")
        assert req.prepare(None, {"id": 1}).url == "https://example.com/1"
        assert req.prepare(None, {"id": 2}).url == "https://example.com/2"
        assert req.text() == "GET https://example.com/{{ id }}"

    def test_placeholder_free_text_parses_the_same(self):
        text = "POST https://example.com\nX-A: 1\n\nbody"
        assert _request(text).prepare(None, {"unused": 1}) == _request(text).prepare()

    def test_url_from_variables(self):
        req = _request("GET {{ base_url }}/users")
        parsed = req.prepare(None, {}, base={"base_url": "http://localhost:3000"})
        assert parsed.url == "http://localhost:3000/users"

    def test_unbound_placeholder(self):
        req = _request("GET https://example.com/{{ missing }}")
        with pytest.raises(TemplateError) as exc:
            req.prepare()
        assert str(exc.value).startswith("while rendering template: ")

    def test_bad_env_names_stage(self):
        req = _request("GET https://example.com")
        with pytest.raises(FormatError) as exc:
            req.prepare(EnvConfig("", text="[]"))
        assert exc.value.stage == "loading environment"

    def test_parse_failure_keeps_previous_result(self):
        req = _request("GET {{ url }}")
        first = req.prepare(None, {"url": "https://example.com"})
        with pytest.raises(UrlError):
            req.prepare(None, {"url": "/relative"})
        assert req.parsed == first


# ── Execution ────────────────────────────────────────────────────────────


class TestExecute:
    def test_sends_parsed_request(self):
        transport = MagicMock()
        transport.send.return_value = make_request_result(body={"ok": True})
        req = _request("POST https://example.com\nX-A: {{ a }}\n\nhi")

        result = req.execute(None, {"a": "1"}, transport=transport, timeout=5)

        assert result.body == {"ok": True}
        transport.send.assert_called_once_with(
            StructuredRequest(
                method="POST",
                url="https://example.com/",
                headers=(("X-A", "1"),),
                body="\nhi",
            ),
            timeout=5,
        )

    def test_transport_error_names_stage(self):
        transport = MagicMock()
        transport.send.side_effect = TransportError("Connection error: refused")
        req = _request("GET https://example.com")
        with pytest.raises(TransportError) as exc:
            req.execute(transport=transport)
        assert str(exc.value) == "while sending request: Connection error: refused"

    def test_parse_failure_skips_send(self):
        transport = MagicMock()
        with pytest.raises(UrlError):
            _request("GET nowhere").execute(transport=transport)
        transport.send.assert_not_called()


# ── Listing and lookup ───────────────────────────────────────────────────


class TestListRequests:
    def test_names_sorted_and_nested(self, tmp_path):
        rdir = tmp_path / ".reqq"
        write_request(rdir, "users/list", "GET https://example.com")
        write_request(rdir, "health", "GET https://example.com")
        write_request(rdir, "users/admin/create", "POST https://example.com")
        assert list_requests(rdir) == ["health", "users/admin/create", "users/list"]

    def test_skips_envs_and_other_files(self, tmp_path):
        rdir = tmp_path / ".reqq"
        write_request(rdir, "health", "GET https://example.com")
        write_request(rdir, "envs/odd", "GET https://example.com")
        (rdir / "README.md").write_text("notes")
        assert list_requests(rdir) == ["health"]

    def test_missing_dir(self, tmp_path):
        assert list_requests(tmp_path / ".reqq") == []

    def test_relative_dir(self, tmp_project):
        write_request(tmp_project / ".reqq", "a/b", "GET https://example.com")
        assert list_requests(".reqq") == ["a/b"]


class TestFindRequest:
    def test_by_name(self, tmp_path):
        rdir = tmp_path / ".reqq"
        path = write_request(rdir, "users/list", "GET https://example.com")
        assert find_request("users/list", rdir).path == path

    def test_by_path(self, tmp_path):
        path = write_request(tmp_path, "loose", "GET https://example.com")
        assert find_request(str(path), tmp_path / ".reqq").path == path

    def test_missing(self, tmp_path):
        with pytest.raises(IoError, match="Request 'nope' not found"):
            find_request("nope", tmp_path / ".reqq")
