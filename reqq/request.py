"""reqq request files - grammar, parser state machine, execution."""

from __future__ import annotations

import contextlib
import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from reqq.core import (
    DEFAULT_TIMEOUT,
    ENVS_DIRNAME,
    REQUEST_EXT,
    EnvConfig,
    merge_variables,
    render_template,
)
from reqq.errors import (
    HeaderNameError,
    HeaderValueError,
    IoError,
    MalformedRequestLine,
    MethodError,
    ParseError,
    ReqqError,
    UrlError,
)

logger = logging.getLogger(__name__)

# RFC 7230 token: method names and header field names
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_HEADER_LINE_RE = re.compile(r"[A-Za-z0-9-]+:\s*.+")
_HEADER_VALUE_RE = re.compile(r"[^\x00-\x08\x0a-\x1f\x7f]*")


@dataclass(frozen=True)
class StructuredRequest:
    """A fully parsed request, ready to send."""

    method: str
    url: str
    headers: tuple[tuple[str, str], ...] = ()
    body: str | None = None


class ParserState(enum.Enum):
    REQUEST_LINE = "request line"
    HEADERS = "headers"
    BODY = "body"


def split_lines(text: str) -> list[str]:
    """Split on \\n, dropping a trailing \\r per line and a final empty line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def parse_url(raw: str) -> str:
    """Validate an absolute URL and return its normalized form.

    Normalization is what requests applies when preparing a request, so a
    bare authority gains a trailing slash: https://example.com -> https://example.com/
    """
    prepared = requests.PreparedRequest()
    try:
        prepared.prepare_url(raw, None)
    except (requests.exceptions.RequestException, UnicodeError) as e:
        raise UrlError(f"Invalid URL '{raw}': {e}") from e
    url = prepared.url
    scheme, sep, rest = url.partition("://")
    if not sep or not scheme or not rest or rest.startswith("/"):
        raise UrlError(f"Invalid URL '{raw}': expected an absolute URL")
    return url


class RequestParser:
    """Three-zone parser: request line, then headers, then body.

    Feed lines one at a time. Transitions only move forward; the first line
    that is not a header moves the parser into BODY and seeds the body.
    """

    def __init__(self):
        self.state = ParserState.REQUEST_LINE
        self.method: str | None = None
        self.url: str | None = None
        self.headers: list[tuple[str, str]] = []
        self.body: str | None = None

    def feed(self, line: str) -> None:
        if self.state is ParserState.REQUEST_LINE:
            self._request_line(line)
            self.state = ParserState.HEADERS
        elif self.state is ParserState.HEADERS:
            if _HEADER_LINE_RE.fullmatch(line):
                self._header(line)
            else:
                self.body = line
                self.state = ParserState.BODY
        else:
            self.body = f"{self.body}\n{line}"

    def finish(self) -> StructuredRequest:
        if self.state is ParserState.REQUEST_LINE:
            raise MalformedRequestLine("Request file is empty")
        return StructuredRequest(
            method=self.method,
            url=self.url,
            headers=tuple(self.headers),
            body=self.body,
        )

    def _request_line(self, line: str) -> None:
        if " " not in line:
            raise MalformedRequestLine(f"Expected '<METHOD> <URL>', got '{line}'")
        method, url = line.split(" ", 1)
        if not _TOKEN_RE.fullmatch(method):
            raise MethodError(f"Invalid HTTP method '{method}'")
        self.method = method
        self.url = parse_url(url)

    def _header(self, line: str) -> None:
        name, sep, value = line.partition(": ")
        if not sep or not _TOKEN_RE.fullmatch(name):
            raise HeaderNameError(f"Invalid header name in '{line}'")
        if value[:1].isspace():
            raise HeaderValueError(f"Value for header '{name}' starts with whitespace")
        if not _HEADER_VALUE_RE.fullmatch(value):
            raise HeaderValueError(f"Invalid value for header '{name}'")
        self.headers.append((name, value))


def parse_request(text: str) -> StructuredRequest:
    """Parse expanded request-file text into a StructuredRequest."""
    parser = RequestParser()
    try:
        for line in split_lines(text):
            parser.feed(line)
        request = parser.finish()
    except ParseError as e:
        if e.stage is None:
            e.stage = f"parsing {parser.state.value}"
        raise
    logger.debug(
        "parsed %s %s (%d headers, body: %s)",
        request.method,
        request.url,
        len(request.headers),
        "none" if request.body is None else f"{len(request.body)} chars",
    )
    return request


@contextlib.contextmanager
def stage(name: str):
    """Record the execution stage on any ReqqError raised inside the block."""
    try:
        yield
    except ReqqError as e:
        if e.stage is None:
            e.stage = name
        raise


class RequestFile:
    """A request file on disk.

    The raw text is read once and never modified; each prepare/execute call
    renders a fresh copy of it against that call's variables.
    """

    def __init__(self, path: str | Path, text: str | None = None):
        self.path = Path(path)
        self._text = text
        self.parsed: StructuredRequest | None = None

    def __repr__(self) -> str:
        return f"RequestFile({str(self.path)!r})"

    def name(self, base_dir: str | Path) -> str:
        """Request name: path relative to base_dir without the extension."""
        name = self.path.as_posix().removeprefix(Path(base_dir).as_posix())
        return name.lstrip("/").removesuffix(REQUEST_EXT)

    def text(self) -> str:
        """Read the file once and return the cached text."""
        if self._text is None:
            try:
                self._text = self.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise IoError(f"Cannot read request file {self.path}: {e}") from e
            logger.debug("read request file %s", self.path)
        return self._text

    def prepare(
        self,
        env: EnvConfig | None = None,
        extra_args: dict[str, Any] | None = None,
        base: dict[str, Any] | None = None,
    ) -> StructuredRequest:
        """Render and parse the request without sending it."""
        with stage("loading request file"):
            text = self.text()
        with stage("loading environment"):
            variables = merge_variables(env, extra_args, base)
        with stage("rendering template"):
            expanded = render_template(text, variables)
        self.parsed = parse_request(expanded)
        return self.parsed

    def execute(
        self,
        env: EnvConfig | None = None,
        extra_args: dict[str, Any] | None = None,
        transport=None,
        base: dict[str, Any] | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """Prepare the request and send it. Returns a RequestResult."""
        from reqq.executor import default_transport

        request = self.prepare(env, extra_args, base)
        transport = transport or default_transport()
        with stage("sending request"):
            return transport.send(request, timeout=timeout)


def list_requests(request_dir: str | Path) -> list[str]:
    """Names of every request file under request_dir, sorted."""
    rdir = Path(request_dir)
    if not rdir.is_dir():
        return []
    names = []
    for f in rdir.rglob(f"*{REQUEST_EXT}"):
        rel = f.relative_to(rdir)
        if rel.parts[0] == ENVS_DIRNAME or not f.is_file():
            continue
        names.append(RequestFile(f).name(rdir))
    return sorted(names)


def find_request(name: str, request_dir: str | Path) -> RequestFile:
    """Resolve a request name (or a direct file path) to a RequestFile."""
    candidate = Path(request_dir) / f"{name}{REQUEST_EXT}"
    if candidate.is_file():
        return RequestFile(candidate)
    direct = Path(name)
    if direct.suffix == REQUEST_EXT and direct.is_file():
        return RequestFile(direct)
    raise IoError(
        f"Request '{name}' not found. Searched:\n"
        f"  - {candidate}\n"
        f"Run 'reqq list' to see available requests.",
    )
