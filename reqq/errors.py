"""reqq errors - exception hierarchy for loading, rendering, parsing and sending."""


class ReqqError(Exception):
    """Base exception for all reqq errors.

    Attributes:
        message: Error message
        stage: Execution stage that produced the error (optional), e.g.
            "parsing headers". Set by the request orchestrator.
    """

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"while {self.stage}: {self.message}"
        return self.message


class IoError(ReqqError):
    """A request, environment or config file is missing or unreadable."""


class FormatError(ReqqError):
    """Environment content is not a JSON object."""


class TemplateError(ReqqError):
    """Malformed template text or an unbound placeholder."""


class ParseError(ReqqError):
    """Expanded request text does not follow the request-file grammar."""


class MalformedRequestLine(ParseError):
    """First line is missing or has no space between method and URL."""


class MethodError(ParseError):
    """Method is not a valid HTTP method token."""


class UrlError(ParseError):
    """URL is not a well-formed absolute URL."""


class HeaderNameError(ParseError):
    """Header name is not a valid header token."""


class HeaderValueError(ParseError):
    """Header value contains characters not allowed in a header."""


class TransportError(ReqqError):
    """The HTTP client failed to send the request or read the response."""
