"""reqq output - formatting responses and parsed requests for the terminal."""

from __future__ import annotations

import json


def format_output(
    result,  # RequestResult from executor.py
    verbose: bool = False,
    raw: bool = False,
) -> str:
    """Format the request result for CLI output.

    Default layout:
        STATUS: 200
        TIME: 45ms
        BODY:
        {...}

    verbose adds a HEADERS section; raw returns only the body.
    """
    body = result.body

    if raw:
        if isinstance(body, dict | list):
            return json.dumps(body, indent=2)
        return str(body) if body is not None else ""

    lines: list[str] = [
        f"STATUS: {result.status_code}",
        f"TIME: {int(result.elapsed_ms)}ms",
    ]

    if verbose and result.headers:
        lines.append("HEADERS:")
        for key, value in result.headers.items():
            lines.append(f"  {key}: {value}")

    if body is not None and body != "":
        lines.append("BODY:")
        if isinstance(body, dict | list):
            lines.append(json.dumps(body, indent=2))
        else:
            lines.append(str(body))

    return "\n".join(lines)


def format_request(request) -> str:
    """Render a StructuredRequest back into request-file form."""
    lines = [f"{request.method} {request.url}"]
    lines.extend(f"{name}: {value}" for name, value in request.headers)
    text = "\n".join(lines)
    if request.body is not None:
        text = f"{text}\n{request.body}"
    return text
