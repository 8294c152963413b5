"""reqq CLI - run HTTP requests stored as plain text files."""

import logging
import sys

import click

TOOL_HELP = """\
reqq — HTTP requests as plain text files.

Store requests under .reqq/ in your project and run them by name.

\b
USAGE
─────
  reqq list                        List available requests
  reqq --list-envs                 List available environments
  reqq users/list                  Run .reqq/users/list.reqq
  reqq -e dev users/create -a name=John -a admin=true

\b
REQUEST FILE FORMAT (.reqq/**/*.reqq)
─────────────────────────────────────
  \b
  POST https://api.example.com/users
  Content-Type: application/json
  Authorization: Bearer {{ token }}

  {"name": "{{ name }}", "admin": {{ admin }}}

  Line 1 is METHOD and URL separated by a single space. Header lines
  (Name: value) follow directly. The first line that is not a header
  starts the body; everything after it is sent verbatim.

\b
PLACEHOLDERS
────────────
  \b
  {{ name }}         Value from -a or the environment
  {{ user.id }}      Nested object key / array index
  {{ env.VAR }}      Process environment or env_file value
  \\{{               Literal {{

  A placeholder with no value is an error.

\b
VARIABLE PRECEDENCE
───────────────────
  \b
  1. -a key=value      (CLI flag — highest priority)
  2. -e environment    (.reqq/envs/<name>.json)
  3. {{ env.VAR }}     (process environment / .env file — lowest)

  -a values are parsed as JSON when valid: -a n=5 gives a number,
  -a name=John gives a string.

\b
OUTPUT FORMAT
─────────────
  STATUS: 200
  TIME: 45ms
  BODY:
  {"id": 1}

  --verbose adds response headers, --raw prints the body only,
  --dry-run prints the expanded request without sending it.

\b
CONFIG FILE FORMAT (.reqq.yaml)
───────────────────────────────
  Config resolution order:
    1. -c/--config flag (explicit path)
    2. .reqq.yaml / .reqq.yml / reqq.yaml / reqq.yml in CWD
    3. ~/.config/reqq/config.yaml (global)

  \b
  defaults:
    dir: .reqq                      # request directory
    env: dev                        # default environment
    env_file: .env                  # values for {{ env.VAR }}
    timeout: 30                     # seconds
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.argument("request_name", metavar="REQUEST", required=False)
@click.option(
    "-e",
    "--env",
    "env_name",
    default=None,
    help="Environment name (.reqq/envs/<name>.json) or path to a JSON file.",
)
@click.option(
    "-a",
    "--arg",
    "arg_specs",
    multiple=True,
    help="Extra argument as key=value. Overrides environment values. Repeatable.",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqq.yaml in CWD, then ~/.config/reqq/config.yaml.",
)
@click.option(
    "-d",
    "--dir",
    "dir_override",
    default=None,
    help="Request directory. Default: from config, then ./.reqq.",
)
@click.option(
    "--timeout",
    type=int,
    default=None,
    help="Request timeout in seconds. Default: 30.",
)
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Include response headers in output.",
)
@click.option(
    "--raw",
    is_flag=True,
    default=False,
    help="Output the response body only. Useful for piping.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the expanded request instead of sending it.",
)
@click.option(
    "--list-envs",
    "show_list_envs",
    is_flag=True,
    default=False,
    help="List available environments.",
)
@click.option("--debug", is_flag=True, default=False, help="Log debug output to stderr.")
def main(
    request_name,
    env_name,
    arg_specs,
    config_file,
    dir_override,
    timeout,
    verbose,
    raw,
    dry_run,
    show_list_envs,
    debug,
):
    """Execute a stored HTTP request by name."""
    from reqq.core import load_config, resolve_config_path, resolve_request_dir
    from reqq.errors import ReqqError

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # --- Load config ---
    try:
        config = load_config(resolve_config_path(config_file))
    except ReqqError as e:
        _fail(e)
    defaults = config.get("defaults", {})
    request_dir = resolve_request_dir(dir_override, config)

    # --- Dispatch ---

    if show_list_envs:
        _cmd_list_envs(request_dir)
        return

    if request_name == "list":
        _cmd_list(request_dir)
        return

    if request_name:
        _cmd_execute(
            request_name,
            request_dir,
            config,
            defaults,
            env_name,
            arg_specs,
            timeout,
            verbose,
            raw,
            dry_run,
        )
        return

    # Nothing matched, show help
    ctx = click.get_current_context()
    click.echo(ctx.get_help())
    ctx.exit(1)


# ── Subcommand implementations ──────────────────────────────────────────


def _cmd_list(request_dir):
    from reqq.request import list_requests

    names = list_requests(request_dir)
    if not names:
        click.echo(f"No requests found in: {request_dir}")
        return
    for name in names:
        click.echo(name)


def _cmd_list_envs(request_dir):
    from reqq.core import envs_dir, list_envs

    names = list_envs(request_dir)
    if not names:
        click.echo(f"No environments found in: {envs_dir(request_dir)}")
        return
    for name in names:
        click.echo(name)


def _cmd_execute(
    request_name,
    request_dir,
    config,
    defaults,
    env_name,
    arg_specs,
    timeout,
    verbose,
    raw,
    dry_run,
):
    from reqq.core import EnvConfig, load_env, parse_extra_args, resolve_env_path
    from reqq.errors import ReqqError
    from reqq.output import format_output, format_request
    from reqq.request import find_request

    try:
        request_file = find_request(request_name, request_dir)

        env = None
        env_name = env_name or defaults.get("env")
        if env_name:
            env = EnvConfig(resolve_env_path(env_name, request_dir))

        extra_args = parse_extra_args(arg_specs)
        base = {"env": load_env(defaults.get("env_file"), config)}

        if dry_run:
            prepared = request_file.prepare(env, extra_args, base)
            click.echo(format_request(prepared))
            return

        result = request_file.execute(
            env,
            extra_args,
            base=base,
            timeout=_resolve_timeout(timeout, defaults.get("timeout")),
        )
    except ReqqError as e:
        _fail(e)

    click.echo(format_output(result, verbose=verbose, raw=raw))


# ── Helpers ──────────────────────────────────────────────────────────────


def _fail(error):
    click.echo(f"ERROR: {error}", err=True)
    sys.exit(1)


def _resolve_timeout(*sources, default=30):
    """Return the first truthy timeout from sources, or default."""
    for t in sources:
        if t:
            return t
    return default
