"""reqq core - config loading, environments, variable merging, template rendering."""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from reqq.errors import FormatError, IoError, TemplateError

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path.home() / ".config" / "reqq"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

DEFAULT_REQUEST_DIR = ".reqq"
REQUEST_EXT = ".reqq"
ENVS_DIRNAME = "envs"
DEFAULT_TIMEOUT = 30

CWD_CONFIG_CANDIDATES = [
    ".reqq.yaml",
    ".reqq.yml",
    "reqq.yaml",
    "reqq.yml",
]


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (hard, no fallthrough if missing)
      2. .reqq.yaml (variants) in CWD
      3. ~/.config/reqq/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load YAML config file. Returns empty defaults if not found.

    Stores '_config_dir' in the returned dict so relative paths in the
    config (dir, env_file) resolve against the config file's directory.
    """
    if config_path is None:
        return {"defaults": {}, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": {}, "_config_dir": None}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise FormatError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise FormatError(f"Invalid config file {path}: expected a mapping")
    logger.debug("loaded config from %s", path)
    return {
        "defaults": data.get("defaults") or {},
        "_config_dir": path.resolve().parent,
    }


def _relative_to_config(value: str, config: dict) -> Path:
    p = Path(value)
    config_dir = config.get("_config_dir")
    if not p.is_absolute() and config_dir:
        p = Path(config_dir) / p
    return p


def resolve_request_dir(cli_dir: str | None, config: dict) -> Path:
    """Find the request directory.

    Resolution order:
      1. --dir CLI flag (relative to CWD)
      2. dir from config defaults (relative to config file)
      3. ./.reqq in CWD

    The returned path may not exist; callers report that.
    """
    if cli_dir:
        return Path(cli_dir)
    config_value = config.get("defaults", {}).get("dir")
    if config_value:
        return _relative_to_config(config_value, config)
    return Path(DEFAULT_REQUEST_DIR)


def load_env(env_file: str | None, config: dict | None = None) -> dict[str, str]:
    """Load .env file and merge with os.environ.

    .env values take precedence over os.environ for the keys they define.
    """
    env = dict(os.environ)
    if env_file:
        dotenv_path = _relative_to_config(env_file, config or {})
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
            logger.debug("loaded %d values from %s", len(dotenv_vars), dotenv_path)
    return env


# ── Environments ─────────────────────────────────────────────────────────


class EnvConfig:
    """A JSON object of variable bindings loaded from a file.

    The file is read on first use and cached for the lifetime of the
    instance. Pass ``text`` to build an environment without touching disk.
    """

    def __init__(self, path: str | Path, text: str | None = None):
        self.path = Path(path)
        self._text = text

    @property
    def name(self) -> str:
        return self.path.stem

    def load(self) -> str:
        """Read the file once and return the cached text."""
        if self._text is None:
            try:
                self._text = self.path.read_text(encoding="utf-8")
            except OSError as e:
                raise IoError(f"Cannot read environment file {self.path}: {e}") from e
            logger.debug("read environment %s", self.path)
        return self._text

    def to_mapping(self) -> dict[str, Any]:
        """Deserialize the environment; the top level must be a JSON object."""
        text = self.load()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise FormatError(f"Environment {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise FormatError(
                f"Environment {self.path} must be a JSON object, "
                f"got {type(data).__name__}",
            )
        return data


def envs_dir(request_dir: Path) -> Path:
    return Path(request_dir) / ENVS_DIRNAME


def resolve_env_path(name_or_path: str, request_dir: Path) -> Path:
    """Map an environment name (or file path) to a file.

    Resolution order:
      1. Existing file path as given
      2. <request dir>/envs/<name>.json
    """
    p = Path(name_or_path)
    if p.is_file():
        return p
    candidate = envs_dir(request_dir) / f"{name_or_path}.json"
    if candidate.is_file():
        return candidate
    raise IoError(
        f"Environment '{name_or_path}' not found. Searched:\n"
        f"  - {p}\n"
        f"  - {candidate}",
    )


def list_envs(request_dir: Path) -> list[str]:
    edir = envs_dir(request_dir)
    if not edir.is_dir():
        return []
    return sorted(f.stem for f in edir.iterdir() if f.suffix == ".json" and f.is_file())


# ── Variables ────────────────────────────────────────────────────────────


def parse_arg_value(value: str) -> Any:
    """Interpret a CLI argument value as JSON, falling back to the raw string.

    `5` -> 5, `true` -> True, `[1,2]` -> [1, 2], `thing` -> "thing".
    """
    try:
        return json.loads(value)
    except ValueError:
        return value


def parse_extra_args(arg_specs: tuple[str, ...] | list[str]) -> dict[str, Any]:
    """Parse key=value specs into an extra-argument mapping. Later keys win."""
    args: dict[str, Any] = {}
    for spec in arg_specs:
        if "=" not in spec:
            raise FormatError(f"Invalid argument '{spec}', expected key=value")
        key, value = spec.split("=", 1)
        args[key.strip()] = parse_arg_value(value)
    return args


def merge_variables(
    env: EnvConfig | None,
    extra_args: dict[str, Any] | None,
    base: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Combine environment values and extra arguments into one mapping.

    Insertion order is base, then environment, then extra arguments, so an
    extra argument always wins over an environment value of the same name.
    """
    combined: dict[str, Any] = dict(base or {})
    if env is not None:
        combined.update(env.to_mapping())
    if extra_args:
        combined.update(extra_args)
    return combined


# ── Templates ────────────────────────────────────────────────────────────

_PLACEHOLDER_RE = re.compile(
    r"\\\{\{|\{\{\{(?P<raw>[^{}]*)\}\}\}|\{\{(?P<expr>[^{}]*)\}\}",
)
_PATH_RE = re.compile(r"^[A-Za-z_$@][\w$@-]*(?:\.[\w$@-]+)*$")


def _lookup(variables: dict[str, Any], path: str) -> Any:
    current: Any = variables
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            raise TemplateError(f"Variable '{path}' is not defined")
    return current


def stringify(value: Any) -> str:
    """Render a JSON-like value the way it appears in expanded text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict | list):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _check_literal(literal: str, offset: int, text: str) -> None:
    idx = literal.find("{{")
    if idx != -1:
        line = text.count("\n", 0, offset + idx) + 1
        raise TemplateError(f"Unclosed placeholder on line {line}")


def render_template(text: str, variables: dict[str, Any]) -> str:
    """Expand {{ name }} placeholders in text against variables.

    Supported:
    - {{ name }} / {{{ name }}}  -> value of name (no escaping either way)
    - {{ a.b.0 }}                -> nested object key / array index
    - \\{{                       -> literal {{

    Unbound names and malformed placeholders raise TemplateError.
    """
    out: list[str] = []
    pos = 0
    for m in _PLACEHOLDER_RE.finditer(text):
        literal = text[pos : m.start()]
        _check_literal(literal, pos, text)
        out.append(literal)
        pos = m.end()

        if m.group(0) == "\\{{":
            out.append("{{")
            continue

        expr = m.group("raw") if m.group("raw") is not None else m.group("expr")
        expr = expr.strip()
        if not expr:
            raise TemplateError("Empty placeholder '{{}}'")
        if not _PATH_RE.match(expr):
            raise TemplateError(f"Unsupported placeholder expression '{expr}'")
        out.append(stringify(_lookup(variables, expr)))

    tail = text[pos:]
    _check_literal(tail, pos, text)
    out.append(tail)
    return "".join(out)
