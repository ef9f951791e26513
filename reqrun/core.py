"""reqrun core - config loading, descriptor parsing, errors."""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

GLOBAL_DIR = Path.home() / ".reqrun"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".reqrun.yaml",
    ".reqrun.yml",
    "reqrun.yaml",
    "reqrun.yml",
]

METHODS = ("GET", "POST", "PUT", "DELETE")
BODY_TYPES = ("JSON", "FORM_DATA")
CREDENTIAL_POLICIES = ("strict", "lenient")


# ── Errors ───────────────────────────────────────────────────────────────


class ReqrunError(Exception):
    """Base class for every failure reqrun reports to the user."""


class DescriptorError(ReqrunError):
    """The descriptor file is missing, malformed, or inconsistent."""


class VariableError(ReqrunError):
    """A variable file could not be read or written."""


class CredentialError(VariableError):
    """The access token file could not be read."""


class PlaceholderError(VariableError):
    """A {{NAME}} placeholder could not be resolved."""

    def __init__(self, name: str, path: Path | str, reason: str = ""):
        self.name = name
        self.path = str(path)
        message = f"Cannot resolve placeholder '{name}' from {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class DispatchError(ReqrunError):
    """The outgoing request could not be assembled."""


# ── Config ───────────────────────────────────────────────────────────────


def first_existing(candidates: list[Path]) -> Path | None:
    """Return the first existing path from candidates, resolved."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return None


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (hard — no fallthrough if missing)
      2. .reqrun.yaml (variants) in CWD
      3. ~/.reqrun/config.yaml
    """
    if config_file:
        return first_existing([Path(config_file)])
    return first_existing([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load YAML config file. Returns empty defaults if not found."""
    if config_path is None:
        return {"defaults": {}, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": {}, "_config_dir": None}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return {
        "defaults": data.get("defaults") or {},
        "_config_dir": path.resolve().parent,
    }


def load_env(env_file: str | None, base_dir: str = ".") -> dict[str, str]:
    """Load .env file and merge with os.environ.

    .env values take precedence over os.environ.
    """
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir) / env_file
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
    return env


def resolve_value(value: str | None, env: dict[str, str]) -> str | None:
    """Resolve $VAR and ${VAR} references in a string value.

    Unknown variables are left as written.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, os.environ.get(var_name, m.group(0)))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


# ── Descriptor ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BodySource:
    body_type: str
    body_file: str


@dataclass(frozen=True)
class RequestEntry:
    tag: str
    method: str
    endpoint: str
    title: str = ""
    params: str | None = None
    body: BodySource | None = None
    token_path: str | dict | None = None
    token_save: bool = False
    token_type: str | None = None
    token_file: str | None = None
    save_to: str | None = None
    auth: bool = True


@dataclass(frozen=True)
class RequestDescriptor:
    base_url: str
    default_headers: dict[str, str] = field(default_factory=dict)
    variable_dir: str | None = None
    access_token_file: str | None = None
    credential_policy: str = "strict"
    entries: tuple[RequestEntry, ...] = ()
    source: Path | None = None

    def find(self, tag: str | None = None, index: int | None = None) -> RequestEntry | None:
        """Select an entry by tag, or by 0-based index. None if no match."""
        if tag is not None:
            for entry in self.entries:
                if entry.tag == tag:
                    return entry
            return None
        if index is not None and 0 <= index < len(self.entries):
            return self.entries[index]
        return None


def load_descriptor(
    path: str | Path,
    env: dict[str, str] | None = None,
    defaults: dict | None = None,
) -> RequestDescriptor:
    """Load and validate a JSON descriptor file.

    `defaults` supplies variable_dir, access_token_file and credential_policy
    when the descriptor leaves them out. Raises DescriptorError.
    """
    env = env if env is not None else dict(os.environ)
    defaults = defaults or {}
    p = Path(path).expanduser()
    try:
        with open(p) as f:
            data = json.load(f)
    except FileNotFoundError:
        raise DescriptorError(f"Descriptor file not found: {p}") from None
    except json.JSONDecodeError as e:
        raise DescriptorError(f"Invalid JSON in {p}: {e}") from None
    except OSError as e:
        raise DescriptorError(f"Cannot read descriptor {p}: {e}") from None

    if not isinstance(data, dict):
        raise DescriptorError(f"Descriptor {p} must be a JSON object")

    base_url = data.get("base_url")
    if not isinstance(base_url, str):
        raise DescriptorError("Descriptor is missing 'base_url'")

    raw_headers = data.get("default_headers", data.get("headers")) or {}
    if not isinstance(raw_headers, dict):
        raise DescriptorError("'headers' must be an object")
    headers = {str(k): resolve_value(str(v), env) for k, v in raw_headers.items()}

    raw_entries = data.get("requests")
    if not isinstance(raw_entries, list):
        raise DescriptorError("Descriptor is missing a 'requests' list")

    entries: list[RequestEntry] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_entries):
        entry = _parse_entry(raw, i, env)
        if entry.tag in seen:
            raise DescriptorError(f"Duplicate tag '{entry.tag}' at index {i}")
        seen.add(entry.tag)
        entries.append(entry)

    policy = data.get("credential_policy") or defaults.get("credential_policy") or "strict"
    if policy not in CREDENTIAL_POLICIES:
        raise DescriptorError(
            f"Unknown credential_policy '{policy}' (expected strict or lenient)",
        )

    return RequestDescriptor(
        base_url=resolve_value(base_url, env) or "",
        default_headers=headers,
        variable_dir=_opt_str(data.get("variable_dir") or defaults.get("variable_dir"), env),
        access_token_file=_opt_str(
            data.get("access_token_file") or defaults.get("access_token_file"),
            env,
        ),
        credential_policy=policy,
        entries=tuple(entries),
        source=p.resolve(),
    )


def _parse_entry(raw: Any, index: int, env: dict[str, str]) -> RequestEntry:
    if not isinstance(raw, dict):
        raise DescriptorError(f"Request at index {index} must be an object")

    tag = raw.get("tag")
    if not isinstance(tag, str) or not tag:
        raise DescriptorError(f"Request at index {index} has no 'tag'")

    method = str(raw.get("method", "GET")).upper()
    if method not in METHODS:
        raise DescriptorError(f"Request '{tag}': unsupported method '{method}'")

    endpoint = raw.get("endpoint", "")
    if not isinstance(endpoint, str):
        raise DescriptorError(f"Request '{tag}': 'endpoint' must be a string")

    # body: {"body_type": ..., "body_file": ...} or the same keys inline
    body_cfg = raw.get("body")
    if not isinstance(body_cfg, dict):
        body_cfg = raw
    body = None
    if body_cfg.get("body_file"):
        body_type = str(body_cfg.get("body_type", "JSON")).upper()
        if body_type not in BODY_TYPES:
            raise DescriptorError(f"Request '{tag}': unknown body_type '{body_type}'")
        body = BodySource(body_type=body_type, body_file=str(body_cfg["body_file"]))

    token_path = raw.get("token_path")
    if token_path is not None and not isinstance(token_path, str | dict):
        raise DescriptorError(f"Request '{tag}': 'token_path' must be a string or object")

    for key in ("title", "params", "token_type"):
        if raw.get(key) is not None and not isinstance(raw[key], str):
            raise DescriptorError(f"Request '{tag}': '{key}' must be a string")
    for key in ("token_save", "auth"):
        if raw.get(key) is not None and not isinstance(raw[key], bool):
            raise DescriptorError(f"Request '{tag}': '{key}' must be true or false")

    return RequestEntry(
        tag=tag,
        title=raw.get("title") or "",
        method=method,
        endpoint=endpoint,
        params=raw.get("params") or None,
        body=body,
        token_path=token_path,
        token_save=raw.get("token_save") or False,
        token_type=raw.get("token_type") or None,
        token_file=_opt_str(raw.get("token_file"), env),
        save_to=_opt_str(raw.get("save_to"), env),
        auth=raw.get("auth") is not False,
    )


def _opt_str(value: Any, env: dict[str, str]) -> str | None:
    if not value:
        return None
    return resolve_value(str(value), env)
