"""reqrun dispatch - turn a descriptor entry into one HTTP call."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from reqrun import executor
from reqrun.core import (
    CredentialError,
    DispatchError,
    RequestDescriptor,
    RequestEntry,
    VariableError,
)
from reqrun.executor import RequestResult
from reqrun.store import VariableStore, substitute_placeholders


class Dispatcher:
    """Executes entries of one descriptor.

    Token files, variable directories and placeholder substitution are all
    driven by what the descriptor configures; a descriptor without them
    simply skips those steps.
    """

    def __init__(
        self,
        descriptor: RequestDescriptor,
        store: VariableStore | None = None,
        timeout: int = 30,
        transport: Callable[..., RequestResult] | None = None,
    ):
        self.descriptor = descriptor
        self.store = store or VariableStore()
        self.timeout = timeout
        self.transport = transport

    # ── request assembly ─────────────────────────────────────────────────

    def build_url(self, entry: RequestEntry) -> str:
        return self.descriptor.base_url + entry.endpoint + (entry.params or "")

    def token_file(self, entry: RequestEntry) -> str | None:
        return entry.token_file or self.descriptor.access_token_file

    def resolve_credential(self, entry: RequestEntry) -> str | None:
        """Authorization value for *entry*, or None when none is attached.

        Raises CredentialError when the token file is unreadable, unless the
        descriptor's credential_policy is lenient.
        """
        path = self.token_file(entry)
        if not entry.auth or not path:
            return None
        try:
            token = self.store.read(path).strip()
        except VariableError as e:
            if self.descriptor.credential_policy == "lenient":
                click.echo(f"WARNING: credential unavailable: {e}", err=True)
                return None
            raise CredentialError(f"Credential unavailable: {e}") from e
        if entry.token_type:
            return f"{entry.token_type} {token}".strip()
        return token

    def build_headers(self, entry: RequestEntry) -> dict[str, str]:
        headers = dict(self.descriptor.default_headers)
        credential = self.resolve_credential(entry)
        if credential is not None:
            headers["Authorization"] = credential
        return headers

    def load_body(self, entry: RequestEntry) -> Any:
        """Read the entry's body file and resolve its placeholders."""
        path = self.store.expand(entry.body.body_file)
        if not path.is_absolute() and self.descriptor.source is not None:
            path = self.descriptor.source.parent / path
        try:
            with open(path) as f:
                body = json.load(f)
        except OSError as e:
            raise DispatchError(f"Cannot read body file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise DispatchError(f"Invalid JSON in body file {path}: {e}") from e
        return substitute_placeholders(body, self.descriptor.variable_dir, self.store)

    def prepare(self, entry: RequestEntry) -> dict[str, Any]:
        """Build the transport keyword arguments for *entry*."""
        request: dict[str, Any] = {
            "method": entry.method,
            "url": self.build_url(entry),
            "headers": self.build_headers(entry),
            "body": None,
            "timeout": self.timeout,
        }
        if entry.method in ("POST", "PUT") and entry.body is not None:
            body = self.load_body(entry)
            if entry.body.body_type == "FORM_DATA":
                request["form_data"] = form_fields(body)
            else:
                request["body"] = json.dumps(body, indent=2)
                headers = {
                    k: v for k, v in request["headers"].items() if k.lower() != "content-type"
                }
                headers["Content-Type"] = "application/json"
                request["headers"] = headers
        return request

    # ── execution ────────────────────────────────────────────────────────

    def execute(self, entry: RequestEntry) -> RequestResult:
        """Send *entry* and persist its token fields on a 2xx response.

        A failed write does not raise; it is recorded on result.save_error so
        the response can still be shown.
        """
        request = self.prepare(entry)
        transport = self.transport or executor.execute_request
        result = transport(**request)
        if result.error is None:
            try:
                self.persist(entry, result)
            except VariableError as e:
                result.save_error = str(e)
        return result

    def persist(self, entry: RequestEntry, result: RequestResult) -> list[Path]:
        if not (entry.token_save and entry.token_path) or not result.ok:
            return []
        destination = entry.save_to or self.token_file(entry)
        return self.store.write(result.body, destination, entry.token_path)


def form_fields(body: Any) -> dict[str, str]:
    """Flatten a JSON object into form fields. Nested values are rejected."""
    if not isinstance(body, dict):
        raise DispatchError("FORM_DATA body must be a JSON object")
    fields: dict[str, str] = {}
    for key, value in body.items():
        if isinstance(value, dict | list):
            raise DispatchError(
                f"FORM_DATA field '{key}' must be a scalar, got {type(value).__name__}",
            )
        if isinstance(value, bool):
            fields[key] = "true" if value else "false"
        elif value is None:
            fields[key] = ""
        else:
            fields[key] = str(value)
    return fields
