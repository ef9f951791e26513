"""reqrun CLI - run one named request from a JSON descriptor."""

import sys

import click

TOOL_HELP = """\
reqrun — run named HTTP requests from a JSON descriptor.

Pick one request by tag or index, send it, print the response, and
optionally save fields of the response to files for later requests.

\b
USAGE
─────
  reqrun -f api.json --tag login
  reqrun -f api.json --index 2
  reqrun -f api.json --list

\b
DESCRIPTOR FORMAT
─────────────────
  \b
  {
    "base_url": "https://api.example.com",
    "headers": {"Accept": "application/json"},
    "access_token_file": "~/.myapi/token.txt",
    "variable_dir": "~/.myapi/vars",
    "credential_policy": "strict",
    "requests": [
      {"tag": "login", "title": "Log in", "method": "POST",
       "endpoint": "/auth/login", "auth": false,
       "body": {"body_type": "JSON", "body_file": "login.json"},
       "token_save": true, "token_path": "data.access_token"},
      {"tag": "me", "method": "GET", "endpoint": "/users/me",
       "params": "?expand=roles", "token_type": "Bearer"}
    ]
  }

  URL = base_url + endpoint + params (plain concatenation).
  body_type is JSON or FORM_DATA; body_file is relative to the descriptor.

\b
SAVING RESPONSE FIELDS
──────────────────────
  With token_save, a 2xx response is written to save_to, else token_file,
  else access_token_file:

  \b
  file destination       token_path is a dotted path: "data.access_token"
  directory destination  token_path maps files to paths, either
                         {"access.txt": "data.access", "r/refresh.txt": "data.refresh"}
                         or "access.txt:data.access,r/refresh.txt:data.refresh"

  Dotted paths follow object keys only (case-sensitive, no array indices).

\b
PLACEHOLDERS
────────────
  A body string value "{{NAME}}" is replaced with the contents of
  <variable_dir>/NAME.txt (trailing whitespace removed) before sending.

\b
CREDENTIALS
───────────
  The token file (entry token_file, else access_token_file) is read on every
  call and sent as "Authorization: <token_type> <token>". Set "auth": false
  on an entry to send no credential. With credential_policy "strict" a
  missing token file is an error; "lenient" sends the request without it.

\b
CONFIG FILE (.reqrun.yaml)
──────────────────────────
  Resolution: -c flag, then .reqrun.yaml / .reqrun.yml / reqrun.yaml /
  reqrun.yml in CWD, then ~/.reqrun/config.yaml.

  \b
  defaults:
    timeout: 30
    env_file: .env                  # $VAR / ${VAR} in the descriptor
    home: /home/me                  # used to expand ~ in paths
    variable_dir: ~/.myapi/vars     # when the descriptor has none
    access_token_file: ~/.myapi/token.txt
    credential_policy: strict
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.option(
    "-f",
    "--file",
    "descriptor_file",
    required=True,
    help="Descriptor JSON file.",
)
@click.option("-t", "--tag", default=None, help="Tag of the request to run.")
@click.option(
    "-i",
    "--index",
    type=int,
    default=None,
    help="0-based index of the request to run.",
)
@click.option(
    "-l",
    "--list",
    "show_list",
    is_flag=True,
    default=False,
    help="List the requests in the descriptor.",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqrun.yaml in CWD, then ~/.reqrun/config.yaml.",
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
    help="Output raw JSON body only. Useful for piping.",
)
def main(descriptor_file, tag, index, show_list, config_file, timeout, verbose, raw):
    """Run one request from a descriptor file."""
    from reqrun.core import (
        ReqrunError,
        load_config,
        load_descriptor,
        load_env,
        resolve_config_path,
        resolve_value,
    )
    from reqrun.dispatch import Dispatcher
    from reqrun.filters import format_output
    from reqrun.store import VariableStore

    # --- Load config ---
    config = load_config(resolve_config_path(config_file))
    defaults = config.get("defaults", {})
    env = load_env(defaults.get("env_file"), base_dir=config.get("_config_dir") or ".")

    try:
        descriptor = load_descriptor(descriptor_file, env=env, defaults=defaults)
    except ReqrunError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    if show_list:
        _cmd_list(descriptor)
        return

    if tag is None and index is None:
        ctx = click.get_current_context()
        click.echo("ERROR: pass --tag or --index (or --list).", err=True)
        ctx.exit(1)

    entry = descriptor.find(tag=tag, index=index)
    if entry is None:
        click.echo("Item not found")
        return

    store = VariableStore(home=resolve_value(defaults.get("home"), env))
    dispatcher = Dispatcher(
        descriptor,
        store=store,
        timeout=_resolve_timeout(timeout, defaults.get("timeout")),
    )

    if not raw:
        label = f"{entry.tag} — {entry.title}" if entry.title else entry.tag
        click.echo(f"[{label}] {entry.method} {dispatcher.build_url(entry)}", err=True)

    try:
        result = dispatcher.execute(entry)
    except ReqrunError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    if result.error:
        click.echo(f"ERROR: {result.error}", err=True)
        sys.exit(1)

    click.echo(format_output(result, verbose=verbose, raw=raw))

    if result.save_error:
        click.echo(f"ERROR: response not saved: {result.save_error}", err=True)
        sys.exit(1)


# ── Helpers ──────────────────────────────────────────────────────────────


def _cmd_list(descriptor):
    if not descriptor.entries:
        click.echo(f"No requests in: {descriptor.source}")
        return
    click.echo(f"Requests from: {descriptor.source}")
    click.echo(f"{len(descriptor.entries)} available:\n")
    for i, entry in enumerate(descriptor.entries):
        label = f"  [{i}] {entry.tag} — {entry.title}" if entry.title else f"  [{i}] {entry.tag}"
        click.echo(label)
        detail_parts = [f"{entry.method} {entry.endpoint}{entry.params or ''}"]
        if entry.body:
            detail_parts.append(f"body: {entry.body.body_type} {entry.body.body_file}")
        if entry.token_save and entry.token_path:
            detail_parts.append("saves response fields")
        click.echo(f"    {' | '.join(detail_parts)}")


def _resolve_timeout(*sources, default=30):
    """Return the first truthy timeout from sources, or default."""
    for t in sources:
        if t:
            return t
    return default
