"""reqrun store - variable files on disk and {{NAME}} placeholders."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from reqrun.core import PlaceholderError, VariableError
from reqrun.filters import has_path, resolve_path, to_text


@dataclass(frozen=True)
class FileMapping:
    filename: str
    json_path: str


def parse_structure(structure: str | dict) -> list[FileMapping]:
    """Parse a multi-file mapping into FileMappings.

    Accepts a JSON object string ``{"file.txt": "dotted.path"}`` (tried
    first), a dict of the same shape, or ``file.txt:dotted.path,other:path``.
    Non-string JSON values and items without ``:`` are skipped.
    """
    obj = structure if isinstance(structure, dict) else None
    if obj is None:
        try:
            parsed = json.loads(structure)
        except (json.JSONDecodeError, TypeError):
            parsed = None
        if isinstance(parsed, dict):
            obj = parsed

    if obj is not None:
        return [
            FileMapping(filename=str(name), json_path=path)
            for name, path in obj.items()
            if isinstance(path, str)
        ]

    mappings: list[FileMapping] = []
    for pair in str(structure).split(","):
        if ":" not in pair:
            continue
        name, path = pair.split(":", 1)
        mappings.append(FileMapping(filename=name.strip(), json_path=path.strip()))
    return mappings


class VariableStore:
    """Reads and writes single-value variable files.

    Every path goes through expand() first, so ``~`` and ``~/x`` resolve
    against *home* (the user's home directory unless injected).
    """

    def __init__(self, home: str | Path | None = None):
        self.home = Path(home) if home is not None else Path.home()

    def expand(self, path: str | Path) -> Path:
        s = str(path)
        if s == "~":
            return self.home
        if s.startswith("~/"):
            return self.home / s[2:]
        return Path(s)

    # ── reads ────────────────────────────────────────────────────────────

    def read(self, path: str | Path) -> str:
        full = self.expand(path)
        try:
            return full.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise VariableError(f"Cannot read {full}: {e}") from e

    def read_directory(self, path: str | Path) -> dict[str, str]:
        """Read every regular file directly under *path*, keyed by filename."""
        full = self.expand(path)
        if not full.is_dir():
            raise VariableError(f"Not a directory: {full}")
        return {f.name: self.read(f) for f in sorted(full.iterdir()) if f.is_file()}

    # ── writes ───────────────────────────────────────────────────────────

    def write(
        self,
        body: Any,
        destination: str | Path | None,
        structure: str | dict,
    ) -> list[Path]:
        """Persist values from *body* and return the files written.

        An existing directory as *destination* fans out to one file per
        mapping in *structure*; anything else is a single file holding the
        value at the dotted path *structure*. No destination is a no-op.
        """
        if not destination:
            return []
        target = self.expand(destination)
        if target.is_dir():
            return self._write_many(body, target, structure)
        return self._write_one(body, target, structure)

    def _write_one(self, body: Any, path: Path, json_path: Any) -> list[Path]:
        if not isinstance(json_path, str):
            raise VariableError("A single-file destination needs a dotted path, not a mapping")
        if not has_path(body, json_path):
            raise VariableError(f"JSON path not found: {json_path}")
        _write_text(path, to_text(resolve_path(body, json_path)))
        click.echo(f"Written to: {path} (from path: {json_path})", err=True)
        return [path]

    def _write_many(self, body: Any, root: Path, structure: str | dict) -> list[Path]:
        mappings = parse_structure(structure)
        if not mappings:
            raise VariableError(f"No file mappings in structure: {structure!r}")

        # Resolve everything before touching the disk.
        staged: list[tuple[Path, str, str]] = []
        base = root.resolve()
        for m in mappings:
            file_path = root / m.filename
            if Path(m.filename).is_absolute() or not file_path.resolve().is_relative_to(base):
                raise VariableError(f"File mapping escapes {root}: {m.filename}")
            if not has_path(body, m.json_path):
                raise VariableError(f"JSON path not found: {m.json_path}")
            staged.append((file_path, to_text(resolve_path(body, m.json_path)), m.json_path))

        written: list[Path] = []
        for file_path, text, json_path in staged:
            _write_text(file_path, text)
            click.echo(f"Written to: {file_path} (from path: {json_path})", err=True)
            written.append(file_path)
        return written


def _write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise VariableError(f"Cannot write {path}: {e}") from e


# ── Placeholders ─────────────────────────────────────────────────────────


def placeholder_name(value: Any) -> str | None:
    """Return NAME for a string that is exactly ``{{NAME}}``, else None."""
    if not isinstance(value, str) or len(value) < 4:
        return None
    if value.startswith("{{") and value.endswith("}}"):
        return value[2:-2].strip()
    return None


def substitute_placeholders(
    body: Any,
    variable_dir: str | Path | None,
    store: VariableStore,
) -> Any:
    """Replace ``{{NAME}}`` string values with the content of NAME.txt.

    Walks dicts and lists recursively, modifying them in place, and returns
    *body*. Values read from disk have trailing whitespace stripped.
    """
    if isinstance(body, dict):
        items = body.items()
    elif isinstance(body, list):
        items = enumerate(body)
    else:
        return body

    for key, value in list(items):
        name = placeholder_name(value)
        if name is None:
            substitute_placeholders(value, variable_dir, store)
            continue
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise PlaceholderError(name, f"{name}.txt", "invalid variable name")
        if not variable_dir:
            raise PlaceholderError(name, f"{name}.txt", "no variable_dir configured")
        path = store.expand(variable_dir) / f"{name}.txt"
        try:
            body[key] = store.read(path).rstrip()
        except VariableError as e:
            raise PlaceholderError(name, path, str(e.__cause__ or e)) from e
    return body
