"""Database dumps driven by a command template."""
from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .config import DEFAULT_MYSQLDUMP, DatabaseEntry
from .errors import DumpExecutionError
from .utils import fill_placeholders, mask_sensitive

LOGGER = logging.getLogger(__name__)

PASSWORD_FLAG = "-p'{password}'"
SQL_DIRECTORY = "sql"
DUMP_EXTENSION = ".sql.gz"

# Entry fields; any other braces in a template are passed through.
FIELD_PLACEHOLDERS = frozenset({"db", "host", "username", "password"})


@dataclass
class DumpResult:
    name: str
    output: Path
    command: str = ""
    returncodes: List[int] = field(default_factory=list)
    stderr: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.returncodes) and not any(self.returncodes)

    def describe(self) -> str:
        if self.error:
            return self.error
        return f"exit codes {self.returncodes}"


# ---------------------------------------------------------------------------
def build_pipeline(template: str, params: Dict[str, str]) -> List[List[str]]:
    """Turn a shell-like command *template* into argument vectors.

    The template is split into ``|`` separated stages and tokenized before
    any ``{key}`` placeholder is replaced, so values never reach a shell.
    Only keys of *params* are replaced; unrelated braces such as awk's
    ``{print}`` stay. An empty password removes the ``-p'{password}'`` flag
    altogether.
    """

    params = dict(params)
    if str(params.get("password", "")) == "":
        template = template.replace(PASSWORD_FLAG, "")
        params.pop("password", None)

    pipeline: List[List[str]] = []
    for stage in _split_stages(template):
        try:
            tokens = shlex.split(stage)
        except ValueError as exc:
            raise DumpExecutionError(f"Cannot parse command '{stage.strip()}': {exc}") from exc
        if not tokens:
            raise DumpExecutionError(f"Command template '{template}' has an empty stage.")
        try:
            pipeline.append(
                [fill_placeholders(token, params, FIELD_PLACEHOLDERS) for token in tokens]
            )
        except KeyError as exc:
            raise DumpExecutionError(
                f"Command template '{template}' needs a value for '{exc.args[0]}'."
            ) from exc
    return pipeline


def _split_stages(template: str) -> List[str]:
    stages: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None
    escaped = False
    for char in template:
        if escaped:
            escaped = False
        elif char == "\\" and quote != "'":
            escaped = True
        elif quote:
            if char == quote:
                quote = None
        elif char in {"'", '"'}:
            quote = char
        elif char == "|":
            stages.append("".join(current))
            current = []
            continue
        current.append(char)
    stages.append("".join(current))
    return stages


def render_command(pipeline: Sequence[Sequence[str]], secrets: Iterable[str] = ()) -> str:
    """Shell-quoted form of *pipeline* for logs, with *secrets* masked."""

    secrets = [secret for secret in secrets if secret]
    return " | ".join(
        shlex.join(mask_sensitive(token, secrets) for token in argv) for argv in pipeline
    )


def run_pipeline(pipeline: Sequence[Sequence[str]], output: Path, name: str = "") -> DumpResult:
    """Run *pipeline* with the last stage writing to *output*.

    Waits for every stage without a timeout.
    """

    output = Path(output)
    result = DumpResult(name=name, output=output)
    processes: List[subprocess.Popen] = []
    with output.open("wb") as out, tempfile.TemporaryFile() as err:
        upstream = None
        try:
            for index, argv in enumerate(pipeline):
                last = index == len(pipeline) - 1
                process = subprocess.Popen(
                    list(argv),
                    stdin=upstream if upstream is not None else subprocess.DEVNULL,
                    stdout=out if last else subprocess.PIPE,
                    stderr=err,
                )
                if upstream is not None:
                    upstream.close()
                upstream = None if last else process.stdout
                processes.append(process)
        except OSError as exc:
            result.error = f"Cannot start '{argv[0]}': {exc}"
            if upstream is not None:
                upstream.close()
        result.returncodes = [process.wait() for process in processes]
        err.seek(0)
        result.stderr = err.read().decode("utf-8", errors="replace").strip()
    return result


# ---------------------------------------------------------------------------
def backup_database(
    destination: Path,
    databases: Iterable[DatabaseEntry],
    template: str = DEFAULT_MYSQLDUMP,
    policy: str = "continue",
) -> List[DumpResult]:
    """Dump every database into ``<destination>/sql/<name>.sql.gz``."""

    sql_dir = Path(destination) / SQL_DIRECTORY
    sql_dir.mkdir(parents=True, exist_ok=True)
    results: List[DumpResult] = []
    for entry in databases:
        output = sql_dir / f"{entry.name}{DUMP_EXTENSION}"
        secrets = [entry.password]
        try:
            pipeline = build_pipeline(entry.command or template, entry.params())
        except DumpExecutionError as exc:
            result = DumpResult(name=entry.name, output=output, error=str(exc))
        else:
            command = render_command(pipeline, secrets)
            LOGGER.info("Dumping database '%s': %s", entry.name, command)
            result = run_pipeline(pipeline, output, entry.name)
            result.command = command
            if result.stderr:
                result.stderr = mask_sensitive(result.stderr, secrets)
                LOGGER.warning("STDERR: %s", result.stderr)
        results.append(result)

        if result.ok:
            LOGGER.info("Database '%s' dumped to '%s'.", entry.name, output)
            continue
        LOGGER.error("Dump of database '%s' failed: %s", entry.name, result.describe())
        if policy == "abort":
            raise DumpExecutionError(
                f"Dump of database '{entry.name}' failed: {result.describe()}", results
            )
    return results


__all__ = [
    "DumpResult",
    "PASSWORD_FLAG",
    "backup_database",
    "build_pipeline",
    "render_command",
    "run_pipeline",
]
