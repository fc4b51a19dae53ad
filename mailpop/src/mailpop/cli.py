"""mailpop command-line interface.

What:
  Provide a Typer-based entry point for inspecting and draining a POP3
  mailbox: ``stat``, ``ids``, ``size``, ``fetch``, ``header`` and ``delete``.

Why:
  Operators need a quick way to check that an account is reachable, see which
  identifiers the server reports, and pull or remove individual messages
  without writing Python. Going through the same configuration and engine as
  library callers keeps behaviour identical.

How:
  The application callback records ``--config``; every command loads the
  runtime configuration, builds a :class:`~mailpop.pop3.Pop3Mailbox` whose
  structured logs go to stderr, performs its work, and always disconnects so
  pending deletions are committed. Engine and configuration errors are
  reported on stderr with exit code ``1``.

Interfaces:
  ``app`` (Typer application) and ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Message content goes to stdout only; logs go to stderr.
"""
from __future__ import annotations

import contextlib
import sys
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from .config.loader import ConfigLoadError, load_runtime_config
from .pop3 import Pop3Config, Pop3Error, Pop3Mailbox
from .utils.logging import JsonLogger

app = typer.Typer(help="POP3 mailbox client")


@app.callback()
def _root(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.yaml (defaults to MAILPOP_CONFIG_PATH)."
    ),
) -> None:
    ctx.obj = {"config": config}


@contextlib.contextmanager
def _mailbox(ctx: typer.Context) -> Iterator[Pop3Mailbox]:
    """Yield a connected mailbox and translate failures into exit code 1.

    What:
      Builds the mailbox from configuration and guarantees ``disconnect`` runs.

    Why:
      Every command shares the same setup and error reporting; pending
      deletions must be committed even when a later step fails.

    How:
      Loads the configuration (``--config`` first), points the structured
      logger at stderr, and wraps the command body in ``try``/``finally``.
    """

    path = (ctx.obj or {}).get("config")
    try:
        runtime = load_runtime_config(path, reload=True)
    except ConfigLoadError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    logger = JsonLogger(
        stream=sys.stderr,
        component=runtime.logging.component,
        min_level=runtime.logging.level,
    )
    try:
        mailbox = Pop3Mailbox(Pop3Config.from_settings(runtime.pop3), logger=logger)
    except Pop3Error as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    try:
        yield mailbox
    except Pop3Error as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        mailbox.disconnect()


def _echo_lines(lines: List[bytes]) -> None:
    for line in lines:
        typer.echo(line.decode("utf-8", "replace"))


@app.command("stat")
def stat(ctx: typer.Context) -> None:
    """Show the number of messages and the mailbox size."""

    with _mailbox(ctx) as mailbox:
        typer.echo(f"{mailbox.message_count} messages, {mailbox.folder_size} octets")
        if mailbox.degraded:
            typer.echo("server does not support UIDL; identifiers are session-scoped")


@app.command("ids")
def ids(ctx: typer.Context) -> None:
    """List message identifiers in server order."""

    with _mailbox(ctx) as mailbox:
        for identifier in mailbox.list_identifiers():
            typer.echo(identifier)
        if mailbox.degraded:
            typer.echo("warning: identifiers are synthesised and not durable", err=True)


@app.command("size")
def size(ctx: typer.Context, identifier: str = typer.Argument(..., help="Message identifier")) -> None:
    """Print the size of one message in octets."""

    with _mailbox(ctx) as mailbox:
        typer.echo(str(mailbox.fetch_size(identifier)))


@app.command("fetch")
def fetch(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Message identifier"),
    delete: bool = typer.Option(False, "--delete", help="Delete the message after fetching"),
) -> None:
    """Print a whole message."""

    with _mailbox(ctx) as mailbox:
        _echo_lines(mailbox.fetch(identifier))
        if delete:
            mailbox.mark_deleted(identifier)


@app.command("header")
def header(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Message identifier"),
    lines: int = typer.Option(0, "--lines", "-n", min=0, help="Body lines to include"),
) -> None:
    """Print the header of a message, optionally with the first body lines."""

    with _mailbox(ctx) as mailbox:
        _echo_lines(mailbox.fetch_header(identifier, lines))


@app.command("delete")
def delete(
    ctx: typer.Context,
    identifiers: List[str] = typer.Argument(..., help="Message identifiers"),
) -> None:
    """Delete messages; the deletion is committed when the session ends."""

    with _mailbox(ctx) as mailbox:
        known = set(mailbox.list_identifiers())
        missing = [identifier for identifier in identifiers if identifier not in known]
        if missing:
            typer.echo(f"error: no such message(s): {', '.join(missing)}", err=True)
            raise typer.Exit(code=1)
        mailbox.mark_deleted(*identifiers)
        typer.echo(f"{len(identifiers)} message(s) marked for deletion")


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
