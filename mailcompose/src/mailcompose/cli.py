"""mailcompose command-line interface for inspecting compose decisions.

What:
  Provide a Typer-based entry point that lets operators check their
  configuration and preview the decisions the compose engine would take: the
  crypto decision for a compose type, the reference link of a message file and
  the context selected for an original message.

Why:
  Compose decisions are normally taken inside an editor session where they are
  hard to observe. Exposing the pure resolvers on the command line makes
  configuration mistakes visible before a message is sent.

How:
  Load the runtime configuration through :mod:`mailcompose.config`, turn it into
  :class:`~mailcompose.config.settings.ComposeSettings` and call the resolvers
  of :mod:`mailcompose.core` directly. No command talks to the message store.

Interfaces:
  ``app`` (Typer application), ``check_config``, ``crypto``, ``references``,
  ``pick_context``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Message bodies are never printed.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import ComposeSettings, RuntimeConfigError, load_runtime_config
from .core.contexts import determine_context
from .core.message import ComposeType, Message
from .core.policy import resolve_crypto
from .core.references import flag_delta_for, infer_reference
from .errors import ComposeError
from .utils.logging import get_logger
from .utils.mime import parse_message


app = typer.Typer(help="mailcompose draft decision engine")

LOGGER = logging.getLogger("mailcompose.cli")

_CONFIG_OPTION = typer.Option(None, "--config", help="Path to config.yaml")


def _load_settings(config_path: Optional[Path]) -> ComposeSettings:
    try:
        runtime = load_runtime_config(config_path, reload=True)
    except RuntimeConfigError as exc:
        LOGGER.error("runtime_load_failed: %s", exc)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    try:
        return ComposeSettings.from_config(runtime, logger=get_logger("config"))
    except ComposeError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _yes(value: bool) -> str:
    return "yes" if value else "no"


@app.command("check-config")
def check_config(config: Optional[Path] = _CONFIG_OPTION) -> None:
    """Load the configuration and print a summary of the compose settings."""

    settings = _load_settings(config)
    policy = ", ".join(sorted(token.value for token in settings.policy)) or "<empty>"
    behavior = settings.sent_behavior
    typer.echo(f"crypto method: {settings.crypto_method}")
    typer.echo(f"crypto policy: {policy}")
    typer.echo(f"sent behavior: {getattr(behavior, 'value', behavior)}")
    typer.echo(f"context policy: {settings.context_policy.value}")
    folders = settings.default_folders
    typer.echo(f"default folders: drafts={folders.drafts} sent={folders.sent} trash={folders.trash}")
    if not settings.contexts:
        typer.echo("contexts: <none>")
    for context in settings.contexts:
        typer.echo(f"context {context.name}: {context.identity} drafts={context.folders.drafts}")


@app.command("crypto")
def crypto(
    compose_type: ComposeType = typer.Argument(..., help="new, reply, forward, edit or resend"),
    encrypted: bool = typer.Option(False, "--encrypted", help="The original message was encrypted"),
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Print the sign/encrypt decision for a draft of COMPOSE_TYPE."""

    settings = _load_settings(config)
    decision = resolve_crypto(compose_type, encrypted, settings.policy)
    typer.echo(
        f"sign={_yes(decision.sign)} encrypt={_yes(decision.encrypt)} mode={decision.mode or 'none'}"
    )


@app.command("references")
def references(path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True)) -> None:
    """Print the reply/forward link encoded in the headers of a message file."""

    try:
        _message, headers, _body = parse_message(path.read_bytes())
    except OSError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    link = infer_reference(headers)
    if link is None:
        typer.echo("none")
        return
    typer.echo(f"{link.kind.value} {link.target} {flag_delta_for(link)}")


@app.command("pick-context")
def pick_context(
    to: Optional[str] = typer.Option(None, "--to", help="To header of the original message"),
    sender: Optional[str] = typer.Option(None, "--from", help="From header of the original message"),
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Run the context selector against a synthetic original message.

    Without ``--to`` and ``--from`` the selector runs as for a new message.
    Policies that need a prompt fail, since the command is non-interactive.
    """

    settings = _load_settings(config)
    original = None
    if to or sender:
        headers = {name: value for name, value in (("to", to), ("from", sender)) if value}
        original = Message(message_id="cli@mailcompose", headers=headers)
    try:
        choice = determine_context(settings.contexts, settings.context_policy, original)
    except ComposeError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if choice.context is None:
        typer.echo("none")
        return
    typer.echo(f"{choice.context.name} {choice.context.identity}")


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
