from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from typing import Optional

import click
import requests
from rich.console import Console
from rich.table import Table

from models.mailbox import ProvisionedMailbox
from models.results import OperationResult
from services.code_extractor import extract_code
from services.verification_service import VerificationService
from utils.config import AppConfig, load_config
from utils.logger import configure_logging


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    session: requests.Session
    service: VerificationService
    console: Console
    mailbox_name: Optional[str]

    def mailbox(self) -> ProvisionedMailbox:
        try:
            return self.config.get_mailbox(self.mailbox_name)
        except KeyError as exc:
            raise click.BadParameter(str(exc.args[0]), param_hint="--mailbox") from exc


def build_context(env_file: str, mailbox_name: str | None) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level)
    session = requests.Session()
    return AppContext(
        config=config,
        session=session,
        service=VerificationService.from_config(config, session),
        console=Console(),
        mailbox_name=mailbox_name,
    )


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.option("--mailbox", help="Mailbox name defined in mailboxes.json")
@click.pass_context
def cli(ctx: click.Context, env_file: str, mailbox: Optional[str]) -> None:
    """Fetch one-time verification codes from provisioned Outlook mailboxes."""

    app = build_context(env_file, mailbox)
    ctx.call_on_close(app.session.close)
    ctx.obj = app


@cli.command("token")
@click.pass_obj
def token(app: AppContext) -> None:
    """Exchange the mailbox refresh token and report whether it is still usable."""

    mailbox = app.mailbox()
    result = app.service.get_access_token(mailbox.refresh_token, mailbox.client_id)
    if not result.success:
        _fail(app, result)
    app.console.print(f"[bold green]{result.message}[/bold green] ({mailbox.email or mailbox.name})")


@cli.command("monitor")
@click.option("--max-attempts", type=int, default=None, help="Number of mailbox scans before giving up")
@click.option("--delay-ms", type=int, default=None, help="Base delay between scans in milliseconds")
@click.pass_obj
def monitor(app: AppContext, max_attempts: int | None, delay_ms: int | None) -> None:
    """Authenticate and wait for a verification code. Ctrl+C cancels."""

    mailbox = app.mailbox()
    options = {}
    if max_attempts is not None:
        options["max_attempts"] = max_attempts
    if delay_ms is not None:
        options["base_delay_ms"] = delay_ms

    cancel = threading.Event()
    outcome: dict[str, OperationResult[str]] = {}

    def job() -> None:
        outcome["result"] = app.service.monitor_mailbox(mailbox, cancel=cancel, **options)

    worker = threading.Thread(target=job, name="inbox-monitor", daemon=True)
    app.console.print(f"Waiting for a verification code on {mailbox.email or mailbox.name}. Press Ctrl+C to stop.")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        cancel.set()
        worker.join()

    result = outcome.get("result")
    if result is None:
        raise click.ClickException("Monitoring ended without a result")
    if not result.success:
        _fail(app, result)
    app.console.print(f"[bold green]{result.message}[/bold green]")
    click.echo(result.payload)


@cli.command("list")
@click.option("--limit", type=int, default=None, help="Maximum number of emails to show")
@click.pass_obj
def list_emails(app: AppContext, limit: int | None) -> None:
    """Show the newest emails across inbox, deleted items and junk."""

    mailbox = app.mailbox()
    token_result = app.service.get_access_token(mailbox.refresh_token, mailbox.client_id)
    if not token_result.success or token_result.payload is None:
        _fail(app, token_result)

    result = app.service.list_emails(token_result.payload.token, mailbox.client_id, limit=limit)
    if not result.success:
        _fail(app, result)
    if not result.payload:
        app.console.print("[bold green]No emails found.[/bold green]")
        return

    table = Table(title=f"Latest emails for {mailbox.email or mailbox.name}")
    table.add_column("Received")
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Preview", overflow="fold")
    for email in result.payload:
        received = email.received_at.strftime("%Y-%m-%d %H:%M") if email.received_at else "-"
        table.add_row(received, email.sender, email.subject, email.preview[:80])
    app.console.print(table)
    app.console.print(f"[dim]{result.message}[/dim]")


@cli.command("extract")
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.pass_obj
def extract(app: AppContext, source) -> None:
    """Run the code extractor over a saved email body (or stdin)."""

    result = extract_code(source.read())
    if not result.found:
        app.console.print("[yellow]No verification code found.[/yellow]")
        sys.exit(1)
    detail = f"{result.matched_pattern}"
    if result.confidence_signals is not None:
        detail += f", {result.confidence_signals} keywords"
    app.console.print(f"[dim]matched by {detail}[/dim]")
    click.echo(result.code)


def _fail(app: AppContext, result: OperationResult) -> None:
    app.console.print(f"[bold red]{result.message}[/bold red]")
    sys.exit(1)


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
