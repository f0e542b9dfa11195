"""Custom Flask CLI commands."""

from __future__ import annotations

import logging
from typing import Optional

import click
from flask import Flask, current_app

from .services.dispatcher import EmailDispatcher
from .services.email_log_service import list_email_outcomes
from .services.lineup_email_service import send_lineup_email


def register_cli_commands(app: Flask) -> None:
    """Register application specific CLI commands."""

    @app.cli.command("run-dispatch-cycle")
    def run_dispatch_cycle() -> None:
        """Run one lineup email check now, exactly as the worker would."""

        summary = EmailDispatcher(current_app._get_current_object()).run_cycle()
        if summary.skipped:
            raise click.ClickException("Another email check is already running")

        click.echo(f"Checked {summary.candidates} shows")
        for show_id, status in summary.statuses.items():
            click.echo(f"  {show_id}: {status.value}")

    @app.cli.command("send-lineup-email")
    @click.argument("show_id")
    @click.option(
        "--test-email",
        default=None,
        help="Send only to this address and do not record the outcome.",
    )
    def send_lineup_email_command(show_id: str, test_email: Optional[str]) -> None:
        """Send the lineup email of SHOW_ID immediately."""

        logger = current_app.logger or logging.getLogger(__name__)
        result = send_lineup_email(show_id, test_email=test_email)
        if not result.success:
            logger.error("Manual lineup email failed for %s: %s", show_id, result.error)
            raise click.ClickException(result.error or "Lineup email failed")

        click.echo(f"Lineup email sent via {result.method} (message id: {result.message_id})")

    @app.cli.command("email-log")
    @click.option("--failed-only", is_flag=True, default=False, help="Only show failed sends.")
    @click.option("--limit", type=int, default=20, show_default=True)
    def email_log(failed_only: bool, limit: int) -> None:
        """Print the most recent lineup email outcomes."""

        rows = list_email_outcomes(failed_only=failed_only, limit=max(limit, 1))
        if not rows:
            click.echo("No email outcomes recorded")
            return

        for row in rows:
            status = "OK  " if row.success else "FAIL"
            sent_at = row.sent_at.isoformat() if row.sent_at else "-"
            line = f"{status} {sent_at} {row.show_id}"
            if row.error_message:
                line += f" {row.error_message}"
            click.echo(line)
