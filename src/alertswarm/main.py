"""Command-line entry point for AlertSwarm."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from alertswarm.config import get_config, load_config, set_config
from alertswarm.enrichment import close_enrichment_clients
from alertswarm.exceptions import AlertSwarmError
from alertswarm.log_setup import configure_logging
from alertswarm.models import Alert, InvestigationOutcome
from alertswarm.orchestrator import build_orchestrator
from alertswarm.persistence import SqlRelationalStore, close_db, init_db
from alertswarm.retrieval import extract_entities

logger = structlog.get_logger()
console = Console()


def _read_alert(path: str) -> Alert:
    raw = sys.stdin.read() if path == "-" else Path(path).read_text()
    return Alert.model_validate(json.loads(raw))


def _print_outcome(outcome: InvestigationOutcome) -> None:
    table = Table(title=f"Findings ({outcome.rounds} round(s))")
    table.add_column("Agent", style="cyan")
    table.add_column("Status")
    table.add_column("Summary")
    for finding in outcome.findings:
        style = "green" if finding.succeeded else "red"
        table.add_row(finding.agent, f"[{style}]{finding.status.value}[/{style}]", finding.summary)
    console.print(table)

    if outcome.historical_context:
        console.print("[bold]Historical context:[/bold]")
        for item in outcome.historical_context:
            console.print(f"  {item.to_prompt_line()}")

    console.print(Panel(outcome.report, title=f"Investigation Report: {outcome.alert_id}", border_style="blue"))


async def _investigate(alert: Alert, max_rounds: int, register: bool) -> InvestigationOutcome:
    config = get_config()
    orchestrator = build_orchestrator(config)
    try:
        if register:
            entities = extract_entities(alert)
            await SqlRelationalStore().save_alert(
                alert.id,
                alert.tenant_id,
                alert.title,
                description=alert.description,
                severity=alert.severity,
                indicator_values=entities.values(),
            )
        return await orchestrator.orchestrate(alert, max_rounds=max_rounds)
    finally:
        await orchestrator.aclose()
        await close_enrichment_clients()
        await close_db()


async def _init_db() -> None:
    try:
        await init_db()
    finally:
        await close_db()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="AlertSwarm - multi-agent alert investigation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=str, help="Path to .env config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    investigate = subparsers.add_parser("investigate", help="Investigate an alert read from a JSON file")
    investigate.add_argument("alert_json", help="Path to alert JSON, or - for stdin")
    investigate.add_argument("--max-rounds", type=int, default=None, help="Round cap (default from config)")
    investigate.add_argument(
        "--register",
        action="store_true",
        help="Store the alert record before investigating",
    )

    subparsers.add_parser("init-db", help="Create database tables")

    args = parser.parse_args(argv)

    if args.config:
        set_config(load_config(Path(args.config)))
    config = get_config()
    configure_logging("DEBUG" if args.debug else config.log_level, config.log_format)

    if args.command == "init-db":
        console.print("[yellow]Creating database tables...[/yellow]")
        asyncio.run(_init_db())
        console.print("[green]Database ready[/green]")
        return 0

    try:
        alert = _read_alert(args.alert_json)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Could not read alert: {e}[/red]")
        return 2

    max_rounds = args.max_rounds or config.investigation.max_rounds
    console.print(f"[yellow]Investigating alert {alert.id} (up to {max_rounds} rounds)...[/yellow]")
    try:
        outcome = asyncio.run(_investigate(alert, max_rounds, args.register))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except AlertSwarmError as e:
        logger.error("investigation_aborted", alert_id=alert.id, error=str(e))
        console.print(f"[red]Investigation failed: {e}[/red]")
        return 1
    except Exception as e:
        logger.exception("investigation_crashed", alert_id=alert.id, error_type=type(e).__name__)
        console.print(f"[red]Investigation failed: {type(e).__name__}: {e}[/red]")
        return 1

    _print_outcome(outcome)
    return 0


if __name__ == "__main__":
    sys.exit(main())
