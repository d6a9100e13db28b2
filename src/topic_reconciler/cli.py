"""Typer CLI for the topic reconciler."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from topic_reconciler.bootstrap import (
    ProvisioningError,
    provision_topics,
    provisioning_enabled,
)
from topic_reconciler.config.loader import load_platform_config, resolve_active_profile
from topic_reconciler.config.models import PlatformConfig
from topic_reconciler.observability.logging import configure_logging
from topic_reconciler.reconciler import OutcomeStatus, ReconciliationReport

console = Console()
app = typer.Typer(name="topic-reconciler", help="Declarative Kafka topic provisioning")

_STATUS_STYLES = {
    OutcomeStatus.CREATED: "green",
    OutcomeStatus.ALREADY_EXISTS: "cyan",
    OutcomeStatus.FAILED: "red",
}


def _load(config_path: str | None) -> PlatformConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    try:
        return load_platform_config(Path(config_path) if config_path else None)
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        raise typer.Exit(1) from exc


def _topics_table(platform: PlatformConfig, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Topic", style="cyan", no_wrap=True)
    table.add_column("Partitions", justify="right", no_wrap=True)
    table.add_column("Replicas", justify="right", no_wrap=True)
    table.add_column("Config")
    for t in platform.provisioning.topics:
        cfg = ", ".join(f"{k}={v}" for k, v in sorted(t.effective_config().items()))
        table.add_row(t.name, str(t.partitions), str(t.replication_factor), cfg)
    return table


def _report_table(report: ReconciliationReport) -> Table:
    table = Table(title="Reconciliation Report")
    table.add_column("Topic", style="cyan", no_wrap=True)
    table.add_column("Outcome", no_wrap=True)
    table.add_column("Cause", no_wrap=True)
    table.add_column("Detail")
    for o in report.outcomes:
        style = _STATUS_STYLES[o.status]
        table.add_row(
            o.topic,
            f"[{style}]{o.status}[/{style}]",
            o.cause.value if o.cause else "",
            o.detail,
        )
    return table


@app.command()
def validate(
    config_path: str | None = typer.Option(None, "--config", "-c", help="Config YAML"),
) -> None:
    """Validate a config file and list the declared topics."""
    platform = _load(config_path)
    console.print(f"[green]Valid[/green] — {config_path or '(defaults)'}")
    console.print(f"  kafka:    {platform.kafka.bootstrap_servers}")
    console.print(f"  profiles: {platform.provisioning.profiles}")
    if platform.provisioning.topics:
        console.print(_topics_table(platform, "Declared Topics"))
    else:
        console.print("  topics:   (none)")


@app.command()
def plan(
    config_path: str | None = typer.Option(None, "--config", "-c", help="Config YAML"),
    profile: str | None = typer.Option(None, "--profile", help="Deployment profile"),
) -> None:
    """Show whether provisioning would run, without contacting the broker."""
    platform = _load(config_path)
    active = profile or resolve_active_profile(platform)
    if not provisioning_enabled(active, platform.provisioning):
        console.print(
            f"[yellow]Skipped[/yellow] — profile '{active}' is not one of "
            f"{platform.provisioning.profiles} or provisioning is disabled"
        )
        return
    console.print(f"[green]Would provision[/green] under profile '{active}'")
    console.print(_topics_table(platform, "Topics to ensure"))


@app.command()
def reconcile(
    config_path: str | None = typer.Option(None, "--config", "-c", help="Config YAML"),
    profile: str | None = typer.Option(None, "--profile", help="Deployment profile"),
    strict: bool | None = typer.Option(
        None,
        "--strict/--no-strict",
        help="Fail when any topic is unsatisfied (defaults to config)",
    ),
) -> None:
    """Create missing topics on the broker."""
    platform = _load(config_path)
    configure_logging(platform.logging)
    try:
        report = provision_topics(
            platform, profile=profile, fail_on_unsatisfied=strict
        )
    except ProvisioningError as exc:
        console.print(_report_table(exc.report))
        console.print(f"[red]Provisioning failed:[/red] {exc}")
        raise typer.Exit(1) from exc
    except Exception as exc:
        console.print(f"[red]Reconcile error:[/red] {exc}")
        raise typer.Exit(1) from exc

    if report is None:
        console.print("[yellow]Provisioning skipped for this profile[/yellow]")
        return

    console.print(_report_table(report))
    if not report.all_satisfied:
        console.print(
            f"[yellow]Degraded:[/yellow] {len(report.failures)} topic(s) unsatisfied"
        )
        raise typer.Exit(1)
    console.print("[green]All topics satisfied[/green]")
