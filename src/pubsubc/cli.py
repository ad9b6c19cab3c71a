"""Typer CLI for pubsubc."""

from __future__ import annotations

import asyncio
import os
import platform
from importlib.metadata import PackageNotFoundError, version

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pubsubc.backend.google import GooglePubSubBackend
from pubsubc.config.loader import discover_project_configs, load_settings
from pubsubc.config.models import ProjectConfig, ProvisionSettings
from pubsubc.config.parser import ParseError, parse
from pubsubc.observability.logging import configure_logging
from pubsubc.provisioner import TopologyProvisioner
from pubsubc.runner import RunReport, provision_all

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(
    name="pubsubc",
    help="Provision Pub/Sub topics and subscriptions from compact config strings",
    no_args_is_help=True,
)

NOT_SET = "<not set>"


def version_string() -> str:
    try:
        default_revision = version("pubsubc")
    except PackageNotFoundError:
        default_revision = NOT_SET
    revision = os.environ.get("PUBSUBC_REVISION", default_revision)
    commit = os.environ.get("PUBSUBC_COMMIT_HASH", NOT_SET)
    return (
        f"pubsubc - build {revision} ({commit}) "
        f"running on Python {platform.python_version()}"
    )


def _usage(prefix: str) -> str:
    return (
        f'Usage: env {prefix}1="project1,topic1,topic2>subscription1" pubsubc provision\n'
        f"  Declare further projects in {prefix}2, {prefix}3, ... or pass --config."
    )


def _load_settings(settings_path: str | None) -> ProvisionSettings:
    try:
        return load_settings(settings_path)
    except (OSError, TypeError, ValueError) as exc:
        err_console.print(f"[red]Settings error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc


def _collect(configs: list[str] | None, settings: ProvisionSettings) -> list[tuple[str, str]]:
    if configs:
        return [(f"--config #{i}", raw) for i, raw in enumerate(configs, start=1)]
    found = discover_project_configs(settings.env_prefix)
    if not found:
        err_console.print(_usage(settings.env_prefix))
        raise typer.Exit(1)
    return found


def _topology_table(source: str, project: ProjectConfig) -> Table:
    table = Table(title=escape(f"{project.project_id} ({source})"))
    table.add_column("Topic", style="cyan")
    table.add_column("Subscription")
    table.add_column("Delivery")
    for topic, subscriptions in project.topics.items():
        if not subscriptions:
            table.add_row(escape(topic), "[dim](none)[/dim]", "")
        for spec in subscriptions:
            delivery = f"push {spec.push_endpoint}" if spec.is_push else "pull"
            table.add_row(escape(topic), escape(spec.subscription_id), escape(delivery))
    return table


def _print_report(report: RunReport) -> None:
    for outcome in report.outcomes:
        if outcome.ok:
            project = escape(str(outcome.project_id))
            console.print(
                f"[green]Provisioned[/green] {project} ({outcome.source}): "
                f"{len(outcome.created.get('topics', []))} topic(s), "
                f"{len(outcome.created.get('subscriptions', []))} subscription(s) created"
            )
        else:
            err_console.print(f"[red]{outcome.source}:[/red] {escape(outcome.error)}")
    if report.cancelled:
        err_console.print("[yellow]Cancelled[/yellow], remaining projects were skipped")


@app.command()
def provision(
    config: list[str] | None = typer.Option(
        None, "--config", "-c", help="Config string; repeat for several projects"
    ),
    settings_path: str | None = typer.Option(None, "--settings", help="Settings YAML"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
) -> None:
    """Create the topics and subscriptions of every configured project."""
    configure_logging(debug, json_output=json_logs)
    settings = _load_settings(settings_path)
    configs = _collect(config, settings)

    provisioner = TopologyProvisioner(GooglePubSubBackend(settings))
    report = asyncio.run(provision_all(configs, provisioner))
    _print_report(report)
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def validate(
    config: list[str] | None = typer.Option(
        None, "--config", "-c", help="Config string; repeat for several projects"
    ),
    settings_path: str | None = typer.Option(None, "--settings", help="Settings YAML"),
) -> None:
    """Parse the configured projects and show their topology without provisioning."""
    configure_logging()
    settings = _load_settings(settings_path)
    failed = False
    for source, raw in _collect(config, settings):
        try:
            project = parse(raw)
        except ParseError as exc:
            err_console.print(f"[red]{source}:[/red] {escape(str(exc))}")
            failed = True
            continue
        console.print(_topology_table(source, project))
    if failed:
        raise typer.Exit(1)


@app.command("version")
def show_version() -> None:
    """Print build information."""
    console.print(version_string(), highlight=False)
