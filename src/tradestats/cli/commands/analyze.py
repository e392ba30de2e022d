"""Trade analysis command."""

import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from pydantic.alias_generators import to_camel
from rich.console import Console

from tradestats.libraries.money import migrate_all_trades
from tradestats.services.analytics import AnalyticsOrchestrator, AnalyticsState, AnalyticsStore
from tradestats.services.compute import ComputeBridge
from tradestats.system.config import get_system_config, reload_system_config

console = Console()


def load_trades_file(path: Path) -> tuple[list[Any], dict[str, Any]]:
    """
    Read trades (and optional settings) from a JSON or YAML file.

    Accepted shapes:
        - a list of trades
        - a mapping with ``trades`` and optional ``settings``

    Raises:
        ValueError: If the file cannot be parsed or has another shape
    """
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValueError(f"Cannot parse {path}: {e}") from e

    if isinstance(data, list):
        trades, settings = data, {}
    elif isinstance(data, dict) and isinstance(data.get("trades", []), list):
        trades, settings = data.get("trades") or [], data.get("settings") or {}
    else:
        raise ValueError(f"{path} must contain a list of trades or a mapping with a 'trades' list")

    if not isinstance(settings, dict):
        raise ValueError(f"'settings' in {path} must be a mapping")
    return migrate_all_trades(trades), settings


def _override(settings: dict[str, Any], name: str, value: Any) -> None:
    """Set a setting from the command line, replacing any camelCase spelling from the file."""
    if value is None:
        return
    settings.pop(to_camel(name), None)
    settings[name] = value


async def run_analysis(trades: list[Any], settings: dict[str, Any], sync: bool = False) -> AnalyticsState:
    """Run one request through a private orchestrator and return the final store state."""
    system_config = get_system_config()
    compute_config = system_config.compute
    if sync:
        compute_config = replace(compute_config, use_worker=False)

    store = AnalyticsStore()
    bridge = ComputeBridge(compute_config, event_bus=store.event_bus)
    orchestrator = AnalyticsOrchestrator(bridge=bridge, store=store, config=system_config.analytics)
    try:
        await orchestrator.compute_and_store(trades, settings)
        return store.state
    finally:
        await orchestrator.terminate()


def _print_report(state: AnalyticsState) -> None:
    from tradestats.cli.ui import (
        create_category_table,
        create_day_of_week_table,
        create_insights_table,
        create_risk_table,
        create_summary_table,
        create_warnings_table,
    )

    result = state.result
    assert result is not None

    console.print(create_summary_table(result))
    console.print(create_risk_table(result))
    console.print(create_day_of_week_table(result))
    for title, stats in (
        ("By Playbook", result.by_strategy),
        ("By Emotion", result.by_emotion),
        ("By Symbol", result.by_symbol),
    ):
        if len(stats) > 1:
            console.print(create_category_table(title, stats))
    if result.insights:
        console.print(create_insights_table(result.insights))
    if result.warnings:
        console.print(create_warnings_table(result.warnings))

    console.print(f"[dim]Computed in {state.last_compute_ms:.1f} ms ({state.mode} mode)[/dim]")


@click.command("analyze")
@click.argument("trades_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mc-runs", type=click.IntRange(min=0), help="Monte Carlo simulations (0 disables risk of ruin)")
@click.option("--risk-free-rate", type=float, help="Annual risk-free rate, e.g. 0.04")
@click.option("--seed", type=int, help="Seed for reproducible Monte Carlo results")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.option("--sync", is_flag=True, help="Compute inline instead of in a worker process")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level",
)
def analyze_command(
    trades_file: Path,
    mc_runs: Optional[int],
    risk_free_rate: Optional[float],
    seed: Optional[int],
    as_json: bool,
    sync: bool,
    log_level: Optional[str],
):
    """
    Compute performance analytics for a file of closed trades.

    The file is JSON or YAML: either a list of trades or a mapping with
    ``trades`` and ``settings``. CLI options override file settings.

    \b
    Examples:
        # Summary tables
        tradestats analyze trades.json

        # Risk of ruin from 1000 simulations, reproducible
        tradestats analyze trades.yaml --mc-runs 1000 --seed 7

        # Machine-readable output
        tradestats analyze trades.json --json > report.json
    """
    try:
        reload_system_config()

        if log_level:
            from typing import Literal, cast

            from tradestats.system import LoggerFactory

            system_config = get_system_config()
            level = cast(Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], log_level.upper())
            system_config.logging.level = level
            LoggerFactory.configure(system_config.logging.to_logger_config())

        trades, settings = load_trades_file(trades_file)
        _override(settings, "mc_runs", mc_runs)
        _override(settings, "risk_free_rate", risk_free_rate)
        _override(settings, "seed", seed)

        if not as_json:
            console.rule("[bold blue]TradeStats[/bold blue]")
            console.print(f"  File: [yellow]{trades_file}[/yellow]  Trades: [magenta]{len(trades)}[/magenta]")
            console.print()

        state = asyncio.run(run_analysis(trades, settings, sync=sync))

        if state.error is not None:
            console.print(f"[bold red]✗ Analysis failed:[/bold red] {state.error}")
            sys.exit(1)

        if as_json:
            payload = state.result.model_dump_json(indent=2) if state.result is not None else "null"
            click.echo(payload)
            sys.exit(0)

        if state.result is None:
            console.print("[yellow]No valid trades to analyze.[/yellow]")
            sys.exit(0)

        _print_report(state)
        sys.exit(0)

    except Exception as e:
        console.print()
        console.print(f"[bold red]✗ Analysis failed:[/bold red] {e}")
        sys.exit(1)
