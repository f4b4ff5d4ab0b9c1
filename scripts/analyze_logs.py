# ABOUTME: Provides a CLI that runs quality checks and pattern mining over an observation export.
# ABOUTME: Prints Rich tables for data quality, patterns, strategies, risk forecast, and arousal trend.

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from src.common.calendar import parse_timestamp
from src.common.config import DEFAULT_CONFIG, AnalysisConfig, load_analysis_config
from src.common.data_pipeline import ObservationExport, load_observation_export
from src.common.schemas import LogEntry
from src.common.statistics import bootstrap_mean_ci, detect_data_quality_issues, detect_outliers_iqr, mann_kendall_test
from src.patterns import (
    analyze_interaction_effects,
    analyze_multi_factor_patterns,
    analyze_strategy_combinations,
    calculate_risk_forecast,
    get_pattern_summary,
)
from src.quality import generate_data_quality_report

console = Console()
app = typer.Typer(help="Check data quality and mine behavioral patterns from observation logs.")

EXPORT_HELP = "JSON export with `logs` and `crisisEvents` collections."
CONFIG_HELP = "YAML file with an `analysis` section overriding defaults."


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline stages to stderr.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_export(export_path: Path) -> ObservationExport:
    if not export_path.exists():
        console.print(f"[red]Missing export at {export_path}[/red]")
        raise typer.Exit(code=1)
    try:
        return load_observation_export(export_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--export") from exc


def _load_config(config_path: Optional[Path]) -> AnalysisConfig:
    if config_path is None:
        return DEFAULT_CONFIG
    if not config_path.exists():
        console.print(f"[red]Missing config at {config_path}[/red]")
        raise typer.Exit(code=1)
    try:
        return load_analysis_config(config_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _parse_now(now: Optional[str]) -> Optional[datetime]:
    if now is None:
        return None
    parsed = parse_timestamp(now)
    if parsed is None:
        raise typer.BadParameter(f"Cannot parse timestamp {now!r}.", param_hint="--now")
    return parsed.to_pydatetime()


def _valid_logs(export: ObservationExport) -> List[LogEntry]:
    logs = export.log_entries
    if not logs:
        console.print("[yellow]No usable log entries in export.[/yellow]")
        raise typer.Exit(code=1)
    return logs


@app.command()
def quality(
    export_path: Path = typer.Option(..., "--export", help=EXPORT_HELP),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO8601); defaults to the current time."),
) -> None:
    """
    Validate every record and score the overall data quality.
    """
    export = _load_export(export_path)
    report = generate_data_quality_report(export.logs, export.crisis_events, now=_parse_now(now))

    console.rule("[bold blue]Datakvalitet[/bold blue]")
    console.print(f"[bold]Score:[/] {report.quality_score}/100")
    console.print(f"[bold]Entries:[/] {report.total_entries} total, {report.valid_entries} valid, "
                  f"{report.error_entries} with errors, {report.warning_entries} with warnings")
    console.print(report.summary)

    if report.suspicious_patterns:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Type")
        table.add_column("Severity")
        table.add_column("Entries")
        table.add_column("Description")
        for pattern in report.suspicious_patterns:
            table.add_row(pattern.type, pattern.severity, str(len(pattern.affected_ids)), pattern.description)
        console.print(table)

    issues = detect_data_quality_issues(list(export.logs))
    for issue in issues:
        console.print(f"[yellow]{issue.type}[/yellow] ({issue.severity}): {issue.description}")


@app.command()
def patterns(
    export_path: Path = typer.Option(..., "--export", help=EXPORT_HELP),
    config_path: Optional[Path] = typer.Option(None, "--config", help=CONFIG_HELP),
) -> None:
    """
    Mine factors and factor pairs associated with high arousal.
    """
    export = _load_export(export_path)
    config = _load_config(config_path)
    mined = analyze_multi_factor_patterns(_valid_logs(export), export.crisis_records, config)

    console.rule("[bold blue]Mønstre[/bold blue]")
    if mined:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Pattern")
        table.add_column("Outcome")
        table.add_column("Probability")
        table.add_column("95% CI")
        table.add_column("p (adj.)")
        table.add_column("Confidence")
        for pattern in mined:
            p_value = pattern.adjusted_p_value if pattern.adjusted_p_value is not None else pattern.p_value
            ci = pattern.probability_ci
            table.add_row(
                pattern.id,
                pattern.outcome,
                f"{pattern.probability:.0%} ({pattern.occurrence_count}/{pattern.total_occasions})",
                f"{ci.lower:.2f}-{ci.upper:.2f}" if ci else "-",
                f"{p_value:.4f}",
                pattern.confidence,
            )
        console.print(table)
    console.print(get_pattern_summary(mined))


@app.command()
def strategies(
    export_path: Path = typer.Option(..., "--export", help=EXPORT_HELP),
    config_path: Optional[Path] = typer.Option(None, "--config", help=CONFIG_HELP),
) -> None:
    """
    Report strategy combination outcomes and synergistic factor pairs.
    """
    export = _load_export(export_path)
    config = _load_config(config_path)
    logs = _valid_logs(export)

    combo_table = Table(show_header=True, header_style="bold magenta")
    combo_table.add_column("Strategies")
    combo_table.add_column("Uses")
    combo_table.add_column("Helped %")
    combo_table.add_column("Escalated %")
    for result in analyze_strategy_combinations(logs, config):
        combo_table.add_row(
            " + ".join(result.strategies),
            str(result.occurrence_count),
            f"{result.success_rate:.1f}",
            f"{result.escalation_rate:.1f}",
        )
    console.rule("[bold blue]Strategier[/bold blue]")
    console.print(combo_table)

    effects = analyze_interaction_effects(logs, config)
    if effects:
        effect_table = Table(show_header=True, header_style="bold magenta")
        effect_table.add_column("Factors")
        effect_table.add_column("Observed")
        effect_table.add_column("Expected")
        effect_table.add_column("Strength")
        effect_table.add_column("n")
        for effect in effects:
            effect_table.add_row(
                " + ".join(factor.key for factor in effect.factors),
                f"{effect.observed_probability:.2f}",
                f"{effect.expected_probability:.2f}",
                f"{effect.interaction_strength:+.2f}",
                str(effect.sample_size),
            )
        console.rule("[bold blue]Samspill[/bold blue]")
        console.print(effect_table)


@app.command()
def forecast(
    export_path: Path = typer.Option(..., "--export", help=EXPORT_HELP),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO8601); defaults to the current time."),
) -> None:
    """
    Estimate today's risk of high arousal from the last 30 days.
    """
    export = _load_export(export_path)
    result = calculate_risk_forecast(export.log_entries, now=_parse_now(now))

    console.rule("[bold blue]Risikovarsel[/bold blue]")
    console.print(f"[bold]Level:[/] {result.level}")
    console.print(f"[bold]Score:[/] {result.score}/100")
    if result.peak_hour is not None:
        console.print(f"[bold]Peak hour:[/] {result.peak_hour:02d}:00")
    for factor in result.contributing_factors:
        params = ", ".join(f"{key}={value}" for key, value in factor.params.items())
        console.print(f"- {factor.key}" + (f" ({params})" if params else ""))


@app.command()
def trend(
    export_path: Path = typer.Option(..., "--export", help=EXPORT_HELP),
    seed: int = typer.Option(0, "--seed", help="Seed for bootstrap resampling."),
) -> None:
    """
    Test daily mean arousal for a monotonic trend and flag outlier days.
    """
    export = _load_export(export_path)
    logs = _valid_logs(export)

    frame = pd.DataFrame(
        {"timestamp": [parse_timestamp(log.timestamp).tz_convert("UTC") for log in logs], "arousal": [log.arousal for log in logs]}
    )
    daily = frame.set_index("timestamp")["arousal"].resample("D").mean().dropna()

    result = mann_kendall_test(daily.tolist())
    interval = bootstrap_mean_ci(frame["arousal"].tolist(), seed=seed)
    outliers = detect_outliers_iqr(daily.tolist())

    console.rule("[bold blue]Trend[/bold blue]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Days", str(len(daily)))
    table.add_row("Trend", result.trend)
    table.add_row("Kendall tau", f"{result.tau:.3f}")
    table.add_row("p-value", f"{result.p_value:.4f}")
    table.add_row("Mean arousal (95% CI)", f"{interval.point:.2f} ({interval.lower:.2f}-{interval.upper:.2f})")
    table.add_row("Outlier days", ", ".join(str(daily.index[i].date()) for i in outliers.indices) or "-")
    console.print(table)


if __name__ == "__main__":
    app()
