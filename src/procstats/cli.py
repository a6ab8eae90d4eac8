"""CLI commands for procstats."""

from pathlib import Path

import click

from procstats.config import Config
from procstats.session import DirectoryStatsSource, StatsSession, ViewOptions


def _open_session(config: Config, stats_dir: Path | None, options: ViewOptions) -> StatsSession:
    """Create a session over the snapshot directory."""
    source = DirectoryStatsSource(stats_dir or config.stats_dir)
    return StatsSession(
        source,
        options,
        min_coverage=config.loading.min_coverage_ms,
        ranking=config.ranking,
        multipliers=config.weights,
    )


def _refresh_or_exit(session: StatsSession):
    """Run one refresh; exit with status 1 when nothing could be loaded."""
    from procstats import logging as plog

    report = session.refresh()
    if report is None:
        plog.stats_unavailable(str(session.source.path))
        raise SystemExit(1)
    return report


stats_dir_option = click.option(
    "--dir",
    "stats_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Snapshot directory (default from config)",
)


@click.group()
@click.version_option(package_name="procstats")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default ~/.config/procstats/config.toml)",
)
@click.pass_context
def main(ctx, config_path: Path | None) -> None:
    """Rank processes by memory cost over recent history."""
    from procstats import logging as plog

    try:
        config = Config.load(config_path)
    except ValueError as e:
        plog.config_invalid(str(e))
        raise SystemExit(1) from e

    plog.configure(config)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path


@main.command()
@click.option(
    "--type",
    "stats_type",
    type=click.Choice(["background", "foreground", "cached"]),
    default=None,
    help="Process category to rank",
)
@click.option("--system/--no-system", "show_system", default=None, help="Include system processes")
@click.option("--uss/--pss", "use_uss", default=None, help="Weigh by USS instead of PSS")
@stats_dir_option
@click.option("--format", "-f", "fmt", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def show(
    ctx,
    stats_type: str | None,
    show_system: bool | None,
    use_uss: bool | None,
    stats_dir: Path | None,
    fmt: str,
) -> None:
    """Show processes ranked by weight."""
    import json

    from procstats import logging as plog
    from procstats.categories import system_toggle_enabled
    from procstats.formatting import format_elapsed, format_kb, format_percent
    from procstats.memory import memory_state_label
    from procstats.states import StatsType

    config: Config = ctx.obj["config"]
    options = ViewOptions.from_config(config.view)
    if stats_type is not None:
        options.stats_type = StatsType.parse(stats_type)
    if show_system is not None:
        options.show_system = show_system
    if use_uss is not None:
        options.use_uss = use_uss

    session = _open_session(config, stats_dir, options)
    report = _refresh_or_exit(session)

    if fmt == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    snapshot = session.snapshot
    plog.stats_loaded(snapshot.elapsed, snapshot.merged_count, len(snapshot.processes))
    if report.skipped_services:
        plog.warn(f"[yellow]{report.skipped_services}[/] services skipped (host process not in snapshot)")

    system_note = ""
    if system_toggle_enabled(options.stats_type) and options.show_system:
        system_note = " (incl. system)"
    click.echo(
        f"{report.category_label}{system_note} over {format_elapsed(report.total_time)}, "
        f"memory is {memory_state_label(report.mem_state)}"
    )
    mem = report.memory
    click.echo(
        f"Memory: critical {format_percent(mem.critical * 100)} | "
        f"low/moderate {format_percent(mem.low_moderate * 100)} | "
        f"normal {format_percent(mem.normal * 100)}"
    )

    if not report.entries:
        click.echo("\nNo processes to show.")
        return

    cost = "USS" if options.use_uss else "PSS"
    click.echo(
        f"\n{'#':>3}  {'Process':32}  {'Weight':>7}  {'Time':>7}  {'Avg ' + cost:>9}  Services"
    )
    click.echo("-" * 80)
    for i, entry in enumerate(report.entries, 1):
        label = entry.best_target_package or entry.name
        avg = entry.avg_uss if options.use_uss else entry.avg_pss
        services = ", ".join(entry.services) or "-"
        click.echo(
            f"{i:>3}  {label[:32]:32}  {format_percent(report.percent_of_weight(entry)):>7}  "
            f"{format_percent(report.percent_of_time(entry)):>7}  {format_kb(avg):>9}  {services}"
        )


@main.command()
@stats_dir_option
@click.pass_context
def memory(ctx, stats_dir: Path | None) -> None:
    """Show time spent under each memory pressure level."""
    from procstats.formatting import format_duration_ms, format_percent
    from procstats.memory import memory_state_label

    config: Config = ctx.obj["config"]
    session = _open_session(config, stats_dir, ViewOptions.from_config(config.view))
    report = _refresh_or_exit(session)

    critical, low_moderate, normal = report.memory.as_tuple()
    click.echo(f"Period: {format_duration_ms(report.total_time)}")
    click.echo(f"Snapshots merged: {report.merged_snapshots}")
    click.echo(f"Current state: {memory_state_label(report.mem_state)}")
    click.echo(f"  critical:     {format_percent(critical * 100):>7}")
    click.echo(f"  low/moderate: {format_percent(low_moderate * 100):>7}")
    click.echo(f"  normal:       {format_percent(normal * 100):>7}")


@main.command()
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@stats_dir_option
@click.pass_context
def export(ctx, output: Path, stats_dir: Path | None) -> None:
    """Write the merged snapshot to OUTPUT."""
    from procstats import logging as plog
    from procstats.codec import dump_snapshot

    config: Config = ctx.obj["config"]
    session = _open_session(config, stats_dir, ViewOptions.from_config(config.view))
    _refresh_or_exit(session)

    output.write_bytes(dump_snapshot(session.snapshot))
    plog.snapshot_exported(str(output))


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx) -> None:
    """Display current configuration."""
    from dataclasses import fields

    cfg: Config = ctx.obj["config"]
    path = ctx.obj["config_path"] or cfg.config_path

    click.echo(f"Config file: {path}")
    click.echo(f"Exists: {path.exists()}")
    for section in ["view", "loading", "ranking", "weights", "system"]:
        values = getattr(cfg, section)
        click.echo()
        click.echo(f"[{section}]")
        for f in fields(values):
            click.echo(f"  {f.name} = {getattr(values, f.name)}")


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
@click.pass_context
def config_reset(ctx) -> None:
    """Reset configuration to defaults."""
    from procstats import logging as plog

    cfg = Config()
    path = ctx.obj["config_path"] or cfg.config_path
    cfg.save(path)
    plog.config_reset(str(path))


if __name__ == "__main__":
    main()
