"""CLI for the sleepsense sleep detection engine."""

import asyncio
from datetime import date

import click

from sleepsense.constants import DEFAULT_STORE_DIR


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """sleepsense — on-device sleep detection and scoring."""
    from sleepsense.logging_config import setup_logging

    setup_logging(verbose=verbose)


def _store_option(f):
    return click.option(
        "--store", "-s", "store_dir", default=str(DEFAULT_STORE_DIR),
        type=click.Path(file_okay=False), help="Session store directory.",
    )(f)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--user", "-u", default="local", help="User id to record sessions under.")
@click.option("--config", "-c", "config_path", default=None, type=click.Path(exists=True),
              help="TOML config file (default ~/.sleepsense/config.toml).")
@_store_option
def replay(file: str, user: str, config_path: str | None, store_dir: str) -> None:
    """Replay a JSONL sensor capture and record detected sessions."""
    from sleepsense.config import load_config
    from sleepsense.errors import ConfigError
    from sleepsense.recorder import JsonFileSessionStore
    from sleepsense.replay import replay_file
    from sleepsense.scoring import quality_label

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    store = JsonFileSessionStore(store_dir)
    result = asyncio.run(replay_file(file, user, store, config))

    click.echo(f"Replayed {result.events} events ({result.skipped} skipped).")
    for session, saved in zip(result.sessions, result.saved):
        status = "saved" if saved else "NOT saved"
        click.echo(
            f"  {session.sleep_start:%Y-%m-%d %H:%M} → {session.sleep_end:%H:%M}  "
            f"{session.duration_hours:.1f}h  quality {session.quality:.0f} "
            f"({quality_label(session.quality)})  [{status}]"
        )
    if not result.sessions:
        click.echo("  No completed sleep sessions.")
    if result.open_session is not None:
        click.echo(f"  Still asleep at end of capture (since {result.open_session.sleep_start:%H:%M}).")


@main.command()
@click.argument("user")
@click.argument("day", type=click.DateTime(formats=["%Y-%m-%d"]))
@_store_option
def show(user: str, day, store_dir: str) -> None:
    """Show the session stored for USER on DAY (YYYY-MM-DD)."""
    from sleepsense.recorder import JsonFileSessionStore, SessionRecorder
    from sleepsense.scoring import quality_label

    recorder = SessionRecorder(JsonFileSessionStore(store_dir))
    session = asyncio.run(recorder.get_session(user, day.date()))
    if session is None:
        click.echo(f"No sleep recorded for {user} on {day:%Y-%m-%d}.")
        return

    kind = "manual" if session.is_manual else "detected"
    click.echo(f"Sleep for {user} on {day:%Y-%m-%d} ({kind})")
    click.echo(f"  Start:     {session.sleep_start.isoformat()}")
    click.echo(f"  End:       {session.sleep_end.isoformat() if session.sleep_end else '-'}")
    click.echo(f"  Duration:  {session.duration_hours:.1f} h")
    click.echo(f"  Quality:   {session.quality:.1f} ({quality_label(session.quality)})")
    click.echo(f"  Movements: {session.total_movements}")
    click.echo(f"  Restless:  {session.restless_periods}")


@main.command()
@click.argument("user")
@click.option("--today", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Any day of the week to show (default: today).")
@_store_option
def week(user: str, today, store_dir: str) -> None:
    """Show the Monday–Sunday sleep rollup for USER."""
    from sleepsense.recorder import JsonFileSessionStore, SessionRecorder, weekly_averages

    recorder = SessionRecorder(JsonFileSessionStore(store_dir))
    day = today.date() if today is not None else date.today()
    rows = asyncio.run(recorder.get_weekly_sessions(user, day))

    click.echo(f"{'=' * 40}")
    click.echo(f"  Week of {rows[0].date} for {user}")
    click.echo(f"{'=' * 40}")
    for row in rows:
        marker = "" if row.has_data else "  (no data)"
        click.echo(f"  {row.date}  {row.duration:4.1f} h  quality {row.quality:5.1f}{marker}")
    avg = weekly_averages(rows)
    click.echo(f"{'-' * 40}")
    click.echo(f"  Average     {avg['duration']:4.1f} h  quality {avg['quality']:5.1f}")


if __name__ == "__main__":
    main()
