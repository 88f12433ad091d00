from __future__ import annotations

import json

import rich_click as click

from capa.errors import CapaError
from capa.logging_backend import LOG_FORMATS, LOG_LEVELS, setup_logging
from capa.models import DEFAULT_SETTINGS, SETTINGS_KEYS, ServerSettings
from capa.paths import database_path, pid_file_path, settings_path, state_dir
from capa.server_status import get_server_status
from capa.settings_store import SettingsStore


def _format_settings(settings: ServerSettings) -> list[str]:
    return [
        f"version={settings.version}",
        f"server.port={settings.server.port}",
        f"server.host={settings.server.host}",
        f"database.path={settings.database.path}",
        f"session.timeout_minutes={settings.session.timeout_minutes}",
    ]


def _load(store: SettingsStore) -> ServerSettings:
    try:
        return store.load()
    except CapaError as exc:
        raise click.ClickException(str(exc)) from exc


def _save(store: SettingsStore, settings: ServerSettings) -> None:
    try:
        store.save(settings)
    except CapaError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level (defaults to LOG_LEVEL or INFO).",
)
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMATS, case_sensitive=True),
    default="plain-text",
    show_default=True,
    help="Log format for diagnostic output on stderr.",
)
def main(log_level: str | None, log_format: str) -> None:
    """capa local state and settings."""
    setup_logging(level=log_level, fmt=log_format)


@main.command("paths")
def paths_command() -> None:
    """Show the resolved state locations."""
    try:
        settings = SettingsStore().load()
        click.echo(f"state_dir={state_dir()}")
        click.echo(f"settings={settings_path()}")
        click.echo(f"database={database_path(settings)}")
        click.echo(f"pid_file={pid_file_path()}")
    except CapaError as exc:
        raise click.ClickException(str(exc)) from exc


@main.group()
def settings() -> None:
    """Inspect and change the settings file."""


@settings.command("show")
@click.option("as_json", "--json", is_flag=True, help="Print the settings as JSON.")
def settings_show(as_json: bool) -> None:
    """Show the effective settings (file merged over defaults)."""
    current = _load(SettingsStore())
    if as_json:
        click.echo(json.dumps(current.to_dict(), indent=2))
        return
    for line in _format_settings(current):
        click.echo(line)


@settings.command("set")
@click.argument("key", type=click.Choice(SETTINGS_KEYS, case_sensitive=True))
@click.argument("value")
def settings_set(key: str, value: str) -> None:
    """Set one settings field, e.g. server.port 9000."""
    store = SettingsStore()
    current = _load(store)
    try:
        updated = current.with_value(key, value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="value") from exc
    _save(store, updated)
    click.echo(f"Set {key}={value}")


@settings.command("reset")
def settings_reset() -> None:
    """Write the default settings to disk."""
    _save(SettingsStore(), DEFAULT_SETTINGS)
    click.echo("Settings reset to defaults.")


@main.command("status")
def status_command() -> None:
    """Show whether the server recorded in the pid file is running."""
    try:
        status = get_server_status()
    except CapaError as exc:
        raise click.ClickException(str(exc)) from exc

    if not status.running:
        click.echo("Status: not running")
        raise click.exceptions.Exit(1)

    click.echo("Status: running")
    click.echo(f"pid={status.pid}")
    if status.version:
        click.echo(f"version={status.version}")
    click.echo(f"port={status.port}")
    click.echo(f"url={status.url}")


if __name__ == "__main__":
    main()
