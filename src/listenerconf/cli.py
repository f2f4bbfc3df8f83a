"""Typer-powered command line for inspecting listener configuration."""
from __future__ import annotations

import logging
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .exit_codes import ExitCode
from .models import CertificateConfig, flag_label
from .reader import ConfigurationReader
from .reload import diff_endpoints
from .source import ConfigError, ConfigurationSection, load_configuration

LOGGER = logging.getLogger(__name__)

console = Console()
error_console = Console(stderr=True)

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to listenerconf's YAML config file.",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit the result as JSON instead of a table.",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Inspect server listener configuration.

        Reads the Certificates, EndpointDefaults and Endpoints sections from a
        YAML file (plus LISTENERCONF_* environment overrides) and reports the
        endpoints a server would bind.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config_file: Path | None
    configuration: ConfigurationSection
    reader: ConfigurationReader


def _fail(message: str, code: ExitCode) -> NoReturn:
    error_console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=int(code))


def _load(config_file: Path | None) -> ConfigurationSection:
    try:
        return load_configuration(config_file)
    except ConfigError as exc:
        _fail(str(exc), ExitCode.VALIDATION)
    except OSError as exc:
        _fail(f"Unable to read configuration: {exc}", ExitCode.ENVIRONMENT)


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    configuration = _load(config_file)
    runtime = RuntimeContext(
        config_file=config_file,
        configuration=configuration,
        reader=ConfigurationReader(configuration),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the listenerconf version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log configuration parsing details to stderr.",
    ),
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )

    if version:
        console.print(f"listenerconf {__version__}")
        raise typer.Exit(code=int(ExitCode.OK))

    # `diff` reads only the two files it is given.
    if ctx.invoked_subcommand != "diff":
        _ensure_runtime(ctx, config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=int(ExitCode.OK))


@app.command("endpoints")
def endpoints_show(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """List configured endpoints with their effective settings."""
    runtime = _get_runtime(ctx)
    try:
        endpoints = runtime.reader.endpoints
        defaults = runtime.reader.endpoint_defaults
    except ConfigError as exc:
        _fail(str(exc), ExitCode.VALIDATION)

    if json_output:
        console.print_json(
            data={"endpoints": [endpoint.to_dict(defaults) for endpoint in endpoints]}
        )
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Endpoint", style="bold")
    table.add_column("Url")
    table.add_column("Protocols")
    table.add_column("TLS")
    table.add_column("Certificate")

    if not endpoints:
        table.add_row("(none)", "", "", "", "")
    else:
        for endpoint in endpoints:
            table.add_row(
                endpoint.name,
                endpoint.url,
                flag_label(endpoint.resolve_protocols(defaults)) or "",
                flag_label(endpoint.resolve_ssl_protocols(defaults)) or "",
                _describe_certificate(endpoint.certificate),
            )

    console.print(table)


@app.command("certificates")
def certificates_show(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """List named certificates (passwords are redacted)."""
    runtime = _get_runtime(ctx)
    certificates = runtime.reader.certificates

    if json_output:
        console.print_json(
            data={
                "certificates": {
                    name: certificate.to_dict() for name, certificate in certificates.items()
                }
            }
        )
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Certificate", style="bold")
    table.add_column("Source")
    table.add_column("Allow invalid")

    if not certificates:
        table.add_row("(none)", "", "")
    else:
        for name, certificate in certificates.items():
            table.add_row(
                name,
                _describe_certificate(certificate),
                "yes" if certificate.allow_invalid else "no",
            )

    console.print(table)


@app.command("defaults")
def defaults_show(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """Display the endpoint defaults section."""
    runtime = _get_runtime(ctx)
    data = runtime.reader.endpoint_defaults.to_dict()

    if json_output:
        console.print_json(data=data)
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, "(unset)" if value is None else str(value))
    console.print(table)


@app.command("diff")
def diff_show(
    previous_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="YAML file holding the previous configuration.",
    ),
    current_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="YAML file holding the refreshed configuration.",
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """Show which endpoints a reload from PREVIOUS to CURRENT would restart."""
    try:
        previous = ConfigurationReader(load_configuration(previous_file, env={})).endpoints
        current = ConfigurationReader(load_configuration(current_file, env={})).endpoints
    except ConfigError as exc:
        _fail(str(exc), ExitCode.VALIDATION)
    except OSError as exc:
        _fail(f"Unable to read configuration: {exc}", ExitCode.ENVIRONMENT)

    changes = diff_endpoints(previous, current)

    if json_output:
        console.print_json(data=changes.to_dict())
        return

    if not changes.has_changes:
        console.print("No endpoint changes.")
        return

    restarted = set(changes.restarted)
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Endpoint", style="bold")
    table.add_column("Action")
    for endpoint in changes.to_stop:
        if endpoint.name not in restarted:
            table.add_row(endpoint.name, "stop")
    for endpoint in changes.to_start:
        action = "restart" if endpoint.name in restarted else "start"
        table.add_row(endpoint.name, action)
    for endpoint in changes.unchanged:
        table.add_row(endpoint.name, "unchanged")
    console.print(table)


def _describe_certificate(certificate: CertificateConfig) -> str:
    if certificate.is_file_cert:
        return f"file: {certificate.path}"
    if certificate.is_store_cert:
        location = "/".join(part for part in (certificate.location, certificate.store) if part)
        suffix = f" ({location})" if location else ""
        return f"store: {certificate.subject}{suffix}"
    return "(none)"


def main() -> None:
    """Console script entry point."""
    app()
