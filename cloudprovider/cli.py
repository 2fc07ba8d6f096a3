"""Command line wrapper around the cloud provider detector."""

import json
from typing import Optional, Tuple

import click
import yaml
from click.core import ParameterSource

from cloudprovider import debug
from cloudprovider.providers.base import ProviderID
from cloudprovider.providers.detector import Detector, DetectorOptions
from cloudprovider.providers.errors import DetectionError, ProviderNotFoundError
from cloudprovider.providers.registry import PRECEDENCE


def _parse_providers(values: Tuple[str, ...]) -> Optional[frozenset]:
    """Turn repeated and/or comma separated names into provider ids."""

    names = [name for value in values for name in value.split(",") if name.strip()]
    if not names:
        return None
    try:
        return frozenset(ProviderID.parse(name) for name in names)
    except ProviderNotFoundError as e:
        choices = ", ".join(provider.value for provider in PRECEDENCE)
        raise click.BadParameter(f"{e}. Choose from: {choices}") from e


def _run_detection(
    timeout: Optional[float], providers: Tuple[str, ...], output: str, verbose: bool
) -> None:
    debug.configure(verbose)

    enabled = _parse_providers(providers)
    kwargs = {}
    if timeout is not None:
        kwargs["timeout"] = timeout
    if enabled is not None:
        kwargs["enabled_providers"] = enabled
    try:
        options = DetectorOptions(**kwargs)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    try:
        outcome = Detector(options=options).detect_sync()
    except DetectionError as e:
        raise click.ClickException(str(e)) from e

    if output == "json":
        click.echo(json.dumps(outcome.as_dict(), indent=2))
    elif output == "yaml":
        click.echo(yaml.safe_dump(outcome.as_dict(), sort_keys=False), nl=False)
    else:
        click.echo(outcome.provider.value)


_detect_options = [
    click.option(
        "--timeout",
        "-t",
        type=float,
        envvar="CLOUD_PROVIDER_TIMEOUT",
        help="Overall detection deadline in seconds (default 3).",
    ),
    click.option(
        "--provider",
        "-p",
        "providers",
        multiple=True,
        envvar="CLOUD_PROVIDER_PROVIDERS",
        help="Only run these probes (repeat, or comma separated).",
    ),
    click.option(
        "--output",
        "-o",
        type=click.Choice(["text", "json", "yaml"]),
        default="text",
        show_default=True,
        help="Print just the id, or the full outcome with probe diagnostics.",
    ),
    click.option("--verbose", "-v", is_flag=True, help="Enable debug logging."),
]


def detect_options(func):
    """Attach the detection options shared by the root command and ``detect``."""
    for option in reversed(_detect_options):
        func = option(func)
    return func


@click.group(
    invoke_without_command=True,
    help=(
        "Detect the cloud provider this host runs on from instance metadata, "
        "without requiring user input. Prints one of: "
        + ", ".join(provider.value for provider in ProviderID)
        + "."
    ),
)
@detect_options
@click.pass_context
def cli(
    ctx: click.Context,
    timeout: Optional[float],
    providers: Tuple[str, ...],
    output: str,
    verbose: bool,
) -> None:
    """Root command; runs detection when no subcommand is given."""
    if ctx.invoked_subcommand is None:
        _run_detection(timeout, providers, output, verbose)
        return
    # Options typed before the subcommand carry over to it.
    ctx.ensure_object(dict)
    ctx.obj.update(
        (name, value)
        for name, value in ctx.params.items()
        if ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE
    )


@cli.command(help="Detect the cloud provider and print its id.")
@detect_options
@click.pass_context
def detect(ctx: click.Context, **params) -> None:
    """Run every enabled probe and print the result."""
    for name, value in ctx.obj.items():
        if ctx.get_parameter_source(name) is not ParameterSource.COMMANDLINE:
            params[name] = value
    _run_detection(**params)


@cli.command("providers", help="List supported providers in precedence order.")
def list_providers_cmd() -> None:
    """Display each provider id with its name and detection technique."""
    click.echo("Supported cloud providers:")
    for provider in PRECEDENCE:
        click.echo(
            f"  {provider.value:<13} {provider.display_name:<24} {provider.technique}"
        )


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
