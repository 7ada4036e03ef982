"""
pie module — CLI entrypoint.

Usage:
    pie-module --help
    pie-module build
    pie-module install --module-path "$MODPATH"
    pie-module targets
    pie-module config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from pie_module import __version__
from pie_module.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="pie-module")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to pie-module.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """pie module — cross-build pie and provision it as a Magisk module."""
    from pie_module.core.config.loader import find_config_file

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else find_config_file()

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("PIE_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("PIE_LOG_FILE"),
        log_file_level=os.environ.get("PIE_LOG_FILE_LEVEL"),
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def build(ctx: click.Context, as_json: bool) -> None:
    """Cross-compile every configured architecture into the staging dir."""
    from pie_module.core.use_cases.build import run_build

    result = run_build(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    report = result.report
    if report and report.artifacts and not ctx.obj.get("quiet"):
        for abi, artifact in report.artifacts.items():
            triple = report.toolchains[abi].target_triple
            click.secho(f"   ✓ {abi} ", fg="green", nl=False)
            click.echo(f"[{triple}] → {artifact}")

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert report is not None
    click.secho(f"\n🔨 Built {report.total} artifact(s) in {result.staging_dir}", fg="cyan", bold=True)
    click.echo()


@cli.command()
@click.option(
    "--module-path",
    "module_path",
    envvar="MODPATH",
    required=True,
    type=click.Path(file_okay=False),
    help="Module directory (default: $MODPATH).",
)
@click.option("--abi", default=None, help="Use this ABI instead of reading the device property.")
@click.option("--data-root", default=None, type=click.Path(file_okay=False), help="Override the data root.")
@click.option(
    "--system-shellrc",
    default=None,
    type=click.Path(dir_okay=False),
    help="Override the system shell-rc to seed from.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    module_path: str,
    abi: str | None,
    data_root: str | None,
    system_shellrc: str | None,
    as_json: bool,
) -> None:
    """Provision the device from the module at MODPATH.

    With --abi the install is rehearsed against a static host: the ABI
    is taken as given and permission changes are only recorded.
    """
    from pie_module.adapters.device.host import DeviceHost, MagiskHost, StaticHost
    from pie_module.core.use_cases.install import run_install

    host: DeviceHost
    if abi is not None:
        prop = _abi_property(ctx.obj.get("config_path"))
        host = StaticHost(props={prop: abi}, echo=not as_json)
    else:
        host = MagiskHost(echo=not as_json)

    result = run_install(
        module_path=Path(module_path),
        host=host,
        config_path=ctx.obj.get("config_path"),
        data_root=Path(data_root) if data_root else None,
        system_shellrc=Path(system_shellrc) if system_shellrc else None,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.error:
        sys.exit(1)

    report = result.report
    assert report is not None
    if ctx.obj.get("verbose"):
        click.echo(f"   Binary: {report.binary}")
        for line in report.lines_added:
            click.echo(f"   + {line}")


def _abi_property(config_path: Path | None) -> str:
    from pie_module.core.config.loader import ConfigError, load_config

    try:
        return load_config(config_path).install.abi_property
    except ConfigError:
        # run_install reports the config error itself
        return "ro.product.cpu.abi"


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def targets(ctx: click.Context, as_json: bool) -> None:
    """List configured architectures and their staged artifacts."""
    from pie_module.core.use_cases.targets import list_targets

    result = list_targets(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho("\n🎯 Targets:", fg="cyan", bold=True)
    for t in result.targets:
        marker, color = ("✓", "green") if t.built else ("✗", "yellow")
        click.secho(f"   {marker} {t.abi:<12}", fg=color, nl=False)
        click.echo(f" {t.bitness}-bit  API {t.api_level}  → {t.artifact.name}")
    click.echo()


@cli.group()
def config() -> None:
    """Module configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate pie-module.yml."""
    from pie_module.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Module: {result.config.name}")
        click.echo(f"   Architectures: {', '.join(result.config.abis)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(1)


if __name__ == "__main__":
    cli()
