"""CLI interface for caddroid."""

import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from tabulate import tabulate

from caddroid import __version__
from caddroid.core.config import (
    CONFIG_FILE,
    Settings,
    get_config,
    load_settings,
    save_config,
    set_config_value,
)
from caddroid.core.download import Downloader
from caddroid.core.packages import PackageManager
from caddroid.core.result import InvocationError
from caddroid.core.steps import (
    InstallStep,
    PlanReport,
    StepCounter,
    StepStatus,
    load_plan,
)
from caddroid.core.supervisor import CommandSupervisor
from caddroid.utils.logging import setup_logging
from caddroid.utils.progress import Indicator

console = Console(stderr=True)
stdout_console = Console()


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _indicator(settings: Settings) -> Indicator:
    return Indicator(
        console=console,
        delay=settings.spinner_delay,
        max_width=settings.max_label_width,
    )


def _supervisor(settings: Settings, step_display: bool = True) -> CommandSupervisor:
    steps = StepCounter(total=settings.total_steps if step_display else 0)
    return CommandSupervisor(settings, steps=steps, indicator=_indicator(settings))


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Show captured stderr of failed commands")
@click.pass_context
def cli(ctx: click.Context, debug: bool):
    """caddroid - Termux installer steps with progress."""
    try:
        settings = load_settings()
    except ValidationError as e:
        console.print(f"[red]✗ Invalid configuration in {CONFIG_FILE}:[/red] {e}")
        sys.exit(1)

    if debug:
        settings = settings.model_copy(update={"debug": True})

    setup_logging(settings.debug, console=console)
    ctx.obj = {"settings": settings}


@cli.command()
@click.argument("message")
@click.argument("command", nargs=-1, required=True)
@click.option("--estimate", type=int, default=10, show_default=True, help="Seconds")
@click.option("--no-steps", is_flag=True, help="Don't prefix [current/total]")
@click.option(
    "--success-code",
    "success_codes",
    type=int,
    multiple=True,
    help="Exit code to treat as success (repeatable)",
)
@click.option("--no-remap", is_flag=True, help="Report exit codes unchanged")
@click.option("--show-output", is_flag=True, help="Print captured stdout")
@click.pass_context
def run(
    ctx: click.Context,
    message: str,
    command: tuple,
    estimate: int,
    no_steps: bool,
    success_codes: tuple,
    no_remap: bool,
    show_output: bool,
):
    """Run COMMAND with a progress indicator.

    A single COMMAND argument is run through the shell; several arguments
    are executed directly.

    Examples:
        caddroid run "Update lists" "apt-get update"
        caddroid run "List home" -- ls -la ~
    """
    settings = _settings(ctx)
    supervisor = _supervisor(settings, step_display=not no_steps)
    operation = command[0] if len(command) == 1 else list(command)

    codes = None
    if no_remap:
        codes = ()
    elif success_codes:
        codes = success_codes

    try:
        result = supervisor.run_with_progress(message, estimate, operation, codes)
    except InvocationError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(2)

    if show_output and result.stdout:
        click.echo(result.stdout, nl=not result.stdout.endswith("\n"))

    if not result.ok:
        sys.exit(result.exit_code)


@cli.command()
@click.argument("packages", nargs=-1, required=True)
@click.option(
    "--action",
    type=click.Choice(["install", "reinstall", "upgrade"]),
    default="install",
)
@click.pass_context
def install(ctx: click.Context, packages: tuple, action: str):
    """Install packages with apt-get, skipping ones already present."""
    manager = PackageManager(_supervisor(_settings(ctx)))
    manager.supervisor.steps.reset(len(packages))

    results = manager.install_many(packages, action)

    failed = [name for name, code in results.items() if code != 0]
    if failed:
        console.print(f"[red]✗ Failed:[/red] [cyan]{', '.join(failed)}[/cyan]")
        sys.exit(1)


@cli.command()
@click.pass_context
def update(ctx: click.Context):
    """Refresh package lists."""
    manager = PackageManager(_supervisor(_settings(ctx), step_display=False))
    exit_code = manager.update()
    if exit_code != 0:
        sys.exit(exit_code)


@cli.command()
@click.argument("url")
@click.argument("output", type=click.Path(dir_okay=False))
@click.option("--description", default="Download", help="Label for the indicator")
@click.pass_context
def download(ctx: click.Context, url: str, output: str, description: str):
    """Download URL to OUTPUT with retries."""
    settings = _settings(ctx)
    downloader = Downloader(_indicator(settings), settings)

    if not downloader.download(url, output, description):
        sys.exit(1)


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", "-y", is_flag=True, help="Continue past failed steps")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "simple", "plain"]),
    default="rich",
    help="Summary format (rich=styled, simple=tabulate, plain=no borders)",
)
@click.pass_context
def plan(ctx: click.Context, plan_file: str, yes: bool, output_format: str):
    """Run the steps listed in a TOML PLAN_FILE."""
    try:
        step_plan = load_plan(plan_file)
    except ValueError as e:
        console.print(f"[red]✗ Invalid plan:[/red] {e}")
        sys.exit(1)

    supervisor = _supervisor(_settings(ctx))
    console.print(
        f"[cyan]Starting installation with {step_plan.total_steps} steps "
        f"(~{step_plan.total_estimate}s)...[/cyan]"
    )

    def confirm(step: InstallStep) -> bool:
        if yes:
            return True
        return click.confirm(
            f"Step '{step.name}' failed. Continue with remaining steps?",
            default=True,
            err=True,
        )

    report = step_plan.run_all(supervisor, confirm)

    if output_format == "rich":
        _print_rich_report(report)
    else:
        tablefmt = "simple" if output_format == "simple" else "plain"
        _print_tabulate_report(report, tablefmt)

    if report.aborted:
        console.print("[red]✗ Installation aborted[/red]")
        sys.exit(1)
    if report.error_count:
        sys.exit(1)


_STATUS_STYLE = {
    StepStatus.SUCCESS: ("green", "✓"),
    StepStatus.WARNING: ("yellow", "⚠"),
    StepStatus.ERROR: ("red", "✗"),
    StepStatus.PENDING: ("dim", "●"),
}


def _summary_line(report: PlanReport) -> str:
    return (
        f"Steps: {report.success_count} successful, "
        f"{report.warning_count} warnings, {report.error_count} errors "
        f"in {report.total_duration:.1f}s"
    )


def _print_rich_report(report: PlanReport) -> None:
    """Print plan results as rich styled table."""
    table = Table(
        title="[bold]Install Steps[/bold]", show_header=True, header_style="bold"
    )
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Duration", style="yellow")

    for index, step in enumerate(report.steps, start=1):
        color, glyph = _STATUS_STYLE[step.status]
        table.add_row(
            str(index),
            step.name,
            f"[{color}]{glyph} {step.status.value}[/{color}]",
            f"{step.duration:.1f}s",
        )

    stdout_console.print(table)
    stdout_console.print(f"\n[dim]{_summary_line(report)}[/dim]")


def _print_tabulate_report(report: PlanReport, tablefmt: str) -> None:
    """Print plan results as tabulate table."""
    rows = [
        [
            index,
            step.name,
            f"{_STATUS_STYLE[step.status][1]} {step.status.value}",
            f"{step.duration:.1f}s",
        ]
        for index, step in enumerate(report.steps, start=1)
    ]
    headers = ["#", "Step", "Status", "Duration"]
    print(tabulate(rows, headers=headers, tablefmt=tablefmt))
    print(f"\n{_summary_line(report)}")


@cli.group()
def config():
    """Show or change caddroid settings."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context):
    """Show the effective settings."""
    settings = _settings(ctx)

    stdout_console.print("[bold]Configuration[/bold]\n")
    stdout_console.print(f"[cyan]Config file:[/cyan] {CONFIG_FILE}")
    for key, value in settings.model_dump().items():
        stdout_console.print(f"[cyan]{key}:[/cyan] {value}")


@config.command("set", context_settings={"ignore_unknown_options": True})
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set a config KEY (dotted, e.g. spinner.delay) to VALUE.

    Examples:
        caddroid config set spinner.delay 0.1
        caddroid config set supervisor.success_codes 100,101
    """
    current = get_config()
    try:
        stored = set_config_value(current, key, value)
        Settings.from_config(current, environ={})
    except KeyError:
        console.print(f"[red]✗ Unknown setting:[/red] [cyan]{key}[/cyan]")
        sys.exit(1)
    except (ValueError, ValidationError) as e:
        console.print(f"[red]✗ Invalid value for {key}:[/red] {e}")
        sys.exit(1)

    save_config(current)
    stdout_console.print(f"[green]✓ {key} set to:[/green] {stored}")


if __name__ == "__main__":
    cli()
