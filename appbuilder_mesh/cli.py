"""Thin CLI wrapper for appbuilder_mesh.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import dataclasses
import json
import logging
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from appbuilder_mesh import __version__
from appbuilder_mesh.appconfig import ConfigLoadError, load_config
from appbuilder_mesh.config import Settings, get_settings, print_settings_json
from appbuilder_mesh.deploy.machine import (
    DeploymentOutcome,
    DeploymentStateMachine,
    DeployOptions,
    RemoteFailure,
)
from appbuilder_mesh.deploy.remote import AioMeshService, PollError, SubmitError
from appbuilder_mesh.deploy.status import StatusKeywords, classify_status
from appbuilder_mesh.frontend import generate_frontend_config
from appbuilder_mesh.mesh.build import (
    BuildOptions,
    GenerationResult,
    TemplateMissingError,
    build_mesh,
)
from appbuilder_mesh.mesh.hashing import SerializationError
from appbuilder_mesh.types import Environment

app = typer.Typer(
    name="meshctl",
    help="App Builder API Mesh tooling - build resolvers and deploy the mesh",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"appbuilder-mesh version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """App Builder API Mesh tooling - build resolvers and deploy the mesh."""
    try:
        settings = get_settings()
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        console.print(f"Invalid settings: {errors}", style="red", markup=False)
        raise typer.Exit(code=1) from None
    configure_logging(settings.log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        _print_json(print_settings_json(settings))
    else:
        timeout_display = (
            f"{settings.deploy_timeout}s" if settings.deploy_timeout else "(none)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Project directory:   {settings.project_dir}")
        console.print(f"  Config directory:    {settings.config_dir}")
        console.print(f"  Mesh source:         {settings.mesh_source}")
        console.print(f"  Mesh output:         {settings.mesh_output}")
        console.print(f"  Resolver template:   {settings.resolver_template}")
        console.print(f"  Resolver output:     {settings.resolver_output}")
        console.print(f"  Frontend config:     {settings.frontend_config_dir}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  aio command:         {settings.aio_command}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Deployment:[/bold]")
        console.print(f"  Max submissions:     {settings.max_submit_retries}")
        console.print(f"  Max status checks:   {settings.max_poll_attempts}")
        console.print(
            f"  Poll interval:       {settings.poll_interval_staging}s (staging), "
            f"{settings.poll_interval_production}s (production)"
        )
        console.print(f"  Poll error limit:    {settings.poll_error_threshold}")
        console.print(f"  Deploy timeout:      {timeout_display}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Submit timeout:      {settings.submit_timeout}")
        console.print(f"  Status timeout:      {settings.status_timeout}")


def _print_json(text: str) -> None:
    # No wrapping or markup so the output stays parseable
    console.print(text, soft_wrap=True, markup=False, highlight=False)


def _remediation(prod: bool) -> str:
    return f"meshctl deploy mesh{' --prod' if prod else ''} --force"


def _run_build(options: BuildOptions, settings: Settings) -> GenerationResult:
    """Run a mesh build, mapping failures to a red line and exit code 1."""
    try:
        return build_mesh(options, settings=settings)
    except ConfigLoadError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(code=1) from None
    except TemplateMissingError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    except SerializationError as e:
        console.print(f"[red]Serialization error: {e}[/red]")
        raise typer.Exit(code=1) from None
    except OSError as e:
        console.print(f"[red]File error: {e}[/red]")
        raise typer.Exit(code=1) from None


def _print_build_result(result: GenerationResult) -> None:
    if result.regenerated:
        console.print(
            f"[green]✓ Generated {result.resolver_path.name} ({result.reason})[/green]"
        )
    else:
        console.print(
            f"[green]✓ {result.resolver_path.name} up to date ({result.reason})[/green]"
        )
    state = "written" if result.mesh_json_written else "unchanged"
    console.print(f"  {result.mesh_json_path.name}: {state}")
    if result.unresolved_placeholders:
        console.print(
            "[yellow]Unresolved placeholders: "
            f"{', '.join(result.unresolved_placeholders)}[/yellow]"
        )


build_app = typer.Typer(help="Build mesh and frontend artifacts")
app.add_typer(build_app, name="build")


@build_app.command("mesh")
def build_mesh_cmd(
    prod: Annotated[
        bool,
        typer.Option("--prod", help="Build for production"),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Regenerate even if nothing changed"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build mesh.json and regenerate the resolver when needed."""
    settings = get_settings()
    options = BuildOptions(force=force, environment=Environment.from_flag(prod))
    result = _run_build(options, settings)

    if json_output:
        _print_json(json.dumps(result.to_dict(), indent=2))
    else:
        _print_build_result(result)


@build_app.command("frontend")
def build_frontend_cmd(
    prod: Annotated[
        bool,
        typer.Option("--prod", help="Build for production"),
    ] = False,
) -> None:
    """Generate the frontend configuration files."""
    settings = get_settings()
    try:
        app_config = load_config(
            is_production=prod,
            config_dir=settings.resolve(settings.config_dir),
        )
        paths = generate_frontend_config(
            app_config, settings.resolve(settings.frontend_config_dir)
        )
    except ConfigLoadError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(code=1) from None
    except OSError as e:
        console.print(f"[red]File error: {e}[/red]")
        raise typer.Exit(code=1) from None

    for path in paths:
        console.print(f"[green]✓ Generated {path}[/green]")


def _aio_service(settings: Settings, environment: Environment) -> AioMeshService:
    return AioMeshService(
        mesh_path=settings.resolve(settings.mesh_output),
        environment=environment,
        aio_command=settings.aio_command,
        cwd=settings.project_dir,
        submit_timeout=settings.submit_timeout,
        status_timeout=settings.status_timeout,
    )


def _report_outcome(outcome: DeploymentOutcome, prod: bool) -> None:
    if outcome.success and outcome.warning:
        console.print(
            f"[yellow]Mesh status unknown after {outcome.polls} status check(s); "
            "provisioning may still complete.[/yellow]"
        )
        console.print("  Check with: meshctl mesh status")
        return
    if outcome.success:
        console.print(
            f"[green]✓ Mesh provisioned (attempts: {outcome.attempts}, "
            f"status checks: {outcome.polls})[/green]"
        )
        return

    try:
        outcome.raise_for_failure()
    except (RemoteFailure, SubmitError, PollError) as e:
        console.print(f"[red]Mesh deployment failed: {e}[/red]")
        console.print(f"  Retry with: {_remediation(prod)}")
        raise typer.Exit(code=1) from None


deploy_app = typer.Typer(help="Deploy to App Builder")
app.add_typer(deploy_app, name="deploy")


@deploy_app.command("mesh")
def deploy_mesh_cmd(
    prod: Annotated[
        bool,
        typer.Option("--prod", help="Deploy to production"),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Regenerate and deploy even if unchanged"),
    ] = False,
    skip_build: Annotated[
        bool,
        typer.Option("--skip-build", help="Deploy the existing mesh.json as is"),
    ] = False,
    max_retries: Annotated[
        int | None,
        typer.Option("--max-retries", min=1, help="Maximum update submissions"),
    ] = None,
    poll_interval: Annotated[
        float | None,
        typer.Option("--poll-interval", min=0, help="Seconds between status checks"),
    ] = None,
    max_polls: Annotated[
        int | None,
        typer.Option("--max-polls", min=1, help="Status checks per submission"),
    ] = None,
) -> None:
    """Build the mesh and deploy it when something changed.

    Submits `aio api-mesh:update` and polls `aio api-mesh:status` until
    the mesh is provisioned, fails, or the status check budget runs out.
    """
    settings = get_settings()
    environment = Environment.from_flag(prod)

    if not skip_build:
        result = _run_build(BuildOptions(force=force, environment=environment), settings)
        _print_build_result(result)
        if not (result.changed or force):
            console.print("[green]Mesh unchanged, nothing to deploy[/green]")
            return

    mesh_path = settings.resolve(settings.mesh_output)
    if not mesh_path.exists():
        console.print(f"[red]Mesh configuration not found: {mesh_path}[/red]")
        console.print("  Build it with: meshctl build mesh")
        raise typer.Exit(code=1)

    options = DeployOptions.from_settings(settings, environment)
    overrides = {
        "max_submit_retries": max_retries,
        "poll_interval_seconds": poll_interval,
        "max_poll_attempts": max_polls,
    }
    options = dataclasses.replace(
        options, **{k: v for k, v in overrides.items() if v is not None}
    )

    console.print(f"Deploying mesh to {environment.value}...")
    machine = DeploymentStateMachine(_aio_service(settings, environment))
    outcome = machine.deploy(options)
    _report_outcome(outcome, prod)


mesh_app = typer.Typer(help="Inspect the deployed mesh")
app.add_typer(mesh_app, name="mesh")


@mesh_app.command("status")
def mesh_status_cmd(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Run a single status check and classify it."""
    settings = get_settings()
    remote = _aio_service(settings, Environment.STAGING)
    try:
        status_text = remote.check_status()
    except PollError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    status = classify_status(status_text, StatusKeywords.from_settings(settings))
    if json_output:
        _print_json(json.dumps({"status": status.value, "text": status_text}, indent=2))
    else:
        color = {"success": "green", "failure": "red"}.get(status.value, "yellow")
        console.print(f"[{color}]{status.value}[/{color}]: {status_text}")


if __name__ == "__main__":
    app()
