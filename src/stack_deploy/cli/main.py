"""Main CLI entry point."""

import signal
import sys
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from stack_deploy.config.models import DeploymentRequest, Settings, override_settings, parse_env_pairs
from stack_deploy.config.parser import ConfigValidationError, SettingsLoader
from stack_deploy.orchestrator.deployer import StackDeployer
from stack_deploy.results import DeploymentResult
from stack_deploy.utils.errors import StackDeploymentError
from stack_deploy.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option('--config', 'config_path', default='stack-deploy.yaml', help='Path to settings file')
@click.option('--bin-path', help='Directory holding git, docker and sops')
@click.option('--docker-config', help='Docker client configuration directory for registry credentials')
@click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']), help='Log level')
@click.pass_context
def cli(ctx, config_path, bin_path, docker_config, log_level):
    """Deploy container stacks from git repositories."""
    ctx.ensure_object(dict)

    try:
        settings = SettingsLoader(config_path).load()
    except ConfigValidationError as e:
        console.print("[red]Settings validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(1)

    settings = override_settings(
        settings,
        bin_path=bin_path,
        docker_config_path=docker_config,
        log_level=log_level,
    )
    ctx.obj['settings'] = settings

    setup_logging(settings.log_level, settings.log_dir)


def create_deployer(settings: Settings) -> StackDeployer:
    """Create the stack deployer with all dependencies."""
    return StackDeployer(settings)


@contextmanager
def cancel_on_signal() -> Iterator[threading.Event]:
    """Set the yielded event on SIGINT or SIGTERM while the block runs.

    The first signal cancels the deployment at its next step and puts the
    previous handlers back, so a second signal stops the process.
    """
    cancel_event = threading.Event()
    previous = {}

    def restore():
        for sig, old_handler in previous.items():
            signal.signal(sig, old_handler)

    def handler(signum, frame):
        logger.warning(f"Received signal {signum}, cancelling; signal again to stop immediately")
        cancel_event.set()
        restore()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, handler)
        except ValueError:
            # Not on the main thread
            pass
    try:
        yield cancel_event
    finally:
        restore()


def request_options(func):
    """Options shared by every deploy and undeploy command."""
    options = [
        click.option('--reference', default='', help='Branch, tag or commit to check out'),
        click.option('--user', default='', help='Git username'),
        click.option('--password', default='', help='Git password or access token'),
        click.option('--keep', is_flag=True, help='Reuse the existing working directory'),
        click.option('--skip-tls-verify', is_flag=True, help='Skip TLS verification when cloning'),
        click.option('--env', 'env_pairs', multiple=True, help='Environment variable KEY=VALUE'),
        click.option('--registry', 'registries', multiple=True, help='Registry credential user:password:server'),
        click.argument('project_name'),
        click.argument('git_repository'),
        click.argument('destination'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def deploy_options(func):
    """Options only meaningful when bringing a stack up."""
    func = click.option('--prune', is_flag=True, help='Remove services no longer defined in the compose files')(func)
    func = click.option(
        '--force-recreate/--no-force-recreate',
        default=True,
        help='Recreate containers or services even if unchanged'
    )(func)
    return func


def build_request(
    project_name: str,
    git_repository: str,
    destination: str,
    compose_files: Tuple[str, ...],
    reference: str,
    user: str,
    password: str,
    keep: bool,
    skip_tls_verify: bool,
    env_pairs: Tuple[str, ...],
    registries: Tuple[str, ...],
    force_recreate: bool = True,
    prune: bool = False
) -> DeploymentRequest:
    """Build a validated request from command line values, exiting on error."""
    try:
        return DeploymentRequest(
            repository_url=git_repository,
            reference=reference,
            username=user,
            password=password,
            compose_files=list(compose_files),
            destination=destination,
            project_name=project_name,
            env=parse_env_pairs(list(env_pairs)),
            registries=list(registries),
            keep=keep,
            force_recreate=force_recreate,
            prune=prune,
            skip_tls_verify=skip_tls_verify,
        )
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid request:[/red] {e}")
        sys.exit(1)


def show_result(title: str, result: DeploymentResult) -> None:
    """Print a summary panel for a completed operation."""
    lines = [f"[green]✓ {title}[/green]\n", f"Project: {result.project_name}"]
    if result.workspace is not None:
        lines.append(f"Workspace: {result.workspace.mount_path}")
    if result.compose_files:
        lines.append(f"Compose files: {len(result.compose_files)}")
    if result.decrypted_files:
        lines.append(f"Decrypted files: {len(result.decrypted_files)}")
    if result.forced_services:
        lines.append(f"Forced updates: {', '.join(result.forced_services)}")
    lines.append(f"Duration: {result.duration:.2f}s")

    console.print(Panel.fit("\n".join(lines), title=title, border_style="green"))

    if result.has_warnings():
        console.print("\n[bold]Warnings:[/bold]")
        for warning in result.warnings:
            console.print(f"  [yellow]![/yellow] {warning}")


def run_operation(ctx, operation: str, request: DeploymentRequest, title: str) -> None:
    """Execute one StackDeployer operation and report its outcome."""
    deployer = create_deployer(ctx.obj['settings'])
    try:
        if operation in ('deploy', 'swarm_deploy'):
            with cancel_on_signal() as cancel_event:
                result = getattr(deployer, operation)(request, cancel_event=cancel_event)
        else:
            result = getattr(deployer, operation)(request)
    except StackDeploymentError as e:
        console.print(f"[red]Deployment error:[/red] {e}")
        console.print("[dim]See the log output above for details[/dim]")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error during {operation}")
        console.print(f"[red]Unexpected error:[/red] {e}")
        sys.exit(1)

    show_result(title, result)


@cli.command()
@request_options
@deploy_options
@click.argument('compose_files', nargs=-1, required=True)
@click.pass_context
def deploy(ctx, project_name, git_repository, destination, compose_files, **options):
    """Deploy a Compose stack from a git repository."""
    request = build_request(project_name, git_repository, destination, compose_files, **options)
    run_operation(ctx, 'deploy', request, "Compose stack deployed")


@cli.command('swarm-deploy')
@request_options
@deploy_options
@click.argument('compose_files', nargs=-1, required=True)
@click.pass_context
def swarm_deploy(ctx, project_name, git_repository, destination, compose_files, **options):
    """Deploy a Swarm stack from a git repository."""
    request = build_request(project_name, git_repository, destination, compose_files, **options)
    run_operation(ctx, 'swarm_deploy', request, "Swarm stack deployed")


@cli.command()
@request_options
@click.argument('compose_files', nargs=-1)
@click.pass_context
def undeploy(ctx, project_name, git_repository, destination, compose_files, **options):
    """Remove a Compose stack deployed from a git repository."""
    request = build_request(project_name, git_repository, destination, compose_files, **options)
    run_operation(ctx, 'undeploy', request, "Compose stack removed")


@cli.command('swarm-undeploy')
@request_options
@click.argument('compose_files', nargs=-1)
@click.pass_context
def swarm_undeploy(ctx, project_name, git_repository, destination, compose_files, **options):
    """Remove a Swarm stack deployed from a git repository."""
    request = build_request(project_name, git_repository, destination, compose_files, **options)
    run_operation(ctx, 'swarm_undeploy', request, "Swarm stack removed")


def main(argv: Optional[List[str]] = None) -> None:
    cli(args=argv)


if __name__ == '__main__':
    main()
