"""Deploy and undeploy workflows for git-backed stacks."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from stack_deploy.config.models import DeploymentRequest, Settings
from stack_deploy.decryption.resolver import SecretResolver
from stack_deploy.engine.compose import ComposeDeployer
from stack_deploy.engine.swarm import SwarmDeployer
from stack_deploy.orchestrator.reconciliation import ReconciliationTracker, should_force_update
from stack_deploy.registry.session import RegistrySession
from stack_deploy.repository.materializer import RepositoryMaterializer, get_auth
from stack_deploy.results import DeploymentResult
from stack_deploy.utils.errors import (
    DeploymentCancelledError,
    ErrorContext,
    StackDeploymentError,
    error_handler,
)
from stack_deploy.utils.logging import LogContext, get_logger
from stack_deploy.utils.process import CommandRunner
from stack_deploy.workspace.manager import WorkspaceManager, repository_name_from_url
from stack_deploy.workspace.models import Workspace, make_working_dir

logger = get_logger(__name__)


def _ensure_not_cancelled(cancel_event: Optional[threading.Event], step: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise DeploymentCancelledError(
            f"Deployment cancelled before {step}",
            context=ErrorContext(operation=step)
        )


def _log_env_names(request: DeploymentRequest) -> None:
    # Values may hold credentials
    if request.env:
        logger.info(f"Passing environment variables: {', '.join(sorted(request.env))}")


class StackDeployer:
    """Coordinates checkout, decryption, registry auth and the stack engines."""

    def __init__(self, settings: Settings, runner: Optional[CommandRunner] = None):
        """Initialize stack deployer.

        Args:
            settings: Tool locations and deployment defaults
            runner: Command runner shared by every component
        """
        self.settings = settings
        runner = runner or CommandRunner()

        self.workspace_manager = WorkspaceManager()
        self.materializer = RepositoryMaterializer(bin_path=settings.bin_path, runner=runner)
        self.secret_resolver = SecretResolver(
            bin_path=settings.bin_path,
            marker=settings.secret_marker,
            tool=settings.decrypt_tool,
            runner=runner
        )
        self.registry_session = RegistrySession(
            docker_config_path=settings.docker_config_path,
            bin_path=settings.bin_path,
            runner=runner
        )
        self.compose = ComposeDeployer(settings.docker_config_path, bin_path=settings.bin_path, runner=runner)
        self.swarm = SwarmDeployer(settings.docker_config_path, bin_path=settings.bin_path, runner=runner)
        self.tracker = ReconciliationTracker(self.swarm)

    def deploy(
        self,
        request: DeploymentRequest,
        cancel_event: Optional[threading.Event] = None
    ) -> DeploymentResult:
        """Deploy a compose stack from a git repository to a single engine.

        Raises:
            StackDeploymentError: If any fatal step fails
        """
        return self._run("deploy", request, lambda result: self._deploy_compose(request, result, cancel_event))

    def swarm_deploy(
        self,
        request: DeploymentRequest,
        cancel_event: Optional[threading.Event] = None
    ) -> DeploymentResult:
        """Deploy a stack from a git repository to a swarm.

        Raises:
            StackDeploymentError: If any fatal step fails
        """
        return self._run("swarm_deploy", request, lambda result: self._deploy_swarm(request, result, cancel_event))

    def undeploy(self, request: DeploymentRequest) -> DeploymentResult:
        """Remove a compose stack and, unless kept, its working directory.

        Raises:
            StackDeploymentError: If the stack cannot be removed
        """
        return self._run("undeploy", request, lambda result: self._undeploy_compose(request, result))

    def swarm_undeploy(self, request: DeploymentRequest) -> DeploymentResult:
        """Remove a swarm stack and, unless kept, its working directory.

        Raises:
            StackDeploymentError: If the stack cannot be removed
        """
        return self._run("swarm_undeploy", request, lambda result: self._undeploy_swarm(request, result))

    def _run(
        self,
        operation: str,
        request: DeploymentRequest,
        body: Callable[[DeploymentResult], None]
    ) -> DeploymentResult:
        """Run one workflow, collapsing every fatal error into one outcome."""
        result = DeploymentResult(
            operation=operation,
            project_name=request.project_name,
            start_time=datetime.now(timezone.utc)
        )

        with LogContext(logger, project_name=request.project_name, operation=operation):
            try:
                body(result)
            except Exception as e:
                error = error_handler.handle_exception(
                    e,
                    ErrorContext(project_name=request.project_name, operation=operation)
                )
                if error.context.project_name is None:
                    error.context.project_name = request.project_name
                error_handler.log_error(error)
                raise StackDeploymentError(error) from e

            result.end_time = datetime.now(timezone.utc)
            result.duration = (result.end_time - result.start_time).total_seconds()
            if result.has_warnings():
                logger.info(f"Completed with {len(result.warnings)} warning(s)")

        return result

    def _prepare_checkout(
        self,
        request: DeploymentRequest,
        depth: int,
        cancel_event: Optional[threading.Event]
    ) -> Workspace:
        """Resolve the workspace and, unless kept, wipe it and clone into it."""
        if request.uses_git_auth():
            logger.info(f"Using Git authentication as {request.username}")

        workspace = self.workspace_manager.resolve(
            request.destination,
            request.project_name,
            request.repository_url
        )

        logger.info(f"Checking the file system at {request.destination}...")
        self.workspace_manager.prepare(workspace, keep=request.keep)

        if not request.keep:
            self.materializer.clone(
                url=request.repository_url,
                reference=request.reference,
                clone_path=workspace.clone_path,
                auth=get_auth(request.username, request.password),
                depth=depth,
                insecure_tls=request.skip_tls_verify,
                cancel_event=cancel_event
            )

        return workspace

    def _decrypt(self, request: DeploymentRequest, workspace: Workspace, result: DeploymentResult) -> None:
        compose_files = workspace.compose_paths(request.compose_files)
        result.workspace = workspace
        result.compose_files = compose_files

        scan = self.secret_resolver.resolve(compose_files, request.env)
        result.decrypted_files = scan.decrypted_files
        result.add_warnings(scan.warnings)

    def _deploy_compose(
        self,
        request: DeploymentRequest,
        result: DeploymentResult,
        cancel_event: Optional[threading.Event]
    ) -> None:
        logger.info(
            f"Deploying Compose stack from Git repository {request.repository_url} "
            f"(compose files: {', '.join(request.compose_files)}, destination: {request.destination}, "
            f"skip TLS verify: {request.skip_tls_verify})"
        )
        _log_env_names(request)

        workspace = self._prepare_checkout(request, self.settings.compose_clone_depth, cancel_event)
        _ensure_not_cancelled(cancel_event, "decrypt")
        self._decrypt(request, workspace, result)

        _ensure_not_cancelled(cancel_event, "registry_login")
        with self.registry_session.session(request.registries) as session:
            _ensure_not_cancelled(cancel_event, "compose_up")
            logger.info(
                f"Deploying Compose stack {request.project_name} from {workspace.clone_path} "
                f"with {len(result.compose_files)} compose file(s)"
            )
            self.compose.deploy(
                compose_files=result.compose_files,
                working_dir=workspace.clone_path,
                project_name=request.project_name,
                env=request.env,
                force_recreate=request.force_recreate,
                remove_orphans=request.prune
            )
        result.add_warnings(session.warnings)

        logger.info("Compose stack deployment complete")

    def _deploy_swarm(
        self,
        request: DeploymentRequest,
        result: DeploymentResult,
        cancel_event: Optional[threading.Event]
    ) -> None:
        logger.info(
            f"Deploying Swarm stack from Git repository {request.repository_url} "
            f"(compose files: {', '.join(request.compose_files)}, destination: {request.destination})"
        )
        _log_env_names(request)

        # Fail on a malformed URL before querying the cluster
        repository_name_from_url(request.repository_url)

        running_before = self.tracker.snapshot(request.project_name)
        force_update = should_force_update(request.force_recreate, running_before)
        if force_update:
            logger.info(f"Set to force update {len(running_before)} running service(s)")

        workspace = self._prepare_checkout(request, self.settings.swarm_clone_depth, cancel_event)
        _ensure_not_cancelled(cancel_event, "decrypt")
        self._decrypt(request, workspace, result)

        _ensure_not_cancelled(cancel_event, "registry_login")
        with self.registry_session.session(request.registries) as session:
            _ensure_not_cancelled(cancel_event, "stack_deploy")
            self.swarm.deploy(
                compose_files=result.compose_files,
                working_dir=workspace.clone_path,
                project_name=request.project_name,
                env=request.env,
                prune=request.prune
            )
            report = self.tracker.reconcile(request.project_name, running_before, force_update)
        result.forced_services = report.succeeded()
        result.add_warnings(report.warnings)
        result.add_warnings(session.warnings)

        logger.info("Swarm stack deployment complete")

    def _undeploy_compose(self, request: DeploymentRequest, result: DeploymentResult) -> None:
        logger.info(
            f"Undeploying Compose stack from Git repository {request.repository_url} "
            f"(compose files: {', '.join(request.compose_files)})"
        )

        workspace = self.workspace_manager.resolve(
            request.destination,
            request.project_name,
            request.repository_url
        )
        result.workspace = workspace

        logger.debug(f"Undeploying Compose stack {request.project_name}")
        self.compose.remove(request.project_name)
        logger.info("Compose stack remove complete")

        warning = self.workspace_manager.cleanup(workspace.mount_path, keep=request.keep)
        if warning:
            result.add_warnings([warning])

    def _undeploy_swarm(self, request: DeploymentRequest, result: DeploymentResult) -> None:
        logger.info(f"Undeploying Swarm stack {request.project_name} from {request.destination}")

        self.swarm.remove(request.project_name)
        logger.info("Swarm stack remove complete")

        warning = self.workspace_manager.cleanup(
            make_working_dir(request.destination, request.project_name),
            keep=request.keep
        )
        if warning:
            result.add_warnings([warning])

