"""Clustered deployments through docker stack and docker service."""

from typing import Dict, FrozenSet, Optional, Sequence

from stack_deploy.engine.base import BaseDeployer, PathLike
from stack_deploy.utils.errors import ClusterError, ErrorContext
from stack_deploy.utils.logging import get_logger
from stack_deploy.utils.process import ProcessError

logger = get_logger(__name__)

# Label docker stack deploy puts on every service of a stack
STACK_NAMESPACE_LABEL = "com.docker.stack.namespace"


class SwarmDeployer(BaseDeployer):
    """Deploys stacks to a swarm and manages their services."""

    def deploy(
        self,
        compose_files: Sequence[PathLike],
        working_dir: PathLike,
        project_name: str,
        env: Optional[Dict[str, str]] = None,
        prune: bool = False
    ) -> None:
        """Create or update the stack.

        Raises:
            ClusterError: If docker stack deploy fails
        """
        args = self._docker_args("stack", "deploy", "--with-registry-auth")
        if prune:
            args.append("--prune")
        for compose_file in compose_files:
            args += ["--compose-file", str(compose_file)]
        args.append(project_name)

        try:
            self.runner.run(self.docker, args, env=env or {}, cwd=working_dir)
        except ProcessError as e:
            raise ClusterError(
                "Failed to deploy Swarm stack",
                context=ErrorContext(
                    project_name=project_name,
                    operation="stack_deploy",
                    path=str(working_dir),
                    command=self.docker
                ),
                cause=e
            ) from e

    def remove(self, project_name: str) -> None:
        """Remove the stack and all of its services.

        Raises:
            ClusterError: If docker stack rm fails
        """
        try:
            self.runner.run(self.docker, self._docker_args("stack", "rm", project_name))
        except ProcessError as e:
            raise ClusterError(
                "Failed to remove Swarm stack",
                context=ErrorContext(project_name=project_name, operation="stack_rm", command=self.docker),
                cause=e
            ) from e

    def list_service_ids(self, project_name: str) -> FrozenSet[str]:
        """IDs of the services currently running for a stack.

        Raises:
            ClusterError: If the services cannot be listed
        """
        args = self._docker_args(
            "service", "ls",
            "--quiet",
            "--filter", f"label={STACK_NAMESPACE_LABEL}={project_name}",
        )
        try:
            output = self.runner.run(self.docker, args)
        except ProcessError as e:
            raise ClusterError(
                "Failed to list running services",
                context=ErrorContext(project_name=project_name, operation="service_ls", command=self.docker),
                cause=e
            ) from e

        return frozenset(line.strip() for line in output.splitlines() if line.strip())

    def force_update(self, service_id: str) -> None:
        """Recreate a service's tasks even when its definition is unchanged.

        Raises:
            ClusterError: If docker service update fails
        """
        args = self._docker_args("service", "update", "--force", "--detach", service_id)
        try:
            self.runner.run(self.docker, args)
        except ProcessError as e:
            raise ClusterError(
                f"Failed to force update service {service_id}",
                context=ErrorContext(operation="service_update", command=self.docker),
                cause=e
            ) from e
