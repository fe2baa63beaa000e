"""Single-engine deployments through docker compose."""

from typing import Dict, Optional, Sequence

from stack_deploy.engine.base import BaseDeployer, PathLike
from stack_deploy.utils.errors import EngineError, ErrorContext
from stack_deploy.utils.logging import get_logger
from stack_deploy.utils.process import ProcessError

logger = get_logger(__name__)


class ComposeDeployer(BaseDeployer):
    """Runs ``docker compose up`` and ``down`` for a project."""

    def deploy(
        self,
        compose_files: Sequence[PathLike],
        working_dir: PathLike,
        project_name: str,
        env: Optional[Dict[str, str]] = None,
        force_recreate: bool = False,
        remove_orphans: bool = False
    ) -> None:
        """Start the stack in detached mode.

        Raises:
            EngineError: If docker compose fails
        """
        args = self._docker_args(
            "compose",
            "--project-name", project_name,
            "--project-directory", str(working_dir),
        )
        for compose_file in compose_files:
            args += ["--file", str(compose_file)]
        args += ["up", "--detach"]
        if force_recreate:
            args.append("--force-recreate")
        if remove_orphans:
            args.append("--remove-orphans")

        try:
            self.runner.run(self.docker, args, env=env or {}, cwd=working_dir)
        except ProcessError as e:
            raise EngineError(
                "Failed to deploy Compose stack",
                context=ErrorContext(
                    project_name=project_name,
                    operation="compose_up",
                    path=str(working_dir),
                    command=self.docker
                ),
                cause=e
            ) from e

    def remove(self, project_name: str, remove_orphans: bool = False) -> None:
        """Stop and remove the project's containers and networks.

        Raises:
            EngineError: If docker compose fails
        """
        args = self._docker_args("compose", "--project-name", project_name, "down")
        if remove_orphans:
            args.append("--remove-orphans")

        try:
            self.runner.run(self.docker, args)
        except ProcessError as e:
            raise EngineError(
                "Failed to remove Compose stack",
                context=ErrorContext(project_name=project_name, operation="compose_down", command=self.docker),
                cause=e
            ) from e
