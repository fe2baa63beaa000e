"""Base deployer interface shared by the compose and swarm engines."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from stack_deploy.utils.process import CommandRunner, tool_path

PathLike = Union[str, Path]


class BaseDeployer(ABC):
    """Base class for the docker-backed stack engines."""

    def __init__(
        self,
        docker_config_path: str,
        bin_path: str = "",
        runner: Optional[CommandRunner] = None
    ):
        """Initialize deployer.

        Args:
            docker_config_path: Docker client configuration directory
            bin_path: Directory holding the docker executable
            runner: Command runner, replaceable in tests
        """
        self.docker_config_path = docker_config_path
        self.docker = tool_path(bin_path, "docker")
        self.runner = runner or CommandRunner()

    def _docker_args(self, *args: str) -> List[str]:
        return ["--config", self.docker_config_path, *args]

    @abstractmethod
    def deploy(
        self,
        compose_files: Sequence[PathLike],
        working_dir: PathLike,
        project_name: str,
        env: Optional[Dict[str, str]] = None,
        **options
    ) -> None:
        """Bring the stack up.

        Args:
            compose_files: Absolute compose file paths
            working_dir: Directory the engine runs in
            project_name: Stack name
            env: Environment overrides for the engine
        """
        pass

    @abstractmethod
    def remove(self, project_name: str, **options) -> None:
        """Tear the stack down by name."""
        pass
