"""Per-project working directory management."""

import os
import shutil
from pathlib import Path
from typing import Optional, Union

from stack_deploy.results import DeploymentWarning
from stack_deploy.utils.errors import ErrorContext, ValidationError, WorkspaceError
from stack_deploy.utils.logging import get_logger
from stack_deploy.workspace.models import Workspace

logger = get_logger(__name__)

WORKSPACE_MODE = 0o755


def repository_name_from_url(repository_url: str) -> str:
    """Derive the checkout directory name from a repository URL.

    Args:
        repository_url: Remote URL, e.g. https://example.com/org/app.git

    Returns:
        Final path segment of the URL without a ``.git`` suffix

    Raises:
        ValidationError: If the URL has no path separator or an empty
            final segment
    """
    index = repository_url.rfind("/")
    if index == -1:
        raise ValidationError(
            f"Invalid Git repository URL: {repository_url}",
            suggestions=["Use a URL such as https://host/org/repository.git"]
        )

    name = repository_url[index + 1:]
    if name.endswith(".git"):
        name = name[:-len(".git")]
    if not name:
        raise ValidationError(
            f"Invalid Git repository URL: {repository_url}",
            suggestions=["Remove the trailing slash from the repository URL"]
        )
    return name


class WorkspaceManager:
    """Computes, prepares and removes project working directories."""

    def resolve(
        self,
        destination: Union[str, Path],
        project_name: str,
        repository_url: str
    ) -> Workspace:
        """Compute the workspace for a project without touching the disk."""
        return Workspace(
            destination=Path(destination),
            project_name=project_name,
            repository_name=repository_name_from_url(repository_url),
        )

    def prepare(self, workspace: Workspace, keep: bool) -> Path:
        """Prepare the mount directory for a deployment.

        With ``keep`` the existing directory and any checkout inside it are
        reused untouched. Otherwise the directory is wiped and recreated.

        Args:
            workspace: Workspace to prepare
            keep: Reuse the existing directory

        Returns:
            The mount path

        Raises:
            WorkspaceError: If the directory cannot be removed or created
        """
        mount_path = workspace.mount_path
        context = ErrorContext(
            project_name=workspace.project_name,
            operation="prepare_workspace",
            path=str(mount_path)
        )

        if keep:
            logger.info(f"Reusing existing directory {mount_path}")
            return mount_path

        if mount_path.exists() or mount_path.is_symlink():
            try:
                if mount_path.is_dir() and not mount_path.is_symlink():
                    shutil.rmtree(mount_path)
                else:
                    mount_path.unlink()
            except OSError as e:
                raise WorkspaceError(
                    "Failed to remove previous directory",
                    context=context,
                    cause=e
                ) from e

        try:
            os.makedirs(mount_path, mode=WORKSPACE_MODE, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(
                "Failed to create destination directory",
                context=context,
                cause=e
            ) from e

        logger.info(f"Created target destination directory {mount_path}")
        return mount_path

    def cleanup(self, mount_path: Union[str, Path], keep: bool) -> Optional[DeploymentWarning]:
        """Remove a project's working directory after undeploy.

        Failures are logged and returned as a warning.
        """
        if keep:
            return None

        mount_path = Path(mount_path)
        try:
            shutil.rmtree(mount_path)
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Failed to remove stack project folder {mount_path}: {e}")
            return DeploymentWarning(source="workspace_cleanup", message=f"{mount_path}: {e}")

        logger.info(f"Removed stack project folder {mount_path}")
        return None
