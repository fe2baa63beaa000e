"""Working directory management."""

from stack_deploy.workspace.models import Workspace, make_working_dir
from stack_deploy.workspace.manager import WorkspaceManager, repository_name_from_url

__all__ = [
    'Workspace',
    'make_working_dir',
    'WorkspaceManager',
    'repository_name_from_url',
]
