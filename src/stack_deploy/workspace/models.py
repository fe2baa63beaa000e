"""Workspace path model."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Union


def make_working_dir(destination: Union[str, Path], project_name: str) -> Path:
    """Mount directory of a project below the destination root."""
    return Path(destination) / "stacks" / project_name


@dataclass(frozen=True)
class Workspace:
    """On-disk locations used by one project.

    Both paths derive only from the destination, the project name and the
    repository name, so the same project always maps to the same workspace.
    """

    destination: Path
    project_name: str
    repository_name: str

    @property
    def mount_path(self) -> Path:
        return make_working_dir(self.destination, self.project_name)

    @property
    def clone_path(self) -> Path:
        return self.mount_path / self.repository_name

    def compose_paths(self, relative_paths: Iterable[str]) -> List[Path]:
        """Resolve compose files relative to the clone."""
        return [self.clone_path / path for path in relative_paths]
