"""Result types shared by the deployment components."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from stack_deploy.workspace.models import Workspace


class ExecutionStatus(Enum):
    """Status of an individual step."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DeploymentWarning:
    """A recoverable problem that was logged and skipped."""

    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


@dataclass
class ItemResult:
    """Outcome of one best-effort item, such as a registry login."""

    item: str
    status: ExecutionStatus
    message: Optional[str] = None

    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS


@dataclass
class OperationReport:
    """Independent per-item results of a best-effort operation."""

    operation: str
    results: List[ItemResult] = field(default_factory=list)

    def add(self, item: str, status: ExecutionStatus, message: Optional[str] = None) -> ItemResult:
        result = ItemResult(item=item, status=status, message=message)
        self.results.append(result)
        return result

    def succeeded(self) -> List[str]:
        return [r.item for r in self.results if r.is_success()]

    def has_failures(self) -> bool:
        return any(not r.is_success() for r in self.results)

    @property
    def warnings(self) -> List[DeploymentWarning]:
        """Failed and skipped items as warnings."""
        return [
            DeploymentWarning(source=self.operation, message=f"{r.item}: {r.message}")
            for r in self.results
            if not r.is_success()
        ]


@dataclass
class DeploymentResult:
    """Outcome of a successful deploy or undeploy.

    Fatal failures are raised, so a result always describes an operation
    that reached its primary goal; ``warnings`` lists what was skipped.
    """

    operation: str
    project_name: str
    workspace: Optional["Workspace"] = None
    compose_files: List[Path] = field(default_factory=list)
    decrypted_files: List[Path] = field(default_factory=list)
    forced_services: List[str] = field(default_factory=list)
    warnings: List[DeploymentWarning] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def add_warnings(self, warnings: List[DeploymentWarning]) -> None:
        self.warnings.extend(warnings)

    def has_warnings(self) -> bool:
        return bool(self.warnings)
