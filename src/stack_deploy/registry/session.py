"""Best-effort container registry login and logout around a deployment."""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from stack_deploy.results import ExecutionStatus, OperationReport
from stack_deploy.utils.logging import get_logger
from stack_deploy.utils.process import CommandRunner, ProcessError, tool_path

logger = get_logger(__name__)


@dataclass(frozen=True)
class RegistryCredential:
    """Credentials for one registry server."""

    username: str
    password: str = field(repr=False)
    server: str


def parse_registry_credential(raw: str) -> Optional[RegistryCredential]:
    """Parse a ``username:password:server`` string.

    Returns:
        The credential, or None when the string does not have exactly
        three segments
    """
    parts = raw.split(":")
    if len(parts) != 3:
        return None
    return RegistryCredential(username=parts[0], password=parts[1], server=parts[2])


def _mask(raw: str) -> str:
    """Hide the password segment of a raw credential for logging."""
    parts = raw.split(":")
    if len(parts) >= 2:
        parts[1] = "****"
    return ":".join(parts)


@dataclass
class SessionReport:
    """Login and logout outcomes of a registry session."""

    login: OperationReport
    logout: Optional[OperationReport] = None

    @property
    def warnings(self):
        warnings = list(self.login.warnings)
        if self.logout is not None:
            warnings.extend(self.logout.warnings)
        return warnings


class RegistrySession:
    """Logs in to and out of container registries via the docker CLI."""

    def __init__(
        self,
        docker_config_path: str,
        bin_path: str = "",
        runner: Optional[CommandRunner] = None
    ):
        """Initialize registry session.

        Args:
            docker_config_path: Docker client configuration directory that
                stores the credentials
            bin_path: Directory holding the docker executable
            runner: Command runner, replaceable in tests
        """
        self.docker_config_path = docker_config_path
        self.docker = tool_path(bin_path, "docker")
        self.runner = runner or CommandRunner()

    def open(self, registries: Sequence[str]) -> OperationReport:
        """Log in to every registry, skipping malformed or failing ones."""
        report = OperationReport(operation="registry_login")

        for raw in registries:
            credential = parse_registry_credential(raw)
            if credential is None:
                logger.warning(f"Registry {_mask(raw)} is malformed, skipping login")
                report.add(_mask(raw), ExecutionStatus.SKIPPED, "malformed registry credential")
                continue

            args = [
                "--config", self.docker_config_path,
                "login",
                "--username", credential.username,
                "--password", credential.password,
                credential.server,
            ]
            try:
                self.runner.run(self.docker, args)
            except ProcessError as e:
                logger.warning(f"Docker login {credential.server} failed, skipping it: {e}")
                report.add(credential.server, ExecutionStatus.FAILED, str(e))
                continue

            logger.info(f"Docker login {credential.server} succeeded")
            report.add(credential.server, ExecutionStatus.SUCCESS)

        return report

    def close(self, registries: Sequence[str]) -> OperationReport:
        """Log out of every registry, skipping malformed or failing ones."""
        report = OperationReport(operation="registry_logout")

        for raw in registries:
            credential = parse_registry_credential(raw)
            if credential is None:
                logger.warning(f"Registry {_mask(raw)} is malformed, skipping logout")
                report.add(_mask(raw), ExecutionStatus.SKIPPED, "malformed registry credential")
                continue

            args = ["--config", self.docker_config_path, "logout", credential.server]
            try:
                self.runner.run(self.docker, args)
            except ProcessError as e:
                logger.warning(f"Docker logout {credential.server} failed, skipping it: {e}")
                report.add(credential.server, ExecutionStatus.FAILED, str(e))
                continue

            logger.info(f"Docker logout {credential.server} succeeded")
            report.add(credential.server, ExecutionStatus.SUCCESS)

        return report

    @contextmanager
    def session(self, registries: Sequence[str]) -> Iterator[SessionReport]:
        """Log in for the duration of the block; logout always runs."""
        report = SessionReport(login=self.open(registries))
        try:
            yield report
        finally:
            report.logout = self.close(registries)
