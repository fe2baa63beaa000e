"""Discovery and decryption of secret files shipped in a stack repository."""

import fnmatch
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Dict, List, Optional, Sequence, Union

from stack_deploy.results import DeploymentWarning
from stack_deploy.utils.errors import ErrorContext, SecretDecryptionError
from stack_deploy.utils.logging import get_logger
from stack_deploy.utils.process import CommandRunner, ProcessError, tool_path

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _is_within(path: str, root: str) -> bool:
    """True when path equals root or lies below it, compared per component."""
    root_parts = PurePath(root).parts
    return PurePath(path).parts[:len(root_parts)] == root_parts


def find_root_paths(file_paths: Sequence[PathLike]) -> List[str]:
    """Reduce file paths to the minimal set of directories covering them.

    Args:
        file_paths: Files whose parent directories should be scanned

    Returns:
        Sorted directories, none of which is nested inside another

    Example:
        >>> find_root_paths(["/a/x/f1", "/a/x/y/f2", "/b/f3"])
        ['/a/x', '/b']
    """
    if not file_paths:
        return []

    folder_paths = {os.path.normpath(os.path.dirname(str(p))) for p in file_paths}

    # Sorting by components keeps every directory directly ahead of its
    # descendants, so each one only needs checking against the last root.
    ordered = sorted(folder_paths, key=lambda p: PurePath(p).parts)

    root_paths = [ordered[0]]
    for folder_path in ordered[1:]:
        if not _is_within(folder_path, root_paths[-1]):
            root_paths.append(folder_path)

    return root_paths


def secret_file_pattern(marker: str) -> str:
    return f"*.{marker}.*"


def decrypted_file_name(file_name: str, marker: str = "secret") -> str:
    """Name of the plaintext sibling, e.g. app.secret.yml -> app.yml."""
    return file_name.replace(f".{marker}.", ".")


@dataclass
class SecretScan:
    """Secret files found beneath the compose roots."""

    root_paths: List[str] = field(default_factory=list)
    secret_files: List[Path] = field(default_factory=list)
    decrypted_files: List[Path] = field(default_factory=list)
    warnings: List[DeploymentWarning] = field(default_factory=list)


class SecretResolver:
    """Finds ``*.<marker>.*`` files and decrypts them in place."""

    def __init__(
        self,
        bin_path: str = "",
        marker: str = "secret",
        tool: str = "sops",
        runner: Optional[CommandRunner] = None
    ):
        """Initialize resolver.

        Args:
            bin_path: Directory holding the decrypt tool
            marker: File name segment identifying secret files
            tool: Decrypt tool executable name
            runner: Command runner, replaceable in tests
        """
        self.marker = marker
        self.pattern = secret_file_pattern(marker)
        self.command = tool_path(bin_path, tool)
        self.runner = runner or CommandRunner()

    def is_secret_file(self, file_name: str) -> bool:
        return fnmatch.fnmatchcase(file_name, self.pattern)

    def scan(self, file_paths: Sequence[PathLike]) -> SecretScan:
        """Walk the covering roots of file_paths and collect secret files.

        Errors on individual paths are logged and recorded as warnings.
        """
        scan = SecretScan(root_paths=find_root_paths(file_paths))

        for root_path in scan.root_paths:
            logger.info(f"Walking directory {root_path}, looking for secret files...")

            def on_error(error: OSError) -> None:
                path = error.filename or root_path
                logger.warning(f"Encountered an error while collecting secret file paths at {path}: {error}")
                scan.warnings.append(DeploymentWarning(source="secret_scan", message=f"{path}: {error.strerror or error}"))

            for dir_path, dir_names, file_names in os.walk(root_path, onerror=on_error):
                # Git object storage never holds stack files
                dir_names[:] = sorted(d for d in dir_names if d != ".git")
                for file_name in sorted(file_names):
                    if self.is_secret_file(file_name):
                        secret_path = Path(dir_path) / file_name
                        logger.info(f"Found a secret file {secret_path}")
                        scan.secret_files.append(secret_path)

        return scan

    def decrypt(self, secret_path: Path, env: Optional[Dict[str, str]] = None) -> Path:
        """Decrypt one secret file next to itself.

        Raises:
            SecretDecryptionError: If the decrypt tool fails
        """
        folder = secret_path.parent
        output_name = decrypted_file_name(secret_path.name, self.marker)
        args = ["--output", output_name, "--decrypt", secret_path.name]

        try:
            self.runner.run(self.command, args, env=env or {}, cwd=folder)
        except ProcessError as e:
            logger.warning(
                f"Failed to decrypt secret file: command={self.command} "
                f"workingDir={folder} args={' '.join(args)} error={e}"
            )
            raise SecretDecryptionError(
                f"Failed to decrypt secret file {secret_path}",
                context=ErrorContext(operation="decrypt", path=str(secret_path), command=self.command),
                cause=e,
                suggestions=["Check that the decryption key is available to the decrypt tool"]
            ) from e

        return folder / output_name

    def resolve(self, file_paths: Sequence[PathLike], env: Optional[Dict[str, str]] = None) -> SecretScan:
        """Scan for secret files and decrypt every match.

        The first decryption failure aborts the whole operation.
        """
        scan = self.scan(file_paths)
        for secret_path in scan.secret_files:
            scan.decrypted_files.append(self.decrypt(secret_path, env))
        return scan
