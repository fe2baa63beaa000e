"""Subprocess helpers for driving git, docker and the decrypt tool."""

import os
import subprocess
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from stack_deploy.utils.errors import ConfigurationError, ErrorContext
from stack_deploy.utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]

# Seconds between cancellation checks while a cancellable command runs
POLL_INTERVAL = 0.2


class ProcessError(Exception):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        returncode: Optional[int],
        stderr: str = "",
        stdout: str = ""
    ):
        self.command = command
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        self.stdout = stdout
        super().__init__(self.stderr or f"{command} exited with status {returncode}")


class CommandCancelledError(ProcessError):
    """Raised when a cancellable command is aborted by its cancel event."""

    def __init__(self, command: str, args: Sequence[str]):
        super().__init__(command, args, returncode=None, stderr="operation cancelled")


def tool_path(bin_path: PathLike, name: str) -> str:
    """Resolve the executable for an external tool.

    An empty bin path leaves resolution to PATH.
    """
    if sys.platform == "win32":
        name = f"{name}.exe"
    if not bin_path:
        return name
    return str(Path(bin_path) / name)


def merge_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    """Overlay request variables on the current process environment.

    Returns None when there is nothing to overlay so the child inherits
    the environment unchanged.
    """
    if env is None:
        return None
    merged = dict(os.environ)
    merged.update(env)
    return merged


class CommandRunner:
    """Runs external commands, capturing their output."""

    def run(
        self,
        command: str,
        args: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[PathLike] = None
    ) -> str:
        """Run a command to completion.

        Args:
            command: Executable to run
            args: Arguments passed to the executable
            env: Variables overlaid on the current environment
            cwd: Working directory

        Returns:
            Captured stdout

        Raises:
            ConfigurationError: If the executable does not exist
            ProcessError: If the command cannot be started or fails
        """
        logger.debug(f"Running {command} {' '.join(_redact(args))}")
        try:
            completed = subprocess.run(
                [command, *args],
                capture_output=True,
                text=True,
                env=merge_env(env),
                cwd=str(cwd) if cwd else None,
            )
        except OSError as e:
            raise _start_error(command, args, e) from e

        if completed.returncode != 0:
            raise ProcessError(
                command,
                args,
                returncode=completed.returncode,
                stderr=completed.stderr or "",
                stdout=completed.stdout or "",
            )
        return completed.stdout or ""

    def run_cancellable(
        self,
        command: str,
        args: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[PathLike] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> str:
        """Run a command that is terminated when cancel_event is set.

        Raises:
            CommandCancelledError: If the event fired before completion
            ConfigurationError: If the executable does not exist
            ProcessError: If the command cannot be started or fails
        """
        if cancel_event is None:
            return self.run(command, args, env=env, cwd=cwd)

        logger.debug(f"Running {command} {' '.join(_redact(args))} (cancellable)")
        try:
            process = subprocess.Popen(
                [command, *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=merge_env(env),
                cwd=str(cwd) if cwd else None,
            )
        except OSError as e:
            raise _start_error(command, args, e) from e

        while True:
            if cancel_event.is_set():
                process.terminate()
                try:
                    process.wait(timeout=10)
                except subprocess.TimeoutExpired:
                    process.kill()
                    process.wait()
                raise CommandCancelledError(command, args)
            try:
                stdout, stderr = process.communicate(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                continue

        if process.returncode != 0:
            raise ProcessError(
                command,
                args,
                returncode=process.returncode,
                stderr=stderr or "",
                stdout=stdout or "",
            )
        return stdout or ""


def _start_error(command: str, args: Sequence[str], error: OSError) -> Exception:
    # A missing working directory also raises FileNotFoundError, naming the directory
    if not isinstance(error, FileNotFoundError) or error.filename not in (None, command):
        return ProcessError(command, args, returncode=None, stderr=str(error))
    return ConfigurationError(
        f"Executable not found: {command}",
        context=ErrorContext(command=command),
        cause=error,
        suggestions=[
            "Check the configured bin path",
            "Verify git, docker and sops are installed",
        ]
    )


def _redact(args: Sequence[str]) -> List[str]:
    """Mask values that follow credential flags."""
    redacted = []
    hide_next = False
    for arg in args:
        if hide_next:
            redacted.append("****")
            hide_next = False
            continue
        if arg == "--password":
            hide_next = True
        redacted.append(arg)
    return redacted
