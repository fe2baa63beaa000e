"""Shallow git checkouts of a single reference."""

import base64
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from stack_deploy.utils.errors import ErrorContext, RepositoryError
from stack_deploy.utils.logging import get_logger
from stack_deploy.utils.process import CommandCancelledError, CommandRunner, ProcessError, tool_path

logger = get_logger(__name__)

# Username sent when only a token is supplied
TOKEN_USERNAME = "token"

COMMIT_SHA_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$|^[0-9a-fA-F]{64}$")
REF_PREFIXES = ("refs/heads/", "refs/tags/")

# Never fall back to interactive credential prompts
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


@dataclass(frozen=True)
class BasicAuth:
    """HTTP basic credentials for the git transport."""

    username: str
    password: str = field(repr=False)

    def header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        return f"Authorization: Basic {token}"


def get_auth(username: str, password: str) -> Optional[BasicAuth]:
    """Build transport credentials.

    No password means anonymous access; a password without a username is
    treated as an access token.
    """
    if not password:
        return None
    return BasicAuth(username=username or TOKEN_USERNAME, password=password)


def short_reference(reference: str) -> str:
    """Strip refs/heads/ or refs/tags/ so git clone --branch accepts it."""
    for prefix in REF_PREFIXES:
        if reference.startswith(prefix):
            return reference[len(prefix):]
    return reference


def is_commit_sha(reference: str) -> bool:
    return bool(COMMIT_SHA_PATTERN.match(reference))


class RepositoryMaterializer:
    """Clones one reference of a remote repository into a workspace."""

    def __init__(self, bin_path: str = "", runner: Optional[CommandRunner] = None):
        """Initialize materializer.

        Args:
            bin_path: Directory holding the git executable
            runner: Command runner, replaceable in tests
        """
        self.git = tool_path(bin_path, "git")
        self.runner = runner or CommandRunner()

    def clone(
        self,
        url: str,
        reference: str,
        clone_path: Path,
        auth: Optional[BasicAuth] = None,
        depth: int = 1,
        insecure_tls: bool = False,
        cancel_event: Optional[threading.Event] = None
    ) -> Path:
        """Clone a single reference without tags.

        Args:
            url: Remote repository URL
            reference: Branch, tag, full ref name or commit SHA; empty for
                the remote default branch
            clone_path: Target directory, which must not exist yet
            auth: Optional basic credentials
            depth: History depth to fetch
            insecure_tls: Disable TLS certificate verification
            cancel_event: Aborts the transport when set

        Returns:
            The clone path

        Raises:
            RepositoryError: If the clone fails or is cancelled
        """
        logger.info(f"Cloning git repository {url} into {clone_path} (depth={depth})")

        transport_env = self._transport_env(auth, insecure_tls)
        try:
            if reference and is_commit_sha(reference):
                self._fetch_commit(url, reference, clone_path, transport_env, depth, cancel_event)
            else:
                args = ["clone", "--depth", str(depth), "--single-branch", "--no-tags"]
                if reference:
                    args += ["--branch", short_reference(reference)]
                args += ["--", url, str(clone_path)]
                self.runner.run_cancellable(self.git, args, env=transport_env, cancel_event=cancel_event)
        except CommandCancelledError as e:
            raise RepositoryError(
                "Git clone cancelled",
                context=ErrorContext(operation="clone", path=str(clone_path), command=self.git),
                cause=e
            ) from e
        except ProcessError as e:
            raise RepositoryError(
                "Failed to clone Git repository",
                context=ErrorContext(operation="clone", path=str(clone_path), command=self.git),
                cause=e,
                suggestions=[
                    "Verify the repository URL and reference",
                    "Check the supplied credentials",
                ]
            ) from e

        return clone_path

    def _fetch_commit(
        self,
        url: str,
        sha: str,
        clone_path: Path,
        transport_env: Dict[str, str],
        depth: int,
        cancel_event: Optional[threading.Event]
    ) -> None:
        """Materialize a detached commit, which git clone --branch cannot do."""
        clone_path.mkdir(parents=True, exist_ok=True)
        self.runner.run(self.git, ["init", "--quiet", str(clone_path)], env=GIT_ENV)
        self.runner.run(self.git, ["-C", str(clone_path), "remote", "add", "origin", url], env=GIT_ENV)
        self.runner.run_cancellable(
            self.git,
            ["-C", str(clone_path), "fetch", "--depth", str(depth), "--no-tags", "origin", sha],
            env=transport_env,
            cancel_event=cancel_event
        )
        self.runner.run(self.git, ["-C", str(clone_path), "checkout", "--quiet", "FETCH_HEAD"], env=GIT_ENV)

    @staticmethod
    def _transport_env(auth: Optional[BasicAuth], insecure_tls: bool) -> Dict[str, str]:
        """Environment for commands that talk to the remote.

        Settings travel as GIT_CONFIG_COUNT/KEY_n/VALUE_n (git 2.31+), never as
        arguments or in .git/config.
        """
        settings: List[Tuple[str, str]] = []
        if auth is not None:
            settings.append(("http.extraHeader", auth.header()))
        if insecure_tls:
            settings.append(("http.sslVerify", "false"))

        env = dict(GIT_ENV)
        for index, (key, value) in enumerate(settings):
            env[f"GIT_CONFIG_KEY_{index}"] = key
            env[f"GIT_CONFIG_VALUE_{index}"] = value
        if settings:
            env["GIT_CONFIG_COUNT"] = str(len(settings))
        return env
