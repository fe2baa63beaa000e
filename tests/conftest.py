"""
Shared fixtures: a command runner that records calls instead of spawning processes.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from stack_deploy.config.models import DeploymentRequest, Settings
from stack_deploy.utils.process import CommandCancelledError, CommandRunner, ProcessError


@dataclass
class Call:
    command: str
    args: List[str]
    env: Optional[Dict[str, str]]
    cwd: Optional[str]

    def has(self, *tokens: str) -> bool:
        return all(token in self.args for token in tokens)


class FakeRunner(CommandRunner):
    def __init__(self):
        self.calls: List[Call] = []
        self._handlers = []

    def on(self, *tokens: str, output="", error: Optional[str] = None, action: Optional[Callable] = None):
        """Register a response for calls containing every token; latest wins."""
        self._handlers.append((tokens, output, error, action))

    def run(self, command, args, env=None, cwd=None):
        call = Call(command, list(args), env, str(cwd) if cwd else None)
        self.calls.append(call)
        for tokens, output, error, action in reversed(self._handlers):
            if call.has(*tokens):
                if action is not None:
                    action(call)
                if error is not None:
                    raise ProcessError(command, args, returncode=1, stderr=error)
                return output() if callable(output) else output
        return ""

    def run_cancellable(self, command, args, env=None, cwd=None, cancel_event=None):
        if cancel_event is not None and cancel_event.is_set():
            self.calls.append(Call(command, list(args), env, str(cwd) if cwd else None))
            raise CommandCancelledError(command, args)
        return self.run(command, args, env=env, cwd=cwd)

    def calls_with(self, *tokens: str) -> List[Call]:
        return [call for call in self.calls if call.has(*tokens)]


def fake_clone(files: Optional[Dict[str, str]] = None) -> Callable[[Call], None]:
    """Action creating the clone directory (git's last argument) with files."""
    def action(call: Call) -> None:
        clone_path = Path(call.args[-1])
        clone_path.mkdir(parents=True, exist_ok=True)
        for relative, content in (files or {}).items():
            target = clone_path / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
    return action


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        bin_path="/opt/tools",
        docker_config_path=str(tmp_path / "docker-config"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def make_request(tmp_path):
    def _make(**overrides) -> DeploymentRequest:
        values = dict(
            repository_url="https://example.com/org/billing-stack.git",
            reference="refs/heads/main",
            compose_files=["docker-compose.yml", "overrides/docker-compose.prod.yml"],
            destination=str(tmp_path / "data"),
            project_name="billing",
        )
        values.update(overrides)
        return DeploymentRequest(**values)
    return _make
