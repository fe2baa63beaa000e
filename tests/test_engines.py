"""
Compose and swarm engine command tests.
"""

import pytest

from stack_deploy.engine import ComposeDeployer, SwarmDeployer
from stack_deploy.utils.errors import ClusterError, EngineError
from stack_deploy.utils.process import tool_path

FILES = ["/data/stacks/billing/billing-stack/docker-compose.yml", "/data/stacks/billing/billing-stack/prod.yml"]


class TestComposeDeployer:
    def test_up_arguments(self, runner):
        deployer = ComposeDeployer("/cfg", bin_path="/opt/tools", runner=runner)

        deployer.deploy(FILES, "/data/stacks/billing", "billing", env={"TAG": "1.4"}, force_recreate=True)

        call = runner.calls[0]
        assert call.command == tool_path("/opt/tools", "docker")
        assert call.args == [
            "--config", "/cfg",
            "compose",
            "--project-name", "billing",
            "--project-directory", "/data/stacks/billing",
            "--file", FILES[0],
            "--file", FILES[1],
            "up", "--detach", "--force-recreate",
        ]
        assert call.env == {"TAG": "1.4"}
        assert call.cwd == "/data/stacks/billing"

    def test_remove_orphans(self, runner):
        ComposeDeployer("/cfg", runner=runner).deploy(FILES, "/wd", "billing", remove_orphans=True)

        assert runner.calls[0].args[-1] == "--remove-orphans"
        assert "--force-recreate" not in runner.calls[0].args

    def test_up_failure(self, runner):
        runner.on("up", error="service web failed to build")

        with pytest.raises(EngineError, match="Failed to deploy Compose stack") as exc_info:
            ComposeDeployer("/cfg", runner=runner).deploy(FILES, "/wd", "billing")

        assert exc_info.value.context.project_name == "billing"
        assert exc_info.value.context.command == tool_path("", "docker")

    def test_down_by_project_name(self, runner):
        ComposeDeployer("/cfg", runner=runner).remove("billing")

        assert runner.calls[0].args == ["--config", "/cfg", "compose", "--project-name", "billing", "down"]

    def test_down_failure(self, runner):
        runner.on("down", error="no such project")

        with pytest.raises(EngineError, match="Failed to remove Compose stack"):
            ComposeDeployer("/cfg", runner=runner).remove("billing")


class TestSwarmDeployer:
    def test_stack_deploy_arguments(self, runner):
        SwarmDeployer("/cfg", runner=runner).deploy(FILES, "/wd", "billing", prune=True)

        assert runner.calls[0].args == [
            "--config", "/cfg",
            "stack", "deploy", "--with-registry-auth", "--prune",
            "--compose-file", FILES[0],
            "--compose-file", FILES[1],
            "billing",
        ]
        assert runner.calls[0].cwd == "/wd"

    def test_stack_deploy_failure(self, runner):
        runner.on("stack", "deploy", error="this node is not a swarm manager")

        with pytest.raises(ClusterError, match="Failed to deploy Swarm stack"):
            SwarmDeployer("/cfg", runner=runner).deploy(FILES, "/wd", "billing")

    def test_stack_rm(self, runner):
        SwarmDeployer("/cfg", runner=runner).remove("billing")

        assert runner.calls[0].args == ["--config", "/cfg", "stack", "rm", "billing"]

    def test_list_service_ids_filters_by_namespace(self, runner):
        runner.on("ls", output="abc123\n\ndef456\n")

        ids = SwarmDeployer("/cfg", runner=runner).list_service_ids("billing")

        assert ids == frozenset({"abc123", "def456"})
        assert runner.calls[0].has("--quiet", "--filter", "label=com.docker.stack.namespace=billing")

    def test_list_service_ids_failure(self, runner):
        runner.on("ls", error="cannot connect to the docker daemon")

        with pytest.raises(ClusterError, match="Failed to list running services") as exc_info:
            SwarmDeployer("/cfg", bin_path="/opt/tools", runner=runner).list_service_ids("billing")

        assert exc_info.value.context.command == tool_path("/opt/tools", "docker")

    def test_force_update(self, runner):
        SwarmDeployer("/cfg", runner=runner).force_update("abc123")

        assert runner.calls[0].args == ["--config", "/cfg", "service", "update", "--force", "--detach", "abc123"]
