"""
Settings loading and request validation tests.
"""

import pytest
from pydantic import ValidationError

from stack_deploy.config import (
    ConfigValidationError,
    DeploymentRequest,
    Settings,
    SettingsLoader,
    override_settings,
    parse_env_pairs,
)


class TestSettingsLoader:
    def test_missing_file_yields_defaults(self, tmp_path):
        settings = SettingsLoader(str(tmp_path / "absent.yaml")).load()

        assert settings.bin_path == ""
        assert settings.secret_marker == "secret"
        assert settings.decrypt_tool == "sops"
        assert settings.compose_clone_depth == 1
        assert settings.swarm_clone_depth == 100

    def test_no_path_yields_defaults(self):
        assert SettingsLoader().load().log_level == "info"

    def test_loads_yaml(self, tmp_path):
        config_file = tmp_path / "stack-deploy.yaml"
        config_file.write_text(
            "bin_path: /opt/tools\n"
            "docker_config_path: /var/lib/deploy/docker\n"
            "swarm_clone_depth: 50\n"
            "log_level: debug\n"
        )

        settings = SettingsLoader(str(config_file)).load()

        assert settings.bin_path == "/opt/tools"
        assert settings.docker_config_path == "/var/lib/deploy/docker"
        assert settings.swarm_clone_depth == 50
        assert settings.log_level == "debug"

    def test_empty_file_yields_defaults(self, tmp_path):
        config_file = tmp_path / "stack-deploy.yaml"
        config_file.write_text("")

        assert SettingsLoader(str(config_file)).load() == Settings()

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "stack-deploy.yaml"
        config_file.write_text("bin_path: [unterminated\n")

        with pytest.raises(ConfigValidationError, match="Failed to parse YAML"):
            SettingsLoader(str(config_file)).load()

    def test_non_mapping(self, tmp_path):
        config_file = tmp_path / "stack-deploy.yaml"
        config_file.write_text("- one\n- two\n")

        with pytest.raises(ConfigValidationError, match="must contain a mapping"):
            SettingsLoader(str(config_file)).load()

    def test_reports_every_error(self, tmp_path):
        config_file = tmp_path / "stack-deploy.yaml"
        config_file.write_text(
            "bin_dir: /opt/tools\n"
            "compose_clone_depth: 0\n"
            "log_level: verbose\n"
        )

        with pytest.raises(ConfigValidationError) as exc_info:
            SettingsLoader(str(config_file)).load()

        error = exc_info.value
        assert len(error.errors) == 3
        assert "Unknown setting 'bin_dir'" in str(error)
        assert "compose_clone_depth" in str(error)
        assert "log_level" in str(error)


class TestOverrideSettings:
    def test_non_empty_values_win(self):
        settings = Settings(bin_path="/usr/local/bin", docker_config_path="/cfg")

        updated = override_settings(settings, bin_path="/opt/tools", docker_config_path=None, log_level="")

        assert updated.bin_path == "/opt/tools"
        assert updated.docker_config_path == "/cfg"
        assert updated.log_level == "info"

    def test_nothing_to_override(self):
        settings = Settings()

        assert override_settings(settings, bin_path=None) is settings


class TestParseEnvPairs:
    def test_parses_pairs(self):
        assert parse_env_pairs(["TAG=1.4", "DSN=postgres://u:p@db/x?a=b", "EMPTY="]) == {
            "TAG": "1.4",
            "DSN": "postgres://u:p@db/x?a=b",
            "EMPTY": "",
        }

    @pytest.mark.parametrize("pair", ["TAG", "=value"])
    def test_rejects_malformed_pair(self, pair):
        with pytest.raises(ValueError):
            parse_env_pairs([pair])


class TestDeploymentRequest:
    def _request(self, **overrides):
        values = dict(
            repository_url="https://example.com/org/billing-stack.git",
            compose_files=["docker-compose.yml"],
            destination="/data",
            project_name="billing",
        )
        values.update(overrides)
        return DeploymentRequest(**values)

    def test_defaults(self):
        request = self._request()

        assert request.force_recreate is True
        assert request.keep is False
        assert request.prune is False
        assert request.env == {}

    def test_is_immutable(self):
        request = self._request()

        with pytest.raises(ValidationError):
            request.project_name = "other"

    @pytest.mark.parametrize("project_name", ["../etc", "a/b", "..", ""])
    def test_rejects_unsafe_project_name(self, project_name):
        with pytest.raises(ValidationError):
            self._request(project_name=project_name)

    def test_rejects_absolute_compose_file(self):
        with pytest.raises(ValidationError):
            self._request(compose_files=["/etc/docker-compose.yml"])

    def test_credentials_are_not_in_repr(self):
        request = self._request(password="s3cret", registries=["alice:pw:registry.example.com"])

        assert "s3cret" not in repr(request)
        assert "alice:pw" not in repr(request)

    def test_git_auth_needs_user_and_password(self):
        assert self._request(username="alice", password="s3cret").uses_git_auth()
        assert not self._request(password="s3cret").uses_git_auth()
