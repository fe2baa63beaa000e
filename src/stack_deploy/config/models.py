"""Pydantic models for settings and deployment requests."""

from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Settings(BaseModel):
    """Process-wide settings threaded through every component."""

    bin_path: str = Field("", description="Directory holding git, docker and sops; empty uses PATH")
    docker_config_path: str = Field(
        default_factory=lambda: str(Path.home() / ".docker"),
        description="Docker client configuration directory used for registry credentials",
    )
    secret_marker: str = Field("secret", min_length=1, pattern="^[A-Za-z0-9_-]+$")
    decrypt_tool: str = Field("sops", min_length=1)
    compose_clone_depth: int = Field(1, ge=1)
    swarm_clone_depth: int = Field(100, ge=1)
    log_level: str = Field("info", pattern="^(debug|info|warning|error)$")
    log_dir: str = Field(".stack-deploy/logs", min_length=1)


class DeploymentRequest(BaseModel):
    """Immutable input of a single deploy or undeploy invocation."""

    model_config = ConfigDict(frozen=True)

    repository_url: str = Field(..., min_length=1)
    reference: str = ""
    username: str = ""
    password: str = Field("", repr=False)
    compose_files: List[str] = Field(default_factory=list)
    destination: str = Field(..., min_length=1)
    project_name: str = Field(..., min_length=1)
    env: Dict[str, str] = Field(default_factory=dict)
    registries: List[str] = Field(default_factory=list, repr=False)
    keep: bool = False
    force_recreate: bool = True
    prune: bool = False
    skip_tls_verify: bool = False

    @field_validator("project_name")
    @classmethod
    def validate_project_name(cls, v: str) -> str:
        """Project names become directory names and stack names."""
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"Project name cannot contain path separators: {v}")
        return v

    @field_validator("compose_files")
    @classmethod
    def validate_compose_files(cls, v: List[str]) -> List[str]:
        """Compose paths are relative to the repository root."""
        for path in v:
            if not path:
                raise ValueError("Compose file path cannot be empty")
            if Path(path).is_absolute():
                raise ValueError(f"Compose file path must be relative to the repository: {path}")
        return v

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Validate environment variables."""
        for key in v:
            if not key or "=" in key:
                raise ValueError(f"Invalid environment variable name: {key!r}")
        return v

    def uses_git_auth(self) -> bool:
        return bool(self.username and self.password)


def parse_env_pairs(pairs: List[str]) -> Dict[str, str]:
    """Parse KEY=VALUE strings into a mapping.

    Raises:
        ValueError: If an entry has no '=' separator
    """
    env: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Environment variable must be KEY=VALUE: {pair!r}")
        env[key] = value
    return env


def override_settings(settings: Settings, **overrides: Optional[str]) -> Settings:
    """Return settings with the non-empty overrides applied."""
    values = {key: value for key, value in overrides.items() if value}
    if not values:
        return settings
    return settings.model_copy(update=values)
