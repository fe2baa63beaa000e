"""YAML settings loader for the stack deployment tool."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import Settings


class ConfigValidationError(Exception):
    """Exception raised when settings validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class SettingsLoader:
    """Loads Settings from an optional YAML file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize settings loader.

        Args:
            config_path: Path to the YAML settings file; None or a missing
                file yields the defaults
        """
        self.config_path = Path(config_path) if config_path else None
        self.data: Dict = {}

    def load(self) -> Settings:
        """Load and validate settings.

        Returns:
            Validated Settings

        Raises:
            ConfigValidationError: If the file is not valid YAML or does not
                match the settings schema
        """
        if self.config_path is None or not self.config_path.exists():
            return Settings()

        try:
            with open(self.config_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError(
                f"Settings file must contain a mapping: {self.config_path}"
            )

        errors = self.validate()
        if errors:
            raise ConfigValidationError(
                f"Settings validation failed with {len(errors)} error(s)",
                errors,
            )

        return Settings(**self.data)

    def validate(self) -> List[Dict]:
        """Validate the loaded data against the settings schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        known_fields = set(Settings.model_fields)
        for key in self.data:
            if key not in known_fields:
                errors.append({"loc": [key], "msg": f"Unknown setting '{key}'"})

        try:
            Settings(**{k: v for k, v in self.data.items() if k in known_fields})
        except ValidationError as e:
            for error in e.errors():
                errors.append({"loc": list(error["loc"]), "msg": error["msg"]})

        return errors
