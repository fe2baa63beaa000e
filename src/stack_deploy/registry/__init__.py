"""Container registry authentication."""

from stack_deploy.registry.session import (
    RegistryCredential,
    RegistrySession,
    SessionReport,
    parse_registry_credential,
)

__all__ = [
    'RegistryCredential',
    'RegistrySession',
    'SessionReport',
    'parse_registry_credential',
]
