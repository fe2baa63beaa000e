"""Secret file discovery and decryption."""

from stack_deploy.decryption.resolver import (
    SecretResolver,
    SecretScan,
    decrypted_file_name,
    find_root_paths,
)

__all__ = [
    'SecretResolver',
    'SecretScan',
    'decrypted_file_name',
    'find_root_paths',
]
