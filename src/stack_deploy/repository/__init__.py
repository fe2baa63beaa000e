"""Git repository checkout."""

from stack_deploy.repository.materializer import (
    BasicAuth,
    RepositoryMaterializer,
    get_auth,
    short_reference,
)

__all__ = [
    'BasicAuth',
    'RepositoryMaterializer',
    'get_auth',
    'short_reference',
]
