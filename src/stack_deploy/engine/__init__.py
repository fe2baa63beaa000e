"""Stack engines for single-engine and clustered targets."""

from stack_deploy.engine.base import BaseDeployer
from stack_deploy.engine.compose import ComposeDeployer
from stack_deploy.engine.swarm import SwarmDeployer

__all__ = [
    'BaseDeployer',
    'ComposeDeployer',
    'SwarmDeployer',
]
