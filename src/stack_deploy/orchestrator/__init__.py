"""Orchestrator module for stack deployment workflows."""

from stack_deploy.orchestrator.reconciliation import (
    ReconciliationTracker,
    services_to_force,
    should_force_update
)
from stack_deploy.orchestrator.deployer import StackDeployer

__all__ = [
    # Reconciliation
    'ReconciliationTracker',
    'services_to_force',
    'should_force_update',

    # Workflows
    'StackDeployer',
]
