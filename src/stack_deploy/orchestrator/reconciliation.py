"""Forced recreation of swarm services that survive a redeploy."""

from typing import AbstractSet, List

from stack_deploy.engine.swarm import SwarmDeployer
from stack_deploy.results import ExecutionStatus, OperationReport
from stack_deploy.utils.errors import ClusterError
from stack_deploy.utils.logging import get_logger

logger = get_logger(__name__)


def should_force_update(force_recreate: bool, running_before: AbstractSet[str]) -> bool:
    """Decide whether existing services must be recreated after deploy.

    A running service is the reliable sign of a previous deployment; an
    existing checkout is not, since the workspace may have been wiped.
    """
    return force_recreate and len(running_before) > 0


def services_to_force(running_before: AbstractSet[str], running_after: AbstractSet[str]) -> List[str]:
    """Services present before and after deploy, in a stable order.

    Services that only exist afterwards were just created and are left alone.
    """
    return sorted(set(running_before) & set(running_after))


class ReconciliationTracker:
    """Snapshots a stack's services around a deploy and forces survivors."""

    def __init__(self, deployer: SwarmDeployer):
        self.deployer = deployer

    def snapshot(self, project_name: str) -> frozenset:
        """Currently running service IDs for the stack.

        Raises:
            ClusterError: If the services cannot be listed
        """
        running = self.deployer.list_service_ids(project_name)
        logger.debug(f"Found {len(running)} running service(s) for {project_name}")
        return frozenset(running)

    def reconcile(self, project_name: str, running_before: AbstractSet[str], force_update: bool) -> OperationReport:
        """Force update every service that was running before the deploy.

        Per-service failures are logged and recorded without stopping the
        remaining updates.

        Raises:
            ClusterError: If the post-deploy services cannot be listed
        """
        report = OperationReport(operation="force_update")
        if not force_update:
            return report

        running_after = self.snapshot(project_name)
        for service_id in services_to_force(running_before, running_after):
            try:
                self.deployer.force_update(service_id)
            except ClusterError as e:
                logger.warning(f"Failed to force update service {service_id}: {e.cause or e}")
                report.add(service_id, ExecutionStatus.FAILED, str(e.cause or e))
                continue

            logger.info(f"Forced update of service {service_id}")
            report.add(service_id, ExecutionStatus.SUCCESS)

        return report
