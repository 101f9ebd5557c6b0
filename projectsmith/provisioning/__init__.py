"""Post-scaffold provisioning: remote repository, deployment, dependencies."""

from projectsmith.provisioning.dependencies import DependencyLauncher
from projectsmith.provisioning.deployment import DeploymentOptions, DeploymentOrchestrator
from projectsmith.provisioning.repository import RepositoryProvisioner

__all__ = [
    "DependencyLauncher",
    "DeploymentOptions",
    "DeploymentOrchestrator",
    "RepositoryProvisioner",
]
