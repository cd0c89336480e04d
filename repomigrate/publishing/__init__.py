"""Publication of validated modules."""

from .coordinator import PublishCoordinator, classify_deploy_failure

__all__ = ["PublishCoordinator", "classify_deploy_failure"]
