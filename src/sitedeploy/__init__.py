"""
sitedeploy - Docker Compose deployment orchestrator for the sample website
"""

__version__ = "1.0.0"

from .core import SiteDeployer
from .errors import DeployerError

__all__ = ["SiteDeployer", "DeployerError"]
