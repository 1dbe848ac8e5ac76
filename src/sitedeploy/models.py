"""Shared domain models for sitedeploy."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class ServerProfile:
    """Connection and image details for one deployable target."""

    name: str
    host: str
    user: str
    app_directory: str
    image_name: str
    port: Optional[int] = None
    identity_file: Optional[str] = None
    health_check_url: Optional[str] = None

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"

    def image_reference(self, tag: str) -> str:
        return f"{self.image_name}:{tag}"


@dataclass(frozen=True, order=True)
class DeploymentSnapshot:
    """Timestamped copy of the service-stack definition on the remote target."""

    created_at: datetime
    file_name: str


class DeploymentState(str, Enum):
    START = "start"
    SNAPSHOT = "snapshot"
    REWRITE = "rewrite"
    PULL = "pull"
    RESTART = "restart"
    WAIT = "wait"
    HEALTH_CHECK = "health_check"
    ROLLBACK = "rollback"
    DONE = "done"
    ROLLED_BACK = "rolled_back"
    FATAL = "fatal"
    ABORTED = "aborted"


EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_ROLLED_BACK = 2
EXIT_FATAL = 3


@dataclass
class DeploymentOutcome:
    """Result of one orchestrator invocation. Never persisted."""

    operation: str
    target: str
    state: DeploymentState = DeploymentState.START
    message: str = ""
    image_reference: Optional[str] = None
    snapshot: Optional[DeploymentSnapshot] = None
    history: List[DeploymentState] = field(default_factory=list)

    def transition(self, state: DeploymentState):
        self.state = state
        self.history.append(state)

    @property
    def exit_code(self) -> int:
        if self.state == DeploymentState.DONE:
            return EXIT_OK
        if self.state == DeploymentState.ROLLED_BACK:
            # A requested rollback succeeded; an automatic one means the tag did not ship.
            return EXIT_OK if self.operation == "rollback" else EXIT_ROLLED_BACK
        if self.state == DeploymentState.FATAL:
            return EXIT_FATAL
        return EXIT_ABORTED
