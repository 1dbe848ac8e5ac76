"""Domain errors for sitedeploy."""


class DeployerError(RuntimeError):
    """Raised when an operation cannot continue safely."""


class ConfigurationNotFound(DeployerError):
    """No server profile is registered under the requested target name."""


class ConnectivityError(DeployerError):
    """The remote shell could not be established."""


class NoSnapshotAvailable(DeployerError):
    """Rollback was requested but the target holds no snapshot."""


class CommandFailedError(DeployerError):
    """A local or remote command exited with a non-zero status."""

    def __init__(self, message: str, returncode: int):
        super().__init__(message)
        self.returncode = returncode
