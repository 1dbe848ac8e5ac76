"""Docker runtime services for sitedeploy."""

from typing import Callable, List, Optional

from sitedeploy.errors import CommandFailedError, DeployerError
from sitedeploy.errors_catalog import actionable_error


class DockerRuntimeService:
    """Manages docker-compose detection and the compose lifecycle on a target."""

    LOG_TAIL_LINES = 10

    def __init__(self, logger, console, compose_file: str, compose_cmd: Optional[List[str]] = None):
        self.logger = logger
        self.console = console
        self.compose_file = compose_file
        self.compose_cmd = compose_cmd

    def get_docker_compose_cmd(self, shell) -> List[str]:
        if self.compose_cmd:
            return self.compose_cmd

        if shell.run(["docker", "compose", "version"], check=False).returncode == 0:
            self.compose_cmd = ["docker", "compose"]
        elif shell.run(["docker-compose", "--version"], check=False).returncode == 0:
            self.compose_cmd = ["docker-compose"]
        else:
            raise DeployerError(
                f"Docker Compose is not available on {shell.profile.host}. Install Docker Compose v2 "
                "(`docker compose`) or v1 (`docker-compose`) and try again."
            )
        self.logger.debug("Using compose command: %s", " ".join(self.compose_cmd))
        return self.compose_cmd

    def compose_args(self, shell, *args: str) -> List[str]:
        return self.get_docker_compose_cmd(shell) + ["-f", self.compose_file] + list(args)

    def _compose_step(self, shell, label: str, *args: str) -> bool:
        result = shell.run(self.compose_args(shell, *args), check=False)
        if result.returncode == 0:
            return True
        stderr = (result.stderr or "").strip()
        self.logger.error("%s failed (%s)%s", label, result.returncode, f": {stderr}" if stderr else "")
        return False

    def pull(self, shell) -> bool:
        self.console.print("[blue]Pulling Docker image...[/blue]")
        return self._compose_step(shell, "Image pull", "pull")

    def down(self, shell) -> bool:
        self.console.print("[blue]Stopping current containers...[/blue]")
        return self._compose_step(shell, "Stopping containers", "down")

    def up(self, shell) -> bool:
        self.console.print("[blue]Starting containers...[/blue]")
        return self._compose_step(shell, "Starting containers", "up", "-d")

    def restart(self, shell) -> bool:
        return self.down(shell) and self.up(shell)

    def prune_images(self, shell):
        self.console.print("[dim]Cleaning up old Docker images...[/dim]")
        result = shell.run(["docker", "image", "prune", "-f"], check=False)
        if result.returncode != 0:
            self.logger.warning("Could not prune old images on %s.", shell.profile.host)

    def describe(self, shell) -> str:
        sections = [
            ("Container Status", self.compose_args(shell, "ps")),
            ("Image Information", self.compose_args(shell, "images")),
            ("Recent Logs", self.compose_args(shell, "logs", f"--tail={self.LOG_TAIL_LINES}")),
        ]
        output = []
        for title, argv in sections:
            result = shell.run(argv, check=False)
            body = (result.stdout or "").rstrip() or (result.stderr or "").rstrip()
            output.append(f"{title}:\n{body}")
        return "\n\n".join(output)

    def stream_logs(self, shell) -> int:
        return shell.stream(self.compose_args(shell, "logs", "-f"))

    def validate_local_environment(self, run_cmd: Callable):
        self.console.print("[blue]Validating Docker environment...[/blue]")
        try:
            run_cmd(["docker", "info"], capture_output=True)
        except CommandFailedError as exc:
            raise DeployerError(actionable_error("docker_unavailable")) from exc
        self.console.print("[green]Docker is running.[/green]")

    def build_image(self, image_reference: str, context: str, run_cmd: Callable):
        self.console.print(f"[blue]Building Docker image {image_reference}...[/blue]")
        run_cmd(["docker", "build", "-t", image_reference, context])
        self.console.print("[green]Image built successfully.[/green]")

    def push_image(self, image_reference: str, run_cmd: Callable):
        self.console.print(f"[blue]Pushing Docker image {image_reference}...[/blue]")
        run_cmd(["docker", "push", image_reference])
        self.console.print("[green]Image pushed successfully.[/green]")
