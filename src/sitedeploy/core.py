import logging
import time
from typing import Callable, List, Optional, Sequence

from rich.console import Console

from .constants import (
    DEFAULT_COMPOSE_FILE,
    DEFAULT_IMAGE_TAG,
    DEFAULT_SERVERS_DIR,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    HEALTH_CHECK_URL,
    HEALTH_CHECK_WAIT_SECONDS,
    SSH_CONNECT_TIMEOUT_SECONDS,
)
from .errors import ConnectivityError, DeployerError, NoSnapshotAvailable
from .errors_catalog import actionable_error
from .models import (
    EXIT_ABORTED,
    DeploymentOutcome,
    DeploymentSnapshot,
    DeploymentState,
    ServerProfile,
)
from .services.command_runner import CommandRunner
from .services.compose_file import ComposeDefinition, rewrite_image_tag
from .services.docker_runtime import DockerRuntimeService
from .services.health import HealthCheckService
from .services.profile_loader import ProfileLoader
from .services.remote_shell import RemoteShell
from .services.snapshots import SnapshotService

console = Console()
logger = logging.getLogger("sitedeploy")


class SiteDeployer:
    OPERATIONS = ("deploy", "rollback", "status", "logs", "build")

    def __init__(
        self,
        servers_dir: str = DEFAULT_SERVERS_DIR,
        compose_file: str = DEFAULT_COMPOSE_FILE,
        health_check_url: Optional[str] = None,
        health_check_wait: float = HEALTH_CHECK_WAIT_SECONDS,
        health_check_timeout: float = HEALTH_CHECK_TIMEOUT_SECONDS,
        connect_timeout: int = SSH_CONNECT_TIMEOUT_SECONDS,
        compose_command: Optional[List[str]] = None,
        ssh_options: Optional[Sequence[str]] = None,
        shell_factory: Optional[Callable[[ServerProfile], object]] = None,
    ):
        self.compose_file = compose_file
        self.health_check_url = health_check_url
        self.health_check_wait = health_check_wait
        self.connect_timeout = connect_timeout
        self.ssh_options = list(ssh_options or [])
        self.shell_factory = shell_factory or self._create_shell

        self.command_runner = CommandRunner(logger=logger)
        self.profile_loader = ProfileLoader(servers_dir=servers_dir, logger=logger)
        self.snapshot_service = SnapshotService(compose_file=compose_file, logger=logger)
        self.docker_runtime_service = DockerRuntimeService(
            logger=logger,
            console=console,
            compose_file=compose_file,
            compose_cmd=compose_command,
        )
        self.health_service = HealthCheckService(logger=logger, timeout=health_check_timeout)

    def _create_shell(self, profile: ServerProfile) -> RemoteShell:
        return RemoteShell(
            profile=profile,
            command_runner=self.command_runner,
            logger=logger,
            ssh_options=self.ssh_options,
            connect_timeout=self.connect_timeout,
        )

    def resolve_profile(self, target: str) -> ServerProfile:
        return self.profile_loader.load(target)

    def connect(self, profile: ServerProfile):
        console.print(f"[blue]Connecting to {profile.host}...[/blue]")
        shell = self.shell_factory(profile)
        shell.check_connectivity()
        return shell

    def resolve_health_url(self, profile: ServerProfile) -> str:
        return self.health_check_url or profile.health_check_url or HEALTH_CHECK_URL

    def _enter(self, outcome: DeploymentOutcome, state: DeploymentState):
        logger.debug("%s %s: entering %s", outcome.operation, outcome.target, state.value)
        outcome.transition(state)

    def _finish(self, outcome: DeploymentOutcome, state: DeploymentState, message: str) -> DeploymentOutcome:
        self._enter(outcome, state)
        outcome.message = message
        return outcome

    def _wait(self):
        if self.health_check_wait > 0:
            console.print(f"[yellow]Waiting {self.health_check_wait:g}s for containers to be ready...[/yellow]")
            time.sleep(self.health_check_wait)

    def _rewrite_definition(self, shell, profile: ServerProfile, tag: str):
        if not shell.exists(self.compose_file):
            raise DeployerError(
                actionable_error(
                    "compose_file_missing",
                    compose_file=self.compose_file,
                    directory=profile.app_directory,
                    host=profile.host,
                )
            )

        content = shell.read_text(self.compose_file)
        new_content, previous = rewrite_image_tag(content, profile.image_name, tag)
        if not previous:
            raise DeployerError(
                actionable_error(
                    "image_line_missing",
                    image_name=profile.image_name,
                    compose_file=self.compose_file,
                )
            )

        console.print(f"[blue]Updating {self.compose_file} with image tag: {tag}[/blue]")
        logger.info("Image reference %s -> %s", ", ".join(sorted(set(previous))), profile.image_reference(tag))
        if new_content != content:
            shell.write_text(self.compose_file, new_content)

    def _restore_snapshot(
        self,
        shell,
        profile: ServerProfile,
        outcome: DeploymentOutcome,
        snapshot: DeploymentSnapshot,
    ) -> DeploymentOutcome:
        self._enter(outcome, DeploymentState.ROLLBACK)
        console.print(f"[yellow]Rolling back to {snapshot.file_name}...[/yellow]")
        fatal_message = actionable_error("rollback_failed", target=outcome.target)

        try:
            if not self.docker_runtime_service.down(shell):
                logger.warning("Stopping containers failed; restoring the backup anyway.")
            self.snapshot_service.restore(shell, snapshot)
            outcome.snapshot = snapshot
            if not self.docker_runtime_service.up(shell):
                return self._finish(outcome, DeploymentState.FATAL, fatal_message)
            self._wait()
            healthy = self.health_service.probe(shell, self.resolve_health_url(profile))
        except DeployerError as exc:
            logger.error(str(exc))
            return self._finish(outcome, DeploymentState.FATAL, f"{fatal_message}\n{exc}")

        if not healthy:
            return self._finish(outcome, DeploymentState.FATAL, fatal_message)
        return self._finish(
            outcome,
            DeploymentState.ROLLED_BACK,
            f"Restored {self.compose_file} from {snapshot.file_name} on {outcome.target}.",
        )

    def _recover(
        self,
        shell,
        profile: ServerProfile,
        outcome: DeploymentOutcome,
        reason: str,
        without_snapshot: DeploymentState,
    ) -> DeploymentOutcome:
        console.print(f"[bold red]{reason}[/bold red]")
        logger.error(reason)
        if outcome.snapshot is None:
            return self._finish(outcome, without_snapshot, f"{reason} No backup available to roll back to.")

        recovered = self._restore_snapshot(shell, profile, outcome, outcome.snapshot)
        recovered.message = f"{reason} {recovered.message}"
        return recovered

    def deploy(self, target: str, tag: Optional[str] = None) -> DeploymentOutcome:
        tag = tag or DEFAULT_IMAGE_TAG
        outcome = DeploymentOutcome(operation="deploy", target=target)
        self._enter(outcome, DeploymentState.START)

        try:
            profile = self.resolve_profile(target)
            outcome.image_reference = profile.image_reference(tag)
            console.print(f"[blue]Deploying to {target} with image tag: {tag}[/blue]")
            shell = self.connect(profile)
            self.docker_runtime_service.get_docker_compose_cmd(shell)

            self._enter(outcome, DeploymentState.SNAPSHOT)
            outcome.snapshot = self.snapshot_service.create(shell)

            self._enter(outcome, DeploymentState.REWRITE)
            self._rewrite_definition(shell, profile, tag)
        except DeployerError as exc:
            return self._finish(outcome, DeploymentState.ABORTED, str(exc))

        try:
            self._enter(outcome, DeploymentState.PULL)
            if not self.docker_runtime_service.pull(shell):
                return self._recover(
                    shell, profile, outcome, "Image pull failed.", DeploymentState.ABORTED
                )

            self._enter(outcome, DeploymentState.RESTART)
            if not self.docker_runtime_service.restart(shell):
                return self._recover(
                    shell, profile, outcome, "Restarting containers failed.", DeploymentState.FATAL
                )

            self._enter(outcome, DeploymentState.WAIT)
            self._wait()

            self._enter(outcome, DeploymentState.HEALTH_CHECK)
            console.print("[blue]Performing health check...[/blue]")
            if not self.health_service.probe(shell, self.resolve_health_url(profile)):
                return self._recover(
                    shell, profile, outcome, "Health check failed!", DeploymentState.FATAL
                )
        except DeployerError as exc:
            state = outcome.state
            without_snapshot = DeploymentState.ABORTED if state == DeploymentState.PULL else DeploymentState.FATAL
            return self._recover(shell, profile, outcome, f"{state.value} failed: {exc}", without_snapshot)

        console.print("[green]Health check passed![/green]")
        try:
            self.docker_runtime_service.prune_images(shell)
        except DeployerError as exc:
            logger.warning("Skipping image cleanup: %s", exc)

        return self._finish(
            outcome,
            DeploymentState.DONE,
            f"Deployment of {outcome.image_reference} to {target} completed successfully!",
        )

    def rollback(self, target: str) -> DeploymentOutcome:
        outcome = DeploymentOutcome(operation="rollback", target=target)
        self._enter(outcome, DeploymentState.START)

        try:
            profile = self.resolve_profile(target)
            console.print(f"[blue]Rolling back deployment on {target}[/blue]")
            shell = self.connect(profile)
            snapshot = self.snapshot_service.latest(shell)
            if snapshot is None:
                raise NoSnapshotAvailable(
                    actionable_error("no_snapshot", directory=profile.app_directory, host=profile.host)
                )
            self.docker_runtime_service.get_docker_compose_cmd(shell)
        except DeployerError as exc:
            return self._finish(outcome, DeploymentState.ABORTED, str(exc))

        return self._restore_snapshot(shell, profile, outcome, snapshot)

    def status(self, target: str) -> DeploymentOutcome:
        outcome = DeploymentOutcome(operation="status", target=target)
        self._enter(outcome, DeploymentState.START)

        try:
            profile = self.resolve_profile(target)
            shell = self.connect(profile)
        except DeployerError as exc:
            return self._finish(outcome, DeploymentState.ABORTED, str(exc))

        console.rule(f"Deployment Status on {profile.host}")
        try:
            if not shell.exists(self.compose_file):
                console.print(f"[yellow]No {self.compose_file} found in {profile.app_directory}[/yellow]")
                return self._finish(outcome, DeploymentState.DONE, "Nothing deployed yet.")

            definition = ComposeDefinition.parse(shell.read_text(self.compose_file))
            references = definition.references_for(profile.image_name) or definition.image_references()
            outcome.image_reference = references[0] if references else None
            console.print(f"Active image: [bold]{', '.join(references) or '<none>'}[/bold]")

            snapshots = self.snapshot_service.list_all(shell)
            console.print(f"Backups ({len(snapshots)}):")
            for snapshot in snapshots:
                console.print(f"  {snapshot.file_name}")

            console.print(self.docker_runtime_service.describe(shell), markup=False, highlight=False)
        except DeployerError as exc:
            if isinstance(exc, ConnectivityError):
                return self._finish(outcome, DeploymentState.ABORTED, str(exc))
            console.print(f"[yellow]Warning:[/yellow] {exc}")
            logger.warning(str(exc))

        return self._finish(outcome, DeploymentState.DONE, f"Status of {target} retrieved.")

    def logs(self, target: str) -> DeploymentOutcome:
        outcome = DeploymentOutcome(operation="logs", target=target)
        self._enter(outcome, DeploymentState.START)

        try:
            profile = self.resolve_profile(target)
            console.print(f"[blue]Showing logs from {target}[/blue]")
            shell = self.connect(profile)
            if not shell.exists(self.compose_file):
                raise DeployerError(
                    actionable_error(
                        "compose_file_missing",
                        compose_file=self.compose_file,
                        directory=profile.app_directory,
                        host=profile.host,
                    )
                )
            try:
                returncode = self.docker_runtime_service.stream_logs(shell)
            except KeyboardInterrupt:
                returncode = 0
        except DeployerError as exc:
            return self._finish(outcome, DeploymentState.ABORTED, str(exc))

        logger.debug("Log stream from %s ended with %s", profile.host, returncode)
        return self._finish(outcome, DeploymentState.DONE, "")

    def build(
        self,
        target: str,
        tag: Optional[str] = None,
        push: bool = False,
        context: str = ".",
    ) -> DeploymentOutcome:
        tag = tag or DEFAULT_IMAGE_TAG
        outcome = DeploymentOutcome(operation="build", target=target)
        self._enter(outcome, DeploymentState.START)

        try:
            profile = self.resolve_profile(target)
            outcome.image_reference = profile.image_reference(tag)
            self.docker_runtime_service.validate_local_environment(self.command_runner.run)
            self.docker_runtime_service.build_image(outcome.image_reference, context, self.command_runner.run)
            if push:
                self.docker_runtime_service.push_image(outcome.image_reference, self.command_runner.run)
        except DeployerError as exc:
            return self._finish(outcome, DeploymentState.ABORTED, str(exc))

        return self._finish(outcome, DeploymentState.DONE, f"Built {outcome.image_reference}.")

    def report(self, outcome: DeploymentOutcome):
        if outcome.state == DeploymentState.DONE:
            if outcome.message:
                console.print(f"[green]{outcome.message}[/green]")
                logger.info(outcome.message)
        elif outcome.state == DeploymentState.ROLLED_BACK:
            if outcome.operation == "rollback":
                console.print(f"[green]Rollback on {outcome.target} completed successfully![/green]")
                logger.info(outcome.message)
            else:
                console.print(
                    f"[bold yellow]Deployment of {outcome.image_reference} to {outcome.target} failed; "
                    "the previous version was restored.[/bold yellow]"
                )
                logger.warning(outcome.message)
        elif outcome.state == DeploymentState.FATAL:
            console.print(f"[bold red]Fatal:[/bold red] {outcome.message}")
            logger.error(outcome.message)
        else:
            console.print(f"[bold red]Error:[/bold red] {outcome.message}")
            logger.error(outcome.message)

    def run(self, operation: str, target: str, **kwargs) -> int:
        if operation not in self.OPERATIONS:
            raise DeployerError(f"Unknown command: {operation}")

        try:
            outcome = getattr(self, operation)(target, **kwargs)
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return EXIT_ABORTED

        self.report(outcome)
        return outcome.exit_code
