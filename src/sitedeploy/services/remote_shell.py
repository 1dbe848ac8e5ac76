"""SSH transport for commands executed on a deployment target."""

import posixpath
import shlex
import subprocess
from typing import List, Optional, Sequence

from sitedeploy.constants import SSH_CONNECT_TIMEOUT_SECONDS, SSH_CONNECTION_FAILED_RETURNCODE
from sitedeploy.errors import CommandFailedError, ConnectivityError
from sitedeploy.errors_catalog import actionable_error
from sitedeploy.models import ServerProfile


class RemoteShell:
    """Runs commands inside the application directory of a remote target.

    Every argument is quoted with :func:`shlex.quote` before it reaches the
    remote shell, so profile values and tags are never interpolated as shell
    syntax.
    """

    def __init__(
        self,
        profile: ServerProfile,
        command_runner,
        logger,
        ssh_options: Optional[Sequence[str]] = None,
        connect_timeout: int = SSH_CONNECT_TIMEOUT_SECONDS,
        timeout: Optional[float] = None,
    ):
        self.profile = profile
        self.command_runner = command_runner
        self.logger = logger
        self.ssh_options = list(ssh_options or [])
        self.connect_timeout = connect_timeout
        self.timeout = timeout

    def ssh_command(self) -> List[str]:
        cmd = [
            "ssh",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
            "-o",
            "StrictHostKeyChecking=accept-new",
        ]
        if self.profile.port:
            cmd += ["-p", str(self.profile.port)]
        if self.profile.identity_file:
            cmd += ["-i", self.profile.identity_file]
        for option in self.ssh_options:
            cmd += ["-o", option]
        cmd += ["--", self.profile.destination]
        return cmd

    def build_remote_command(self, argv: Sequence[str], in_app_directory: bool = True) -> str:
        command = shlex.join(argv)
        if in_app_directory:
            return f"cd {shlex.quote(self.profile.app_directory)} && {command}"
        return command

    def run(
        self,
        argv: Sequence[str],
        check: bool = True,
        capture_output: bool = True,
        input_text: Optional[str] = None,
        in_app_directory: bool = True,
    ) -> subprocess.CompletedProcess:
        return self._execute(
            self.build_remote_command(argv, in_app_directory=in_app_directory),
            check=check,
            capture_output=capture_output,
            input_text=input_text,
        )

    def stream(self, argv: Sequence[str]) -> int:
        """Runs a long-lived command with output attached to the local terminal."""
        result = self._execute(self.build_remote_command(argv), check=False, capture_output=False)
        return result.returncode

    def check_connectivity(self):
        try:
            self.run(["true"], in_app_directory=False)
        except CommandFailedError as exc:
            raise ConnectivityError(
                actionable_error("ssh_unreachable", destination=self.profile.destination)
            ) from exc

    def exists(self, file_name: str) -> bool:
        result = self.run(["test", "-f", file_name], check=False)
        return result.returncode == 0

    def read_text(self, file_name: str) -> str:
        return self.run(["cat", "--", file_name]).stdout

    def write_text(self, file_name: str, content: str):
        directory, base_name = posixpath.split(file_name)
        temp_name = posixpath.join(directory, f".{base_name}.tmp")
        script = " && ".join(
            [
                f"cd {shlex.quote(self.profile.app_directory)}",
                f"cat > {shlex.quote(temp_name)}",
                shlex.join(["mv", "-f", "--", temp_name, file_name]),
            ]
        )
        self._execute(script, check=True, capture_output=True, input_text=content)

    def copy(self, source_name: str, destination_name: str):
        self.run(["cp", "-p", "--", source_name, destination_name])

    def list_dir(self, directory: str = ".") -> List[str]:
        output = self.run(["ls", "-1A", "--", directory]).stdout
        return [line for line in output.splitlines() if line]

    def _execute(
        self,
        remote_command: str,
        check: bool,
        capture_output: bool,
        input_text: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        self.logger.debug("Remote command on %s: %s", self.profile.host, remote_command)
        result = self.command_runner.run(
            self.ssh_command() + [remote_command],
            check=False,
            capture_output=capture_output,
            timeout=self.timeout,
            input_text=input_text,
        )

        if result.returncode == SSH_CONNECTION_FAILED_RETURNCODE:
            stderr = (result.stderr or "").strip() if capture_output else ""
            message = actionable_error("ssh_unreachable", destination=self.profile.destination)
            if stderr:
                message = f"{message}\n{stderr}"
            raise ConnectivityError(message)

        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip() if capture_output else ""
            message = f"Remote command failed ({result.returncode}) on {self.profile.host}: {remote_command}"
            if stderr:
                message = f"{message}\n{stderr}"
            raise CommandFailedError(message, result.returncode)

        return result
