import subprocess
from datetime import datetime

import pytest

from sitedeploy.errors import CommandFailedError, ConnectivityError
from sitedeploy.services.compose_file import ComposeDefinition

COMPOSE_V1 = (
    "version: '3.8'\n"
    "services:\n"
    "  web:\n"
    "    image: registry.example.com/sample-website:v1  # pinned by deploy\n"
    "    ports:\n"
    "      - \"8080:80\"\n"
    "    restart: unless-stopped\n"
)


class FakeRemoteShell:
    """In-memory stand-in for a deployment target reached over SSH."""

    def __init__(self, files=None, reachable=True, fail_pull=False, fail_up=0, healthy=True):
        self.profile = None
        self.files = dict(files or {})
        self.reachable = reachable
        self.fail_pull = fail_pull
        self.fail_up = fail_up
        self.clock = datetime(2024, 5, 1, 12, 30, 0)
        self.healthy = healthy
        self.running_image = None
        self.commands = []
        self.streamed = []

    def check_connectivity(self):
        if not self.reachable:
            raise ConnectivityError(f"Could not connect to {self.profile.destination}.")

    def exists(self, file_name):
        return file_name in self.files

    def read_text(self, file_name):
        return self.files[file_name]

    def write_text(self, file_name, content):
        self.files[file_name] = content

    def copy(self, source_name, destination_name):
        self.files[destination_name] = self.files[source_name]

    def list_dir(self, directory="."):
        prefix = "" if directory == "." else f"{directory}/"
        names = [name[len(prefix) :] for name in self.files if name.startswith(prefix)]
        return sorted(name for name in names if "/" not in name)

    @property
    def compose_verbs(self):
        return [argv[4] for argv in self.commands if argv[:2] == ["docker", "compose"] and len(argv) > 4]

    def _compose(self, compose_file, verb):
        if verb == "pull":
            return 1 if self.fail_pull else 0
        if verb == "down":
            self.running_image = None
            return 0
        if verb == "up":
            if self.fail_up:
                self.fail_up -= 1
                return 1
            self.running_image = ComposeDefinition.parse(self.files[compose_file]).image_references()[0]
            return 0
        return 0

    def _is_healthy(self):
        if callable(self.healthy):
            return self.healthy(self.running_image)
        return self.healthy and self.running_image is not None

    def run(self, argv, check=True, capture_output=True, input_text=None, in_app_directory=True):
        argv = list(argv)
        self.commands.append(argv)
        stdout = ""
        if argv[:2] == ["docker", "compose"] and argv[2:3] == ["version"]:
            returncode = 0
        elif argv[:2] == ["docker", "compose"]:
            returncode = self._compose(argv[3], argv[4])
            stdout = f"{argv[4]} output"
        elif argv[0] == "date":
            returncode = 0
            stdout = self.clock.strftime(argv[1].lstrip("+"))
        elif argv[0] == "curl":
            returncode = 0 if self._is_healthy() else 7
        else:
            returncode = 0

        if check and returncode != 0:
            raise CommandFailedError(f"Remote command failed ({returncode})", returncode)
        return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr="")

    def stream(self, argv):
        self.streamed.append(list(argv))
        return 0


@pytest.fixture
def servers_dir(tmp_path):
    directory = tmp_path / "servers"
    directory.mkdir()
    (directory / "staging.conf").write_text(
        "# Staging server\n"
        "SERVER_HOST=stg.example.com\n"
        "SSH_USER=deploy\n"
        "APP_DIRECTORY=/opt/sample-website\n"
        'IMAGE_NAME="registry.example.com/sample-website"\n',
        encoding="utf-8",
    )
    return directory


@pytest.fixture
def make_shell():
    def factory(**kwargs):
        kwargs.setdefault("files", {"docker-compose.yml": COMPOSE_V1})
        return FakeRemoteShell(**kwargs)

    return factory
