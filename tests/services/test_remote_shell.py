import subprocess

import pytest

from sitedeploy.errors import CommandFailedError, ConnectivityError
from sitedeploy.models import ServerProfile
from sitedeploy.services.remote_shell import RemoteShell


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


class RecordingRunner:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.calls = []

    def run(self, cmd, check=True, capture_output=False, timeout=None, input_text=None):
        self.calls.append({"cmd": cmd, "input_text": input_text, "capture_output": capture_output})
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr=self.stderr)


def _profile(**overrides) -> ServerProfile:
    values = {
        "name": "staging",
        "host": "stg.example.com",
        "user": "deploy",
        "app_directory": "/opt/sample website",
        "image_name": "registry.example.com/sample-website",
    }
    values.update(overrides)
    return ServerProfile(**values)


def test_ssh_command_includes_profile_options():
    shell = RemoteShell(
        _profile(port=2222, identity_file="~/.ssh/deploy"),
        RecordingRunner(),
        DummyLogger(),
        ssh_options=["ServerAliveInterval=30"],
        connect_timeout=5,
    )

    cmd = shell.ssh_command()

    assert cmd[0] == "ssh"
    assert "ConnectTimeout=5" in cmd
    assert cmd[cmd.index("-p") + 1] == "2222"
    assert cmd[cmd.index("-i") + 1] == "~/.ssh/deploy"
    assert "ServerAliveInterval=30" in cmd
    assert cmd[-2:] == ["--", "deploy@stg.example.com"]


def test_remote_command_quotes_every_argument():
    runner = RecordingRunner()
    shell = RemoteShell(_profile(), runner, DummyLogger())

    shell.run(["cp", "-p", "--", "docker-compose.yml", "x; rm -rf /"])

    remote_command = runner.calls[0]["cmd"][-1]
    assert remote_command == "cd '/opt/sample website' && cp -p -- docker-compose.yml 'x; rm -rf /'"


def test_write_text_sends_content_on_stdin():
    runner = RecordingRunner()
    shell = RemoteShell(_profile(app_directory="/srv/site"), runner, DummyLogger())

    shell.write_text("docker-compose.yml", "services: {}\n")

    call = runner.calls[0]
    assert call["input_text"] == "services: {}\n"
    assert call["cmd"][-1] == (
        "cd /srv/site && cat > .docker-compose.yml.tmp && "
        "mv -f -- .docker-compose.yml.tmp docker-compose.yml"
    )


def test_write_text_keeps_temp_file_beside_nested_target():
    runner = RecordingRunner()
    shell = RemoteShell(_profile(app_directory="/srv/site"), runner, DummyLogger())

    shell.write_text("deploy/docker-compose.yml", "services: {}\n")

    assert runner.calls[0]["cmd"][-1] == (
        "cd /srv/site && cat > deploy/.docker-compose.yml.tmp && "
        "mv -f -- deploy/.docker-compose.yml.tmp deploy/docker-compose.yml"
    )


def test_ssh_failure_raises_connectivity_error():
    shell = RemoteShell(_profile(), RecordingRunner(returncode=255, stderr="Connection refused"), DummyLogger())

    with pytest.raises(ConnectivityError, match="Connection refused"):
        shell.run(["true"])


def test_check_connectivity_wraps_command_failures():
    shell = RemoteShell(_profile(), RecordingRunner(returncode=1), DummyLogger())

    with pytest.raises(ConnectivityError, match="deploy@stg.example.com"):
        shell.check_connectivity()


def test_remote_failure_raises_when_checked():
    shell = RemoteShell(_profile(), RecordingRunner(returncode=2, stderr="no such file"), DummyLogger())

    with pytest.raises(CommandFailedError, match="no such file"):
        shell.read_text("docker-compose.yml")

    assert shell.exists("docker-compose.yml") is False


def test_list_dir_splits_lines():
    runner = RecordingRunner(stdout="docker-compose.yml\ndocker-compose.yml.backup.20240101_000000\n")
    shell = RemoteShell(_profile(), runner, DummyLogger())

    assert shell.list_dir() == ["docker-compose.yml", "docker-compose.yml.backup.20240101_000000"]
    assert runner.calls[0]["cmd"][-1] == "cd '/opt/sample website' && ls -1A -- ."

    shell.list_dir("deploy")

    assert runner.calls[1]["cmd"][-1] == "cd '/opt/sample website' && ls -1A -- deploy"


def test_stream_does_not_capture_output():
    runner = RecordingRunner()
    shell = RemoteShell(_profile(), runner, DummyLogger())

    assert shell.stream(["docker", "compose", "logs", "-f"]) == 0
    assert runner.calls[0]["capture_output"] is False
