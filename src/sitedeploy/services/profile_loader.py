"""Server profile resolution for sitedeploy."""

import re
import shlex
from pathlib import Path
from typing import Dict, Optional

import yaml

from sitedeploy.constants import OPTIONAL_PROFILE_KEYS, REQUIRED_PROFILE_KEYS
from sitedeploy.errors import ConfigurationNotFound, DeployerError
from sitedeploy.errors_catalog import actionable_error
from sitedeploy.models import ServerProfile


class ProfileLoader:
    """Resolves a target name to a ServerProfile from the servers directory.

    A target is described by ``<servers_dir>/<name>.conf`` holding shell-style
    ``KEY=value`` lines, or by ``<servers_dir>/<name>.yml`` holding a flat YAML
    mapping. Only key lookup is performed; values are never expanded.
    """

    EXTENSIONS = (".conf", ".yml", ".yaml")
    TARGET_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

    def __init__(self, servers_dir: str, logger):
        self.servers_dir = Path(servers_dir)
        self.logger = logger

    def find(self, name: str) -> Optional[Path]:
        if not self.TARGET_NAME_PATTERN.match(name or ""):
            return None
        for extension in self.EXTENSIONS:
            candidate = self.servers_dir / f"{name}{extension}"
            if candidate.is_file():
                return candidate
        return None

    def load(self, name: str) -> ServerProfile:
        path = self.find(name)
        if path is None:
            expected = self.servers_dir / f"{name}.conf"
            raise ConfigurationNotFound(actionable_error("configuration_not_found", path=str(expected)))

        self.logger.debug("Loading server configuration: %s", path)
        if path.suffix == ".conf":
            values = self.parse_conf(path.read_text(encoding="utf-8"), str(path))
        else:
            values = self.parse_yaml(path.read_text(encoding="utf-8"), str(path))

        missing = [key for key in REQUIRED_PROFILE_KEYS if not values.get(key)]
        if missing:
            raise DeployerError(
                actionable_error("configuration_incomplete", path=str(path), keys=", ".join(missing))
            )

        unused = sorted(set(values) - set(REQUIRED_PROFILE_KEYS) - set(OPTIONAL_PROFILE_KEYS))
        if unused:
            self.logger.debug("Ignoring unused keys in %s: %s", path, ", ".join(unused))

        return ServerProfile(
            name=name,
            host=values["SERVER_HOST"],
            user=values["SSH_USER"],
            app_directory=values["APP_DIRECTORY"],
            image_name=values["IMAGE_NAME"],
            port=self._parse_port(values.get("SSH_PORT"), str(path)),
            identity_file=values.get("SSH_KEY") or None,
            health_check_url=values.get("HEALTH_CHECK_URL") or None,
        )

    @staticmethod
    def parse_conf(content: str, source: str = "<string>") -> Dict[str, str]:
        values: Dict[str, str] = {}
        for line_number, line in enumerate(content.splitlines(), start=1):
            try:
                tokens = shlex.split(line, comments=True)
            except ValueError as exc:
                raise DeployerError(f"{source}:{line_number}: {exc}") from exc
            if not tokens:
                continue
            if tokens[0] == "export":
                tokens = tokens[1:]
            if len(tokens) != 1 or "=" not in tokens[0]:
                raise DeployerError(f"{source}:{line_number}: expected KEY=value, got: {line.strip()}")
            key, value = tokens[0].split("=", 1)
            values[key.strip()] = value
        return values

    @staticmethod
    def parse_yaml(content: str, source: str = "<string>") -> Dict[str, str]:
        try:
            parsed = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise DeployerError(f"Invalid server configuration '{source}': {exc}") from exc
        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise DeployerError(f"Server configuration '{source}' must be a YAML mapping.")
        return {str(key): "" if value is None else str(value) for key, value in parsed.items()}

    @staticmethod
    def _parse_port(value: Optional[str], source: str) -> Optional[int]:
        if not value:
            return None
        try:
            port = int(value)
        except ValueError:
            port = 0
        if not 0 < port < 65536:
            raise DeployerError(f"SSH_PORT in '{source}' must be a port number, got: {value}")
        return port
