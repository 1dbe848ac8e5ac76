"""Configuration loader for sitedeploy."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from sitedeploy.errors import DeployerError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "servers_dir",
        "compose_file",
        "tag",
        "verbose",
        "log_file",
        "health_check_url",
        "health_check_wait",
        "health_check_timeout",
        "connect_timeout",
        "compose_command",
        "ssh_options",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise DeployerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise DeployerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise DeployerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise DeployerError(f"Unknown configuration keys: {unknown_list}")

        ssh_options = parsed.get("ssh_options")
        if ssh_options is not None and not isinstance(ssh_options, list):
            raise DeployerError("Config key 'ssh_options' must be a list of strings.")

        compose_command = parsed.get("compose_command")
        if compose_command is not None and not (
            isinstance(compose_command, str)
            or (isinstance(compose_command, list) and all(isinstance(part, str) for part in compose_command))
        ):
            raise DeployerError("Config key 'compose_command' must be a string or a list of strings.")

        return parsed
