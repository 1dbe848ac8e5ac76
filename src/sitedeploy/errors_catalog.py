"""Actionable error catalog for sitedeploy."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "configuration_not_found": {
        "what": "Server configuration not found: {path}",
        "next": "Create `{path}` with SERVER_HOST, SSH_USER, APP_DIRECTORY and IMAGE_NAME.",
    },
    "configuration_incomplete": {
        "what": "Server configuration '{path}' is missing required keys: {keys}.",
        "next": "Add the missing keys to the server configuration and retry.",
    },
    "ssh_unreachable": {
        "what": "Could not connect to {destination}.",
        "next": "Check the host address, SSH user and key, then retry.",
    },
    "compose_file_missing": {
        "what": "No {compose_file} found in {directory} on {host}.",
        "next": "Copy the service-stack definition to the application directory first.",
    },
    "image_line_missing": {
        "what": "No image line for {image_name} found in {compose_file}.",
        "next": "Check IMAGE_NAME in the server configuration against the compose file.",
    },
    "no_snapshot": {
        "what": "No backup found for rollback in {directory} on {host}.",
        "next": "Run a deploy first; a backup is taken before every deploy.",
    },
    "rollback_failed": {
        "what": "Rollback on {target} failed its health check.",
        "next": "Inspect `sitedeploy status {target}` and `sitedeploy logs {target}` and recover manually.",
    },
    "docker_unavailable": {
        "what": "Docker is not running.",
        "next": "Start Docker and try again.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
