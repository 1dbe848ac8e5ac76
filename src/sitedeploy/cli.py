import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_COMPOSE_FILE,
    DEFAULT_CONFIG_FILE,
    DEFAULT_SERVERS_DIR,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    HEALTH_CHECK_WAIT_SECONDS,
    SSH_CONNECT_TIMEOUT_SECONDS,
)
from .core import DeployerError, SiteDeployer
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _compose_argv(compose_command):
    if not compose_command:
        return None
    if isinstance(compose_command, str):
        return compose_command.split()
    return list(compose_command)


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .sitedeploy.yml if present.",
)
@click.option(
    "--servers-dir",
    required=False,
    type=click.Path(),
    help="Directory holding <server>.conf files (default: servers).",
)
@click.option(
    "-f",
    "--file",
    "compose_file",
    required=False,
    help="Docker Compose file on the target (default: docker-compose.yml).",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--health-url",
    required=False,
    help="Health check URL (default: http://localhost:8080 on the target).",
)
@click.option(
    "--health-wait",
    required=False,
    type=float,
    default=None,
    help="Seconds to wait after starting containers before the health check.",
)
@click.option(
    "--connect-timeout",
    required=False,
    type=int,
    default=None,
    help="SSH connection timeout in seconds.",
)
@click.option(
    "--compose-command",
    required=False,
    help="Compose command on the target, e.g. 'docker compose'. Detected when omitted.",
)
@click.pass_context
def main(
    ctx,
    config,
    servers_dir,
    compose_file,
    verbose,
    log_file,
    health_url,
    health_wait,
    connect_timeout,
    compose_command,
):
    """Deploy, roll back and inspect the website on remote Docker hosts."""
    logger = logging.getLogger("sitedeploy")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    compose_command = _resolve_option(compose_command, config_values, "compose_command")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    ctx.obj = {
        "default_tag": config_values.get("tag"),
        "options": {
            "servers_dir": str(
                _resolve_option(servers_dir, config_values, "servers_dir", default=DEFAULT_SERVERS_DIR)
            ),
            "compose_file": str(
                _resolve_option(compose_file, config_values, "compose_file", default=DEFAULT_COMPOSE_FILE)
            ),
            "health_check_url": _resolve_option(health_url, config_values, "health_check_url"),
            "health_check_wait": float(
                _resolve_option(
                    health_wait,
                    config_values,
                    "health_check_wait",
                    default=HEALTH_CHECK_WAIT_SECONDS,
                )
            ),
            "health_check_timeout": float(
                config_values.get("health_check_timeout", HEALTH_CHECK_TIMEOUT_SECONDS)
            ),
            "connect_timeout": int(
                _resolve_option(
                    connect_timeout,
                    config_values,
                    "connect_timeout",
                    default=SSH_CONNECT_TIMEOUT_SECONDS,
                )
            ),
            "compose_command": _compose_argv(compose_command),
            "ssh_options": [str(option) for option in config_values.get("ssh_options") or []],
        },
    }


def _run(ctx, operation, target, **kwargs):
    try:
        deployer = SiteDeployer(**ctx.obj["options"])
        exit_code = deployer.run(operation, target, **kwargs)
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(exit_code)


@main.command()
@click.argument("server_name")
@click.option("-t", "--tag", required=False, help="Docker image tag (default: latest)")
@click.pass_context
def deploy(ctx, server_name, tag):
    """Deploy to the specified server."""
    _run(ctx, "deploy", server_name, tag=tag or ctx.obj["default_tag"])


@main.command()
@click.argument("server_name")
@click.pass_context
def rollback(ctx, server_name):
    """Roll back to the previous version."""
    _run(ctx, "rollback", server_name)


@main.command()
@click.argument("server_name")
@click.pass_context
def status(ctx, server_name):
    """Check deployment status."""
    _run(ctx, "status", server_name)


@main.command()
@click.argument("server_name")
@click.pass_context
def logs(ctx, server_name):
    """Show application logs until interrupted."""
    _run(ctx, "logs", server_name)


@main.command()
@click.argument("server_name")
@click.option("-t", "--tag", required=False, help="Docker image tag (default: latest)")
@click.option("--push", is_flag=True, default=False, help="Push the image after building it.")
@click.option(
    "--context",
    "build_context",
    default=".",
    show_default=True,
    type=click.Path(),
    help="Docker build context.",
)
@click.pass_context
def build(ctx, server_name, tag, push, build_context):
    """Build the site image for the specified server locally."""
    _run(
        ctx,
        "build",
        server_name,
        tag=tag or ctx.obj["default_tag"],
        push=push,
        context=build_context,
    )


if __name__ == "__main__":
    main()
