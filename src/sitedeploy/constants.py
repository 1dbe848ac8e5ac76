"""Fixed defaults shared across sitedeploy."""

DEFAULT_IMAGE_TAG = "latest"
DEFAULT_COMPOSE_FILE = "docker-compose.yml"
DEFAULT_SERVERS_DIR = "servers"
DEFAULT_CONFIG_FILE = ".sitedeploy.yml"

HEALTH_CHECK_URL = "http://localhost:8080"
HEALTH_CHECK_WAIT_SECONDS = 10.0
HEALTH_CHECK_TIMEOUT_SECONDS = 30.0

SSH_CONNECT_TIMEOUT_SECONDS = 10
SSH_CONNECTION_FAILED_RETURNCODE = 255

SNAPSHOT_MARKER = ".backup."
SNAPSHOT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
SNAPSHOT_PRECISE_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S_%f"

REQUIRED_PROFILE_KEYS = ("SERVER_HOST", "SSH_USER", "APP_DIRECTORY", "IMAGE_NAME")
OPTIONAL_PROFILE_KEYS = ("SSH_PORT", "SSH_KEY", "HEALTH_CHECK_URL")
