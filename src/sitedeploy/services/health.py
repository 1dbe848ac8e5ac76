"""Single-shot health probe for a deployed site."""

from urllib.parse import urlparse

import requests

from sitedeploy.constants import HEALTH_CHECK_TIMEOUT_SECONDS

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


class HealthCheckService:
    """Issues exactly one HTTP request and reports healthy or not.

    Loopback URLs only make sense from the target itself, so they are probed
    with curl over the remote shell. Any other URL is probed from here.
    """

    def __init__(self, logger, timeout: float = HEALTH_CHECK_TIMEOUT_SECONDS, requests_module=requests):
        self.logger = logger
        self.timeout = timeout
        self.requests = requests_module

    @staticmethod
    def is_loopback(url: str) -> bool:
        return (urlparse(url).hostname or "").lower() in LOOPBACK_HOSTS

    def probe(self, shell, url: str) -> bool:
        if self.is_loopback(url):
            return self._probe_remote(shell, url)
        return self._probe_local(url)

    def _probe_remote(self, shell, url: str) -> bool:
        self.logger.debug("Probing %s from %s", url, shell.profile.host)
        result = shell.run(
            ["curl", "-fsS", "-o", "/dev/null", "--max-time", str(int(self.timeout)), url],
            check=False,
            in_app_directory=False,
        )
        if result.returncode != 0:
            self.logger.warning("Health probe %s failed: %s", url, (result.stderr or "").strip() or result.returncode)
            return False
        return True

    def _probe_local(self, url: str) -> bool:
        self.logger.debug("Probing %s", url)
        try:
            response = self.requests.get(url, timeout=self.timeout, allow_redirects=True)
            response.raise_for_status()
            response.close()
        except self.requests.RequestException as exc:
            self.logger.warning("Health probe %s failed: %s", url, exc)
            return False
        return True
