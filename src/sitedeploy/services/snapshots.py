"""Snapshots of the service-stack definition kept on the remote target."""

import posixpath
from datetime import datetime
from typing import List, Optional

from sitedeploy.constants import (
    SNAPSHOT_MARKER,
    SNAPSHOT_PRECISE_TIMESTAMP_FORMAT,
    SNAPSHOT_TIMESTAMP_FORMAT,
)
from sitedeploy.errors import DeployerError
from sitedeploy.models import DeploymentSnapshot


class SnapshotService:
    """Creates, lists and restores ``<compose file>.backup.<timestamp>`` copies.

    Snapshots live next to the compose file, which may sit in a subdirectory
    of the application directory. Timestamps come from the target's clock, so
    operators with skewed local clocks still agree on which snapshot is newest.
    Snapshots are never pruned. The newest one is chosen by its parsed
    timestamp rather than by file modification time.
    """

    def __init__(self, compose_file: str, logger):
        self.compose_file = compose_file
        self.logger = logger

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.compose_file) or "."

    @property
    def prefix(self) -> str:
        return f"{posixpath.basename(self.compose_file)}{SNAPSHOT_MARKER}"

    def _located(self, name: str) -> str:
        return posixpath.join(posixpath.dirname(self.compose_file), name)

    def parse(self, name: str) -> Optional[DeploymentSnapshot]:
        """Parses a directory entry next to the compose file."""
        if not name.startswith(self.prefix):
            return None
        stamp = name[len(self.prefix) :]
        for timestamp_format in (SNAPSHOT_TIMESTAMP_FORMAT, SNAPSHOT_PRECISE_TIMESTAMP_FORMAT):
            try:
                created_at = datetime.strptime(stamp, timestamp_format)
            except ValueError:
                continue
            return DeploymentSnapshot(created_at=created_at, file_name=self._located(name))
        return None

    def list_all(self, shell) -> List[DeploymentSnapshot]:
        snapshots = [self.parse(name) for name in shell.list_dir(self.directory)]
        return sorted(snapshot for snapshot in snapshots if snapshot is not None)

    def latest(self, shell) -> Optional[DeploymentSnapshot]:
        snapshots = self.list_all(shell)
        return snapshots[-1] if snapshots else None

    def remote_now(self, shell) -> datetime:
        output = shell.run(["date", f"+{SNAPSHOT_TIMESTAMP_FORMAT}"]).stdout.strip()
        try:
            return datetime.strptime(output, SNAPSHOT_TIMESTAMP_FORMAT)
        except ValueError as exc:
            raise DeployerError(f"Unexpected output from 'date' on the target: {output!r}") from exc

    def next_name(self, existing: List[str], now: datetime) -> str:
        name = f"{self.prefix}{now.strftime(SNAPSHOT_TIMESTAMP_FORMAT)}"
        sequence = 0
        while name in existing:
            sequence += 1
            name = f"{self.prefix}{now.replace(microsecond=sequence).strftime(SNAPSHOT_PRECISE_TIMESTAMP_FORMAT)}"
        return name

    def create(self, shell) -> Optional[DeploymentSnapshot]:
        """Copies the current definition, or returns None when there is none yet."""
        if not shell.exists(self.compose_file):
            self.logger.info("No %s present yet; skipping backup.", self.compose_file)
            return None

        name = self.next_name(shell.list_dir(self.directory), self.remote_now(shell))
        snapshot = self.parse(name)
        shell.copy(self.compose_file, snapshot.file_name)
        self.logger.info("Created backup %s", snapshot.file_name)
        return snapshot

    def restore(self, shell, snapshot: DeploymentSnapshot):
        shell.copy(snapshot.file_name, self.compose_file)
        self.logger.info("Restored %s from %s", self.compose_file, snapshot.file_name)
