"""Worker lifecycle status and its persisted, cross-process record."""

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class SocketWorkerStatus(Enum):
    """Lifecycle states published by a worker."""
    STARTING = "starting"
    READY = "ready"
    WAITING = "waiting"
    BUSY = "busy"


class StatusFile:
    """
    Single-value status record shared between processes.

    Stored as a small JSON document at a fixed path:

        {"status": "waiting"}

    Only the owning worker writes it; any process may read it. Writes land in
    a temporary sibling file that is renamed over the record, so a reader sees
    either the previous value or the new one. There is no locking: the record
    is advisory, and a missing file means "not started" or "shut down".
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def get(self) -> Optional[SocketWorkerStatus]:
        """
        Read the last written status.

        Returns:
            The status, or None when the record does not exist
        """
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None

        try:
            return SocketWorkerStatus(data["status"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid status record at {self.path}: {e}") from e

    def set(self, status: SocketWorkerStatus) -> None:
        """Write the status, creating the record (and its directory) if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump({"status": status.value}, f)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Status {self.path} -> {status.value}")

    def remove(self) -> None:
        """Delete the record. Missing records are ignored."""
        self.path.unlink(missing_ok=True)
