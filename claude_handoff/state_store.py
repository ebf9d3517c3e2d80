#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Single-slot pending-handoff store.

The PreCompact and SessionStart hooks run as separate processes, so the
handoff crosses the reset boundary through one JSON file per project:

    <project>/.git/handoff-pending/handoff-context.json

The project is found by walking up from the working directory to the
nearest .git entry. Outside a repository the file lives in the state
directory instead, under pending/<hash of the working directory>/.

Writes replace the file atomically (temp file + os.replace), so a reader
sees either the old artifact or the new one, never a torn write. There is
no locking; overlapping writers resolve as last-writer-wins.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.debug_logger import get_logger
    from claude_handoff.models import HandoffArtifact
    from claude_handoff.paths import PathResolver
except ImportError:
    from debug_logger import get_logger
    from models import HandoffArtifact
    from paths import PathResolver


class StateStore:
    """Reads, writes and deletes the pending handoff for one project.

    Attributes:
        working_directory: The working directory the artifact belongs to
        malformed: True if the last read() found an unusable file
    """

    def __init__(self, working_directory: Path):
        self.working_directory = Path(working_directory)
        self.malformed = False

    @property
    def state_dir(self) -> Path:
        return PathResolver.pending_dir(self.working_directory)

    @property
    def path(self) -> Path:
        return PathResolver.pending_file(self.working_directory)

    def exists(self) -> bool:
        return self.path.is_file()

    def modified_at(self) -> Optional[datetime]:
        """Last modification time of the pending file, or None if it is gone.

        Stands in for the creation time of artifacts that do not record one.
        """
        try:
            return datetime.fromtimestamp(self.path.stat().st_mtime, timezone.utc)
        except OSError:
            return None

    def write(self, artifact: HandoffArtifact) -> Path:
        """Create or replace the pending artifact.

        Args:
            artifact: The handoff to persist

        Returns:
            Path of the written file

        Raises:
            OSError: If the directory or file cannot be written
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(artifact.to_dict(), indent=2, ensure_ascii=False)

        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.state_dir), prefix=".handoff-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            # Never leave temp files behind in the state directory
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

        get_logger().state_write(self.path, len(payload))
        return self.path

    def read(self) -> Optional[HandoffArtifact]:
        """Load the pending artifact.

        Returns:
            The artifact, or None if there is none. A file that cannot be read
            or parsed also yields None, with `malformed` set.
        """
        logger = get_logger()
        self.malformed = False

        if not self.path.exists():
            logger.state_read(self.path, found=False)
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError):
            self.malformed = True
            logger.state_read(self.path, found=True, malformed=True)
            return None

        if not isinstance(data, dict):
            self.malformed = True
            logger.state_read(self.path, found=True, malformed=True)
            return None

        logger.state_read(self.path, found=True)
        return HandoffArtifact.from_dict(data)

    def delete(self) -> bool:
        """Remove the pending artifact and, if now empty, its directory.

        Failing to remove the directory (other files in it, permissions) is
        ignored.

        Returns:
            True if a file was removed
        """
        removed = False
        try:
            self.path.unlink()
            removed = True
        except FileNotFoundError:
            pass

        removed_dir = False
        try:
            self.state_dir.rmdir()
            removed_dir = True
        except OSError:
            pass

        get_logger().state_delete(self.path, removed, removed_dir)
        return removed
