"""Centralized path resolution for claude-handoff.

All path resolution should go through this module to ensure consistency
between the hooks, which run in separate processes.
"""
import hashlib
import os
from pathlib import Path
from typing import Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.models import (
        DEFAULT_HANDOFF_FILE,
        STATE_DIR_NAME,
        STATE_FILE_NAME,
        STATE_PARENT_DIR,
    )
except ImportError:
    from models import (
        DEFAULT_HANDOFF_FILE,
        STATE_DIR_NAME,
        STATE_FILE_NAME,
        STATE_PARENT_DIR,
    )


class PathResolver:
    """Resolves paths for claude-handoff components."""

    @staticmethod
    def state_dir() -> Path:
        """Get the state directory for the debug log.

        Resolution order:
        1. CLAUDE_HANDOFF_STATE env var
        2. XDG_STATE_HOME/claude-handoff
        3. ~/.local/state/claude-handoff
        """
        state = os.environ.get("CLAUDE_HANDOFF_STATE")
        if state:
            return Path(state)
        xdg_state = os.environ.get("XDG_STATE_HOME")
        if xdg_state:
            return Path(xdg_state) / "claude-handoff"
        return Path.home() / ".local" / "state" / "claude-handoff"

    @staticmethod
    def debug_log() -> Path:
        """Get the path of the JSON-lines debug log."""
        return PathResolver.state_dir() / "debug.log"

    @staticmethod
    def find_project_root(working_directory: Path) -> Optional[Path]:
        """Find the nearest ancestor holding a .git entry (directory or worktree file).

        Returns:
            The project root, or None when the working directory is not
            inside a repository
        """
        current = Path(working_directory)
        while True:
            if (current / STATE_PARENT_DIR).exists():
                return current
            if current == current.parent:
                return None
            current = current.parent

    @staticmethod
    def vcs_dir(project_root: Path) -> Path:
        """Get the version-control metadata directory of a project.

        In worktrees and submodules .git is a file containing
        "gitdir: <path>"; the referenced directory is returned then.
        """
        dot_git = Path(project_root) / STATE_PARENT_DIR
        if dot_git.is_file():
            try:
                first_line = dot_git.read_text(encoding="utf-8").splitlines()[0]
            except (OSError, IndexError, UnicodeDecodeError):
                return dot_git
            if first_line.startswith("gitdir:"):
                gitdir = Path(first_line[len("gitdir:"):].strip())
                if not gitdir.is_absolute():
                    gitdir = Path(project_root) / gitdir
                return gitdir
        return dot_git

    @staticmethod
    def pending_dir(working_directory: Path) -> Path:
        """Get the directory holding the pending handoff for a working directory.

        Lives inside the version-control metadata folder so it is never
        committed and never shows up in `git status`. Outside a repository
        the slot lives under state_dir(), keyed by the working directory, so
        no .git directory is ever created in the user's tree.
        """
        root = PathResolver.find_project_root(working_directory)
        if root is None:
            key = hashlib.sha256(
                os.path.realpath(str(working_directory)).encode("utf-8", "surrogateescape")
            ).hexdigest()[:16]
            return PathResolver.state_dir() / "pending" / key
        return PathResolver.vcs_dir(root) / STATE_DIR_NAME

    @staticmethod
    def pending_file(working_directory: Path) -> Path:
        """Get the path of the pending handoff artifact for a working directory."""
        return PathResolver.pending_dir(working_directory) / STATE_FILE_NAME

    @staticmethod
    def handoff_file(working_directory: Path, name: str = DEFAULT_HANDOFF_FILE) -> Path:
        """Get the path of the side-channel handoff file (handoff-file: variant).

        Relative names resolve against the working directory; absolute names
        are used as-is.
        """
        candidate = Path(name)
        if candidate.is_absolute():
            return candidate
        return Path(working_directory) / candidate
