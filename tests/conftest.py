"""
Pytest configuration and fixtures for claude-handoff tests.
"""

import sys
from pathlib import Path

# Ensure project root is in sys.path for 'claude_handoff' module imports
# This must happen before any imports from claude_handoff
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import json
import os
import subprocess
from typing import Any, Dict, List

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


@pytest.fixture
def temp_state_dir(tmp_path: Path, monkeypatch) -> Path:
    """Create and return a temporary state directory.

    Sets CLAUDE_HANDOFF_STATE env var and resets debug logger.
    This is available for tests that need explicit access to the state dir.
    """
    state_dir = tmp_path / ".local" / "state" / "claude-handoff"
    state_dir.mkdir(parents=True)
    monkeypatch.setenv("CLAUDE_HANDOFF_STATE", str(state_dir))

    # Reset the debug logger so it picks up the new path
    from claude_handoff.debug_logger import reset_logger
    reset_logger()

    return state_dir


@pytest.fixture
def settings_file(tmp_path: Path, monkeypatch) -> Path:
    """Point CLAUDE_CODE_SETTINGS at a (not yet existing) temp settings.json."""
    path = tmp_path / ".claude" / "settings.json"
    monkeypatch.setenv("CLAUDE_CODE_SETTINGS", str(path))
    return path


@pytest.fixture(autouse=True)
def isolate_state_dir(temp_state_dir: Path, settings_file: Path, monkeypatch):
    """Autouse fixture that ensures all tests use isolated state and settings.

    This prevents tests from polluting the real ~/.local/state/claude-handoff/debug.log
    or picking up the developer's own ~/.claude/settings.json.
    """
    monkeypatch.delenv("HANDOFF_IN_PROGRESS", raising=False)
    monkeypatch.delenv("CLAUDE_HANDOFF_DEBUG", raising=False)

    yield temp_state_dir

    # Reset logger after test
    from claude_handoff.debug_logger import reset_logger
    reset_logger()


@pytest.fixture
def write_settings(settings_file: Path):
    """Return a helper that writes a claudeHandoff settings block."""

    def _write(**values: Any) -> Path:
        settings_file.parent.mkdir(parents=True, exist_ok=True)
        settings_file.write_text(json.dumps({"claudeHandoff": values}))
        from claude_handoff.debug_logger import reset_logger
        reset_logger()
        return settings_file

    return _write


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a temporary project root with a .git directory."""
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    return root


@pytest.fixture
def outside_repo(tmp_path: Path) -> Path:
    """Create a working directory with no .git anywhere above it."""
    from claude_handoff.paths import PathResolver

    root = tmp_path / "plain"
    root.mkdir()
    if PathResolver.find_project_root(root) is not None:
        pytest.skip("temporary directory is inside a git repository")
    return root


@pytest.fixture
def read_log(temp_state_dir: Path):
    """Return a helper that parses debug.log into a list of events."""

    def _read() -> List[Dict[str, Any]]:
        log = temp_state_dir / "debug.log"
        if not log.exists():
            return []
        return [json.loads(line) for line in log.read_text().splitlines() if line.strip()]

    return _read


class FakeRunner:
    """Stands in for subprocess.run in extraction tests.

    Records every call and answers with a canned CompletedProcess, or raises
    the configured exception.
    """

    def __init__(self, stdout: str = "", returncode: int = 0, raises: Exception = None):
        self.stdout = stdout
        self.returncode = returncode
        self.raises = raises
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, command, **kwargs):
        self.calls.append({"command": list(command), **kwargs})
        if self.raises is not None:
            raise self.raises
        return subprocess.CompletedProcess(command, self.returncode, self.stdout, "")

    @property
    def last_command(self) -> List[str]:
        return self.calls[-1]["command"]

    @property
    def last_env(self) -> Dict[str, str]:
        return self.calls[-1]["env"]


@pytest.fixture
def fake_runner():
    """Return a factory for FakeRunner instances."""
    return FakeRunner


HANDOFF_TEXT = """## Immediate Handoff
Implement OAuth login in auth/oauth.py, next step is the callback route.

## Relevant Context
- Provider is GitHub, client id lives in settings.OAUTH_CLIENT_ID

## Key Details
- auth/oauth.py: build_authorize_url() is done

## Important Notes
- Excluded: the CSS refactor discussed earlier"""


@pytest.fixture
def handoff_text() -> str:
    """A realistic extraction output."""
    return HANDOFF_TEXT


@pytest.fixture
def fake_claude(tmp_path: Path, handoff_text: str) -> Path:
    """An executable standing in for `claude --print`.

    Records its arguments and the re-entrancy marker next to itself.
    """
    script = tmp_path / "bin" / "claude"
    script.parent.mkdir()
    script.write_text(
        "#!/bin/sh\n"
        f"printf '%s\\n' \"$@\" > '{script.parent}/args.txt'\n"
        f"printf '%s' \"$HANDOFF_IN_PROGRESS\" > '{script.parent}/env.txt'\n"
        "cat <<'EOF'\n"
        f"{handoff_text}\n"
        "EOF\n"
    )
    script.chmod(0o755)
    return script


SESSION_ID = "1f0e4c5a-8b3d-4e2f-9a61-7c2d5b8e9f10"
NEW_SESSION_ID = "7a9b2c3d-4e5f-4a6b-8c7d-9e0f1a2b3c4d"


@pytest.fixture
def session_id() -> str:
    return SESSION_ID


@pytest.fixture
def new_session_id() -> str:
    return NEW_SESSION_ID


@pytest.fixture
def isolated_subprocess_env(tmp_path, temp_state_dir, settings_file):
    """Fully isolated environment for subprocess tests.

    Uses whitelist approach to prevent env var leakage from parent process.
    """
    home = tmp_path / "home"
    home.mkdir()

    tmpdir = tmp_path / "tmp"
    tmpdir.mkdir(exist_ok=True)

    # Whitelist only essential system env vars
    safe_vars = {"PATH", "SHELL", "TERM", "USER", "LOGNAME", "LANG", "LC_ALL", "LC_CTYPE"}
    base_env = {k: v for k, v in os.environ.items() if k in safe_vars}

    return {
        **base_env,
        "HOME": str(home),
        "TMPDIR": str(tmpdir),
        "PYTHONPATH": str(_project_root),
        "CLAUDE_HANDOFF_STATE": str(temp_state_dir),
        "CLAUDE_CODE_SETTINGS": str(settings_file),
    }
