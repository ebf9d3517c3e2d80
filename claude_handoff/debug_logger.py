#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Structured debug logging for the handoff hooks.

Events are appended as JSON lines to <state_dir>/debug.log. Each line carries
event, level, timestamp, session_id, pid and project, plus event-specific
keys. Logging must never break a hook, so every write failure is swallowed.

Debug levels (CLAUDE_HANDOFF_DEBUG env var, else claudeHandoff.debugLevel):
    0 = off
    1 = lifecycle events, warnings, errors and hook timings (default)
    2 = + parse results, state file reads/writes, prompt sizes
    3 = + content previews
"""

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.config import HandoffSettings
    from claude_handoff.paths import PathResolver
except ImportError:
    from config import HandoffSettings
    from paths import PathResolver

MAX_LOG_BYTES = 5 * 1024 * 1024
PREVIEW_CHARS = 200


def _resolve_level() -> int:
    env_level = os.environ.get("CLAUDE_HANDOFF_DEBUG")
    if env_level is not None and env_level.strip():
        try:
            return max(0, int(env_level))
        except ValueError:
            pass
    return HandoffSettings.load().debug_level


class DebugLogger:
    """JSON-lines logger with per-process session/project context."""

    def __init__(self, log_path: Optional[Path] = None, level: Optional[int] = None):
        self.log_path = Path(log_path) if log_path else PathResolver.debug_log()
        self.level = _resolve_level() if level is None else level
        self.session_id = ""
        self.project = ""

    def set_context(self, session_id: str = "", project: str = "") -> None:
        """Attach session and project to every subsequent event."""
        self.session_id = session_id or ""
        self.project = Path(project).name if project else ""

    # -------------------------------------------------------------------------
    # Low-level writing
    # -------------------------------------------------------------------------

    def _rotate_if_needed(self) -> None:
        try:
            if self.log_path.stat().st_size < MAX_LOG_BYTES:
                return
        except OSError:
            return
        os.replace(self.log_path, self.log_path.with_name(self.log_path.name + ".1"))

    def _write(self, event: Dict[str, Any]) -> None:
        if self.level < 1:
            return

        record = {
            "event": event.get("event", "unknown"),
            "level": event.get("level", "info"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "pid": os.getpid(),
            "project": self.project,
        }
        record.update({k: v for k, v in event.items() if k not in ("event", "level")})

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._rotate_if_needed()
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
        except OSError:
            pass

    # -------------------------------------------------------------------------
    # Hook timing
    # -------------------------------------------------------------------------

    def hook_start(self, hook: str, trigger: str = "") -> float:
        """Log the start of a hook and return a start time for hook_end."""
        if self.level >= 2:
            event = {"event": "hook_start", "level": "debug", "hook": hook}
            if trigger:
                event["trigger"] = trigger
            self._write(event)
        return time.perf_counter()

    def hook_phase(
        self, hook: str, phase: str, ms: float, details: Optional[Dict[str, Any]] = None
    ) -> None:
        if self.level < 1:
            return
        event = {"event": "hook_phase", "level": "debug", "hook": hook, "phase": phase, "ms": round(ms, 2)}
        if details:
            event["details"] = details
        self._write(event)

    def hook_end(
        self, hook: str, start_time: float, outcome: str = "", phases: Optional[Dict[str, float]] = None
    ) -> None:
        if self.level < 1:
            return
        total_ms = (time.perf_counter() - start_time) * 1000
        event: Dict[str, Any] = {"event": "hook_end", "level": "debug", "hook": hook, "total_ms": round(total_ms, 2)}
        if outcome:
            event["outcome"] = outcome
        if phases:
            event["phases"] = {k: round(v, 2) for k, v in phases.items()}
        self._write(event)

    # -------------------------------------------------------------------------
    # Pipeline events
    # -------------------------------------------------------------------------

    def parse_result(self, triggers: bool, persist_to_file: bool, goal: str) -> None:
        if self.level < 2:
            return
        self._write({
            "event": "parse_result",
            "level": "debug",
            "triggers": triggers,
            "persist_to_file": persist_to_file,
            "goal": goal,
        })

    def extraction(
        self,
        prior_session_id: str,
        duration_ms: float,
        ok: bool,
        failure: str = "",
        exit_code: Optional[int] = None,
        chars: int = 0,
        prompt_chars: int = 0,
        preview: str = "",
    ) -> None:
        event: Dict[str, Any] = {
            "event": "extraction",
            "level": "info" if ok else "warning",
            "prior_session_id": prior_session_id,
            "ok": ok,
            "duration_ms": round(duration_ms, 2),
            "chars": chars,
        }
        if failure:
            event["failure"] = failure
        if exit_code is not None:
            event["exit_code"] = exit_code
        if self.level >= 2 and prompt_chars:
            event["prompt_chars"] = prompt_chars
        if self.level >= 3 and preview:
            event["preview"] = preview[:PREVIEW_CHARS]
        self._write(event)

    def state_write(self, path: Path, chars: int) -> None:
        if self.level < 2:
            return
        self._write({"event": "state_write", "level": "debug", "path": str(path), "chars": chars})

    def state_read(self, path: Path, found: bool, malformed: bool = False) -> None:
        if malformed:
            # Malformed state is worth seeing at the default level
            self._write({"event": "state_read", "level": "warning", "path": str(path), "found": found, "malformed": True})
        elif self.level >= 2:
            self._write({"event": "state_read", "level": "debug", "path": str(path), "found": found})

    def state_delete(self, path: Path, removed: bool, removed_dir: bool) -> None:
        if self.level < 2:
            return
        self._write({
            "event": "state_delete",
            "level": "debug",
            "path": str(path),
            "removed": removed,
            "removed_dir": removed_dir,
        })

    def handoff_saved(self, goal: str, chars: int, reset_kind: str, persist_to_file: bool) -> None:
        self._write({
            "event": "handoff_saved",
            "level": "info",
            "goal": goal,
            "chars": chars,
            "reset_kind": reset_kind,
            "persist_to_file": persist_to_file,
        })

    def injection(self, prior_session_id: str, chars: int, reset_kind: str, preview: str = "") -> None:
        event: Dict[str, Any] = {
            "event": "injection",
            "level": "info",
            "prior_session_id": prior_session_id,
            "chars": chars,
            "reset_kind": reset_kind,
        }
        if self.level >= 3 and preview:
            event["preview"] = preview[:PREVIEW_CHARS]
        self._write(event)

    def skipped(self, hook: str, reason: str, **details: Any) -> None:
        """Log a silent no-op exit (level 2; these are the common case)."""
        if self.level < 2:
            return
        event = {"event": "skipped", "level": "debug", "hook": hook, "reason": reason}
        event.update(details)
        self._write(event)

    def warning(self, op: str, message: str, **details: Any) -> None:
        event = {"event": "warning", "level": "warning", "op": op, "message": message}
        event.update(details)
        self._write(event)

    def error(self, op: str, err: Any) -> None:
        self._write({"event": "error", "level": "error", "op": op, "err": str(err)})


_logger: Optional[DebugLogger] = None


def get_logger() -> DebugLogger:
    """Get the process-wide logger, creating it on first use."""
    global _logger
    if _logger is None:
        _logger = DebugLogger()
    return _logger


def reset_logger() -> None:
    """Drop the cached logger so the next get_logger() re-reads env and settings."""
    global _logger
    _logger = None
