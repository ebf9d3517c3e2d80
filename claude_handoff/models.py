#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Data models for the handoff pipeline.

Contains all dataclasses, enums, and constants shared by the pre-reset and
post-reset hooks.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


# =============================================================================
# Constants
# =============================================================================

# Instruction markers (must appear at the very start of the instruction text)
HANDOFF_MARKER = "handoff:"
HANDOFF_FILE_MARKER = "handoff-file:"

# Slash command that carries a clear-path instruction
CLEAR_COMMAND = "/clear"

# Environment marker set on the child `claude` process during extraction
IN_PROGRESS_ENV = "HANDOFF_IN_PROGRESS"

# State file location, relative to the project root
STATE_PARENT_DIR = ".git"
STATE_DIR_NAME = "handoff-pending"
STATE_FILE_NAME = "handoff-context.json"

# Extraction defaults
DEFAULT_CLAUDE_COMMAND = "claude"
DEFAULT_MODEL = "haiku"
MAX_HANDOFF_WORDS = 500

# Side-channel file written for the handoff-file: variant
DEFAULT_HANDOFF_FILE = "HANDOFF.md"

# Pending artifacts older than this are discarded instead of injected (0 = never)
DEFAULT_MAX_PENDING_AGE_HOURS = 24

# Debug log verbosity when neither CLAUDE_HANDOFF_DEBUG nor the setting is set
DEFAULT_DEBUG_LEVEL = 1

# Substrings that mark extraction output as a failure (case-insensitive)
NOT_FOUND_MARKERS = [
    "no conversation found",
    "session not found",
]

# Claude Code session ids are UUIDs
SESSION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


# =============================================================================
# Enums
# =============================================================================


class Trigger(str, Enum):
    """How the reset was initiated."""
    MANUAL = "manual"
    AUTO = "auto"

    @classmethod
    def from_value(cls, value: Any) -> "Trigger":
        """Parse a trigger string, falling back to AUTO for anything unknown."""
        if isinstance(value, str) and value.strip().lower() == cls.MANUAL.value:
            return cls.MANUAL
        return cls.AUTO


class ResetKind(str, Enum):
    """Which destructive reset produced (or may consume) a handoff."""
    COMPACTION = "compaction"
    CLEAR = "clear"

    @classmethod
    def from_value(cls, value: Any, strict: bool = False) -> "ResetKind":
        """Parse a reset kind.

        Accepts the legacy "compact" spelling. Unknown values map to
        COMPACTION unless strict is set.

        Raises:
            ValueError: If strict and the value is not a known kind.
        """
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in ("compaction", "compact"):
                return cls.COMPACTION
            if normalized == "clear":
                return cls.CLEAR
        if strict:
            raise ValueError(f"Unknown reset kind: {value!r}")
        return cls.COMPACTION

    @classmethod
    def from_startup_source(cls, source: Any) -> Optional["ResetKind"]:
        """Map a SessionStart `source` to the reset kind it follows.

        Returns None for sources that do not follow a reset (startup, resume).
        """
        if source == "compact":
            return cls.COMPACTION
        if source == "clear":
            return cls.CLEAR
        return None


class ExtractionFailure(str, Enum):
    """Reasons a context extraction produced nothing usable."""
    LAUNCH_ERROR = "launch_error"
    NONZERO_EXIT = "nonzero_exit"
    EMPTY_OUTPUT = "empty_output"
    NOT_FOUND = "not_found"


# =============================================================================
# Abstract Base Classes
# =============================================================================


class FormattableResult(ABC):
    """Base class for result types that can be formatted for display."""

    @abstractmethod
    def format(self) -> str:
        """Format the result for display.

        Returns:
            Human-readable string representation of the result.
        """
        pass


# =============================================================================
# Helpers
# =============================================================================


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, treating naive values as UTC.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    try:
        # fromisoformat() before 3.11 does not accept a trailing Z
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first_string(data: Dict[str, Any], keys: List[str]) -> str:
    """Return the first non-empty string value among keys."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ParsedInstruction(FormattableResult):
    """Result of parsing a reset instruction.

    Attributes:
        triggers: Whether the instruction requests a handoff at all
        persist_to_file: Whether the raw content should also be written to a file
        goal: The user's goal text (may be empty)
    """
    triggers: bool = False
    persist_to_file: bool = False
    goal: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triggers": self.triggers,
            "persistToFile": self.persist_to_file,
            "goal": self.goal,
        }

    def format(self) -> str:
        if not self.triggers:
            return "No handoff requested"
        variant = "handoff-file" if self.persist_to_file else "handoff"
        goal = self.goal or "(no goal)"
        return f"{variant}: {goal}"


@dataclass
class HandoffArtifact:
    """The pending handoff persisted across the reset boundary.

    Attributes:
        prior_session_id: Id of the session that was reset
        goal: User-declared goal that drove extraction
        content: Extracted handoff text
        trigger: Whether the reset was manual or automatic
        reset_kind: Which reset produced this artifact
        created_at: ISO-8601 UTC creation time
    """
    prior_session_id: str
    goal: str
    content: str
    trigger: Trigger = Trigger.AUTO
    reset_kind: ResetKind = ResetKind.COMPACTION
    created_at: str = field(default_factory=lambda: utc_now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the on-disk JSON shape."""
        return {
            "priorSessionId": self.prior_session_id,
            "goal": self.goal,
            "content": self.content,
            "trigger": self.trigger.value,
            "resetKind": self.reset_kind.value,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HandoffArtifact":
        """Deserialize from the on-disk JSON shape.

        Also reads the keys written by earlier releases
        (handoff_content, draft, previous_session, type, user_instructions).
        """
        return cls(
            prior_session_id=_first_string(data, ["priorSessionId", "previous_session"]),
            goal=_first_string(data, ["goal", "user_instructions"]),
            content=_first_string(data, ["content", "handoff_content", "draft"]),
            trigger=Trigger.from_value(data.get("trigger")),
            reset_kind=ResetKind.from_value(data.get("resetKind") or data.get("type")),
            created_at=_first_string(data, ["createdAt", "created_at"]),
        )

    def age_hours(
        self, now: Optional[datetime] = None, fallback_created: Optional[datetime] = None
    ) -> Optional[float]:
        """Hours since creation.

        Args:
            now: Reference time (defaults to the current UTC time)
            fallback_created: Used when created_at is missing or invalid,
                e.g. the state file's modification time

        Returns:
            Age in hours, or None when no creation time is known
        """
        created = parse_timestamp(self.created_at) or fallback_created
        if created is None:
            return None
        now = now or utc_now()
        return (now - created).total_seconds() / 3600

    def is_stale(
        self,
        max_age_hours: int,
        now: Optional[datetime] = None,
        fallback_created: Optional[datetime] = None,
    ) -> bool:
        """Check whether the artifact is past the age ceiling.

        A ceiling of 0 or less disables the check. Artifacts whose age cannot
        be determined at all are not considered stale.
        """
        if max_age_hours <= 0:
            return False
        age = self.age_hours(now, fallback_created)
        if age is None:
            return False
        return age > max_age_hours


@dataclass
class ExtractionResult:
    """Outcome of one context extraction call.

    Exactly one of content / failure is meaningful: a successful result has
    non-empty content and failure None.
    """
    content: str = ""
    failure: Optional[ExtractionFailure] = None
    exit_code: Optional[int] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None and bool(self.content)

    @classmethod
    def success(cls, content: str, exit_code: int = 0) -> "ExtractionResult":
        return cls(content=content, exit_code=exit_code)

    @classmethod
    def failed(
        cls,
        failure: ExtractionFailure,
        exit_code: Optional[int] = None,
        detail: str = "",
    ) -> "ExtractionResult":
        return cls(failure=failure, exit_code=exit_code, detail=detail)


@dataclass
class PreResetResponse:
    """Response to a pre-reset hook. The reset is always allowed."""
    allow_reset: bool = True
    suppress_visible_output: bool = True
    message: str = ""

    def to_hook_output(self) -> Dict[str, Any]:
        """Render in the host's hook output format."""
        output: Dict[str, Any] = {
            "continue": self.allow_reset,
            "suppressOutput": self.suppress_visible_output,
        }
        if self.message:
            output["systemMessage"] = self.message
        return output


@dataclass
class PostResetResponse:
    """Response to a session-start hook; empty unless context is injected."""
    injected_context: str = ""

    @property
    def injected(self) -> bool:
        return bool(self.injected_context)

    def to_hook_output(self) -> Optional[Dict[str, Any]]:
        """Render in the host's hook output format, or None for no output."""
        if not self.injected_context:
            return None
        return {
            "hookSpecificOutput": {
                "hookEventName": "SessionStart",
                "additionalContext": self.injected_context,
            }
        }


@dataclass
class PendingStatus(FormattableResult):
    """Pending-handoff state of a project, for the status command."""
    path: Path
    artifact: Optional[HandoffArtifact] = None
    max_age_hours: int = DEFAULT_MAX_PENDING_AGE_HOURS
    modified_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"path": str(self.path), "pending": self.artifact is not None}
        if self.artifact is not None:
            data["artifact"] = self.artifact.to_dict()
            data["stale"] = self.artifact.is_stale(self.max_age_hours, fallback_created=self.modified_at)
        return data

    def format(self) -> str:
        if self.artifact is None:
            return f"No pending handoff ({self.path})"

        artifact = self.artifact
        age = artifact.age_hours(fallback_created=self.modified_at)
        age_text = f"{age:.1f}h old" if age is not None else "age unknown"
        stale_note = " [STALE]" if artifact.is_stale(self.max_age_hours, fallback_created=self.modified_at) else ""
        words = len(artifact.content.split())
        lines = [
            f"Pending handoff{stale_note}: {self.path}",
            f"  Goal:     {artifact.goal or '(none)'}",
            f"  Kind:     {artifact.reset_kind.value} ({artifact.trigger.value})",
            f"  Session:  {artifact.prior_session_id or '(missing)'}",
            f"  Created:  {artifact.created_at or '(unknown)'} ({age_text})",
            f"  Content:  {words} words",
        ]
        return "\n".join(lines)
