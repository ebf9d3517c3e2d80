#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Hook payload parsing and response writing.

Claude Code passes each hook a JSON object on stdin and reads a JSON object
from stdout. This module turns those payloads into the event objects the
handlers work with, and writes handler responses back out.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Dict, Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.goal_parser import parse_clear_prompt
    from claude_handoff.models import ResetKind, Trigger
except ImportError:
    from goal_parser import parse_clear_prompt
    from models import ResetKind, Trigger


def _str_field(payload: Dict[str, Any], key: str, default: str = "") -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else default


def _cwd_field(payload: Dict[str, Any]) -> Path:
    cwd = _str_field(payload, "cwd")
    return Path(cwd) if cwd else Path(os.getcwd())


@dataclass
class PreResetEvent:
    """A session is about to be compacted or cleared."""
    session_id: str
    trigger: Trigger
    working_directory: Path
    instruction_text: str
    reset_kind: ResetKind

    @classmethod
    def from_precompact(cls, payload: Dict[str, Any]) -> "PreResetEvent":
        """Build from a PreCompact payload (custom_instructions carries the marker)."""
        return cls(
            session_id=_str_field(payload, "session_id"),
            trigger=Trigger.from_value(payload.get("trigger")),
            working_directory=_cwd_field(payload),
            instruction_text=_str_field(payload, "custom_instructions"),
            reset_kind=ResetKind.COMPACTION,
        )

    @classmethod
    def from_prompt_submit(cls, payload: Dict[str, Any]) -> Optional["PreResetEvent"]:
        """Build from a UserPromptSubmit payload.

        Returns None unless the prompt is a /clear command. A typed /clear is
        always a manual reset.
        """
        instruction = parse_clear_prompt(_str_field(payload, "prompt"))
        if instruction is None:
            return None
        return cls(
            session_id=_str_field(payload, "session_id"),
            trigger=Trigger.MANUAL,
            working_directory=_cwd_field(payload),
            instruction_text=instruction,
            reset_kind=ResetKind.CLEAR,
        )


@dataclass
class PostResetEvent:
    """A new session has started."""
    session_id: str
    working_directory: Path
    startup_source: str

    @classmethod
    def from_session_start(cls, payload: Dict[str, Any]) -> "PostResetEvent":
        return cls(
            session_id=_str_field(payload, "session_id"),
            working_directory=_cwd_field(payload),
            startup_source=_str_field(payload, "source", "unknown"),
        )


def read_payload(stream: IO[str]) -> Dict[str, Any]:
    """Read a hook payload, returning {} for empty, invalid or non-object input."""
    try:
        raw = stream.read()
    except (OSError, ValueError):
        return {}
    if not raw or not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def write_response(output: Dict[str, Any], stream: IO[str]) -> None:
    """Write a hook response as a single JSON line.

    Raises:
        OSError: If the host closed stdout
    """
    stream.write(json.dumps(output) + "\n")
    stream.flush()
