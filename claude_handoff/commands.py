#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Command pattern implementation for the CLI.

Each command is a class implementing execute(args) -> int. Commands are
registered in COMMAND_REGISTRY and dispatched via dispatch_command().

Hook commands read the hook payload from stdin and write the hook response
to stdout. They always return 0: a failing handoff must never surface as a
hook error in Claude Code.
"""

import json
import sys
from abc import ABC, abstractmethod
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict, Optional, Type

# Handle both module import and direct script execution
try:
    from claude_handoff.config import (
        HandoffSettings,
        get_bool_setting,
        get_int_setting,
        get_setting,
    )
    from claude_handoff.debug_logger import get_logger
    from claude_handoff.events import (
        PostResetEvent,
        PreResetEvent,
        read_payload,
        write_response,
    )
    from claude_handoff.goal_parser import parse_instruction
    from claude_handoff.models import PendingStatus, PreResetResponse
    from claude_handoff.post_reset import PostResetHandler
    from claude_handoff.pre_reset import PreResetHandler
    from claude_handoff.state_store import StateStore
except ImportError:
    from config import (
        HandoffSettings,
        get_bool_setting,
        get_int_setting,
        get_setting,
    )
    from debug_logger import get_logger
    from events import (
        PostResetEvent,
        PreResetEvent,
        read_payload,
        write_response,
    )
    from goal_parser import parse_instruction
    from models import PendingStatus, PreResetResponse
    from post_reset import PostResetHandler
    from pre_reset import PreResetHandler
    from state_store import StateStore


class Command(ABC):
    """Abstract base class for all CLI commands."""

    @abstractmethod
    def execute(self, args: Namespace) -> int:
        """Execute the command.

        Args:
            args: Parsed command-line arguments

        Returns:
            Exit code (0 for success, non-zero for errors)
        """
        pass


def _emit(output: Optional[Dict[str, Any]]) -> None:
    if output is not None:
        write_response(output, sys.stdout)


def _emit_quietly(output: Dict[str, Any]) -> None:
    """Emit a fail-open response; a closed or unencodable stdout is not worth reporting."""
    try:
        _emit(output)
    except (OSError, ValueError):
        pass


def _log_failure(operation: str, err: Exception) -> None:
    """Record a hook failure without letting the logger itself fail the hook."""
    try:
        get_logger().error(operation, err)
    except Exception:
        pass


# =============================================================================
# Hook Commands
# =============================================================================


class PreCompactCommand(Command):
    """PreCompact hook: generate a handoff for `/compact handoff:<goal>`."""

    def execute(self, args: Namespace) -> int:
        try:
            event = PreResetEvent.from_precompact(read_payload(sys.stdin))
            response = PreResetHandler().handle(event)
        except Exception as e:
            _log_failure("pre-compact", e)
            response = PreResetResponse()
        _emit_quietly(response.to_hook_output())
        return 0


class PromptSubmitCommand(Command):
    """UserPromptSubmit hook: generate a handoff for `/clear handoff:<goal>`.

    Prompts that are not /clear produce no output at all.
    """

    def execute(self, args: Namespace) -> int:
        try:
            event = PreResetEvent.from_prompt_submit(read_payload(sys.stdin))
            if event is None:
                return 0
            response = PreResetHandler().handle(event)
        except Exception as e:
            _log_failure("prompt-submit", e)
            response = PreResetResponse(suppress_visible_output=False)
        _emit_quietly(response.to_hook_output())
        return 0


class SessionStartCommand(Command):
    """SessionStart hook: inject a pending handoff after compact or clear."""

    def execute(self, args: Namespace) -> int:
        try:
            event = PostResetEvent.from_session_start(read_payload(sys.stdin))
            PostResetHandler().handle(event, emit=_emit)
        except Exception as e:
            _log_failure("session-start", e)
        return 0


# =============================================================================
# Maintenance Commands
# =============================================================================


class StatusCommand(Command):
    """Show the pending handoff for a project."""

    def execute(self, args: Namespace) -> int:
        store = StateStore(Path(args.cwd))
        artifact = store.read()
        status = PendingStatus(
            path=store.path,
            artifact=artifact,
            max_age_hours=HandoffSettings.load().max_pending_age_hours,
            modified_at=store.modified_at(),
        )

        if getattr(args, "output_json", False):
            data = status.to_dict()
            data["malformed"] = store.malformed
            print(json.dumps(data, indent=2))
        elif store.malformed:
            print(f"Pending handoff file is unreadable: {store.path}")
        else:
            print(status.format())
        return 0


class DiscardCommand(Command):
    """Delete the pending handoff for a project."""

    def execute(self, args: Namespace) -> int:
        store = StateStore(Path(args.cwd))
        try:
            removed = store.delete()
        except OSError as e:
            print(f"Error: could not remove {store.path}: {e}", file=sys.stderr)
            return 1
        if removed:
            print(f"Discarded pending handoff: {store.path}")
        else:
            print("No pending handoff")
        return 0


class ParseCommand(Command):
    """Show how an instruction would be parsed."""

    def execute(self, args: Namespace) -> int:
        parsed = parse_instruction(args.text)
        if getattr(args, "output_json", False):
            print(json.dumps(parsed.to_dict()))
        else:
            print(parsed.format())
        return 0


class ConfigCommand(Command):
    """Read a setting, printed in a shell-friendly form."""

    def execute(self, args: Namespace) -> int:
        if args.type == "bool":
            default_bool = args.default.lower() in ("true", "1", "yes") if args.default else False
            print("true" if get_bool_setting(args.key, default_bool) else "false")
        elif args.type == "int":
            try:
                default_int = int(args.default) if args.default else 0
            except ValueError:
                print(f"Error: default must be an integer: {args.default}", file=sys.stderr)
                return 1
            print(get_int_setting(args.key, default_int))
        else:
            value = get_setting(args.key, args.default if args.default else None)
            if isinstance(value, (dict, list)):
                print(json.dumps(value))
            else:
                print(value if value is not None else "")
        return 0


# =============================================================================
# Command Registry
# =============================================================================


COMMAND_REGISTRY: Dict[str, Type[Command]] = {
    "pre-compact": PreCompactCommand,
    "prompt-submit": PromptSubmitCommand,
    "session-start": SessionStartCommand,
    "status": StatusCommand,
    "discard": DiscardCommand,
    "parse": ParseCommand,
    "config": ConfigCommand,
}


def dispatch_command(args: Namespace) -> int:
    """Dispatch to appropriate command handler.

    Args:
        args: Parsed arguments with 'command' attribute

    Returns:
        Exit code (0 for success, 1 for unknown command)
    """
    command_name = args.command
    if command_name not in COMMAND_REGISTRY:
        print(f"Unknown command: {command_name}", file=sys.stderr)
        return 1

    command_class = COMMAND_REGISTRY[command_name]
    command = command_class()
    return command.execute(args)
