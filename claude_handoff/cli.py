#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
CLI interface for Claude Handoff.

Hook entry points for Claude Code plus a few maintenance commands for the
pending handoff.

Usage:
    python3 claude_handoff/cli.py <command> [args]
    python3 -m claude_handoff.cli <command> [args]

Hook configuration (~/.claude/settings.json):
    PreCompact        -> claude-handoff pre-compact
    UserPromptSubmit  -> claude-handoff prompt-submit
    SessionStart      -> claude-handoff session-start
"""

import argparse
import os
import sys

# Handle both module import and direct script execution
try:
    from claude_handoff._version import __version__
    from claude_handoff.commands import dispatch_command
except ImportError:
    from _version import __version__
    from commands import dispatch_command


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Claude Handoff - goal-directed context handoff across compact and clear"
    )
    parser.add_argument(
        "--version", action="version", version=f"claude-handoff {__version__}"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # hook commands - payload on stdin, response on stdout
    subparsers.add_parser("pre-compact", help="PreCompact hook")
    subparsers.add_parser("prompt-submit", help="UserPromptSubmit hook (handles /clear)")
    subparsers.add_parser("session-start", help="SessionStart hook")

    # status command
    status_parser = subparsers.add_parser("status", help="Show the pending handoff")
    status_parser.add_argument(
        "--cwd", default=os.getcwd(), help="Working directory (default: current)"
    )
    status_parser.add_argument(
        "--json", dest="output_json", action="store_true", help="Output as JSON"
    )

    # discard command
    discard_parser = subparsers.add_parser("discard", help="Delete the pending handoff")
    discard_parser.add_argument(
        "--cwd", default=os.getcwd(), help="Working directory (default: current)"
    )

    # parse command
    parse_parser = subparsers.add_parser(
        "parse", help="Show how a compact or clear instruction is parsed"
    )
    parse_parser.add_argument("text", help="Instruction text, e.g. 'handoff: fix the login bug'")
    parse_parser.add_argument(
        "--json", dest="output_json", action="store_true", help="Output as JSON"
    )

    # config command - read settings for shell scripts
    config_parser = subparsers.add_parser("config", help="Get configuration value")
    config_parser.add_argument("key", help="Config key (dot notation, e.g., claudeHandoff.model)")
    config_parser.add_argument("--default", "-d", default="", help="Default value if key not found")
    config_parser.add_argument(
        "--type", "-t",
        choices=["string", "int", "bool"],
        default="string",
        help="Value type (string, int, bool)"
    )

    return parser


def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(dispatch_command(args))


if __name__ == "__main__":
    main()
