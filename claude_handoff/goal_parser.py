#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Goal parsing for reset instructions.

`/compact handoff: implement OAuth` reaches the PreCompact hook as the custom
instructions "handoff: implement OAuth". This module decides whether such an
instruction asks for a handoff, which variant, and what the goal is. Pure
functions only: no I/O, no logging.
"""

from typing import Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.models import (
        CLEAR_COMMAND,
        HANDOFF_FILE_MARKER,
        HANDOFF_MARKER,
        ParsedInstruction,
    )
except ImportError:
    from models import (
        CLEAR_COMMAND,
        HANDOFF_FILE_MARKER,
        HANDOFF_MARKER,
        ParsedInstruction,
    )


def parse_instruction(text: Optional[str]) -> ParsedInstruction:
    """Parse a reset instruction for a handoff marker.

    The marker must be at position 0; "do something handoff:foo" does not
    trigger. Whitespace right after the marker is dropped, and an empty
    remainder is a valid (empty) goal.

    Args:
        text: The free-form instruction text (may be None)

    Returns:
        ParsedInstruction with triggers False when no marker matched
    """
    if not text:
        return ParsedInstruction()

    # Neither marker is a prefix of the other, so order does not matter
    if text.startswith(HANDOFF_FILE_MARKER):
        goal = text[len(HANDOFF_FILE_MARKER):].lstrip()
        return ParsedInstruction(triggers=True, persist_to_file=True, goal=goal)

    if text.startswith(HANDOFF_MARKER):
        goal = text[len(HANDOFF_MARKER):].lstrip()
        return ParsedInstruction(triggers=True, persist_to_file=False, goal=goal)

    return ParsedInstruction()


def parse_clear_prompt(prompt: Optional[str]) -> Optional[str]:
    """Extract the instruction text from a `/clear ...` prompt.

    Args:
        prompt: The submitted user prompt

    Returns:
        The text after "/clear" with leading whitespace removed (possibly
        empty), or None if the prompt is not a /clear command.
    """
    if not prompt or not prompt.startswith(CLEAR_COMMAND):
        return None

    rest = prompt[len(CLEAR_COMMAND):]
    # "/clearance" is not a clear
    if rest and not rest[0].isspace():
        return None
    return rest.lstrip()
