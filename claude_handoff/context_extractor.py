#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Goal-focused context extraction from a prior session.

Forks the outgoing session with `claude --resume <id> --fork-session` and asks
a fast model for a handoff focused on the user's goal. The fork leaves the
original transcript untouched. This is the only blocking external call in the
pipeline; no local timeout is applied, the CLI owns that policy.

Failures are returned as ExtractionResult values and never raised.
"""

import os
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.debug_logger import get_logger
    from claude_handoff.models import (
        DEFAULT_CLAUDE_COMMAND,
        DEFAULT_MODEL,
        IN_PROGRESS_ENV,
        MAX_HANDOFF_WORDS,
        NOT_FOUND_MARKERS,
        ExtractionFailure,
        ExtractionResult,
        ResetKind,
    )
except ImportError:
    from debug_logger import get_logger
    from models import (
        DEFAULT_CLAUDE_COMMAND,
        DEFAULT_MODEL,
        IN_PROGRESS_ENV,
        MAX_HANDOFF_WORDS,
        NOT_FOUND_MARKERS,
        ExtractionFailure,
        ExtractionResult,
        ResetKind,
    )


# Signature of subprocess.run, narrowed to what we use
Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class FailureDetector(ABC):
    """Decides whether extraction output is really a failure message."""

    @abstractmethod
    def is_failure(self, output: str) -> bool:
        """Return True if the output must not be used as handoff content."""
        pass


class MarkerFailureDetector(FailureDetector):
    """Flags output containing a known failure marker anywhere in it.

    Matching is a case-insensitive substring search over the whole output, so
    a marker buried in otherwise normal text still counts. Legitimate content
    that quotes a marker is rejected too.
    """

    def __init__(self, markers: Optional[List[str]] = None):
        source = NOT_FOUND_MARKERS if markers is None else markers
        self.markers = [m.lower() for m in source if m]

    def is_failure(self, output: str) -> bool:
        output_lower = output.lower()
        for marker in self.markers:
            if marker in output_lower:
                return True
        return False


def build_extraction_prompt(goal: str, reset_kind: ResetKind = ResetKind.COMPACTION) -> str:
    """Build the prompt sent to the forked session.

    Args:
        goal: The user's goal (may be empty)
        reset_kind: Which reset is about to happen, for the opening line

    Returns:
        Prompt text
    """
    if reset_kind == ResetKind.CLEAR:
        opening = "This session is about to be cleared."
    else:
        opening = "Context window compaction imminent."

    goal_text = goal or "(no explicit goal - continue the most recent work)"

    return f"""{opening} You are analyzing the current session to generate a focused Handoff for the next session.

Create a focused Handoff message for the next agent to immediately pick up where we left off. This Handoff will be used by the next agent to continue the most recent work related to the user's goal:

<user_goal>
  {goal_text}
</user_goal>

Work through it in this order:

1. **Restate the goal** - One or two sentences on what the next session must achieve
2. **Scan the session chronologically** - Collect only what matters for the goal:
   decisions and conventions agreed on, files read or changed (paths only),
   errors hit and how they were resolved, blockers still open
3. **List exclusions** - Name the topics from this session you are deliberately leaving out because they are unrelated to the goal
4. **Write the handoff** - Concise markdown, at most {MAX_HANDOFF_WORDS} words, structured as:

<format>
  ## Immediate Handoff
  [Restate the goal and the immediate next steps]

  ## Relevant Context
  [Bullet points of relevant technical context]

  ## Key Details
  [Specific implementation details, file paths, function names, shell commands]

  ## Important Notes
  [Warnings, blockers, exclusions, or critical information]
</format>

Start directly with "## Immediate Handoff". No preamble about this being a handoff."""


class ContextExtractor:
    """Runs the forked, non-destructive extraction against a prior session.

    Attributes:
        claude_command: Executable to invoke (default "claude")
        model: Model tier to use (default "haiku")
        detector: FailureDetector applied to the output
    """

    def __init__(
        self,
        claude_command: str = DEFAULT_CLAUDE_COMMAND,
        model: str = DEFAULT_MODEL,
        detector: Optional[FailureDetector] = None,
        runner: Optional[Runner] = None,
        base_env: Optional[Dict[str, str]] = None,
    ):
        self.claude_command = claude_command
        self.model = model
        self.detector = detector or MarkerFailureDetector()
        self._runner = runner or subprocess.run
        self._base_env = base_env

    def build_command(self, prior_session_id: str, prompt: str) -> List[str]:
        """Build the argv for the extraction call."""
        return [
            self.claude_command,
            "--resume", prior_session_id,
            "--fork-session",
            "--model", self.model,
            "--print", prompt,
        ]

    def child_env(self) -> Dict[str, str]:
        """Environment for the child process, with the re-entrancy marker set.

        The forked session fires its own hooks; the marker tells our
        session-start hook running inside it to stay out of the way.
        """
        env = dict(os.environ if self._base_env is None else self._base_env)
        env[IN_PROGRESS_ENV] = "1"
        return env

    def classify(self, returncode: int, stdout: str) -> ExtractionResult:
        """Turn a finished call into an ExtractionResult."""
        if returncode != 0:
            return ExtractionResult.failed(ExtractionFailure.NONZERO_EXIT, exit_code=returncode)

        output = (stdout or "").strip()
        if not output:
            return ExtractionResult.failed(ExtractionFailure.EMPTY_OUTPUT, exit_code=returncode)

        if self.detector.is_failure(output):
            return ExtractionResult.failed(
                ExtractionFailure.NOT_FOUND, exit_code=returncode, detail=output[:200]
            )

        return ExtractionResult.success(output, exit_code=returncode)

    def extract(
        self,
        prior_session_id: str,
        goal: str,
        reset_kind: ResetKind = ResetKind.COMPACTION,
    ) -> ExtractionResult:
        """Extract goal-relevant context from a prior session.

        Args:
            prior_session_id: Session to fork and read
            goal: The user's goal (may be empty)
            reset_kind: Which reset is about to happen

        Returns:
            ExtractionResult; check .ok before using .content
        """
        logger = get_logger()
        prompt = build_extraction_prompt(goal, reset_kind)
        command = self.build_command(prior_session_id, prompt)

        start = time.perf_counter()
        try:
            completed = self._runner(
                command,
                capture_output=True,
                text=True,
                env=self.child_env(),
            )
            result = self.classify(completed.returncode, completed.stdout)
        except (OSError, ValueError) as e:
            # FileNotFoundError when claude is not on PATH, ValueError for NUL bytes in args
            result = ExtractionResult.failed(ExtractionFailure.LAUNCH_ERROR, detail=str(e))
        duration_ms = (time.perf_counter() - start) * 1000

        logger.extraction(
            prior_session_id,
            duration_ms,
            ok=result.ok,
            failure=result.failure.value if result.failure else "",
            exit_code=result.exit_code,
            chars=len(result.content),
            prompt_chars=len(prompt),
            preview=result.content or result.detail,
        )
        return result
