#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Pre-reset hook: generate and persist a goal-focused handoff.

Runs right before a compact (PreCompact) or clear (UserPromptSubmit with a
/clear prompt). When the instruction starts with a handoff marker, the
outgoing session is forked and summarized against the goal, and the result is
saved for the session-start hook to inject.

The reset is always allowed. Every path, including unexpected errors, ends in
an allow response.
"""

import os
import time
from pathlib import Path
from typing import Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.config import HandoffSettings
    from claude_handoff.context_extractor import ContextExtractor
    from claude_handoff.debug_logger import get_logger
    from claude_handoff.events import PreResetEvent
    from claude_handoff.goal_parser import parse_instruction
    from claude_handoff.models import (
        IN_PROGRESS_ENV,
        HandoffArtifact,
        PreResetResponse,
        ResetKind,
    )
    from claude_handoff.paths import PathResolver
    from claude_handoff.state_store import StateStore
except ImportError:
    from config import HandoffSettings
    from context_extractor import ContextExtractor
    from debug_logger import get_logger
    from events import PreResetEvent
    from goal_parser import parse_instruction
    from models import (
        IN_PROGRESS_ENV,
        HandoffArtifact,
        PreResetResponse,
        ResetKind,
    )
    from paths import PathResolver
    from state_store import StateStore


class PreResetHandler:
    """Handles one pre-reset event.

    Settings and the extractor are only built once a handoff marker has
    matched, so the common no-marker path does no extra work.
    """

    HOOK = "pre_reset"

    def __init__(
        self,
        settings: Optional[HandoffSettings] = None,
        extractor: Optional[ContextExtractor] = None,
        in_progress: Optional[bool] = None,
    ):
        self._settings = settings
        self._extractor = extractor
        if in_progress is None:
            in_progress = os.environ.get(IN_PROGRESS_ENV) == "1"
        self.in_progress = in_progress

    @property
    def settings(self) -> HandoffSettings:
        if self._settings is None:
            self._settings = HandoffSettings.load()
        return self._settings

    @property
    def extractor(self) -> ContextExtractor:
        if self._extractor is None:
            self._extractor = ContextExtractor(
                claude_command=self.settings.claude_command,
                model=self.settings.model,
            )
        return self._extractor

    def handle(self, event: PreResetEvent) -> PreResetResponse:
        """Process the event and return the (always allowing) response."""
        logger = get_logger()
        logger.set_context(event.session_id, str(event.working_directory))
        start = logger.hook_start(self.HOOK, event.trigger.value)

        response = PreResetResponse(
            allow_reset=True,
            suppress_visible_output=event.reset_kind == ResetKind.COMPACTION,
        )
        try:
            outcome = self._run(event, response)
        except Exception as e:
            # Fail-open: nothing in here may block the reset
            logger.error(self.HOOK, e)
            outcome = "error"

        logger.hook_end(self.HOOK, start, outcome=outcome)
        return response

    def _run(self, event: PreResetEvent, response: PreResetResponse) -> str:
        logger = get_logger()

        if self.in_progress:
            logger.skipped(self.HOOK, "reentrant")
            return "reentrant"

        parsed = parse_instruction(event.instruction_text)
        logger.parse_result(parsed.triggers, parsed.persist_to_file, parsed.goal)
        if not parsed.triggers:
            return "no_marker"

        if not self.settings.enabled:
            logger.skipped(self.HOOK, "disabled")
            return "disabled"

        if not event.session_id:
            logger.warning(self.HOOK, "Handoff requested but payload has no session_id")
            return "no_session"

        phase_start = time.perf_counter()
        result = self.extractor.extract(event.session_id, parsed.goal, event.reset_kind)
        logger.hook_phase(self.HOOK, "extract", (time.perf_counter() - phase_start) * 1000)
        if not result.ok:
            return "extraction_failed"

        artifact = HandoffArtifact(
            prior_session_id=event.session_id,
            goal=parsed.goal,
            content=result.content,
            trigger=event.trigger,
            reset_kind=event.reset_kind,
        )
        saved = self._save(StateStore(event.working_directory), artifact)

        if parsed.persist_to_file:
            self._write_handoff_file(event.working_directory, result.content)

        if not saved:
            return "save_failed"

        logger.handoff_saved(
            parsed.goal, len(result.content), event.reset_kind.value, parsed.persist_to_file
        )
        if event.reset_kind == ResetKind.CLEAR:
            goal = parsed.goal or "continue previous work"
            response.message = f"✓ Handoff context prepared. /clear will start with: {goal}"
        return "saved"

    def _save(self, store: StateStore, artifact: HandoffArtifact) -> bool:
        try:
            store.write(artifact)
        except OSError as e:
            get_logger().error("state_write", e)
            return False
        return True

    def _write_handoff_file(self, project_root: Path, content: str) -> None:
        """Best-effort copy of the raw handoff into the working directory."""
        target = PathResolver.handoff_file(project_root, self.settings.handoff_file)
        try:
            target.write_text(content.rstrip("\n") + "\n", encoding="utf-8")
        except OSError as e:
            get_logger().error("handoff_file", e)
