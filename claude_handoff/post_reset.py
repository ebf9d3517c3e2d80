#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
"""
Post-reset hook: inject a pending handoff into the new session.

Runs on SessionStart. If the session follows the kind of reset that produced
the pending artifact, the artifact's content is emitted as additional context
and the artifact is deleted. Deletion only happens after the response was
emitted; anything that goes wrong before that leaves the artifact in place
for the next qualifying session start, unless it is past the age ceiling.
Artifacts without a creation time are aged by their file's modification time.
"""

import os
from datetime import datetime
from typing import Any, Callable, Dict, Optional

# Handle both module import and direct script execution
try:
    from claude_handoff.config import HandoffSettings
    from claude_handoff.context_extractor import FailureDetector, MarkerFailureDetector
    from claude_handoff.debug_logger import get_logger
    from claude_handoff.events import PostResetEvent
    from claude_handoff.models import (
        IN_PROGRESS_ENV,
        SESSION_ID_PATTERN,
        HandoffArtifact,
        PostResetResponse,
        ResetKind,
        Trigger,
    )
    from claude_handoff.state_store import StateStore
except ImportError:
    from config import HandoffSettings
    from context_extractor import FailureDetector, MarkerFailureDetector
    from debug_logger import get_logger
    from events import PostResetEvent
    from models import (
        IN_PROGRESS_ENV,
        SESSION_ID_PATTERN,
        HandoffArtifact,
        PostResetResponse,
        ResetKind,
        Trigger,
    )
    from state_store import StateStore


Emitter = Callable[[Dict[str, Any]], None]


def build_injection_context(artifact: HandoffArtifact) -> str:
    """Frame the handoff content for the successor session.

    Args:
        artifact: A validated pending artifact

    Returns:
        Text to inject as additional context
    """
    how = "manual" if artifact.trigger == Trigger.MANUAL else "automatic"
    if artifact.reset_kind == ResetKind.CLEAR:
        intro = (
            "This session was started with /clear. Before clearing, the previous "
            "session prepared the handoff below."
        )
    else:
        intro = (
            f"The previous context window was compacted ({how} compact). Before "
            "compacting, the session prepared the handoff below."
        )

    goal = artifact.goal or "(none given - continue the most recent work)"
    return (
        f"## Handoff Context\n\n{intro}\n\n"
        f"**Goal:** {goal}\n\n"
        f"{artifact.content.strip()}\n"
    )


class PostResetHandler:
    """Handles one session-start event."""

    HOOK = "post_reset"

    def __init__(
        self,
        settings: Optional[HandoffSettings] = None,
        detector: Optional[FailureDetector] = None,
        in_progress: Optional[bool] = None,
        now: Optional[datetime] = None,
    ):
        self._settings = settings
        self.detector = detector or MarkerFailureDetector()
        if in_progress is None:
            in_progress = os.environ.get(IN_PROGRESS_ENV) == "1"
        self.in_progress = in_progress
        self.now = now

    @property
    def settings(self) -> HandoffSettings:
        if self._settings is None:
            self._settings = HandoffSettings.load()
        return self._settings

    def handle(self, event: PostResetEvent, emit: Emitter) -> PostResetResponse:
        """Inject the pending handoff, if any.

        Args:
            event: The session-start event
            emit: Writes a hook response to the host; raising OSError or
                ValueError means the response did not get out

        Returns:
            The emitted response, or an empty one when nothing was injected
        """
        # Spawned by our own extraction: no output, no logging, no file access
        if self.in_progress:
            return PostResetResponse()

        logger = get_logger()
        logger.set_context(event.session_id, str(event.working_directory))
        start = logger.hook_start(self.HOOK, event.startup_source)

        try:
            outcome, response = self._run(event, emit)
        except Exception as e:
            # Fail-open: the artifact stays put unless _run already deleted it
            logger.error(self.HOOK, e)
            outcome, response = "error", PostResetResponse()

        logger.hook_end(self.HOOK, start, outcome=outcome)
        return response

    def _run(self, event: PostResetEvent, emit: Emitter):
        logger = get_logger()
        empty = PostResetResponse()

        kind = ResetKind.from_startup_source(event.startup_source)
        if kind is None:
            logger.skipped(self.HOOK, "source", source=event.startup_source)
            return "not_after_reset", empty

        store = StateStore(event.working_directory)
        artifact = store.read()
        if artifact is None:
            return ("malformed" if store.malformed else "no_artifact"), empty

        # Before any retain decision: nothing outlives the ceiling
        max_age = self.settings.max_pending_age_hours
        if artifact.is_stale(max_age, self.now, fallback_created=store.modified_at()):
            logger.warning(
                self.HOOK,
                "Pending handoff is stale, discarding",
                created_at=artifact.created_at,
                max_age_hours=max_age,
            )
            store.delete()
            return "discarded_stale", empty

        if artifact.reset_kind != kind:
            logger.skipped(self.HOOK, "kind_mismatch", expected=artifact.reset_kind.value, source=event.startup_source)
            return "kind_mismatch", empty

        content = artifact.content.strip()
        if not content or self.detector.is_failure(content):
            logger.warning(self.HOOK, "Pending handoff has no usable content, keeping it for retry")
            return "invalid_content", empty

        if not artifact.prior_session_id:
            logger.warning(self.HOOK, "Pending handoff has no prior session id, discarding")
            store.delete()
            return "discarded_legacy", empty

        self._check_identifiers(event.session_id, artifact.prior_session_id)

        response = PostResetResponse(injected_context=build_injection_context(artifact))
        try:
            emit(response.to_hook_output())
        except (OSError, ValueError) as e:
            # ValueError: stdout closed, or unable to encode the response
            logger.error("inject_emit", e)
            return "emit_failed", empty

        try:
            store.delete()
        except OSError as e:
            # Already injected; a leftover file is retried (and re-injected) next time
            logger.error("state_delete", e)

        logger.injection(
            artifact.prior_session_id,
            len(response.injected_context),
            artifact.reset_kind.value,
            preview=artifact.content,
        )
        return "injected", response

    def _check_identifiers(self, new_session_id: str, prior_session_id: str) -> None:
        """Warn about suspicious session ids without stopping injection."""
        logger = get_logger()
        if new_session_id and new_session_id == prior_session_id:
            logger.warning(
                self.HOOK,
                "Session id collision: new session has the prior session's id",
                new_session_id=new_session_id,
            )
        if not SESSION_ID_PATTERN.match(prior_session_id):
            logger.warning(
                self.HOOK,
                "Prior session id is not a UUID",
                prior_session_id=prior_session_id,
            )
