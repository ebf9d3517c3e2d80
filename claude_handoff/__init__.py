# SPDX-License-Identifier: MIT
"""
claude-handoff - goal-focused context handoff across compact and clear.

Hook handlers for Claude Code that extract goal-relevant context from a
session right before it is compacted or cleared, and inject it into the
session that starts afterwards.
"""
