# SPDX-License-Identifier: MIT
"""Version information for claude-handoff."""

__version__ = "0.4.0"
